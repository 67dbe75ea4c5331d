"""In-memory tracker for batch refresh progress.

One session at a time per process. Another process never sees it; callers
treat a missing session as "nothing in flight".
"""

import itertools
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, Iterable, Optional

import structlog

from ..config.settings import settings
from ..ingestion.interfaces import SourceConfig

logger = structlog.get_logger()


class RefreshStatus(Enum):
    PENDING = "pending"
    FETCHING = "fetching"
    DONE = "done"
    FAILED = "failed"


TERMINAL_STATUSES = (RefreshStatus.DONE, RefreshStatus.FAILED)


@dataclass
class SourceRefreshEntry:
    id: str
    name: str
    icon: str = ""
    status: RefreshStatus = RefreshStatus.PENDING

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "icon": self.icon, "status": self.status.value}


@dataclass
class RefreshSession:
    sources: Dict[str, SourceRefreshEntry]
    started_at: float
    token: int = 0
    completed: int = 0
    completed_at: Optional[float] = None

    @property
    def total(self) -> int:
        return len(self.sources)


class RefreshProgressTracker:
    """Holds the single live refresh session of this process."""

    def __init__(
        self,
        timeout_seconds: float = None,
        grace_seconds: float = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.timeout_seconds = (
            timeout_seconds if timeout_seconds is not None
            else settings.refresh_session_timeout_seconds
        )
        self.grace_seconds = (
            grace_seconds if grace_seconds is not None
            else settings.refresh_session_grace_seconds
        )
        self._clock = clock
        self._session: Optional[RefreshSession] = None
        self._tokens = itertools.count(1)

    def start_session(self, sources: Iterable[SourceConfig]) -> int:
        """Begin a session; replaces any previous one.

        Returns the owner token to hand back to ``end_session``.
        """
        entries = {
            s.id: SourceRefreshEntry(id=s.id, name=s.name, icon=s.icon)
            for s in sources
        }
        token = next(self._tokens)
        self._session = RefreshSession(sources=entries, started_at=self._clock(), token=token)
        logger.debug("refresh_session_started", total=len(entries), token=token)
        return token

    @property
    def active(self) -> bool:
        return self._current() is not None

    @property
    def in_progress(self) -> bool:
        """A live session that has not ended yet (finished ones linger for the grace period)."""
        session = self._current()
        return session is not None and session.completed_at is None

    def mark_fetching(self, source_id: str) -> None:
        entry = self._entry(source_id)
        if entry and entry.status == RefreshStatus.PENDING:
            entry.status = RefreshStatus.FETCHING

    def mark_done(self, source_id: str) -> None:
        self._finish(source_id, RefreshStatus.DONE)

    def mark_failed(self, source_id: str) -> None:
        self._finish(source_id, RefreshStatus.FAILED)

    def end_session(self, token: int = None) -> None:
        """Mark the session finished; it stays readable for the grace period.

        With a token, only the session that token started is ended.
        """
        session = self._current()
        if session is None or (token is not None and token != session.token):
            return
        if session.completed_at is None:
            session.completed_at = self._clock()
            logger.debug("refresh_session_ended", completed=session.completed, total=session.total)

    def snapshot(self) -> dict:
        session = self._current()
        if session is None:
            return {"active": False}

        percent = round(session.completed / session.total * 100) if session.total else 0
        return {
            "active": True,
            "done": session.completed_at is not None,
            "sources": [e.to_dict() for e in session.sources.values()],
            "total": session.total,
            "completed": session.completed,
            "percent": percent,
        }

    def _current(self) -> Optional[RefreshSession]:
        """Live session, expiring it on the hard timeout or after the grace period."""
        session = self._session
        if session is None:
            return None

        now = self._clock()
        expired = now - session.started_at > self.timeout_seconds or (
            session.completed_at is not None
            and now - session.completed_at > self.grace_seconds
        )
        if expired:
            self._session = None
            return None
        return session

    def _entry(self, source_id: str) -> Optional[SourceRefreshEntry]:
        session = self._current()
        return session.sources.get(source_id) if session else None

    def _finish(self, source_id: str, status: RefreshStatus) -> None:
        entry = self._entry(source_id)
        if entry is None or entry.status in TERMINAL_STATUSES:
            return
        entry.status = status
        self._session.completed += 1
        if self._session.completed >= self._session.total:
            self.end_session()
