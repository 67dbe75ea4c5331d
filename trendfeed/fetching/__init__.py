"""Freshness-driven fetching, refresh progress and source health."""

from .background import BackgroundTasks
from .ensure_fresh import FreshnessCoordinator, FreshnessResult, FetchFailure
from .health import FetchOutcome, SourceHealthTracker, next_health_record
from .refresh_progress import RefreshProgressTracker, RefreshStatus

__all__ = [
    "BackgroundTasks", "FreshnessCoordinator", "FreshnessResult", "FetchFailure",
    "FetchOutcome", "SourceHealthTracker", "next_health_record",
    "RefreshProgressTracker", "RefreshStatus",
]
