"""HTTP surface: feed query and refresh progress endpoints."""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Query, Request
from fastapi.responses import JSONResponse
import structlog

from ..config.settings import settings
from ..errors import InvalidQueryError, StoreError
from .service import (
    DISCOVERY_DEFAULT_LIMIT, FeedService, parse_category, parse_discovery_categories,
    parse_feed_mode, parse_required_time_range, parse_time_range,
)

logger = structlog.get_logger()


def create_app(service: FeedService = None) -> FastAPI:
    """Build the FastAPI app around a FeedService instance."""
    service = service or FeedService()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        service.cache.start_sweeper(settings.cache_sweep_interval_seconds)
        yield
        await service.cache.stop_sweeper()
        await service.background.drain()

    app = FastAPI(title="Trendfeed", lifespan=lifespan)
    app.state.service = service

    @app.exception_handler(InvalidQueryError)
    async def invalid_query(request: Request, exc: InvalidQueryError):
        content = {"success": False, "error": str(exc)}
        if exc.valid_values is not None:
            content["validValues"] = exc.valid_values
        return JSONResponse(status_code=400, content=content)

    @app.exception_handler(StoreError)
    async def store_failure(request: Request, exc: StoreError):
        logger.error("feed_request_failed", path=request.url.path, error=str(exc))
        return JSONResponse(
            status_code=500,
            content={"success": False, "error": "Failed to fetch feed", "details": str(exc)},
        )

    @app.get("/health")
    async def health():
        return {"status": "ok", "sources": len(service.catalog)}

    @app.get("/api/feed")
    async def feed(
        category: Optional[str] = None,
        source: Optional[str] = None,
        time_range: Optional[str] = Query(None, alias="timeRange"),
        mode: Optional[str] = None,
    ):
        return await service.get_feed(
            category=parse_category(category),
            source_id=source,
            time_range=parse_time_range(time_range),
            mode=parse_feed_mode(mode),
        )

    @app.get("/api/feed/refresh-status")
    async def refresh_status():
        return service.refresh_progress()

    @app.get("/api/discovery/items")
    async def discovery_items(
        categories: Optional[str] = None,
        time_range: Optional[str] = Query(None, alias="timeRange"),
        limit: int = DISCOVERY_DEFAULT_LIMIT,
        offset: int = 0,
    ):
        return await service.get_discovery_items(
            categories=parse_discovery_categories(categories),
            time_range=parse_required_time_range(time_range),
            limit=limit,
            offset=offset,
        )

    @app.get("/api/feed/trending")
    async def trending(
        category: Optional[str] = None,
        source: Optional[str] = None,
        time_range: Optional[str] = Query(None, alias="timeRange"),
        normalize: bool = True,
    ):
        return await service.get_trending(
            category=parse_category(category),
            source_id=source,
            time_range=parse_time_range(time_range),
            normalize_categories=normalize,
        )

    @app.get("/api/sources/health")
    async def sources_health():
        return service.source_health()

    return app
