"""Query service and HTTP app."""

from .service import FeedService
from .app import create_app

__all__ = ["FeedService", "create_app"]
