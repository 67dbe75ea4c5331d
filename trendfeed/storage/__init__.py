"""Database storage and models."""

from .database import ContentStorage
from .models import ContentItemModel, SourceStateModel, SourceHealthModel, init_db

__all__ = ["ContentStorage", "ContentItemModel", "SourceStateModel", "SourceHealthModel", "init_db"]
