"""Configuration - settings and source catalogue."""

from .settings import Settings, settings

__all__ = ["Settings", "settings"]
