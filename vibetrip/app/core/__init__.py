"""Core utilities for the gateway application."""

from vibetrip.app.core.cache import CacheEntry, TTLCache
from vibetrip.app.core.config import settings
from vibetrip.app.core.logging import get_logger, setup_logging

__all__ = [
    "CacheEntry",
    "TTLCache",
    "settings",
    "get_logger",
    "setup_logging",
]
