"""API endpoints package for the gateway."""

from vibetrip.app.api.admin import router as admin_router
from vibetrip.app.api.gemini import router as gemini_router
from vibetrip.app.api.health import router as health_router
from vibetrip.app.api.metrics import router as metrics_router
from vibetrip.app.api.trips import router as trips_router

__all__ = [
    "admin_router",
    "gemini_router",
    "health_router",
    "metrics_router",
    "trips_router",
]
