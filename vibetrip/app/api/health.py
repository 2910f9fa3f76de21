"""Health check endpoint."""

from typing import Any

from fastapi import APIRouter, Depends

from vibetrip.app.api.deps import get_container
from vibetrip.app.core.utils import get_memory_usage

router = APIRouter(prefix="/api", tags=["health"])


@router.get("/health")
async def health(container=Depends(get_container)) -> dict[str, Any]:
    """Liveness plus a short view of the resilience components.

    Always 200: a missing API key or an open circuit is reported as
    ``degraded``, not as a failed check.
    """
    has_key = bool(container.settings.gemini_api_key)
    breakers = {
        name: breaker.state.value for name, breaker in container.breakers.items()
    }
    degraded = (not has_key and not container.settings.mock_provider) or any(
        state != "CLOSED" for state in breakers.values()
    )

    return {
        "ok": True,
        "status": "degraded" if degraded else "ok",
        "uptime_seconds": container.metrics.uptime_seconds,
        "memory": get_memory_usage(),
        "has_gemini_api_key": has_key,
        "mock_provider": container.settings.mock_provider,
        "circuit_breakers": breakers,
    }
