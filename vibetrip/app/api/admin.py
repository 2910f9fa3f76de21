"""Administrative endpoints (require the ``x-admin-token`` header)."""

from typing import Any, Literal

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from vibetrip.app.api.deps import get_container
from vibetrip.app.core.logging import get_logger
from vibetrip.app.exceptions import NotFoundError
from vibetrip.app.middleware.auth import require_admin
from vibetrip.app.middleware.rate_limit import client_key_for_ip

logger = get_logger(__name__)
router = APIRouter(prefix="/api/admin", tags=["admin"], dependencies=[Depends(require_admin)])


class RateLimitResetRequest(BaseModel):
    ip: str = Field(min_length=1)
    limiter: Literal["global", "gemini"] = "global"


@router.post("/rate-limit/reset")
async def reset_rate_limit(
    body: RateLimitResetRequest, container=Depends(get_container)
) -> dict[str, Any]:
    """Delete one client's bucket so its next request starts full."""
    limiter = container.limiters[body.limiter]
    removed = limiter.reset(client_key_for_ip(body.ip))
    logger.info(f"Admin reset {body.limiter} rate limit (bucket existed: {removed})")
    return {"success": True, "limiter": body.limiter, "reset": removed}


@router.post("/circuit-breakers/{name}/reset")
async def reset_circuit_breaker(name: str, container=Depends(get_container)) -> dict[str, Any]:
    """Force a breaker CLOSED."""
    breaker = container.breakers.get(name)
    if breaker is None:
        raise NotFoundError(f"Unknown circuit breaker: {name}")
    breaker.reset()
    return {"success": True, "breaker": breaker.get_stats()}


@router.post("/cache/clear")
async def clear_caches(container=Depends(get_container)) -> dict[str, Any]:
    """Drop every cached entry and reset hit/miss counters."""
    for cache in container.caches.values():
        await cache.clear()
    return {"success": True, "caches": list(container.caches)}
