"""Rate limiting middleware for the gateway.

This module provides token bucket rate limiting to prevent abuse and ensure
fair usage of the API. The global limiter runs as middleware on every API
path; the stricter model-call limiter is applied per route via
``enforce_rate_limit``.
"""

import hashlib
from typing import Optional

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from vibetrip.app.core.logging import get_logger
from vibetrip.app.exceptions import RateLimitedError
from vibetrip.app.middleware.rate_limit.backends import TokenBucketLimiter
from vibetrip.app.middleware.rate_limit.models import RateLimitBucket, RateLimitResult

logger = get_logger(__name__)

__all__ = [
    "RateLimitBucket",
    "RateLimitResult",
    "TokenBucketLimiter",
    "RateLimitMiddleware",
    "client_ip",
    "client_key",
    "client_key_for_ip",
    "enforce_rate_limit",
    "rate_limit_headers",
]


def client_ip(request: Request) -> str:
    """Best-effort client IP, honouring the first X-Forwarded-For hop."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def client_key_for_ip(ip: str) -> str:
    """Rate limit key for an IP address.

    IPs are hashed so raw addresses are never kept in limiter state or
    exposed through the metrics endpoint.
    """
    ip_hash = hashlib.sha256(ip.strip().encode()).hexdigest()[:32]
    return f"ratelimit:ip:{ip_hash}"


def client_key(request: Request) -> str:
    return client_key_for_ip(client_ip(request))


def rate_limit_headers(result: RateLimitResult) -> dict[str, str]:
    return {
        "X-RateLimit-Limit": str(result.limit),
        "X-RateLimit-Remaining": str(result.remaining),
        "X-RateLimit-Reset": result.reset_at(),
    }


def _log_rejection(limiter: TokenBucketLimiter, key: str, result: RateLimitResult) -> None:
    logger.warning(
        "Rate limit exceeded",
        extra={
            "type": "rate_limit_exceeded",
            "limiter": limiter.name,
            "client_key": key,
            "reset_in_ms": result.reset_in_ms,
        },
    )


async def enforce_rate_limit(
    limiter: TokenBucketLimiter, request: Request, response: Optional[Response] = None
) -> RateLimitResult:
    """Check ``limiter`` for the calling client.

    Headers are written to ``response`` when admitted.

    Raises:
        RateLimitedError: When the bucket has no tokens left
    """
    key = client_key(request)
    result = await limiter.check_limit(key)
    headers = rate_limit_headers(result)

    if not result.allowed:
        _log_rejection(limiter, key, result)
        raise RateLimitedError(
            retry_after=result.retry_after or 1,
            limit=result.limit,
            reset_at=headers["X-RateLimit-Reset"],
        )

    if response is not None:
        response.headers.update(headers)
    return result


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Middleware enforcing the global limiter per client IP.

    The limiter is looked up on ``app.state.container`` at request time so the
    same instance is shared with the admin and metrics endpoints.
    """

    def __init__(
        self,
        app,
        path_prefix: str = "/api",
        exempt_paths: tuple[str, ...] = ("/api/health",),
    ):
        super().__init__(app)
        self.path_prefix = path_prefix
        self.exempt_paths = exempt_paths

    def _applies_to(self, path: str) -> bool:
        return path.startswith(self.path_prefix) and path not in self.exempt_paths

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint
    ) -> Response:
        if not self._applies_to(request.url.path):
            return await call_next(request)

        limiter: TokenBucketLimiter = request.app.state.container.global_limiter
        key = client_key(request)
        result = await limiter.check_limit(key)
        headers = rate_limit_headers(result)

        if not result.allowed:
            _log_rejection(limiter, key, result)
            error = RateLimitedError(retry_after=result.retry_after or 1, limit=result.limit)
            return JSONResponse(
                status_code=error.status_code,
                content=error.to_response(),
                headers={**headers, "Retry-After": str(error.retry_after)},
            )

        response = await call_next(request)

        # A stricter route-level limiter may already have set these
        for name, value in headers.items():
            response.headers.setdefault(name, value)
        return response
