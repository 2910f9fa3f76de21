"""Middleware package for the gateway."""

from vibetrip.app.middleware.auth import require_admin
from vibetrip.app.middleware.rate_limit import RateLimitMiddleware
from vibetrip.app.middleware.request_id import RequestIdMiddleware, get_request_id
from vibetrip.app.middleware.request_size import RequestSizeLimitMiddleware
from vibetrip.app.middleware.validation import ContentTypeMiddleware, sanitize_payload

__all__ = [
    "require_admin",
    "ContentTypeMiddleware",
    "RateLimitMiddleware",
    "RequestIdMiddleware",
    "RequestSizeLimitMiddleware",
    "get_request_id",
    "sanitize_payload",
]
