"""Request validation helpers.

- ``ContentTypeMiddleware`` rejects API requests whose body is not JSON.
- ``sanitize_payload`` strips keys and characters that must never reach a
  prompt or a cache key.
- ``read_json_body`` is the single way routes read a JSON body.
"""

import json
import re
from typing import Any

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

from vibetrip.app.exceptions import ValidationError

# Null and control characters except tab, newline and carriage return
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]")

_BODY_METHODS = frozenset(("POST", "PUT", "PATCH"))


def _has_body(request: Request) -> bool:
    if "transfer-encoding" in request.headers:
        return True
    try:
        return int(request.headers.get("content-length", "0")) > 0
    except ValueError:
        return True


class ContentTypeMiddleware(BaseHTTPMiddleware):
    """Require ``application/json`` on API requests that carry a body.

    Missing Content-Type is a 400, any other media type a 415. Requests
    without a body (e.g. confirm/cancel actions) pass through.
    """

    def __init__(self, app, path_prefix: str = "/api"):
        super().__init__(app)
        self.path_prefix = path_prefix

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint
    ) -> Response:
        if (
            request.method in _BODY_METHODS
            and request.url.path.startswith(self.path_prefix)
            and _has_body(request)
        ):
            content_type = request.headers.get("content-type")
            if not content_type:
                error = ValidationError("Content-Type header is required")
                return JSONResponse(status_code=error.status_code, content=error.to_response())

            media_type = content_type.split(";")[0].strip().lower()
            if media_type != "application/json":
                error = ValidationError(
                    "Content-Type must be one of: application/json",
                    status_code=415,
                    error="Unsupported Media Type",
                )
                return JSONResponse(status_code=error.status_code, content=error.to_response())

        return await call_next(request)


def sanitize_payload(value: Any) -> Any:
    """Recursively clean a decoded JSON payload.

    Drops object keys starting with ``__`` or ``$`` and removes null and
    control characters from strings. Other values are returned unchanged.
    """
    if isinstance(value, str):
        return _CONTROL_CHARS.sub("", value)
    if isinstance(value, list):
        return [sanitize_payload(item) for item in value]
    if isinstance(value, dict):
        return {
            key: sanitize_payload(item)
            for key, item in value.items()
            if not (isinstance(key, str) and key.startswith(("__", "$")))
        }
    return value


async def read_json_body(request: Request) -> dict:
    """Decode, type-check and sanitize a JSON object body.

    Raises:
        ValidationError: If the body is not valid JSON or not an object
    """
    raw = await request.body()
    if not raw:
        raise ValidationError("Request body is required")
    try:
        payload = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise ValidationError("Request body must be valid JSON")
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")
    return sanitize_payload(payload)
