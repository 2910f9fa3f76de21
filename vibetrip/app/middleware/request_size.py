"""Request body size limit middleware.

This middleware limits the size of incoming request bodies to prevent
memory exhaustion and ensure fair resource usage.

Enforces size limits for both Content-Length and chunked transfer encoding.
"""

import json

from starlette.types import Receive, Scope, Send


class SizeLimitedStream:
    """A stream wrapper that enforces size limits during reading.

    This prevents chunked transfer encoding bypass by counting bytes
    as they are read from the stream.
    """

    class SizeExceededError(Exception):
        """Raised when request body exceeds size limit."""

        pass

    def __init__(self, receive: Receive, max_size: int):
        """Initialize the size-limited stream.

        Args:
            receive: The ASGI receive callable
            max_size: Maximum number of bytes allowed
        """
        self._receive = receive
        self._max_size = max_size
        self._bytes_read = 0
        self._body_complete = False

    async def receive(self) -> dict:
        """Receive and enforce size limit.

        Raises:
            SizeExceededError: If body size exceeds max_size
        """
        if self._body_complete:
            return {"type": "http.request", "body": b"", "more_body": False}

        message = await self._receive()

        if message["type"] == "http.request":
            self._bytes_read += len(message.get("body", b""))

            if self._bytes_read > self._max_size:
                raise self.SizeExceededError(
                    f"Request body too large. Maximum allowed: {self._max_size} bytes"
                )

            if not message.get("more_body", False):
                self._body_complete = True

        return message


class RequestSizeLimitMiddleware:
    """ASGI middleware to limit request body size.

    Returns HTTP 413 (Payload Too Large) as JSON if the limit is exceeded,
    either up front from Content-Length or while the body is streamed.

    Usage:
        app.add_middleware(RequestSizeLimitMiddleware, max_body_size=2*1024*1024)
    """

    def __init__(self, app, max_body_size: int = 2 * 1024 * 1024):
        """Initialize the middleware.

        Args:
            app: The ASGI application
            max_body_size: Maximum allowed body size in bytes (default: 2MB)
        """
        self.app = app
        self.max_body_size = max_body_size

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        # Fast path: trust a declared Content-Length
        content_length = None
        for name, value in scope.get("headers", []):
            if name.lower() == b"content-length":
                content_length = value.decode()
                break

        if content_length:
            try:
                if int(content_length) > self.max_body_size:
                    await self._send_413_response(send)
                    return
            except ValueError:
                pass

        size_limited_receive = SizeLimitedStream(receive, self.max_body_size).receive
        response_started = False

        async def tracking_send(message) -> None:
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        try:
            await self.app(scope, size_limited_receive, tracking_send)
        except SizeLimitedStream.SizeExceededError as exc:
            if response_started:
                raise
            await self._send_413_response(send, detail=str(exc))

    async def _send_413_response(self, send: Send, detail: str | None = None) -> None:
        if detail is None:
            detail = f"Request body too large. Maximum allowed: {self.max_body_size} bytes"

        body = json.dumps({"error": "Payload Too Large", "message": detail}).encode()
        await send(
            {
                "type": "http.response.start",
                "status": 413,
                "headers": [
                    [b"content-type", b"application/json"],
                    [b"content-length", str(len(body)).encode()],
                ],
            }
        )
        await send({"type": "http.response.body", "body": body})
