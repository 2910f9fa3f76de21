import asyncio
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from vibetrip.app.api import (
    admin_router,
    gemini_router,
    health_router,
    metrics_router,
    trips_router,
)
from vibetrip.app.api.metrics import MetricsMiddleware
from vibetrip.app.container import ServiceContainer
from vibetrip.app.core.config import Settings, settings as default_settings
from vibetrip.app.core.http_client import init_http_client
from vibetrip.app.core.logging import get_logger, setup_logging
from vibetrip.app.exceptions import GatewayException, RateLimitedError
from vibetrip.app.middleware import (
    ContentTypeMiddleware,
    RateLimitMiddleware,
    RequestIdMiddleware,
    RequestSizeLimitMiddleware,
    get_request_id,
)
from vibetrip.app.providers.base import BaseProvider


def create_app(
    settings: Optional[Settings] = None,
    provider: Optional[BaseProvider] = None,
    use_async_logging: bool = True,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Application settings; the environment-loaded settings by default
        provider: Model provider override (tests pass a MockProvider)
        use_async_logging: Move log writes to a background thread

    Returns:
        Configured FastAPI application instance
    """
    settings = settings or default_settings

    setup_logging(use_async=use_async_logging)
    logger = get_logger(__name__)

    container = ServiceContainer(settings, provider=provider)

    def handle_loop_exception(loop: asyncio.AbstractEventLoop, context: dict) -> None:
        exc = context.get("exception")
        logger.error(
            f"Unhandled exception in event loop: {context.get('message')}",
            exc_info=exc,
        )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan context manager.

        Shares one pooled HTTP client with the provider and runs the
        limiter, cache and session sweeps for the lifetime of the app.
        """
        asyncio.get_running_loop().set_exception_handler(handle_loop_exception)

        async with init_http_client(settings) as http_client:
            container.attach_http_client(http_client)
            await container.start()

            logger.info(
                "Application startup complete",
                extra={
                    "provider": type(container.provider).__name__,
                    "has_gemini_api_key": bool(settings.gemini_api_key),
                    "debug_mode": settings.debug,
                },
            )

            try:
                yield
            finally:
                await container.stop()
                container.attach_http_client(None)

        logger.info("Application shutdown complete")

    app = FastAPI(
        title="VibeTrip Gateway",
        description="Travel itinerary planning behind rate limiting, circuit breaking and caching",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.container = container

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(RateLimitMiddleware)
    app.add_middleware(ContentTypeMiddleware)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestSizeLimitMiddleware, max_body_size=settings.max_body_size)
    app.add_middleware(RequestIdMiddleware)

    # CORS middleware (outermost - handles preflight requests first)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=[
            "X-Request-ID",
            "X-RateLimit-Limit",
            "X-RateLimit-Remaining",
            "X-RateLimit-Reset",
            "Retry-After",
        ],
        max_age=600,
    )

    app.include_router(health_router)
    app.include_router(gemini_router)
    app.include_router(trips_router)
    app.include_router(metrics_router)
    app.include_router(admin_router)

    @app.exception_handler(GatewayException)
    async def gateway_exception_handler(request: Request, exc: GatewayException) -> JSONResponse:
        """Render domain errors as JSON with their own status code."""
        headers: dict[str, str] = {}
        if isinstance(exc, RateLimitedError):
            headers["Retry-After"] = str(exc.retry_after)
            headers["X-RateLimit-Limit"] = str(exc.limit)
            headers["X-RateLimit-Remaining"] = "0"
            if exc.reset_at:
                headers["X-RateLimit-Reset"] = exc.reset_at

        level = "error" if exc.status_code >= 500 else "info"
        getattr(logger, level)(
            f"{type(exc).__name__}: {exc.message}",
            extra={
                "request_id": get_request_id(request),
                "path": request.url.path,
                "status_code": exc.status_code,
            },
        )
        await container.metrics.record_error(type(exc).__name__)
        return JSONResponse(
            status_code=exc.status_code, content=exc.to_response(), headers=headers
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        errors = exc.errors()
        first = errors[0] if errors else {}
        field = ".".join(str(p) for p in first.get("loc", ()) if p != "body") or "body"
        return JSONResponse(
            status_code=400,
            content={
                "error": "Validation Error",
                "message": f"{field}: {first.get('msg', 'invalid request')}",
            },
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": str(exc.detail), "message": str(exc.detail)},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Global exception handler for unhandled exceptions.

        The traceback is logged server-side and never returned to the client.
        """
        request_id = get_request_id(request)
        logger.exception(
            f"Unhandled exception [request_id={request_id}]",
            extra={
                "request_id": request_id,
                "exception_type": type(exc).__name__,
            },
        )
        await container.metrics.record_error(type(exc).__name__)

        content: dict[str, Any] = {
            "error": "internal_error",
            "message": "Internal server error",
            "request_id": request_id,
        }
        if settings.debug:
            content["message"] = str(exc)
            content["exception_type"] = type(exc).__name__
        return JSONResponse(status_code=500, content=content)

    return app


# Create the application instance
app = create_app()
