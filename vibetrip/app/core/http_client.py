"""Shared HTTP client management for connection pooling.

One ``httpx.AsyncClient`` is created per application and handed to the
remote providers through the service container, so every model call reuses
the same connection pool.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

import httpx

from vibetrip.app.core.config import Settings, settings as default_settings


def create_http_client(config: Optional[Settings] = None, **kwargs) -> httpx.AsyncClient:
    """Create a new HTTP client with pooled limits and granular timeouts.

    Note: The returned client should be closed when done:
        async with create_http_client() as client:
            # use client
            pass

    Args:
        config: Settings to read pool and timeout values from
        **kwargs: Override default settings. Can include:
            - timeout: Single timeout value (overrides all granular timeouts)
            - connect_timeout / read_timeout / write_timeout / pool_timeout
            - max_connections / max_keepalive_connections / keepalive_expiry

    Returns:
        A new httpx.AsyncClient instance
    """
    config = config or default_settings

    # connect: establish socket, read: wait for response data,
    # write: send request data, pool: acquire a pooled connection
    timeout_override = kwargs.get("timeout")
    if timeout_override is not None:
        timeout = httpx.Timeout(timeout_override)
    else:
        timeout = httpx.Timeout(
            connect=kwargs.get("connect_timeout", config.httpx_connect_timeout),
            read=kwargs.get("read_timeout", config.httpx_read_timeout),
            write=kwargs.get("write_timeout", config.httpx_write_timeout),
            pool=kwargs.get("pool_timeout", config.httpx_pool_timeout),
        )

    limits = httpx.Limits(
        max_connections=kwargs.get("max_connections", config.httpx_max_connections),
        max_keepalive_connections=kwargs.get(
            "max_keepalive_connections", config.httpx_max_keepalive_connections
        ),
        keepalive_expiry=kwargs.get("keepalive_expiry", config.httpx_keepalive_expiry),
    )
    return httpx.AsyncClient(timeout=timeout, limits=limits)


@asynccontextmanager
async def init_http_client(
    config: Optional[Settings] = None,
) -> AsyncGenerator[httpx.AsyncClient, None]:
    """Create a pooled client for the application lifespan and close it after.

        @asynccontextmanager
        async def lifespan(app: FastAPI):
            async with init_http_client() as client:
                yield
    """
    client = create_http_client(config)
    try:
        yield client
    finally:
        await client.aclose()
