"""Admin authentication for administrative endpoints."""

import secrets
from typing import Optional

from fastapi import Header, HTTPException, Request

from vibetrip.app.core.logging import get_logger

logger = get_logger(__name__)


def require_admin(
    request: Request,
    x_admin_token: Optional[str] = Header(default=None),
) -> str:
    """FastAPI dependency validating the ``x-admin-token`` header.

    The expected token is read from the service container's settings so
    tests can run with their own configuration.

    Raises:
        HTTPException: 403 if the token is missing or does not match
    """
    expected = request.app.state.container.settings.admin_token.strip()
    provided = (x_admin_token or "").strip()

    if not expected or not provided or not secrets.compare_digest(
        provided.encode(), expected.encode()
    ):
        logger.warning(
            "Rejected admin request",
            extra={"path": request.url.path, "method": request.method},
        )
        raise HTTPException(status_code=403, detail="Forbidden")
    return provided
