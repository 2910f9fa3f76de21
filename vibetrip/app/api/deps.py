"""FastAPI dependencies resolving services from the application container."""

from fastapi import Request


def get_container(request: Request):
    """Return the ``ServiceContainer`` built by ``create_app``."""
    return request.app.state.container
