"""Shared fixtures for gateway tests."""

import pytest
from fastapi.testclient import TestClient

from vibetrip.app.core.config import Settings
from vibetrip.app.main import create_app
from vibetrip.app.providers.mock import MockProvider

ADMIN_TOKEN = "test-admin-token"


class FakeClock:
    """Manually advanced time source for limiter, breaker and cache tests."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def test_settings():
    return Settings(
        _env_file=None,
        gemini_api_key="test-key",
        admin_token=ADMIN_TOKEN,
        backoff_base_seconds=0.001,
        rate_limit_gemini_max_tokens=5,
        rate_limit_gemini_refill_rate=0.01,
    )


@pytest.fixture
def mock_provider():
    return MockProvider(min_delay=0, max_delay=0)


@pytest.fixture
def app(test_settings, mock_provider):
    return create_app(test_settings, provider=mock_provider, use_async_logging=False)


@pytest.fixture
def client(app):
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client


@pytest.fixture
def container(app):
    return app.state.container
