"""Remote model providers and the resilience primitives wrapped around them.

This package provides:
- Base provider interface (BaseProvider)
- Provider implementations (GeminiProvider, MockProvider)
- Circuit breaker (CircuitBreaker, CircuitBreakerOptions)
- Retry mechanism (RetryPolicy, run_with_retry)
"""

from vibetrip.app.providers.base import BaseProvider
from vibetrip.app.providers.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerOptions,
    CircuitState,
)
from vibetrip.app.providers.gemini import GeminiProvider
from vibetrip.app.providers.mock import MockProvider
from vibetrip.app.providers.retry import RetryPolicy, run_with_retry

__all__ = [
    # Base
    "BaseProvider",
    # Providers
    "GeminiProvider",
    "MockProvider",
    # Circuit breaker
    "CircuitBreaker",
    "CircuitBreakerOptions",
    "CircuitState",
    # Retry
    "RetryPolicy",
    "run_with_retry",
]
