"""Circuit breaker for remote dependencies.

Stops calling a failing dependency for a cooldown period, then trials
recovery before fully resuming::

    CLOSED ──[failures >= failure_threshold]──► OPEN
      ▲                                          │
      │                                     [timeout elapsed]
      │                                          │
      └──[successes >= success_threshold]── HALF_OPEN
                                                 │
                                           [any failure]
                                                 ▼
                                                OPEN

One breaker exists per dependency ("Gemini API", "Google Maps API"); the
application's service container owns them.
"""

import asyncio
import enum
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

from vibetrip.app.core.logging import get_logger
from vibetrip.app.exceptions import CircuitOpenError

logger = get_logger(__name__)

T = TypeVar("T")


class CircuitState(str, enum.Enum):
    CLOSED = "CLOSED"
    OPEN = "OPEN"
    HALF_OPEN = "HALF_OPEN"


@dataclass
class CircuitBreakerOptions:
    """Breaker thresholds.

    Attributes:
        name: Dependency name used in errors and logs
        failure_threshold: Consecutive failures that open the circuit
        success_threshold: Consecutive half-open successes that close it
        timeout: Seconds to stay open before allowing a trial call
    """

    name: str
    failure_threshold: int = 5
    success_threshold: int = 2
    timeout: float = 60.0

    def __post_init__(self) -> None:
        if self.failure_threshold < 1 or self.success_threshold < 1:
            raise ValueError("thresholds must be at least 1")
        if self.timeout <= 0:
            raise ValueError("timeout must be positive")


class CircuitBreaker:
    """Async circuit breaker.

    The breaker only gates whether a call is attempted; it never retries.
    Any exception raised by the wrapped call counts as a failure. State
    transitions happen under a lock, while the wrapped call itself runs
    outside it.

    Usage:
        breaker = CircuitBreaker(CircuitBreakerOptions(name="Gemini API"))
        text = await breaker.execute(lambda: provider.generate(...))
    """

    def __init__(
        self,
        options: CircuitBreakerOptions,
        clock: Callable[[], float] = time.monotonic,
        wall_clock: Callable[[], float] = time.time,
    ):
        self.options = options
        self._clock = clock
        self._wall_clock = wall_clock
        self._lock = asyncio.Lock()

        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._success_count = 0
        self._next_attempt_at = 0.0
        self._last_failure_time: Optional[float] = None

        self._total_requests = 0
        self._total_failures = 0
        self._total_successes = 0

    @property
    def name(self) -> str:
        return self.options.name

    @property
    def state(self) -> CircuitState:
        return self._state

    async def execute(self, fn: Callable[[], Awaitable[T]]) -> T:
        """Run ``fn`` under breaker protection.

        Raises:
            CircuitOpenError: If the circuit is open and the timeout has not elapsed
        """
        async with self._lock:
            self._total_requests += 1
            if self._state is CircuitState.OPEN:
                now = self._clock()
                if now < self._next_attempt_at:
                    raise CircuitOpenError(
                        self.name, retry_after=self._next_attempt_at - now
                    )
                self._state = CircuitState.HALF_OPEN
                self._success_count = 0
                logger.info(f"[CircuitBreaker:{self.name}] Moving to HALF_OPEN state")

        try:
            result = await fn()
        except Exception:
            async with self._lock:
                self._on_failure()
            raise

        async with self._lock:
            self._on_success()
        return result

    def _on_success(self) -> None:
        self._total_successes += 1
        self._failure_count = 0

        if self._state is CircuitState.HALF_OPEN:
            self._success_count += 1
            if self._success_count >= self.options.success_threshold:
                self._state = CircuitState.CLOSED
                logger.info(
                    f"[CircuitBreaker:{self.name}] Circuit CLOSED after "
                    f"{self._success_count} successes"
                )

    def _on_failure(self) -> None:
        self._total_failures += 1
        self._failure_count += 1
        self._last_failure_time = self._wall_clock()

        if self._state is CircuitState.HALF_OPEN:
            self._open()
        elif self._state is CircuitState.CLOSED and self._failure_count >= self.options.failure_threshold:
            self._open()

    def _open(self) -> None:
        self._state = CircuitState.OPEN
        self._next_attempt_at = self._clock() + self.options.timeout
        logger.warning(
            f"[CircuitBreaker:{self.name}] Circuit OPEN",
            extra={
                "type": "circuit_breaker_open",
                "breaker": self.name,
                "failure_count": self._failure_count,
                "retry_in_seconds": self.options.timeout,
            },
        )

    def get_stats(self) -> dict:
        return {
            "name": self.name,
            "state": self._state.value,
            "failures": self._failure_count,
            "successes": self._success_count,
            "last_failure_time": self._last_failure_time,
            "total_requests": self._total_requests,
            "total_failures": self._total_failures,
            "total_successes": self._total_successes,
        }

    def reset(self) -> None:
        """Force the circuit CLOSED and zero all counters (administrative)."""
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._success_count = 0
        self._next_attempt_at = 0.0
        self._last_failure_time = None
        self._total_requests = 0
        self._total_failures = 0
        self._total_successes = 0
        logger.info(f"[CircuitBreaker:{self.name}] Manually reset to CLOSED state")
