"""Retry mechanism with timeout and exponential backoff for remote calls.

Each attempt is raced against a timer. On failure the executor sleeps
``base_delay * 2^(attempt-1)`` and tries again; once attempts run out it
raises ``RetryExhaustedError`` with a user-facing message that still names
the operation and the last underlying error.
"""

import asyncio
import random
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional, Tuple, Type, TypeVar

import httpx

from vibetrip.app.core.logging import get_logger
from vibetrip.app.exceptions import (
    CircuitOpenError,
    ConfigurationError,
    OperationTimeoutError,
    RemoteModelError,
    RetryExhaustedError,
    ValidationError,
)

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass
class RetryPolicy:
    """Configuration for retry behavior with exponential backoff.

    Attributes:
        max_retries: Retries after the first attempt (default: 2)
        base_delay: Delay before the first retry in seconds (default: 1.0)
        jitter: Random fraction added to each delay, 0 disables it
        non_retryable_exceptions: Exception types that propagate immediately

    Example:
        >>> policy = RetryPolicy(max_retries=2, base_delay=1.0)
        >>> policy.calculate_delay(attempt=2)
        2.0
    """

    max_retries: int = 2
    base_delay: float = 1.0
    jitter: float = 0.0
    non_retryable_exceptions: Tuple[Type[BaseException], ...] = field(
        default=(CircuitOpenError, ConfigurationError, ValidationError)
    )

    def calculate_delay(self, attempt: int) -> float:
        """Delay after a failed ``attempt`` (1-indexed).

        delay = base_delay * 2^(attempt-1), optionally stretched by jitter
        """
        delay = self.base_delay * (2 ** (attempt - 1))
        if self.jitter > 0:
            delay += delay * random.uniform(0, self.jitter)
        return delay

    def is_retryable(self, exception: BaseException) -> bool:
        """Whether a failed attempt should be retried.

        Remote 4xx responses are client errors and are not retried, except
        408 and 429.
        """
        if isinstance(exception, self.non_retryable_exceptions):
            return False
        if isinstance(exception, RemoteModelError):
            return exception.is_transient
        if isinstance(exception, httpx.HTTPStatusError):
            status = exception.response.status_code
            return status >= 500 or status in (408, 429)
        return isinstance(exception, Exception)


def _discard_late_result(task: "asyncio.Future[Any]") -> None:
    # Retrieve the outcome of an abandoned attempt so it is never reported
    # as an unretrieved task exception.
    if not task.cancelled():
        task.exception()


async def _attempt_with_timeout(
    operation_name: str, fn: Callable[[], Awaitable[T]], timeout: float
) -> T:
    task = asyncio.ensure_future(fn())
    done, _ = await asyncio.wait({task}, timeout=timeout)
    if task in done:
        return task.result()

    # Stop waiting; the underlying call is cancelled best-effort and any
    # late response is dropped.
    task.cancel()
    task.add_done_callback(_discard_late_result)
    raise OperationTimeoutError(operation_name, timeout)


async def run_with_retry(
    operation_name: str,
    fn: Callable[[], Awaitable[T]],
    max_retries: int = 2,
    timeout: float = 30.0,
    policy: Optional[RetryPolicy] = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> T:
    """Execute an async operation with per-attempt timeout and backoff.

    Args:
        operation_name: Name used in logs and error messages
        fn: Zero-argument coroutine factory, called once per attempt
        max_retries: Retries after the first attempt
        timeout: Per-attempt time budget in seconds
        policy: Backoff and classification settings; ``max_retries`` overrides
            the policy's own value
        sleep: Awaitable sleep, replaceable in tests

    Returns:
        The first successful result

    Raises:
        RetryExhaustedError: When every attempt failed
        Exception: A non-retryable error, unchanged
    """
    if max_retries < 0:
        raise ValueError("max_retries must be non-negative")

    retry_policy = policy or RetryPolicy()
    total_attempts = max_retries + 1

    for attempt in range(1, total_attempts + 1):
        try:
            return await _attempt_with_timeout(operation_name, fn, timeout)
        except Exception as e:
            if not retry_policy.is_retryable(e):
                logger.debug(
                    f"[{operation_name}] Non-retryable {type(e).__name__}: {e}",
                    extra={"operation": operation_name},
                )
                raise

            logger.warning(
                f"[{operation_name}] Attempt {attempt}/{total_attempts} failed: {e}",
                extra={"operation": operation_name, "attempt": attempt},
            )

            if attempt == total_attempts:
                raise RetryExhaustedError(operation_name, e) from e
            await sleep(retry_policy.calculate_delay(attempt))
