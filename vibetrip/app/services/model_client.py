"""Resilient access to the remote model.

Every model call goes through the same explicit chain::

    cache ─► circuit breaker ─► retry (timeout + backoff) ─► provider

- A cache hit never reaches the breaker.
- The breaker sees one outcome per logical call: success, or the error
  left after all retries.
- An open circuit raises ``CircuitOpenError`` immediately and is not retried.
- Errors are never cached.
"""

import time
from typing import Any, Awaitable, Callable, Dict, Hashable, Optional, TypeVar

from vibetrip.app.core.cache import TTLCache
from vibetrip.app.core.logging import get_log_context, get_logger
from vibetrip.app.providers.base import BaseProvider, Contents
from vibetrip.app.providers.circuit_breaker import CircuitBreaker
from vibetrip.app.providers.retry import RetryPolicy, run_with_retry

logger = get_logger(__name__)

T = TypeVar("T")


def _identity(text: str) -> Any:
    return text


class ResilientModelClient:
    """Wraps a provider with caching, circuit breaking and retries.

    Usage:
        client = ResilientModelClient(provider, breaker, policy, metrics)
        intent = await client.generate(
            "IntentParser", "gemini-2.5-flash", prompt, config,
            timeout=15.0, parse=parse_intent,
            cache=intent_cache, cache_key=key,
        )
    """

    def __init__(
        self,
        provider: BaseProvider,
        breaker: CircuitBreaker,
        policy: Optional[RetryPolicy] = None,
        metrics=None,
        sleep: Optional[Callable[[float], Awaitable[Any]]] = None,
    ):
        """Initialize the client.

        Args:
            provider: Remote model provider
            breaker: Circuit breaker guarding the provider
            policy: Retry policy; its ``max_retries`` is the default retry count
            metrics: Optional MetricsCollector receiving remote-call latencies
            sleep: Backoff sleep, replaceable in tests
        """
        self.provider = provider
        self.breaker = breaker
        self.policy = policy or RetryPolicy()
        self._metrics = metrics
        self._sleep = sleep

    async def generate(
        self,
        operation_name: str,
        model: str,
        contents: Contents,
        config: Optional[Dict[str, Any]] = None,
        *,
        timeout: float,
        parse: Callable[[str], T] = _identity,
        max_retries: Optional[int] = None,
        cache: Optional[TTLCache] = None,
        cache_key: Optional[Hashable] = None,
    ) -> T:
        """Generate and parse a response through the resilience chain.

        ``parse`` runs inside each attempt, so malformed output is retried
        like any other failed attempt.

        Args:
            operation_name: Name used in logs, metrics and error messages
            model: Model identifier
            contents: Prompt text or structured turns
            config: Generation options passed through to the provider
            timeout: Per-attempt time budget in seconds
            parse: Converts response text into the result type
            max_retries: Overrides the policy's retry count
            cache: Cache to consult first and fill on success
            cache_key: Key within ``cache``; required when ``cache`` is given

        Raises:
            CircuitOpenError: The breaker is open
            RetryExhaustedError: Every attempt failed with a retryable error
            GatewayException: A non-retryable error from the provider
        """
        retries = self.policy.max_retries if max_retries is None else max_retries

        async def attempt() -> T:
            text = await self.provider.generate(model, contents, config)
            return parse(text)

        async def call_remote() -> T:
            started = time.perf_counter()
            success = False
            try:
                result = await self.breaker.execute(
                    lambda: run_with_retry(
                        operation_name,
                        attempt,
                        max_retries=retries,
                        timeout=timeout,
                        policy=self.policy,
                        **({"sleep": self._sleep} if self._sleep else {}),
                    )
                )
                success = True
                return result
            finally:
                duration = time.perf_counter() - started
                logger.debug(
                    f"[{operation_name}] Remote call finished",
                    extra=get_log_context(
                        operation=operation_name,
                        duration_ms=round(duration * 1000, 2),
                        success=success,
                    ),
                )
                if self._metrics is not None:
                    await self._metrics.record_remote_call(operation_name, duration, success)

        if cache is None:
            return await call_remote()
        if cache_key is None:
            raise ValueError("cache_key is required when a cache is given")
        return await cache.get_or_compute(cache_key, call_remote)
