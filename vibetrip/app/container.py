"""Composition root.

Builds every long-lived service once per application: limiters, breakers,
caches, the provider and the pipeline. Routes reach them through
``app.state.container``; there are no module-level singletons.
"""

from typing import Dict, List, Optional

import httpx

from vibetrip.app.api.metrics import MetricsCollector
from vibetrip.app.core.cache import TTLCache
from vibetrip.app.core.config import Settings
from vibetrip.app.core.logging import get_logger
from vibetrip.app.core.periodic import PeriodicTask
from vibetrip.app.middleware.rate_limit import TokenBucketLimiter
from vibetrip.app.providers.base import BaseProvider
from vibetrip.app.providers.circuit_breaker import CircuitBreaker, CircuitBreakerOptions
from vibetrip.app.providers.gemini import GeminiProvider
from vibetrip.app.providers.mock import MockProvider
from vibetrip.app.providers.retry import RetryPolicy
from vibetrip.app.services.model_client import ResilientModelClient
from vibetrip.app.services.pipeline.orchestrator import OrchestrationPipeline, PipelineCaches
from vibetrip.app.services.pipeline.sessions import SessionStore
from vibetrip.app.services.stage_logger import StageLogger

logger = get_logger(__name__)

GEMINI_BREAKER = "Gemini API"
MAPS_BREAKER = "Google Maps API"


def create_provider(
    settings: Settings, http_client: Optional[httpx.AsyncClient] = None
) -> BaseProvider:
    if settings.mock_provider:
        logger.info("Using mock model provider")
        return MockProvider()
    return GeminiProvider(
        base_url=settings.gemini_base_url,
        api_key=settings.gemini_api_key,
        http_client=http_client,
        timeout=settings.httpx_read_timeout,
    )


class ServiceContainer:
    """Holds the application's services and their background sweeps.

    Args:
        settings: Application settings
        provider: Model provider; built from settings when omitted
        http_client: Shared client handed to the Gemini provider
    """

    def __init__(
        self,
        settings: Settings,
        provider: Optional[BaseProvider] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.settings = settings
        self.http_client = http_client

        self.global_limiter = TokenBucketLimiter(
            "global",
            max_tokens=settings.rate_limit_global_max_tokens,
            refill_rate=settings.rate_limit_global_refill_rate,
            window_seconds=settings.rate_limit_global_window_seconds,
        )
        self.gemini_limiter = TokenBucketLimiter(
            "gemini",
            max_tokens=settings.rate_limit_gemini_max_tokens,
            refill_rate=settings.rate_limit_gemini_refill_rate,
            window_seconds=settings.rate_limit_gemini_window_seconds,
        )
        self.limiters: Dict[str, TokenBucketLimiter] = {
            "global": self.global_limiter,
            "gemini": self.gemini_limiter,
        }

        self.gemini_breaker = CircuitBreaker(CircuitBreakerOptions(
            name=GEMINI_BREAKER,
            failure_threshold=settings.breaker_gemini_failure_threshold,
            success_threshold=settings.breaker_gemini_success_threshold,
            timeout=settings.breaker_gemini_timeout,
        ))
        self.maps_breaker = CircuitBreaker(CircuitBreakerOptions(
            name=MAPS_BREAKER,
            failure_threshold=settings.breaker_maps_failure_threshold,
            success_threshold=settings.breaker_maps_success_threshold,
            timeout=settings.breaker_maps_timeout,
        ))
        self.breakers: Dict[str, CircuitBreaker] = {
            "gemini": self.gemini_breaker,
            "maps": self.maps_breaker,
        }

        self.caches: Dict[str, TTLCache] = {
            "intent": TTLCache("intent", settings.cache_intent_max_size, settings.cache_intent_ttl),
            "discovery": TTLCache(
                "discovery", settings.cache_discovery_max_size, settings.cache_discovery_ttl
            ),
            "places": TTLCache("places", settings.cache_places_max_size, settings.cache_places_ttl),
            "general": TTLCache(
                "general", settings.cache_general_max_size, settings.cache_general_ttl
            ),
        }

        self.metrics = MetricsCollector()
        self.stage_logger = StageLogger(self.metrics, max_entries=settings.stage_log_max_entries)

        self.provider = provider or create_provider(settings, http_client)
        self.model_client = ResilientModelClient(
            self.provider,
            self.gemini_breaker,
            RetryPolicy(
                max_retries=settings.max_retries,
                base_delay=settings.backoff_base_seconds,
                jitter=settings.backoff_jitter,
            ),
            metrics=self.metrics,
        )

        self.sessions = SessionStore(ttl=settings.session_ttl)
        self.pipeline = OrchestrationPipeline(
            self.model_client,
            self.sessions,
            settings,
            stage_logger=self.stage_logger,
            caches=PipelineCaches(
                intent=self.caches["intent"],
                discovery=self.caches["discovery"],
                places=self.caches["places"],
            ),
        )

        self.sweeps: List[PeriodicTask] = [
            PeriodicTask(
                f"rate-limit-cleanup:{name}",
                settings.rate_limit_cleanup_interval,
                limiter.cleanup,
            )
            for name, limiter in self.limiters.items()
        ]
        self.sweeps.extend(
            PeriodicTask(f"cache-cleanup:{name}", settings.cache_cleanup_interval, cache.cleanup_expired)
            for name, cache in self.caches.items()
        )
        self.sweeps.append(
            PeriodicTask("session-cleanup", settings.cache_cleanup_interval, self.sessions.cleanup)
        )

    def attach_http_client(self, http_client: Optional[httpx.AsyncClient]) -> None:
        """Hand the lifespan's pooled client to the provider (None detaches it)."""
        self.http_client = http_client
        self.provider.attach_http_client(http_client)

    async def start(self) -> None:
        for sweep in self.sweeps:
            await sweep.start()

    async def stop(self) -> None:
        for sweep in self.sweeps:
            await sweep.stop()
