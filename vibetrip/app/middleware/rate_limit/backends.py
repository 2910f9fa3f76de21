"""Token bucket rate limiter backend.

Buckets live in process memory, one per client key. Each check refills the
bucket for the elapsed time, then tries to consume one token.
"""

import math
import time
from typing import Callable, Dict, Optional

from vibetrip.app.core.locks import KeyedLock
from vibetrip.app.core.logging import get_logger
from vibetrip.app.middleware.rate_limit.models import RateLimitBucket, RateLimitResult

logger = get_logger(__name__)


class TokenBucketLimiter:
    """In-memory token bucket limiter keyed by client identity.

    Check-and-decrement is serialized per key, so two concurrent requests
    for the same client cannot both spend the last token, while different
    clients never wait on each other.

    Idle buckets are purged by ``cleanup``, which the application runs on a
    fixed interval.
    """

    def __init__(
        self,
        name: str,
        max_tokens: float = 100,
        refill_rate: float = 10,
        window_seconds: float = 60,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize the limiter.

        Args:
            name: Identifier used in logs and metrics (e.g. "global")
            max_tokens: Bucket capacity, i.e. the allowed burst
            refill_rate: Tokens added per second
            window_seconds: Window used to decide when a bucket is idle
            clock: Monotonic time source in seconds
        """
        self.name = name
        self._clock = clock
        self._buckets: Dict[str, RateLimitBucket] = {}
        self._locks = KeyedLock()
        self.configure(max_tokens, refill_rate, window_seconds)

    def configure(self, max_tokens: float, refill_rate: float, window_seconds: float) -> None:
        if max_tokens <= 0 or refill_rate <= 0 or window_seconds <= 0:
            raise ValueError("Rate limit values must be positive")
        self.max_tokens = float(max_tokens)
        self.refill_rate = float(refill_rate)
        self.window_seconds = float(window_seconds)

    @property
    def limit(self) -> int:
        return int(self.max_tokens)

    async def check_limit(self, key: str) -> RateLimitResult:
        """Admit or reject one request for ``key``."""
        async with self._locks.hold(key):
            now = self._clock()
            bucket = self._buckets.get(key)
            if bucket is None:
                bucket = RateLimitBucket(tokens=self.max_tokens, last_refill=now)
                self._buckets[key] = bucket

            elapsed = max(0.0, now - bucket.last_refill)
            bucket.tokens = min(self.max_tokens, bucket.tokens + elapsed * self.refill_rate)
            bucket.last_refill = now

            if bucket.tokens >= 1:
                bucket.tokens -= 1
                return RateLimitResult(
                    allowed=True,
                    limit=self.limit,
                    remaining=int(math.floor(bucket.tokens)),
                    reset_in_ms=math.ceil(
                        (self.max_tokens - bucket.tokens) / self.refill_rate * 1000
                    ),
                )

            return RateLimitResult(
                allowed=False,
                limit=self.limit,
                remaining=0,
                reset_in_ms=math.ceil((1 - bucket.tokens) / self.refill_rate * 1000),
            )

    def reset(self, key: str) -> bool:
        """Delete the bucket for ``key`` (administrative override)."""
        removed = self._buckets.pop(key, None) is not None
        logger.info(
            f"[RateLimiter:{self.name}] Reset rate limit",
            extra={"client_key": key, "bucket_existed": removed},
        )
        return removed

    def stats(self, key: str) -> Optional[dict]:
        bucket = self._buckets.get(key)
        if bucket is None:
            return None
        return {"tokens": int(math.floor(bucket.tokens)), "max_tokens": self.limit}

    def all_stats(self) -> Dict[str, dict]:
        """Snapshot of every active bucket, for monitoring."""
        now = self._clock()
        return {
            key: {
                "tokens": int(math.floor(bucket.tokens)),
                "idle_seconds": round(now - bucket.last_refill, 3),
            }
            for key, bucket in list(self._buckets.items())
        }

    async def cleanup(self) -> int:
        """Delete buckets idle for longer than twice the window.

        Buckets currently being checked are skipped; no lock is held
        across the scan.

        Returns:
            Number of buckets removed
        """
        now = self._clock()
        max_age = self.window_seconds * 2
        stale = [
            key for key, bucket in list(self._buckets.items())
            if now - bucket.last_refill > max_age and not self._locks.is_locked(key)
        ]
        for key in stale:
            self._buckets.pop(key, None)

        if stale:
            logger.info(
                f"[RateLimiter:{self.name}] Cleaned up {len(stale)} old buckets. "
                f"Active buckets: {len(self._buckets)}"
            )
        return len(stale)

    def __len__(self) -> int:
        return len(self._buckets)
