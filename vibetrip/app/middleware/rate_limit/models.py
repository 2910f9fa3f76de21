"""Rate limiting data models.

This module contains dataclasses for rate limit state and results.
"""

import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Optional


@dataclass
class RateLimitResult:
    """Result of a rate limit check.

    ``reset_in_ms`` estimates the time until one token is available when
    rejected, or until the bucket is full again when admitted.
    """
    allowed: bool
    limit: int
    remaining: int
    reset_in_ms: int

    @property
    def retry_after(self) -> Optional[int]:
        """Seconds the client should wait, only set for rejections."""
        if self.allowed:
            return None
        return max(1, -(-self.reset_in_ms // 1000))

    def reset_at(self, now: Optional[datetime] = None) -> str:
        """ISO-8601 timestamp for the X-RateLimit-Reset header."""
        now = now or datetime.now(timezone.utc)
        reset = now + timedelta(milliseconds=self.reset_in_ms)
        return reset.isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass
class RateLimitBucket:
    """Token bucket state for a single key."""
    tokens: float
    last_refill: float = field(default_factory=time.monotonic)
