"""In-memory TTL cache with LRU eviction.

One ``TTLCache`` instance is created per semantic domain (intent results,
discovery results, places, proxied generations) so that size and TTL
policies can differ between them.
"""

import asyncio
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, Generic, Hashable, Optional, TypeVar

from vibetrip.app.core.locks import KeyedLock
from vibetrip.app.core.logging import get_logger

logger = get_logger(__name__)

V = TypeVar("V")


@dataclass
class CacheEntry(Generic[V]):
    """Cached value with expiry and access bookkeeping."""

    value: V
    expires_at: float
    last_accessed: float
    access_count: int = 0

    def is_expired(self, now: float) -> bool:
        return now > self.expires_at


@dataclass
class CacheStats:
    hits: int = 0
    misses: int = 0


@dataclass
class TTLCache(Generic[V]):
    """Bounded, expiring key/value store.

    - ``get`` counts a hit or a miss and refreshes ``last_accessed``.
    - ``set`` evicts the least recently accessed entry when a new key would
      exceed ``max_size``.
    - ``cleanup_expired`` is meant to be driven by a periodic sweep.

    All mutations happen under one short-held lock with no awaits inside;
    ``get_or_compute`` additionally holds a per-key lock while computing so
    concurrent misses on the same key run the computation once.

    Example:
        >>> cache = TTLCache(name="intent", max_size=100, default_ttl=600)
        >>> await cache.set("k", {"destination": "Kyoto"})
        >>> await cache.get("k")
        {'destination': 'Kyoto'}
    """

    name: str = "general"
    max_size: int = 1000
    default_ttl: float = 300.0
    clock: Callable[[], float] = time.monotonic

    _data: Dict[Hashable, CacheEntry[V]] = field(default_factory=dict, init=False, repr=False)
    _stats: CacheStats = field(default_factory=CacheStats, init=False, repr=False)
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock, init=False, repr=False)
    _compute_locks: KeyedLock = field(default_factory=KeyedLock, init=False, repr=False)

    def __post_init__(self) -> None:
        if self.max_size < 1:
            raise ValueError("max_size must be at least 1")
        if self.default_ttl <= 0:
            raise ValueError("default_ttl must be positive")

    async def get(self, key: Hashable) -> Optional[V]:
        """Return the cached value, or None when absent or expired."""
        async with self._lock:
            entry = self._data.get(key)
            now = self.clock()
            if entry is None:
                self._stats.misses += 1
                return None
            if entry.is_expired(now):
                del self._data[key]
                self._stats.misses += 1
                return None

            entry.access_count += 1
            entry.last_accessed = now
            self._stats.hits += 1
            return entry.value

    async def set(self, key: Hashable, value: V, ttl: Optional[float] = None) -> None:
        """Store a value, evicting the LRU entry if the cache is full.

        Args:
            key: The cache key
            value: The value to store
            ttl: Time-to-live in seconds, defaults to ``default_ttl``
        """
        async with self._lock:
            self._set_locked(key, value, ttl)

    def _set_locked(self, key: Hashable, value: V, ttl: Optional[float]) -> None:
        now = self.clock()
        if key not in self._data and len(self._data) >= self.max_size:
            self._evict_lru()

        effective_ttl = ttl if ttl is not None else self.default_ttl
        self._data[key] = CacheEntry(
            value=value,
            expires_at=now + effective_ttl,
            last_accessed=now,
        )

    async def has(self, key: Hashable) -> bool:
        """Existence check with expiry semantics; does not touch stats."""
        async with self._lock:
            entry = self._data.get(key)
            if entry is None:
                return False
            if entry.is_expired(self.clock()):
                del self._data[key]
                return False
            return True

    async def delete(self, key: Hashable) -> bool:
        async with self._lock:
            return self._data.pop(key, None) is not None

    async def clear(self) -> None:
        """Drop every entry and reset hit/miss counters."""
        async with self._lock:
            self._data.clear()
            self._stats = CacheStats()

    async def get_or_compute(
        self,
        key: Hashable,
        compute: Callable[[], Awaitable[V]],
        ttl: Optional[float] = None,
    ) -> V:
        """Return the cached value or compute, store and return it.

        Exceptions raised by ``compute`` propagate and nothing is cached.
        """
        cached = await self.get(key)
        if cached is not None:
            return cached

        async with self._compute_locks.hold(key):
            # Another caller may have filled the slot while we waited
            async with self._lock:
                entry = self._data.get(key)
                if entry is not None and not entry.is_expired(self.clock()):
                    entry.access_count += 1
                    entry.last_accessed = self.clock()
                    return entry.value

            value = await compute()
            await self.set(key, value, ttl)
            return value

    async def cleanup_expired(self) -> int:
        """Remove all expired entries.

        Returns:
            Number of entries removed
        """
        async with self._lock:
            now = self.clock()
            expired = [key for key, entry in self._data.items() if entry.is_expired(now)]
            for key in expired:
                del self._data[key]

        if expired:
            logger.debug(
                f"[Cache:{self.name}] Cleaned up {len(expired)} expired entries. "
                f"Size: {len(self._data)}"
            )
        return len(expired)

    def _evict_lru(self) -> None:
        lru_key = min(self._data, key=lambda k: self._data[k].last_accessed, default=None)
        if lru_key is not None:
            del self._data[lru_key]
            logger.debug(f"[Cache:{self.name}] Evicted LRU entry")

    def __len__(self) -> int:
        return len(self._data)

    def get_stats(self) -> dict:
        """Hit/miss statistics.

        Returns:
            Dictionary with hits, misses, size, max_size and hit_rate (0-1)
        """
        total = self._stats.hits + self._stats.misses
        return {
            "name": self.name,
            "hits": self._stats.hits,
            "misses": self._stats.misses,
            "size": len(self._data),
            "max_size": self.max_size,
            "hit_rate": round(self._stats.hits / total, 4) if total > 0 else 0.0,
        }
