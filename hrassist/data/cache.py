"""
Tiered Cache

Key/category store with per-entry TTL, per-category size limits and
aggregate hit/miss statistics.

Categories are independent namespaces (employees, jobs, query,
relationships, ...): writing or clearing one never touches another.
Expired entries are discarded lazily on the next read; there is no
background sweep.
"""

import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from pydantic import BaseModel

from ..common.config import CacheConfig

logger = logging.getLogger("hrassist.data.cache")


@dataclass
class CacheEntry:
    """A cached value owned by the TieredCache"""
    key: str
    category: str
    value: Any
    expires_at: float
    size: int
    last_accessed: float

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


@dataclass
class CategoryStats:
    """Counters for one category"""
    count: int = 0
    size: int = 0
    hits: int = 0
    misses: int = 0


@dataclass
class CacheStats:
    """Snapshot of cache counters"""
    hits: int
    misses: int
    expirations: int
    evictions: int
    entry_count: int
    total_size: int
    categories: Dict[str, CategoryStats] = field(default_factory=dict)

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total else 0.0


def _to_jsonable(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if hasattr(value, "__dict__"):
        return vars(value)
    return str(value)


def estimate_size(value: Any) -> int:
    """Approximate in-memory footprint as two bytes per serialized character"""
    try:
        return len(json.dumps(value, default=_to_jsonable)) * 2
    except (TypeError, ValueError):
        return len(str(value)) * 2


class TieredCache:
    """
    In-memory cache partitioned by category.

    Features:
    - Per-entry TTL with category defaults
    - Lazy expiry on read (an expired entry is a miss)
    - LRU eviction under per-category and global size limits
    - Global and per-category hit/miss counters

    All operations are synchronous, so they are atomic with respect to the
    asyncio event loop. Concurrent writers of the same key resolve to the
    last write.
    """

    def __init__(
        self,
        config: Optional[CacheConfig] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize cache.

        Args:
            config: TTL and size limits (defaults if omitted)
            clock: Monotonic time source in seconds, injectable for tests
        """
        self._config = config or CacheConfig()
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._category_stats: Dict[str, CategoryStats] = {}
        self._total_size = 0
        self._hits = 0
        self._misses = 0
        self._expirations = 0
        self._evictions = 0

    @staticmethod
    def _compose(key: str, category: str) -> str:
        return f"{category}:{key}"

    def _stats_for(self, category: str) -> CategoryStats:
        stats = self._category_stats.get(category)
        if stats is None:
            stats = CategoryStats()
            self._category_stats[category] = stats
        return stats

    def ttl_for(self, category: str) -> float:
        """Default TTL in seconds for a category"""
        return self._config.category_ttls.get(category, self._config.default_ttl)

    def _size_limit_for(self, category: str) -> int:
        return self._config.category_size_limits.get(category, self._config.max_size)

    def get(self, key: str, category: str) -> Optional[Any]:
        """
        Look up a value.

        Returns:
            The cached value, or None on a miss (absent or expired)
        """
        full_key = self._compose(key, category)
        stats = self._stats_for(category)
        entry = self._entries.get(full_key)

        if entry is None:
            self._misses += 1
            stats.misses += 1
            return None

        now = self._clock()
        if entry.is_expired(now):
            self._remove(full_key)
            self._expirations += 1
            self._misses += 1
            stats.misses += 1
            logger.debug("Cache entry expired: %s", full_key)
            return None

        entry.last_accessed = now
        self._hits += 1
        stats.hits += 1
        return entry.value

    def set(self, key: str, value: Any, category: str, ttl: Optional[float] = None) -> None:
        """
        Store a value.

        Args:
            key: Key inside the category
            value: Value to cache (None is never cached)
            category: Namespace
            ttl: Seconds to live; category default when omitted
        """
        if value is None:
            return

        full_key = self._compose(key, category)
        now = self._clock()
        ttl = self.ttl_for(category) if ttl is None else ttl
        size = estimate_size(value)

        if full_key in self._entries:
            self._remove(full_key)

        if size > self._size_limit_for(category) or size > self._config.max_size:
            logger.warning(
                "Value for %s (%d bytes) exceeds cache limits, not cached", full_key, size
            )
            return

        self._make_room(category, size)

        self._entries[full_key] = CacheEntry(
            key=key,
            category=category,
            value=value,
            expires_at=now + ttl,
            size=size,
            last_accessed=now,
        )
        stats = self._stats_for(category)
        stats.count += 1
        stats.size += size
        self._total_size += size

    def has(self, key: str, category: str) -> bool:
        """True if a live entry exists. Does not touch hit/miss counters."""
        entry = self._entries.get(self._compose(key, category))
        return entry is not None and not entry.is_expired(self._clock())

    def keys(self, category: Optional[str] = None) -> List[str]:
        """Composite keys of stored entries, optionally for one category"""
        return [
            full_key
            for full_key, entry in self._entries.items()
            if category is None or entry.category == category
        ]

    def clear_category(self, category: str) -> int:
        """
        Drop every entry in a category. Hit/miss counters are kept.

        Returns:
            Number of entries removed
        """
        doomed = [k for k, e in self._entries.items() if e.category == category]
        for full_key in doomed:
            self._remove(full_key)
        if doomed:
            logger.debug("Cleared %d entries from category %s", len(doomed), category)
        return len(doomed)

    def clear(self) -> None:
        """Drop every entry in every category"""
        self._entries.clear()
        self._total_size = 0
        for stats in self._category_stats.values():
            stats.count = 0
            stats.size = 0

    def stats(self) -> CacheStats:
        return CacheStats(
            hits=self._hits,
            misses=self._misses,
            expirations=self._expirations,
            evictions=self._evictions,
            entry_count=len(self._entries),
            total_size=self._total_size,
            categories={
                name: CategoryStats(s.count, s.size, s.hits, s.misses)
                for name, s in self._category_stats.items()
            },
        )

    def _remove(self, full_key: str) -> None:
        entry = self._entries.pop(full_key, None)
        if entry is None:
            return
        stats = self._stats_for(entry.category)
        stats.count -= 1
        stats.size -= entry.size
        self._total_size -= entry.size

    def _make_room(self, category: str, incoming: int) -> None:
        limit = self._size_limit_for(category)
        while self._stats_for(category).size + incoming > limit:
            if not self._evict_lru(category):
                break
        while self._total_size + incoming > self._config.max_size:
            if not self._evict_lru(None):
                break

    def _evict_lru(self, category: Optional[str]) -> bool:
        candidates = [
            (entry.last_accessed, full_key)
            for full_key, entry in self._entries.items()
            if category is None or entry.category == category
        ]
        if not candidates:
            return False
        _, victim = min(candidates)
        self._remove(victim)
        self._evictions += 1
        logger.debug("Evicted least recently used entry %s", victim)
        return True
