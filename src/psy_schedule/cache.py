"""In-memory schedule cache with TTL staleness and age-ordered eviction.

Entries are ordered by insertion time only. Reads never refresh an entry, so
both capacity eviction and pressure eviction remove the oldest-written
schedules first (FIFO by age, not LRU).
"""

import threading
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from psy_schedule.errors import CacheCapacityInvariantViolation
from psy_schedule.logging import get_logger
from psy_schedule.models import CacheKey, ScheduleEntry

logger = get_logger(__name__)


@dataclass(frozen=True)
class CacheEntry:
    payload: tuple[ScheduleEntry, ...]
    created_at: float


class ExpiringCache:
    """Bounded key -> schedule store with per-entry TTL.

    All methods take an internal lock, so the cache may be shared by
    concurrent fetch tasks and the memory monitor.
    """

    def __init__(
        self,
        capacity: int,
        ttl_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize ExpiringCache.

        Args:
            capacity: Maximum number of entries held at once.
            ttl_seconds: Age after which an entry is treated as missing.
            clock: Monotonic time source (injectable for tests).
        """
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[CacheKey, CacheEntry] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries

    def _is_expired(self, entry: CacheEntry, now: float) -> bool:
        return now - entry.created_at > self.ttl_seconds

    def get(self, key: CacheKey) -> list[ScheduleEntry] | None:
        """Return the cached schedule for key, or None if missing or stale.

        A stale entry is removed as part of the lookup.
        """
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None

            now = self._clock()
            if self._is_expired(entry, now):
                del self._entries[key]
                logger.debug(
                    "cache_expired",
                    key=str(key),
                    age_seconds=round(now - entry.created_at),
                )
                return None

        logger.info(
            "cache_hit",
            key=str(key),
            age_seconds=round(now - entry.created_at),
        )
        return list(entry.payload)

    def put(self, key: CacheKey, payload: Sequence[ScheduleEntry]) -> None:
        """Store payload under key, evicting the oldest entry when full.

        Overwriting an existing key replaces it without evicting anything else.
        """
        with self._lock:
            if key not in self._entries and len(self._entries) >= self.capacity:
                oldest = self._oldest_key()
                del self._entries[oldest]
                logger.info("cache_evicted_oldest", key=str(oldest))

            self._entries[key] = CacheEntry(tuple(payload), self._clock())
            size = len(self._entries)

            if size > self.capacity:
                raise CacheCapacityInvariantViolation(
                    f"cache holds {size} entries, capacity is {self.capacity}"
                )

        logger.info("cache_stored", key=str(key), size=size, capacity=self.capacity)

    def evict_expired(self) -> int:
        """Remove every stale entry.

        Returns:
            Number of entries removed.
        """
        with self._lock:
            now = self._clock()
            stale = [k for k, e in self._entries.items() if self._is_expired(e, now)]
            for key in stale:
                del self._entries[key]

        if stale:
            logger.info("cache_expired_swept", removed=len(stale))
        return len(stale)

    def evict_oldest_until(self, target_size: int) -> int:
        """Remove oldest entries until at most target_size remain.

        Returns:
            Number of entries removed (0 if already at or below target).
        """
        target_size = max(target_size, 0)
        removed = 0
        with self._lock:
            while len(self._entries) > target_size:
                del self._entries[self._oldest_key()]
                removed += 1
            size = len(self._entries)

        if removed:
            logger.info(
                "cache_pressure_eviction",
                removed=removed,
                size=size,
                target=target_size,
            )
        return removed

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def _oldest_key(self) -> CacheKey:
        # Linear scan; capacity is a few hundred entries at most
        return min(self._entries, key=lambda k: self._entries[k].created_at)
