"""Background memory-pressure monitor.

Samples process memory on a fixed interval and, when usage crosses the high
watermark, evicts cached schedules down to a fraction of capacity. A latch
keeps it from firing again until usage has dropped below the low watermark.
"""

import asyncio
import os
from collections.abc import Callable
from dataclasses import dataclass

import psutil

from psy_schedule.cache import ExpiringCache
from psy_schedule.logging import get_logger

logger = get_logger(__name__)

_MB = 1024 * 1024


@dataclass(frozen=True)
class MemorySample:
    used_mb: float
    total_mb: float

    @property
    def ratio(self) -> float:
        if self.total_mb <= 0:
            return 0.0
        return self.used_mb / self.total_mb


def process_memory_sampler(limit_mb: int = 0) -> Callable[[], MemorySample]:
    """Build a sampler reporting this process's RSS against a memory budget.

    Args:
        limit_mb: Budget in MB. 0 uses total system RAM.
    """
    process = psutil.Process(os.getpid())

    def sample() -> MemorySample:
        used = process.memory_info().rss / _MB
        total = limit_mb if limit_mb > 0 else psutil.virtual_memory().total / _MB
        return MemorySample(used_mb=used, total_mb=total)

    return sample


class MemoryMonitor:
    """Triggers aggressive cache eviction under memory pressure."""

    def __init__(
        self,
        cache: ExpiringCache,
        *,
        interval_seconds: float = 30.0,
        high_watermark: float = 0.6,
        low_watermark: float = 0.4,
        eviction_target_ratio: float = 0.7,
        sampler: Callable[[], MemorySample] | None = None,
    ) -> None:
        if low_watermark >= high_watermark:
            raise ValueError("low_watermark must be below high_watermark")
        self.cache = cache
        self.interval_seconds = interval_seconds
        self.high_watermark = high_watermark
        self.low_watermark = low_watermark
        self.eviction_target_ratio = eviction_target_ratio
        self._sampler = sampler or process_memory_sampler()
        self._triggered = False
        self._task: asyncio.Task[None] | None = None

    @property
    def triggered(self) -> bool:
        """True while the high-watermark latch is set."""
        return self._triggered

    @property
    def eviction_target(self) -> int:
        return int(self.cache.capacity * self.eviction_target_ratio)

    def sample(self) -> MemorySample:
        return self._sampler()

    def check(self) -> int:
        """Take one sample and react to it.

        Returns:
            Number of cache entries evicted by this check.
        """
        sample = self.sample()
        ratio = sample.ratio
        evicted = 0

        if ratio > self.high_watermark:
            if not self._triggered:
                self._triggered = True
                logger.warning(
                    "memory_pressure_high",
                    used_mb=round(sample.used_mb),
                    total_mb=round(sample.total_mb),
                    ratio=round(ratio, 3),
                )
                evicted = self.relieve_pressure()
        elif ratio < self.low_watermark:
            if self._triggered:
                logger.info("memory_pressure_cleared", ratio=round(ratio, 3))
            self._triggered = False

        cache_size = len(self.cache)
        if cache_size > self.cache.capacity * 0.8:
            logger.info(
                "memory_status",
                used_mb=round(sample.used_mb),
                cache_size=cache_size,
                cache_capacity=self.cache.capacity,
            )
        return evicted

    def relieve_pressure(self) -> int:
        """Drop stale entries, then the oldest ones down to the eviction target."""
        removed = self.cache.evict_expired()
        removed += self.cache.evict_oldest_until(self.eviction_target)
        if removed:
            logger.info("memory_cleanup", removed=removed, cache_size=len(self.cache))
        return removed

    def start(self) -> None:
        """Start periodic checks on the running event loop."""
        if self._task is not None and not self._task.done():
            return
        self._task = asyncio.create_task(self._run(), name="memory-monitor")
        logger.info("memory_monitor_started", interval_seconds=self.interval_seconds)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("memory_monitor_stopped")

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            try:
                self.check()
            except Exception as e:
                logger.error("memory_check_failed", error=str(e), type=type(e).__name__)
