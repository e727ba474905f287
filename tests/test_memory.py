"""Tests for psy_schedule.memory.MemoryMonitor."""

import asyncio

import pytest

from psy_schedule.cache import ExpiringCache
from psy_schedule.memory import MemoryMonitor, MemorySample, process_memory_sampler
from psy_schedule.models import CacheKey

from conftest import FakeClock


class RatioSampler:
    """Sampler whose used/total ratio is set by the test."""

    def __init__(self, ratio: float = 0.1, total_mb: float = 1000.0):
        self.ratio = ratio
        self.total_mb = total_mb

    def __call__(self) -> MemorySample:
        return MemorySample(used_mb=self.ratio * self.total_mb, total_mb=self.total_mb)


def _fill(cache: ExpiringCache, clock: FakeClock, count: int, prefix: str = "g") -> None:
    for i in range(count):
        cache.put(CacheKey(f"{prefix}{i}", "2025-12-16"), [])
        clock.advance(1)


@pytest.fixture
def cache(clock: FakeClock) -> ExpiringCache:
    return ExpiringCache(capacity=10, ttl_seconds=3600, clock=clock)


@pytest.fixture
def sampler() -> RatioSampler:
    return RatioSampler()


@pytest.fixture
def monitor(cache: ExpiringCache, sampler: RatioSampler) -> MemoryMonitor:
    return MemoryMonitor(cache, interval_seconds=0.01, sampler=sampler)


class TestHysteresis:
    def test_high_ratio_evicts_to_seventy_percent(
        self, monitor: MemoryMonitor, cache: ExpiringCache, sampler: RatioSampler, clock: FakeClock
    ):
        _fill(cache, clock, 10)
        sampler.ratio = 0.65

        assert monitor.check() == 3
        assert monitor.triggered
        assert len(cache) == 7
        # Oldest entries went first
        assert CacheKey("g0", "2025-12-16") not in cache
        assert CacheKey("g9", "2025-12-16") in cache

    def test_latched_monitor_does_not_evict_again(
        self, monitor: MemoryMonitor, cache: ExpiringCache, sampler: RatioSampler, clock: FakeClock
    ):
        _fill(cache, clock, 10)
        sampler.ratio = 0.65
        monitor.check()
        _fill(cache, clock, 3, prefix="h")
        assert len(cache) == 10

        assert monitor.check() == 0
        assert len(cache) == 10

        # Between the watermarks the latch holds
        sampler.ratio = 0.5
        monitor.check()
        sampler.ratio = 0.7
        assert monitor.check() == 0
        assert len(cache) == 10

    def test_latch_resets_below_low_watermark(
        self, monitor: MemoryMonitor, cache: ExpiringCache, sampler: RatioSampler, clock: FakeClock
    ):
        _fill(cache, clock, 10)
        sampler.ratio = 0.65
        monitor.check()
        _fill(cache, clock, 3, prefix="h")

        sampler.ratio = 0.3
        assert monitor.check() == 0
        assert not monitor.triggered
        assert len(cache) == 10

        sampler.ratio = 0.61
        assert monitor.check() == 3
        assert monitor.triggered
        assert len(cache) == 7

    def test_low_usage_never_evicts(
        self, monitor: MemoryMonitor, cache: ExpiringCache, clock: FakeClock
    ):
        _fill(cache, clock, 10)

        assert monitor.check() == 0
        assert not monitor.triggered
        assert len(cache) == 10

    def test_pressure_below_target_is_noop(
        self, monitor: MemoryMonitor, cache: ExpiringCache, sampler: RatioSampler, clock: FakeClock
    ):
        _fill(cache, clock, 4)
        sampler.ratio = 0.9

        assert monitor.check() == 0
        assert monitor.triggered
        assert len(cache) == 4

    def test_pressure_drops_stale_entries_first(
        self, cache: ExpiringCache, sampler: RatioSampler, clock: FakeClock
    ):
        monitor = MemoryMonitor(cache, sampler=sampler, eviction_target_ratio=0.7)
        _fill(cache, clock, 2, prefix="old")
        clock.advance(3600)
        _fill(cache, clock, 2, prefix="new")
        sampler.ratio = 0.8

        assert monitor.check() == 2
        assert CacheKey("new0", "2025-12-16") in cache
        assert CacheKey("old0", "2025-12-16") not in cache

    def test_watermarks_validated(self, cache: ExpiringCache):
        with pytest.raises(ValueError):
            MemoryMonitor(cache, high_watermark=0.4, low_watermark=0.6)


class TestBackgroundLoop:
    @pytest.mark.asyncio
    async def test_periodic_checks_evict(
        self, monitor: MemoryMonitor, cache: ExpiringCache, sampler: RatioSampler, clock: FakeClock
    ):
        _fill(cache, clock, 10)
        sampler.ratio = 0.9

        monitor.start()
        await asyncio.sleep(0.05)
        await monitor.stop()

        assert monitor.triggered
        assert len(cache) == 7

    @pytest.mark.asyncio
    async def test_sampler_failure_does_not_kill_loop(self, cache: ExpiringCache):
        calls = {"n": 0}

        def flaky() -> MemorySample:
            calls["n"] += 1
            if calls["n"] == 1:
                raise OSError("proc unavailable")
            return MemorySample(used_mb=10, total_mb=100)

        monitor = MemoryMonitor(cache, interval_seconds=0.01, sampler=flaky)
        monitor.start()
        await asyncio.sleep(0.05)
        await monitor.stop()

        assert calls["n"] >= 2

    @pytest.mark.asyncio
    async def test_stop_without_start(self, monitor: MemoryMonitor):
        await monitor.stop()


def test_process_sampler_reports_this_process():
    sample = process_memory_sampler(limit_mb=4096)()

    assert sample.used_mb > 0
    assert sample.total_mb == 4096


def test_zero_total_ratio_is_zero():
    assert MemorySample(used_mb=5, total_mb=0).ratio == 0.0
