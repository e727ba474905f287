"""ScheduleService - the single entry point used by the chat front-end.

fetch() answers from the cache when it can; otherwise it queues a scrape on
the concurrency gate. Successful scrapes are cached. Failed scrapes return an
empty list and are not cached, so the next request tries the source again.
An empty list therefore means either "no lessons" or "scrape failed".

Usage:
    async with ScheduleService(get_config()) as service:
        entries = await service.fetch("108", date(2025, 12, 16))
"""

import asyncio
import signal
import time
from datetime import date, datetime
from typing import Any

from psy_schedule.cache import ExpiringCache
from psy_schedule.config import ServiceConfig, get_config
from psy_schedule.errors import PermanentError, TransientError
from psy_schedule.gate import ConcurrencyGate
from psy_schedule.logging import get_logger, request_context
from psy_schedule.memory import MemoryMonitor, process_memory_sampler
from psy_schedule.models import CacheKey, ScheduleEntry, ServiceStats, make_cache_key
from psy_schedule.pool import RendererPool
from psy_schedule.scrape import ScrapeOrchestrator

logger = get_logger(__name__)


class ScheduleService:
    """Wires the renderer pool, gate, cache and memory monitor together."""

    def __init__(
        self,
        config: ServiceConfig | None = None,
        *,
        pool: RendererPool | None = None,
        cache: ExpiringCache | None = None,
        gate: ConcurrencyGate | None = None,
        monitor: MemoryMonitor | None = None,
        orchestrator: ScrapeOrchestrator | None = None,
    ) -> None:
        """Initialize ScheduleService.

        Components not passed in are built from config.
        """
        self.config = config if config is not None else get_config()
        self.pool = pool if pool is not None else RendererPool(
            self.config.renderer_pool_size,
            headless=self.config.headless,
            launch_attempts=self.config.renderer_launch_attempts,
        )
        self.cache = cache if cache is not None else ExpiringCache(
            self.config.cache_capacity, self.config.cache_ttl_seconds
        )
        self.gate = (
            gate if gate is not None else ConcurrencyGate(self.config.max_concurrent_fetches)
        )
        self.monitor = monitor if monitor is not None else MemoryMonitor(
            self.cache,
            interval_seconds=self.config.memory_check_interval_seconds,
            high_watermark=self.config.memory_high_watermark_ratio,
            low_watermark=self.config.memory_low_watermark_ratio,
            eviction_target_ratio=self.config.memory_eviction_target_ratio,
            sampler=process_memory_sampler(self.config.memory_limit_mb),
        )
        self.orchestrator = (
            orchestrator if orchestrator is not None else ScrapeOrchestrator(self.config)
        )

        self.total_requests = 0
        self._inflight: dict[CacheKey, asyncio.Future[list[ScheduleEntry]]] = {}
        self._started = False
        self._shutdown_task: asyncio.Task[None] | None = None

    async def __aenter__(self) -> "ScheduleService":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.shutdown()

    async def start(self) -> None:
        """Warm up the renderer pool and start the memory monitor.

        Raises:
            PoolExhaustionError: If no browser could be launched.
        """
        if self._started:
            return
        await self.pool.start()
        self.monitor.start()
        self._started = True
        logger.info(
            "schedule_service_started",
            browsers=self.pool.size,
            max_concurrent=self.gate.limit,
            cache_capacity=self.cache.capacity,
            cache_ttl_seconds=self.cache.ttl_seconds,
        )

    async def fetch(self, group: str, day: date | datetime | str) -> list[ScheduleEntry]:
        """Return the lessons of group on day.

        Args:
            group: Group code, e.g. "108".
            day: Calendar date, or a YYYY-MM-DD string.

        Returns:
            Schedule entries; empty if there are none or the scrape failed.

        Raises:
            ValueError: If day is a malformed date string.
        """
        self.total_requests += 1
        request_id = self.total_requests
        key = make_cache_key(group, day)

        cached = self.cache.get(key)
        if cached is not None:
            return cached

        if self.config.coalesce_inflight:
            inflight = self._inflight.get(key)
            if inflight is not None:
                logger.info("fetch_coalesced", key=str(key), request_id=request_id)
                return list(await asyncio.shield(inflight))

        future = self.gate.submit(lambda: self._scrape(request_id, key))
        logger.info(
            "fetch_queued",
            key=str(key),
            request_id=request_id,
            pending=self.gate.pending,
        )

        if self.config.coalesce_inflight:
            self._inflight[key] = future
            future.add_done_callback(lambda done: self._forget_inflight(key, done))

        return list(await asyncio.shield(future))

    def _forget_inflight(self, key: CacheKey, future: asyncio.Future) -> None:
        if self._inflight.get(key) is future:
            del self._inflight[key]

    async def _scrape(self, request_id: int, key: CacheKey) -> list[ScheduleEntry]:
        with request_context(request_id, str(key)):
            browser = self.pool.acquire_next()
            started = time.perf_counter()
            try:
                entries = await self.orchestrator.scrape(browser, key.group, key.date)
            except (TransientError, PermanentError) as e:
                logger.error(
                    "fetch_failed",
                    error=str(e),
                    type=type(e).__name__,
                    elapsed_seconds=round(time.perf_counter() - started, 2),
                )
                return []

            self.cache.put(key, entries)
            logger.info(
                "fetch_completed",
                entries=len(entries),
                elapsed_seconds=round(time.perf_counter() - started, 2),
            )
            return entries

    def get_stats(self) -> ServiceStats:
        sample = self.monitor.sample()
        return ServiceStats(
            pool_size=self.pool.size,
            cache_size=len(self.cache),
            cache_capacity=self.cache.capacity,
            queue_depth=self.gate.pending,
            running_fetches=self.gate.running,
            total_requests=self.total_requests,
            memory_used_mb=round(sample.used_mb),
            memory_total_mb=round(sample.total_mb),
            memory_pressure=self.monitor.triggered,
        )

    async def shutdown(self) -> None:
        """Stop the monitor, drop queued work and close every browser.

        Safe to call repeatedly and concurrently (e.g. from a signal handler and
        from __aexit__); every caller waits until the browsers are closed.
        """
        await asyncio.shield(self._begin_shutdown())

    def _begin_shutdown(self) -> "asyncio.Task[None]":
        if self._shutdown_task is None:
            self._shutdown_task = asyncio.get_running_loop().create_task(
                self._shutdown(), name="schedule-service-shutdown"
            )
        return self._shutdown_task

    async def _shutdown(self) -> None:
        logger.info("schedule_service_stopping")
        await self.monitor.stop()
        await self.gate.close()
        await self.pool.shutdown()
        logger.info("schedule_service_stopped")

    def install_signal_handlers(self) -> None:
        """Shut down gracefully on SIGTERM/SIGINT.

        Must be called from inside the running event loop. No-op on platforms
        without loop signal support.
        """
        loop = asyncio.get_running_loop()

        def _on_signal(signame: str) -> None:
            logger.info("shutdown_signal", signal=signame)
            self._begin_shutdown()

        for sig in (signal.SIGTERM, signal.SIGINT):
            try:
                loop.add_signal_handler(sig, _on_signal, sig.name)
            except NotImplementedError:
                logger.debug("signal_handlers_unsupported")
                return
