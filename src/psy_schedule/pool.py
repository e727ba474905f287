"""Fixed-size pool of headless Chromium browsers.

RendererPool launches its browsers once at start-up and hands them out in
strict round-robin order. It does not track which browsers are busy; each
fetch opens its own page, and admission control is the job of ConcurrencyGate.
"""

import asyncio
import threading
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING

from playwright.async_api import async_playwright
from tenacity import AsyncRetrying, stop_after_attempt, wait_fixed

from psy_schedule.errors import PoolExhaustionError
from psy_schedule.logging import get_logger

if TYPE_CHECKING:
    from playwright.async_api import Browser, Playwright

logger = get_logger(__name__)

# Low-memory Chromium flags; /dev/shm is tiny on small containers
BROWSER_ARGS: tuple[str, ...] = (
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
    "--disable-extensions",
    "--disable-sync",
)

Launcher = Callable[[], Awaitable["Browser"]]


class RendererPool:
    """Owns a fixed set of browsers for the lifetime of the process."""

    def __init__(
        self,
        size: int,
        *,
        launcher: Launcher | None = None,
        headless: bool = True,
        launch_attempts: int = 2,
        launch_retry_wait: float = 1.0,
    ) -> None:
        """Initialize RendererPool.

        Args:
            size: Number of browsers to launch.
            launcher: Coroutine factory returning a started browser. Defaults to
                launching Chromium through a pool-owned Playwright instance.
            headless: Passed to Chromium when using the default launcher.
            launch_attempts: Attempts per browser before it is skipped.
            launch_retry_wait: Seconds between launch attempts.
        """
        if size < 1:
            raise ValueError("pool size must be at least 1")
        self.requested_size = size
        self.headless = headless
        self.launch_attempts = launch_attempts
        self.launch_retry_wait = launch_retry_wait
        self._launcher = launcher
        self._playwright: "Playwright | None" = None
        self._browsers: list["Browser"] = []
        self._cursor = 0
        self._lock = threading.Lock()

    @property
    def size(self) -> int:
        return len(self._browsers)

    async def start(self) -> None:
        """Launch all browsers.

        Individual launch failures are logged and skipped so the pool runs with
        fewer browsers.

        Raises:
            PoolExhaustionError: If Playwright cannot start or not a single
                browser could be launched.
        """
        if self._browsers:
            return

        logger.info("renderer_pool_starting", size=self.requested_size)
        if self._launcher is None:
            try:
                self._playwright = await async_playwright().start()
            except Exception as e:
                logger.error("playwright_start_failed", error=str(e), type=type(e).__name__)
                raise PoolExhaustionError(f"Playwright failed to start: {e}") from e

        for index in range(self.requested_size):
            try:
                browser = await self._launch_with_retry()
            except Exception as e:
                logger.error(
                    "renderer_launch_failed",
                    index=index,
                    error=str(e),
                    type=type(e).__name__,
                )
                continue
            self._browsers.append(browser)
            logger.info(
                "renderer_launched", index=index, total=self.requested_size
            )

        if not self._browsers:
            await self._stop_playwright()
            raise PoolExhaustionError(
                f"none of {self.requested_size} browsers could be launched"
            )

        if len(self._browsers) < self.requested_size:
            logger.warning(
                "renderer_pool_degraded",
                started=len(self._browsers),
                requested=self.requested_size,
            )
        logger.info("renderer_pool_ready", size=len(self._browsers))

    async def _launch_with_retry(self) -> "Browser":
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.launch_attempts),
            wait=wait_fixed(self.launch_retry_wait),
            reraise=True,
        ):
            with attempt:
                return await self._launch()
        raise AssertionError("unreachable")  # pragma: no cover

    async def _launch(self) -> "Browser":
        if self._launcher is not None:
            return await self._launcher()
        assert self._playwright is not None
        return await self._playwright.chromium.launch(
            headless=self.headless, args=list(BROWSER_ARGS)
        )

    def acquire_next(self) -> "Browser":
        """Return the next browser in round-robin order.

        Raises:
            PoolExhaustionError: If the pool holds no browsers.
        """
        with self._lock:
            if not self._browsers:
                raise PoolExhaustionError("renderer pool is empty")
            browser = self._browsers[self._cursor]
            self._cursor = (self._cursor + 1) % len(self._browsers)
            return browser

    async def shutdown(self) -> None:
        """Close every browser, best-effort, then stop Playwright."""
        with self._lock:
            browsers, self._browsers = self._browsers, []
            self._cursor = 0

        if browsers:
            logger.info("renderer_pool_shutting_down", size=len(browsers))
            results = await asyncio.gather(
                *(browser.close() for browser in browsers), return_exceptions=True
            )
            for index, result in enumerate(results):
                if isinstance(result, BaseException):
                    logger.warning(
                        "renderer_close_failed", index=index, error=str(result)
                    )

        await self._stop_playwright()
        logger.info("renderer_pool_closed")

    async def _stop_playwright(self) -> None:
        if self._playwright is None:
            return
        try:
            await self._playwright.stop()
        except Exception as e:
            logger.warning("playwright_stop_failed", error=str(e))
        self._playwright = None
