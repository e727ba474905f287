"""Shared fakes for Playwright objects, clocks and scrapers."""

import asyncio

import pytest

from psy_schedule.config import ServiceConfig


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class StubElement:
    def __init__(self, src: str):
        self.src = src

    async def evaluate(self, expression: str):
        return self.src


class StubPage:
    """Minimal stand-in for playwright.async_api.Page."""

    def __init__(
        self,
        iframe_src: str | None = "https://calendar.yandex.ru/embed/week?show_date=2025-01-01",
        titles: list | None = None,
        goto_error: Exception | None = None,
        eval_error: Exception | None = None,
        close_error: Exception | None = None,
    ):
        self.iframe_src = iframe_src
        self.titles = titles or []
        self.goto_error = goto_error
        self.eval_error = eval_error
        self.close_error = close_error
        self.visited: list[str] = []
        self.routes: list = []
        self.default_timeout = None
        self.default_navigation_timeout = None
        self.closed = False

    async def goto(self, url: str, wait_until: str | None = None, timeout: int | None = None):
        self.visited.append(url)
        if self.goto_error is not None:
            raise self.goto_error

    async def query_selector(self, selector: str):
        if self.iframe_src is None:
            return None
        return StubElement(self.iframe_src)

    async def eval_on_selector_all(self, selector: str, expression: str):
        if self.eval_error is not None:
            raise self.eval_error
        return list(self.titles)

    async def route(self, pattern: str, handler):
        self.routes.append((pattern, handler))

    def set_default_timeout(self, ms: int):
        self.default_timeout = ms

    def set_default_navigation_timeout(self, ms: int):
        self.default_navigation_timeout = ms

    async def close(self):
        self.closed = True
        if self.close_error is not None:
            raise self.close_error


class StubBrowser:
    """Minimal stand-in for playwright.async_api.Browser."""

    def __init__(self, name: str = "browser", page: StubPage | None = None, close_error=None):
        self.name = name
        self.page = page or StubPage()
        self.close_error = close_error
        self.pages_opened = 0
        self.closed = False

    async def new_page(self) -> StubPage:
        self.pages_opened += 1
        return self.page

    async def close(self):
        self.closed = True
        if self.close_error is not None:
            raise self.close_error

    def __repr__(self) -> str:
        return f"StubBrowser({self.name!r})"


class FakeOrchestrator:
    """Records scrape calls; optionally blocks until released or fails."""

    def __init__(self, result=None, error: Exception | None = None, release: asyncio.Event | None = None):
        self.result = result or []
        self.error = error
        self.release = release
        self.calls: list[tuple] = []

    async def scrape(self, browser, group: str, date_str: str):
        self.calls.append((browser, group, date_str))
        if self.release is not None:
            await self.release.wait()
        if self.error is not None:
            raise self.error
        return list(self.result)


def stub_launcher(browsers: list):
    """Launcher returning a fresh StubBrowser per call, recorded in browsers."""

    async def launch():
        browser = StubBrowser(name=f"H{len(browsers)}")
        browsers.append(browser)
        return browser

    return launch


async def settle(rounds: int = 5) -> None:
    """Let ready tasks run until they block."""
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def config() -> ServiceConfig:
    """Config with no dwell times and small limits."""
    return ServiceConfig(
        renderer_pool_size=2,
        max_concurrent_fetches=4,
        cache_capacity=2,
        cache_ttl_seconds=3600,
        iframe_dwell_seconds=0,
        render_dwell_seconds=0,
        memory_check_interval_seconds=3600,
    )
