"""Shared Playwright page setup for schedule scraping."""

from playwright.async_api import Page, Route

from psy_schedule.logging import get_logger

log = get_logger(__name__)

# The calendar needs its scripts, XHRs and stylesheets; everything else is weight.
BLOCKED_RESOURCE_TYPES: frozenset[str] = frozenset({"image", "font", "media"})


async def configure_page_for_scraping(
    page: Page, *, timeout_ms: int = 30000, block_resources: bool = True
) -> None:
    """Set up a Playwright page for efficient scraping.

    Blocks images, fonts and media to keep per-page memory low and applies
    default timeouts to every action and navigation on the page.

    Args:
        page: Playwright Page instance.
        timeout_ms: Default action and navigation timeout.
        block_resources: If False, let every request through.
    """

    async def _block_resources(route: Route) -> None:
        if route.request.resource_type in BLOCKED_RESOURCE_TYPES:
            await route.abort()
        else:
            await route.continue_()

    if block_resources:
        await page.route("**/*", _block_resources)
    page.set_default_timeout(timeout_ms)
    page.set_default_navigation_timeout(timeout_ms)
    log.debug("page_configured", timeout_ms=timeout_ms, block_resources=block_resources)
