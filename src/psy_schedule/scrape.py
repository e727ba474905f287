"""One scrape of one (group, date) on a borrowed browser."""

from typing import TYPE_CHECKING

from playwright.async_api import Error as PlaywrightError

from psy_schedule.config import ServiceConfig
from psy_schedule.errors import NavigationError
from psy_schedule.logging import get_logger
from psy_schedule.models import ScheduleEntry
from psy_schedule.pages.schedule import SchedulePage
from psy_schedule.utils import configure_page_for_scraping

if TYPE_CHECKING:
    from playwright.async_api import Browser

logger = get_logger(__name__)


class ScrapeOrchestrator:
    """Runs the navigation and extraction sequence for a single request.

    Each call opens its own page on the browser and always closes it, so many
    calls may share one browser. The browser itself is never closed here.
    Failures are not retried.
    """

    def __init__(self, config: ServiceConfig) -> None:
        self.config = config

    async def scrape(
        self, browser: "Browser", group: str, date_str: str
    ) -> list[ScheduleEntry]:
        """Fetch the lessons of group on date_str.

        Args:
            browser: Browser borrowed from the renderer pool.
            group: Group code, e.g. "108".
            date_str: Canonical YYYY-MM-DD date.

        Raises:
            NavigationError: If a page failed to load or the browser errored.
            ExtractionError: If the rendered page had an unexpected structure.
        """
        page = None
        try:
            page = await browser.new_page()
            await configure_page_for_scraping(
                page, timeout_ms=self.config.navigation_timeout_ms
            )
            schedule = SchedulePage(page, self.config)

            logger.info("scrape_started", group=group, date=date_str)
            iframe_src = await schedule.open_group(group)
            await schedule.open_date(iframe_src, date_str)
            entries = await schedule.extract_entries()

            if entries:
                logger.info("scrape_finished", group=group, date=date_str, entries=len(entries))
            else:
                logger.info("schedule_empty", group=group, date=date_str)
            return entries
        except PlaywrightError as e:
            raise NavigationError(f"Browser error while scraping {group}: {e}") from e
        finally:
            if page is not None:
                try:
                    await page.close()
                except Exception as e:
                    logger.debug("page_close_failed", error=str(e))
