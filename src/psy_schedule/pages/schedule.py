"""SchedulePage - extracts a group's daily lessons from the psy-msu.ru calendar.

The group page at {base_url}{group}/ embeds a Yandex calendar iframe. The
iframe URL carries the displayed day in a show_date=YYYY-MM-DD parameter, so
the page is scraped by opening the group page, reading the iframe src,
rewriting show_date and loading the iframe URL directly.

DOM structure of the rendered calendar:
  div[class*='GridEvent__wrap'] title="09:00 – 10:30\\nАлгебра\\nауд. 401"
    line 1 -> time range
    line 2 -> subject
    rest   -> location

The calendar renders client-side and exposes no completion signal, so each
load is followed by a fixed dwell time instead of a readiness wait.
"""

import asyncio
import re

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from psy_schedule.config import ServiceConfig
from psy_schedule.errors import ExtractionError, NavigationError
from psy_schedule.logging import get_logger
from psy_schedule.models import ROOM_MAX_LENGTH, SUBJECT_MAX_LENGTH, ScheduleEntry

log = get_logger(__name__)

_TIME_RANGE = re.compile(r"\d{1,2}:\d{2}\s*[-–—]\s*\d{1,2}:\d{2}")
_DASH = re.compile(r"\s*[-–—]\s*")
_WHITESPACE = re.compile(r"\s+")
_SHOW_DATE = re.compile(r"show_date=\d{4}-\d{2}-\d{2}")


class SchedulePage:
    """Group schedule page plus its embedded calendar."""

    def __init__(self, page: Page, config: ServiceConfig) -> None:
        self.page = page
        self.config = config

    def group_url(self, group: str) -> str:
        return f"{self.config.schedule_base_url}{group}/"

    async def open_group(self, group: str) -> str:
        """Load the group page and return the calendar iframe URL.

        Raises:
            NavigationError: If the page fails to load within timeout.
            ExtractionError: If the page has no calendar iframe.
        """
        url = self.group_url(group)
        await self._goto(url)
        await asyncio.sleep(self.config.iframe_dwell_seconds)

        try:
            iframe = await self.page.query_selector(self.config.calendar_iframe_selector)
            src = await iframe.evaluate("el => el.src") if iframe else None
        except PlaywrightError as e:
            raise ExtractionError(f"Failed to read calendar iframe: {e}") from e

        if not src:
            raise ExtractionError(f"Calendar iframe not found on {url}")

        log.debug("calendar_iframe_found", group=group, src=src)
        return src

    async def open_date(self, iframe_src: str, date_str: str) -> None:
        """Load the calendar iframe showing date_str and let it render.

        Raises:
            NavigationError: If the calendar fails to load within timeout.
        """
        url = with_show_date(iframe_src, date_str)
        await self._goto(url)
        await asyncio.sleep(self.config.render_dwell_seconds)
        log.debug("calendar_opened", date=date_str)

    async def extract_entries(self) -> list[ScheduleEntry]:
        """Parse every rendered event on the calendar.

        Events whose title does not start with a time range are skipped.

        Raises:
            ExtractionError: If the event titles cannot be read.
        """
        try:
            titles = await self.page.eval_on_selector_all(
                self.config.event_selector,
                "els => els.map(el => el.getAttribute('title'))",
            )
        except PlaywrightError as e:
            raise ExtractionError(f"Failed to read calendar events: {e}") from e

        entries: list[ScheduleEntry] = []
        for title in titles:
            entry = parse_event_title(title)
            if entry is not None:
                entries.append(entry)

        log.debug("events_parsed", events=len(titles), entries=len(entries))
        return entries

    async def _goto(self, url: str) -> None:
        try:
            await self.page.goto(
                url,
                wait_until="networkidle",
                timeout=self.config.navigation_timeout_ms,
            )
        except PlaywrightTimeoutError as e:
            raise NavigationError(f"Timed out loading {url}") from e
        except PlaywrightError as e:
            raise NavigationError(f"Failed to load {url}: {e}") from e


def with_show_date(iframe_src: str, date_str: str) -> str:
    """Point a calendar iframe URL at date_str (YYYY-MM-DD)."""
    if _SHOW_DATE.search(iframe_src):
        return _SHOW_DATE.sub(f"show_date={date_str}", iframe_src, count=1)
    separator = "&" if "?" in iframe_src else "?"
    return f"{iframe_src}{separator}show_date={date_str}"


def normalize_time_range(text: str) -> str:
    """'9:00 – 10:30' -> '9:00-10:30'."""
    return _WHITESPACE.sub("", _DASH.sub("-", text))


def parse_event_title(title: str | None) -> ScheduleEntry | None:
    """Convert a calendar event title into a ScheduleEntry.

    Returns None for titles that are empty, have fewer than two lines, or do
    not start with a time range (all-day notes, holidays, etc.).
    """
    if not title:
        return None

    lines = [line.strip() for line in title.split("\n")]
    lines = [line for line in lines if line]
    if len(lines) < 2:
        return None

    if not _TIME_RANGE.search(lines[0]):
        return None

    return ScheduleEntry(
        time=normalize_time_range(lines[0]),
        subject=lines[1][:SUBJECT_MAX_LENGTH],
        room=", ".join(lines[2:])[:ROOM_MAX_LENGTH],
        teacher="",
    )
