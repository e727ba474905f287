"""Data models for schedule entries, cache keys and service statistics."""

import re
from datetime import date, datetime
from typing import NamedTuple

from pydantic import BaseModel

SUBJECT_MAX_LENGTH = 150
ROOM_MAX_LENGTH = 100

_ISO_DATE = re.compile(r"\d{4}-\d{2}-\d{2}")


class ScheduleEntry(BaseModel):
    """A single lesson from a group's daily schedule.

    Built from the title attribute of a rendered calendar event, e.g.
    "09:00 – 10:30\\nАлгебра\\n401".
    """

    time: str  # "09:00-10:30", dashes unified and whitespace stripped
    subject: str  # Second title line, at most 150 chars
    room: str = ""  # Remaining title lines joined by ", ", at most 100 chars
    teacher: str = ""  # Not available from the calendar source


class CacheKey(NamedTuple):
    """Lookup key for one group's schedule on one day."""

    group: str
    date: str  # YYYY-MM-DD

    def __str__(self) -> str:
        return f"{self.group}:{self.date}"


class ServiceStats(BaseModel):
    """Snapshot of service state for operational display."""

    pool_size: int
    cache_size: int
    cache_capacity: int
    queue_depth: int
    running_fetches: int
    total_requests: int
    memory_used_mb: int
    memory_total_mb: int
    memory_pressure: bool = False


def normalize_date(value: date | datetime | str) -> str:
    """Convert a calendar date to its canonical YYYY-MM-DD form.

    Raises:
        ValueError: If a string is not a valid YYYY-MM-DD date.
    """
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    text = value.strip()
    # fromisoformat accepts other ISO layouts on 3.11+
    if not _ISO_DATE.fullmatch(text):
        raise ValueError(f"Expected YYYY-MM-DD date, got {value!r}")
    return date.fromisoformat(text).isoformat()


def make_cache_key(group: str, day: date | datetime | str) -> CacheKey:
    """Build a CacheKey from a group code and any accepted date form."""
    return CacheKey(str(group).strip(), normalize_date(day))
