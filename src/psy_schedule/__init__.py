"""Schedule acquisition core for the psy-msu.ru timetable bot.

Renders group schedule pages in a pool of headless browsers, bounds
concurrent scrapes, and keeps results in a TTL cache that is trimmed under
memory pressure.
"""

from psy_schedule.cache import ExpiringCache
from psy_schedule.config import ServiceConfig, get_config
from psy_schedule.errors import (
    ExtractionError,
    NavigationError,
    PoolExhaustionError,
    ScrapingError,
)
from psy_schedule.gate import ConcurrencyGate
from psy_schedule.memory import MemoryMonitor
from psy_schedule.models import CacheKey, ScheduleEntry, ServiceStats
from psy_schedule.pool import RendererPool
from psy_schedule.scrape import ScrapeOrchestrator
from psy_schedule.service import ScheduleService

__all__ = [
    "ScheduleService",
    "ScheduleEntry",
    "ServiceStats",
    "CacheKey",
    "ServiceConfig",
    "get_config",
    "ExpiringCache",
    "RendererPool",
    "ConcurrencyGate",
    "MemoryMonitor",
    "ScrapeOrchestrator",
    "ScrapingError",
    "NavigationError",
    "ExtractionError",
    "PoolExhaustionError",
]
