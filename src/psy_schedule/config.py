"""Service configuration loaded from environment variables.

Defaults are sized for a 1 GB host: four browsers, sixteen concurrent fetches
and a cache of at most 800 schedules.
"""

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings


class ServiceConfig(BaseSettings):
    """Schedule service configuration loaded from environment variables.

    Settings are loaded from environment variables with sensible defaults.
    For local development, create a .env file in the project root.
    """

    # Renderer pool / concurrency gate
    renderer_pool_size: int = Field(
        default=4,
        ge=1,
        description="Number of headless browsers launched at start-up",
    )
    max_concurrent_fetches: int = Field(
        default=16,
        ge=1,
        description="Maximum number of scrapes in flight at once",
    )
    renderer_launch_attempts: int = Field(
        default=2,
        ge=1,
        description="Launch attempts per browser before it is skipped",
    )
    headless: bool = Field(
        default=True,
        description="Launch browsers in headless mode",
    )

    # Cache
    cache_capacity: int = Field(
        default=800,
        ge=1,
        description="Maximum number of (group, date) schedules kept in memory",
    )
    cache_ttl_seconds: float = Field(
        default=2 * 60 * 60,
        gt=0,
        description="Age after which a cached schedule is considered stale",
    )
    coalesce_inflight: bool = Field(
        default=False,
        description="Let concurrent misses for the same key share one scrape",
    )

    # Memory monitor
    memory_check_interval_seconds: float = Field(
        default=30,
        gt=0,
        description="Interval between process memory samples",
    )
    memory_high_watermark_ratio: float = Field(
        default=0.6,
        gt=0,
        le=1,
        description="Used/total ratio that triggers pressure eviction",
    )
    memory_low_watermark_ratio: float = Field(
        default=0.4,
        ge=0,
        lt=1,
        description="Used/total ratio below which the pressure latch resets",
    )
    memory_eviction_target_ratio: float = Field(
        default=0.7,
        ge=0,
        le=1,
        description="Fraction of cache capacity kept after pressure eviction",
    )
    memory_limit_mb: int = Field(
        default=0,
        ge=0,
        description="Memory budget in MB for the ratio; 0 uses total system RAM",
    )

    # Source page (site-specific glue)
    schedule_base_url: str = Field(
        default="https://psy-msu.ru/educat/raspisanie-uchebnykh-zanyatiy/schedule_group/",
        description="Group schedule page URL prefix; the group code is appended",
    )
    calendar_iframe_selector: str = Field(
        default='iframe[src*="calendar.yandex.ru"]',
        description="CSS selector for the embedded calendar iframe",
    )
    event_selector: str = Field(
        default="[class*='GridEvent__wrap']",
        description="CSS selector for rendered calendar events",
    )
    navigation_timeout_seconds: float = Field(
        default=30,
        gt=0,
        description="Timeout for each page navigation",
    )
    iframe_dwell_seconds: float = Field(
        default=3,
        ge=0,
        description="Fixed wait after loading the group page",
    )
    render_dwell_seconds: float = Field(
        default=5,
        ge=0,
        description="Fixed wait for the calendar to finish client-side rendering",
    )

    # Logging
    log_json: bool = Field(
        default=False,
        description="Output logs in JSON format (for production)",
    )
    log_level: str = Field(
        default="INFO",
        description="Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )

    model_config = {
        "env_prefix": "",
        "case_sensitive": False,
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @model_validator(mode="after")
    def _check_watermarks(self) -> "ServiceConfig":
        if self.memory_low_watermark_ratio >= self.memory_high_watermark_ratio:
            raise ValueError(
                "memory_low_watermark_ratio must be below memory_high_watermark_ratio"
            )
        return self

    @property
    def navigation_timeout_ms(self) -> int:
        return int(self.navigation_timeout_seconds * 1000)


# Singleton pattern
_config: ServiceConfig | None = None


def get_config() -> ServiceConfig:
    """Get the service configuration singleton.

    Returns:
        ServiceConfig: Service configuration instance
    """
    global _config
    if _config is None:
        _config = ServiceConfig()
    return _config
