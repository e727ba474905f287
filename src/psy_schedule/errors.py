"""Error hierarchy for schedule acquisition.

Recoverable scrape failures (NavigationError, ExtractionError) are caught at the
service boundary and turned into an empty, uncached result. PoolExhaustionError
is fatal during service start-up.

Example:
    try:
        entries = await orchestrator.scrape(browser, "108", "2025-12-16")
    except ScrapingError:
        entries = []
"""


class ScrapingError(Exception):
    """Base exception for all scraping errors."""

    pass


class TransientError(ScrapingError):
    """Temporary failure that may succeed on a later request.

    Examples: network timeouts, slow iframe rendering, browser hiccups.
    """

    pass


class PermanentError(ScrapingError):
    """Failure that won't succeed by asking again with the same page layout.

    Examples: calendar iframe missing, event markup changed.
    """

    pass


class NavigationError(TransientError):
    """Page navigation failed or timed out."""

    pass


class ExtractionError(PermanentError):
    """Rendered page did not have the expected structure."""

    pass


class PoolExhaustionError(ScrapingError):
    """No usable browser instances in the renderer pool.

    Raised by RendererPool.start() when every launch fails, and by
    acquire_next() on an empty pool. Fatal to service initialization.
    """

    pass


class CacheCapacityInvariantViolation(AssertionError):
    """Cache grew past its capacity. Indicates a bug in eviction logic."""

    pass
