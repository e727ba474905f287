"""Tests for cache keys, date normalization and environment configuration."""

from datetime import date, datetime

import pytest
from pydantic import ValidationError

from psy_schedule.config import ServiceConfig
from psy_schedule.models import CacheKey, make_cache_key, normalize_date


class TestNormalizeDate:
    @pytest.mark.parametrize(
        "value",
        [date(2025, 12, 16), datetime(2025, 12, 16, 23, 59), "2025-12-16", " 2025-12-16 "],
    )
    def test_accepted_forms(self, value):
        assert normalize_date(value) == "2025-12-16"

    @pytest.mark.parametrize(
        "value", ["16.12.2025", "2025-13-01", "2025-02-30", "2025-W51-2", "20251216", ""]
    )
    def test_rejected_forms(self, value):
        with pytest.raises(ValueError):
            normalize_date(value)


class TestCacheKey:
    def test_equality_is_exact_pair(self):
        assert make_cache_key("108", "2025-12-16") == CacheKey("108", "2025-12-16")
        assert make_cache_key("108", "2025-12-16") != CacheKey("1080", "2025-12-16")

    def test_str_format(self):
        assert str(CacheKey("108", "2025-12-16")) == "108:2025-12-16"

    def test_hashable(self):
        assert {CacheKey("108", "2025-12-16"): 1}[make_cache_key("108", date(2025, 12, 16))] == 1


class TestServiceConfig:
    def test_defaults(self, monkeypatch: pytest.MonkeyPatch):
        for name in ("RENDERER_POOL_SIZE", "MAX_CONCURRENT_FETCHES", "CACHE_CAPACITY"):
            monkeypatch.delenv(name, raising=False)
        config = ServiceConfig(_env_file=None)

        assert config.renderer_pool_size == 4
        assert config.max_concurrent_fetches == 16
        assert config.cache_capacity == 800
        assert config.cache_ttl_seconds == 7200
        assert config.memory_high_watermark_ratio == 0.6
        assert config.memory_low_watermark_ratio == 0.4
        assert config.navigation_timeout_ms == 30000

    def test_environment_names(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("RENDERER_POOL_SIZE", "2")
        monkeypatch.setenv("MAX_CONCURRENT_FETCHES", "4")
        monkeypatch.setenv("CACHE_CAPACITY", "300")
        monkeypatch.setenv("CACHE_TTL_SECONDS", "600")
        monkeypatch.setenv("MEMORY_CHECK_INTERVAL_SECONDS", "10")
        monkeypatch.setenv("MEMORY_HIGH_WATERMARK_RATIO", "0.7")
        monkeypatch.setenv("MEMORY_LOW_WATERMARK_RATIO", "0.5")
        config = ServiceConfig(_env_file=None)

        assert config.renderer_pool_size == 2
        assert config.max_concurrent_fetches == 4
        assert config.cache_capacity == 300
        assert config.cache_ttl_seconds == 600
        assert config.memory_check_interval_seconds == 10
        assert config.memory_high_watermark_ratio == 0.7
        assert config.memory_low_watermark_ratio == 0.5

    def test_low_watermark_must_be_below_high(self):
        with pytest.raises(ValidationError):
            ServiceConfig(
                _env_file=None,
                memory_high_watermark_ratio=0.5,
                memory_low_watermark_ratio=0.5,
            )

    def test_pool_size_must_be_positive(self):
        with pytest.raises(ValidationError):
            ServiceConfig(_env_file=None, renderer_pool_size=0)
