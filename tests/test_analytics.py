"""
Unit tests for cache analytics.

Tests headline savings, global hit rate and the dashboard view.
"""

import os
import tempfile
from datetime import datetime

import pytest

from ai_video_cache.core.analytics import CacheAnalytics
from ai_video_cache.core.cache import CacheStore
from ai_video_cache.core.ledger import UsageLedger
from ai_video_cache.core.token_counter import UsageQuantities
from ai_video_cache.storage.repository import (
    CacheRepository,
    UsageRepository,
    initialize_schema,
)

NOW = datetime(2024, 5, 10, 8, 0, 0)


class TestCacheAnalytics:
    """Test analytics over a populated cache and ledger."""

    def setup_method(self):
        """Set up test environment."""
        self.temp_dir = tempfile.mkdtemp()
        self.db_path = os.path.join(self.temp_dir, "test.db")
        initialize_schema(self.db_path)
        self.cache = CacheStore(CacheRepository(self.db_path), clock=lambda: NOW)
        self.ledger = UsageLedger(UsageRepository(self.db_path), clock=lambda: NOW)
        self.analytics = CacheAnalytics(self.cache, self.ledger)

    def teardown_method(self):
        """Clean up test environment."""
        import shutil
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def _hit(self, kind: str, key: str, times: int) -> None:
        for _ in range(times):
            assert self.cache.get(kind, key, "m") is not None

    def test_empty(self):
        """Verify an empty system reports zeros."""
        stats = self.analytics.global_stats()
        assert stats.total_entries == 0
        assert stats.hit_rate == 0.0
        assert stats.estimated_savings == 0.0
        assert self.analytics.headline_savings_estimate().total == 0.0

    def test_headline_savings(self):
        """Verify flat per-hit constants per kind; kinds without one count zero."""
        self.cache.set("transcription", "audio", "m", {"text": "t"})
        self.cache.set("summary", "t", "m", "s")
        self.cache.set("topics", "t", "m", ["a"])
        self._hit("transcription", "audio", 2)
        self._hit("summary", "t", 3)
        self._hit("topics", "t", 5)

        savings = self.analytics.headline_savings_estimate()
        assert savings.by_kind["transcription"] == pytest.approx(0.06)
        assert savings.by_kind["summary"] == pytest.approx(0.003)
        assert savings.by_kind["topics"] == 0.0
        assert savings.total == pytest.approx(0.063)

    def test_global_hit_rate(self):
        """Verify hits over hits plus recorded provider calls."""
        self.cache.set("summary", "t", "m", "s")
        self._hit("summary", "t", 3)
        self.ledger.record("completion", "gpt-4o-mini", UsageQuantities(input_tokens=10), cached=False)

        stats = self.analytics.global_stats()
        assert stats.total_entries == 1
        assert stats.by_kind == {"summary": 1}
        assert stats.hit_rate == 0.75

    def test_dashboard(self):
        """Verify the dashboard combines cache, footprint and usage."""
        self.cache.set("summary", "t", "m", "s", input_size=100, output_size=24)
        self.ledger.record("completion", "gpt-4o-mini", UsageQuantities(input_tokens=10), cached=False, user_id="u1")
        self.ledger.record("completion", "gpt-4o-mini", UsageQuantities(input_tokens=10), cached=False, user_id="u2")

        dashboard = self.analytics.dashboard(user_id="u1", days=7)
        assert dashboard.cache.total_entries == 1
        assert dashboard.footprint.approx_bytes == 124
        assert dashboard.usage.total_requests == 1
