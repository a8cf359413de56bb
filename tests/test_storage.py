"""
Unit tests for storage layer.

Tests schema creation, cache entry upserts and ledger queries.
"""

import os
import tempfile
from datetime import datetime, timedelta

import pytest

from ai_video_cache.storage.db import get_connection
from ai_video_cache.storage.models import UsageFilter, UsageRecord
from ai_video_cache.storage.repository import (
    CacheRepository,
    UsageRepository,
    initialize_schema,
)

NOW = datetime(2024, 1, 15, 12, 0, 0)


def _record(**overrides) -> UsageRecord:
    values = dict(
        timestamp=NOW,
        kind="completion",
        model_id="gpt-4o-mini",
        estimated_cost=0.5,
        cached=False,
        input_tokens=100,
        output_tokens=50,
    )
    values.update(overrides)
    return UsageRecord(**values)


class TestStorageSchema:
    """Test database schema creation and structure."""

    def test_schema_creation(self):
        """Verify both tables are created."""
        with tempfile.TemporaryDirectory() as temp_dir:
            db_path = os.path.join(temp_dir, "test.db")
            initialize_schema(db_path)

            conn = get_connection(db_path)
            try:
                cursor = conn.execute(
                    "SELECT name FROM sqlite_master WHERE type='table' "
                    "AND name IN ('ai_cache_entry', 'ai_usage_record') ORDER BY name"
                )
                assert [row[0] for row in cursor.fetchall()] == ["ai_cache_entry", "ai_usage_record"]

                cursor = conn.execute("PRAGMA table_info(ai_usage_record)")
                column_names = [col[1] for col in cursor.fetchall()]
                assert column_names == [
                    'id', 'timestamp', 'kind', 'model_id', 'input_tokens',
                    'output_tokens', 'input_minutes', 'estimated_cost',
                    'avoided_cost', 'cached', 'video_id', 'user_id'
                ]
            finally:
                conn.close()

    def test_schema_creation_is_idempotent(self):
        """Verify initializing twice keeps existing data."""
        with tempfile.TemporaryDirectory() as temp_dir:
            db_path = os.path.join(temp_dir, "test.db")
            initialize_schema(db_path)
            UsageRepository(db_path).insert(_record())
            initialize_schema(db_path)
            assert len(UsageRepository(db_path).fetch_recent()) == 1

    def test_nested_database_directory_is_created(self):
        """Verify the database parent directory is created on demand."""
        with tempfile.TemporaryDirectory() as temp_dir:
            db_path = os.path.join(temp_dir, "nested", "dir", "test.db")
            initialize_schema(db_path)
            assert os.path.exists(db_path)


class TestCacheRepository:
    """Test cache entry persistence."""

    def setup_method(self):
        """Set up test environment."""
        self.temp_dir = tempfile.mkdtemp()
        self.db_path = os.path.join(self.temp_dir, "test.db")
        initialize_schema(self.db_path)
        self.repo = CacheRepository(self.db_path)

    def teardown_method(self):
        """Clean up test environment."""
        import shutil
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_upsert_and_get(self):
        """Verify an entry round-trips with its metadata."""
        self.repo.upsert(
            "fp1", "summary", "gpt-4o-mini", {"text": "hi"}, NOW,
            expires_at=NOW + timedelta(days=1), input_size=10, output_size=20
        )
        entry = self.repo.get("fp1")
        assert entry.payload == {"text": "hi"}
        assert entry.artifact_kind == "summary"
        assert entry.created_at == NOW
        assert entry.expires_at == NOW + timedelta(days=1)
        assert entry.hit_count == 0

    def test_get_missing(self):
        """Verify missing fingerprints return None."""
        assert self.repo.get("nope") is None

    def test_upsert_overwrites_and_keeps_hits(self):
        """Verify a second upsert replaces the payload without duplicating."""
        self.repo.upsert("fp1", "summary", "m", "first", NOW)
        self.repo.increment_hits("fp1", NOW)
        later = NOW + timedelta(hours=1)
        self.repo.upsert("fp1", "summary", "m", "second", later)

        entry = self.repo.get("fp1")
        assert entry.payload == "second"
        assert entry.hit_count == 1
        assert entry.created_at == NOW
        assert entry.updated_at == later
        assert self.repo.count_by_kind() == {"summary": 1}

    def test_delete_expired(self):
        """Verify only entries past a non-null expiry are removed."""
        self.repo.upsert("old", "summary", "m", "x", NOW, expires_at=NOW - timedelta(days=1))
        self.repo.upsert("fresh", "summary", "m", "x", NOW, expires_at=NOW + timedelta(days=1))
        self.repo.upsert("forever", "summary", "m", "x", NOW)

        assert self.repo.delete_expired(NOW) == 1
        assert self.repo.get("old") is None
        assert self.repo.get("fresh") is not None
        assert self.repo.get("forever") is not None

    def test_delete_by_kind_and_all(self):
        """Verify bulk deletes report the rows removed."""
        self.repo.upsert("a", "summary", "m", "x", NOW)
        self.repo.upsert("b", "topics", "m", ["x"], NOW)
        self.repo.upsert("c", "topics", "m", ["y"], NOW)

        assert self.repo.delete_by_kind("topics") == 2
        assert self.repo.count_by_kind() == {"summary": 1}
        assert self.repo.delete_all() == 1
        assert self.repo.count_by_kind() == {}

    def test_hits_and_sizes(self):
        """Verify hit and size aggregates."""
        self.repo.upsert("a", "summary", "m", "x", NOW, input_size=100, output_size=50)
        self.repo.upsert("b", "embeddings", "m", [[0.1]], NOW, input_size=10)
        self.repo.increment_hits("a", NOW)
        self.repo.increment_hits("a", NOW)

        assert self.repo.hits_by_kind() == {"embeddings": 0, "summary": 2}
        assert self.repo.size_totals() == (2, 160)


class TestUsageRepository:
    """Test usage ledger persistence and aggregates."""

    def setup_method(self):
        """Set up test environment."""
        self.temp_dir = tempfile.mkdtemp()
        self.db_path = os.path.join(self.temp_dir, "test.db")
        initialize_schema(self.db_path)
        self.repo = UsageRepository(self.db_path)

    def teardown_method(self):
        """Clean up test environment."""
        import shutil
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_insert_and_fetch(self):
        """Verify a record round-trips."""
        record = _record(video_id="v1", user_id="u1", avoided_cost=0.25)
        self.repo.insert(record)
        assert self.repo.fetch_recent() == [record]

    def test_fetch_recent_ordering_and_filters(self):
        """Verify newest-first ordering, filters and limit."""
        for i in range(3):
            self.repo.insert(_record(timestamp=NOW + timedelta(minutes=i)))
        self.repo.insert(_record(kind="embedding", model_id="text-embedding-3-small"))

        records = self.repo.fetch_recent(kind="completion")
        assert [r.timestamp for r in records] == [
            NOW + timedelta(minutes=2), NOW + timedelta(minutes=1), NOW
        ]
        assert len(self.repo.fetch_recent(model_id="text-embedding-3-small")) == 1
        assert len(self.repo.fetch_recent(limit=2)) == 2

    def test_totals_with_filter(self):
        """Verify totals respect the time window and user."""
        self.repo.insert(_record(estimated_cost=1.0, user_id="u1"))
        self.repo.insert(_record(estimated_cost=0.0, avoided_cost=1.0, cached=True, user_id="u1"))
        self.repo.insert(_record(estimated_cost=2.0, user_id="u2"))
        self.repo.insert(_record(estimated_cost=4.0, timestamp=NOW - timedelta(days=40), user_id="u1"))

        totals = self.repo.totals(UsageFilter(start=NOW - timedelta(days=30), end=NOW, user_id="u1"))
        assert totals == {
            "total_requests": 2,
            "total_cost": 1.0,
            "avoided_cost": 1.0,
            "cached_requests": 1,
        }

    def test_totals_empty(self):
        """Verify an empty ledger totals to zero."""
        assert self.repo.totals() == {
            "total_requests": 0,
            "total_cost": 0.0,
            "avoided_cost": 0.0,
            "cached_requests": 0,
        }

    def test_grouped(self):
        """Verify grouping by kind."""
        self.repo.insert(_record(kind="completion", estimated_cost=1.0))
        self.repo.insert(_record(kind="completion", estimated_cost=2.0))
        self.repo.insert(_record(kind="embedding", estimated_cost=0.5))

        assert self.repo.grouped("kind") == [("completion", 2, 3.0), ("embedding", 1, 0.5)]

    def test_grouped_rejects_unknown_column(self):
        """Verify only whitelisted columns can be grouped by."""
        with pytest.raises(ValueError, match="Cannot group usage by"):
            self.repo.grouped("user_id; DROP TABLE ai_usage_record")

    def test_cost_by_video(self):
        """Verify per-video costs, most expensive first, unattributed excluded."""
        self.repo.insert(_record(video_id="cheap", estimated_cost=0.1))
        self.repo.insert(_record(video_id="pricey", estimated_cost=1.0))
        self.repo.insert(_record(video_id="pricey", estimated_cost=0.5))
        self.repo.insert(_record(estimated_cost=9.0))

        assert self.repo.cost_by_video() == [("pricey", 1.5, 2), ("cheap", 0.1, 1)]

    def test_daily(self):
        """Verify per-day grouping, oldest first."""
        self.repo.insert(_record(timestamp=NOW - timedelta(days=1), estimated_cost=1.0))
        self.repo.insert(_record(timestamp=NOW, estimated_cost=2.0))
        self.repo.insert(_record(timestamp=NOW, estimated_cost=0.0, cached=True))

        rows = self.repo.daily(UsageFilter(start=NOW - timedelta(days=7), end=NOW))
        assert rows == [("2024-01-14", 1.0, 1, 0), ("2024-01-15", 2.0, 2, 1)]

    def test_count_provider_calls(self):
        """Verify only non-cached records count as provider calls."""
        self.repo.insert(_record())
        self.repo.insert(_record(cached=True, estimated_cost=0.0))
        assert self.repo.count_provider_calls() == 1
