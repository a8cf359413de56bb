"""
Repository pattern for data access.

Handles database operations for cache entries and the usage ledger.
"""

import json
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from .db import DEFAULT_DB_PATH, get_connection
from .models import CacheEntry, UsageFilter, UsageRecord

_CACHE_COLUMNS = (
    "fingerprint, artifact_kind, model_id, payload, created_at, updated_at, "
    "expires_at, input_size, output_size, hit_count"
)

_USAGE_COLUMNS = (
    "timestamp, kind, model_id, input_tokens, output_tokens, input_minutes, "
    "estimated_cost, avoided_cost, cached, video_id, user_id"
)

# Columns the ledger may be grouped by
_GROUPABLE_COLUMNS = {"kind", "model_id"}


def initialize_schema(db_path: str = DEFAULT_DB_PATH) -> None:
    """Create the cache and ledger tables if they don't exist.

    ``ai_usage_record`` is an append-only ledger: no UPDATE or DELETE
    operations are ever performed on it.

    Args:
        db_path: Path to SQLite database file
    """
    conn = get_connection(db_path)
    try:
        conn.execute("""
            CREATE TABLE IF NOT EXISTS ai_cache_entry (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                fingerprint TEXT NOT NULL UNIQUE,
                artifact_kind TEXT NOT NULL,
                model_id TEXT NOT NULL,
                payload TEXT NOT NULL,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                expires_at TEXT,
                input_size INTEGER,
                output_size INTEGER,
                hit_count INTEGER NOT NULL DEFAULT 0
            )
        """)
        conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_ai_cache_entry_kind ON ai_cache_entry (artifact_kind)"
        )
        conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_ai_cache_entry_expires ON ai_cache_entry (expires_at)"
        )
        conn.execute("""
            CREATE TABLE IF NOT EXISTS ai_usage_record (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                timestamp TEXT NOT NULL,
                kind TEXT NOT NULL,
                model_id TEXT NOT NULL,
                input_tokens INTEGER,
                output_tokens INTEGER,
                input_minutes REAL,
                estimated_cost REAL NOT NULL,
                avoided_cost REAL NOT NULL DEFAULT 0,
                cached INTEGER NOT NULL,
                video_id TEXT,
                user_id TEXT
            )
        """)
        conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_ai_usage_record_timestamp ON ai_usage_record (timestamp)"
        )
        conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_ai_usage_record_video ON ai_usage_record (video_id)"
        )
        conn.commit()
    finally:
        conn.close()


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


class CacheRepository:
    """Repository for cache entries keyed by fingerprint.

    Errors are propagated; the cache store decides what to swallow.
    """

    def __init__(self, db_path: str = DEFAULT_DB_PATH):
        """Initialize the repository with a database path.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = db_path

    def get(self, fingerprint: str) -> Optional[CacheEntry]:
        """Fetch the entry for a fingerprint, expired or not."""
        conn = get_connection(self.db_path)
        try:
            row = conn.execute(
                f"SELECT {_CACHE_COLUMNS} FROM ai_cache_entry WHERE fingerprint = ?",
                (fingerprint,)
            ).fetchone()
            if row is None:
                return None
            return CacheEntry(
                fingerprint=row[0],
                artifact_kind=row[1],
                model_id=row[2],
                payload=json.loads(row[3]),
                created_at=datetime.fromisoformat(row[4]),
                updated_at=datetime.fromisoformat(row[5]),
                expires_at=_parse_timestamp(row[6]),
                input_size=row[7],
                output_size=row[8],
                hit_count=row[9]
            )
        finally:
            conn.close()

    def upsert(
        self,
        fingerprint: str,
        artifact_kind: str,
        model_id: str,
        payload: Any,
        now: datetime,
        expires_at: Optional[datetime] = None,
        input_size: Optional[int] = None,
        output_size: Optional[int] = None
    ) -> None:
        """Insert an entry, or overwrite payload, expiry and sizes of an existing one.

        ``hit_count`` and ``created_at`` of an existing entry are kept.
        """
        conn = get_connection(self.db_path)
        try:
            conn.execute("""
                INSERT INTO ai_cache_entry
                (fingerprint, artifact_kind, model_id, payload, created_at,
                 updated_at, expires_at, input_size, output_size, hit_count)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, 0)
                ON CONFLICT(fingerprint) DO UPDATE SET
                    payload = excluded.payload,
                    expires_at = excluded.expires_at,
                    input_size = excluded.input_size,
                    output_size = excluded.output_size,
                    updated_at = excluded.updated_at
            """, (
                fingerprint,
                artifact_kind,
                model_id,
                json.dumps(payload),
                now.isoformat(),
                now.isoformat(),
                expires_at.isoformat() if expires_at else None,
                input_size,
                output_size
            ))
            conn.commit()
        finally:
            conn.close()

    def increment_hits(self, fingerprint: str, now: datetime) -> None:
        """Record one cache hit for a fingerprint."""
        conn = get_connection(self.db_path)
        try:
            conn.execute(
                "UPDATE ai_cache_entry SET hit_count = hit_count + 1, updated_at = ? "
                "WHERE fingerprint = ?",
                (now.isoformat(), fingerprint)
            )
            conn.commit()
        finally:
            conn.close()

    def _delete(self, where: str = "", params: Tuple = ()) -> int:
        conn = get_connection(self.db_path)
        try:
            cursor = conn.execute(f"DELETE FROM ai_cache_entry {where}", params)
            conn.commit()
            return cursor.rowcount
        finally:
            conn.close()

    def delete(self, fingerprint: str) -> int:
        """Delete a single entry. Returns the number of rows removed."""
        return self._delete("WHERE fingerprint = ?", (fingerprint,))

    def delete_expired(self, now: datetime) -> int:
        """Delete entries whose non-null expiry is before ``now``."""
        return self._delete(
            "WHERE expires_at IS NOT NULL AND expires_at < ?", (now.isoformat(),)
        )

    def delete_by_kind(self, artifact_kind: str) -> int:
        """Delete all entries of one artifact kind."""
        return self._delete("WHERE artifact_kind = ?", (artifact_kind,))

    def delete_all(self) -> int:
        """Delete every entry."""
        return self._delete()

    def count_by_kind(self) -> Dict[str, int]:
        """Number of entries per artifact kind."""
        return self._sum_by_kind("COUNT(*)")

    def hits_by_kind(self) -> Dict[str, int]:
        """Total hit count per artifact kind."""
        return self._sum_by_kind("SUM(hit_count)")

    def _sum_by_kind(self, expression: str) -> Dict[str, int]:
        conn = get_connection(self.db_path)
        try:
            cursor = conn.execute(
                f"SELECT artifact_kind, {expression} FROM ai_cache_entry "
                "GROUP BY artifact_kind ORDER BY artifact_kind"
            )
            return {row[0]: int(row[1] or 0) for row in cursor.fetchall()}
        finally:
            conn.close()

    def size_totals(self) -> Tuple[int, int]:
        """Entry count and summed input/output sizes across all entries."""
        conn = get_connection(self.db_path)
        try:
            row = conn.execute("""
                SELECT COUNT(*), SUM(COALESCE(input_size, 0) + COALESCE(output_size, 0))
                FROM ai_cache_entry
            """).fetchone()
            return int(row[0] or 0), int(row[1] or 0)
        finally:
            conn.close()


def _filter_clause(usage_filter: Optional[UsageFilter]) -> Tuple[List[str], List[Any]]:
    """Build WHERE conditions for a ledger filter."""
    conditions: List[str] = []
    params: List[Any] = []
    if usage_filter is None:
        return conditions, params
    if usage_filter.start is not None:
        conditions.append("timestamp >= ?")
        params.append(usage_filter.start.isoformat())
    if usage_filter.end is not None:
        conditions.append("timestamp <= ?")
        params.append(usage_filter.end.isoformat())
    if usage_filter.user_id:
        conditions.append("user_id = ?")
        params.append(usage_filter.user_id)
    return conditions, params


def _where(conditions: List[str]) -> str:
    return " WHERE " + " AND ".join(conditions) if conditions else ""


class UsageRepository:
    """Repository for the append-only usage ledger.

    Provides inserts and the aggregate queries behind usage reporting.
    """

    def __init__(self, db_path: str = DEFAULT_DB_PATH):
        """Initialize the repository with a database path.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = db_path

    def insert(self, record: UsageRecord) -> None:
        """Append a single usage record to the ledger.

        Args:
            record: The usage record to store
        """
        conn = get_connection(self.db_path)
        try:
            conn.execute(f"""
                INSERT INTO ai_usage_record ({_USAGE_COLUMNS})
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                record.timestamp.isoformat(),
                record.kind,
                record.model_id,
                record.input_tokens,
                record.output_tokens,
                record.input_minutes,
                record.estimated_cost,
                record.avoided_cost,
                1 if record.cached else 0,
                record.video_id,
                record.user_id
            ))
            conn.commit()
        finally:
            conn.close()

    def fetch_recent(
        self,
        kind: Optional[str] = None,
        model_id: Optional[str] = None,
        limit: int = 100
    ) -> List[UsageRecord]:
        """Fetch recent usage records, newest first.

        Args:
            kind: Optional filter for a usage kind
            model_id: Optional filter for a model
            limit: Maximum number of records to return

        Returns:
            List of usage records ordered by timestamp (newest first)
        """
        conditions = []
        params: List[Any] = []
        if kind:
            conditions.append("kind = ?")
            params.append(kind)
        if model_id:
            conditions.append("model_id = ?")
            params.append(model_id)
        params.append(limit)

        conn = get_connection(self.db_path)
        try:
            cursor = conn.execute(
                f"SELECT {_USAGE_COLUMNS} FROM ai_usage_record{_where(conditions)} "
                "ORDER BY timestamp DESC, id DESC LIMIT ?",
                params
            )
            return [
                UsageRecord(
                    timestamp=datetime.fromisoformat(row[0]),
                    kind=row[1],
                    model_id=row[2],
                    input_tokens=row[3],
                    output_tokens=row[4],
                    input_minutes=row[5],
                    estimated_cost=row[6],
                    avoided_cost=row[7],
                    cached=bool(row[8]),
                    video_id=row[9],
                    user_id=row[10]
                )
                for row in cursor.fetchall()
            ]
        finally:
            conn.close()

    def totals(self, usage_filter: Optional[UsageFilter] = None) -> Dict[str, float]:
        """Request count, cost, avoided cost and cached count for a window."""
        conditions, params = _filter_clause(usage_filter)
        conn = get_connection(self.db_path)
        try:
            row = conn.execute(f"""
                SELECT
                    COUNT(*),
                    SUM(estimated_cost),
                    SUM(avoided_cost),
                    SUM(cached)
                FROM ai_usage_record{_where(conditions)}
            """, params).fetchone()
            return {
                "total_requests": int(row[0] or 0),
                "total_cost": float(row[1] or 0),
                "avoided_cost": float(row[2] or 0),
                "cached_requests": int(row[3] or 0)
            }
        finally:
            conn.close()

    def grouped(
        self,
        column: str,
        usage_filter: Optional[UsageFilter] = None
    ) -> List[Tuple[str, int, float]]:
        """Requests and cost grouped by ``kind`` or ``model_id``.

        Raises:
            ValueError: If the column can not be grouped by
        """
        if column not in _GROUPABLE_COLUMNS:
            raise ValueError(f"Cannot group usage by: {column}")
        conditions, params = _filter_clause(usage_filter)
        conn = get_connection(self.db_path)
        try:
            cursor = conn.execute(f"""
                SELECT {column}, COUNT(*), SUM(estimated_cost)
                FROM ai_usage_record{_where(conditions)}
                GROUP BY {column}
                ORDER BY {column}
            """, params)
            return [(row[0], int(row[1]), float(row[2] or 0)) for row in cursor.fetchall()]
        finally:
            conn.close()

    def cost_by_video(self, user_id: Optional[str] = None) -> List[Tuple[str, float, int]]:
        """Cost and request count per video, most expensive first."""
        conditions = ["video_id IS NOT NULL"]
        params: List[Any] = []
        if user_id:
            conditions.append("user_id = ?")
            params.append(user_id)
        conn = get_connection(self.db_path)
        try:
            cursor = conn.execute(f"""
                SELECT video_id, SUM(estimated_cost) AS cost, COUNT(*)
                FROM ai_usage_record{_where(conditions)}
                GROUP BY video_id
                ORDER BY cost DESC, video_id
            """, params)
            return [(row[0], float(row[1] or 0), int(row[2])) for row in cursor.fetchall()]
        finally:
            conn.close()

    def daily(self, usage_filter: UsageFilter) -> List[Tuple[str, float, int, int]]:
        """Cost, requests and cached requests per calendar day, oldest first."""
        conditions, params = _filter_clause(usage_filter)
        conn = get_connection(self.db_path)
        try:
            cursor = conn.execute(f"""
                SELECT substr(timestamp, 1, 10) AS day,
                       SUM(estimated_cost), COUNT(*), SUM(cached)
                FROM ai_usage_record{_where(conditions)}
                GROUP BY day
                ORDER BY day
            """, params)
            return [
                (row[0], float(row[1] or 0), int(row[2]), int(row[3] or 0))
                for row in cursor.fetchall()
            ]
        finally:
            conn.close()

    def count_provider_calls(self) -> int:
        """Number of ledger records that were served by the provider."""
        conn = get_connection(self.db_path)
        try:
            row = conn.execute(
                "SELECT COUNT(*) FROM ai_usage_record WHERE cached = 0"
            ).fetchone()
            return int(row[0] or 0)
        finally:
            conn.close()
