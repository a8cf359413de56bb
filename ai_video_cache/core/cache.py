"""
AI response cache.

Content-addressed cache in front of expensive AI calls, with
per-entry expiry and hit counting.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Optional

from ai_video_cache.storage.repository import CacheRepository

from .fingerprint import fingerprint
from .outcome import attempt

logger = logging.getLogger(__name__)

_BYTES_PER_MB = 1024 * 1024


@dataclass(frozen=True)
class StorageFootprint:
    """Advisory cache size, summed from recorded input/output sizes."""
    entries: int
    approx_bytes: int

    @property
    def approx_megabytes(self) -> float:
        return self.approx_bytes / _BYTES_PER_MB


def _kind_value(kind: Any) -> str:
    return getattr(kind, "value", kind)


class CacheStore:
    """Cache of AI outputs keyed by fingerprint.

    Caching is strictly an optimization: persistence failures turn reads
    into misses and writes into no-ops, and are only logged.

    Expired entries are removed lazily when read, and in bulk by
    :meth:`clear_expired`.
    """

    def __init__(
        self,
        repository: CacheRepository,
        clock: Callable[[], datetime] = datetime.now
    ):
        """Initialize the cache store.

        Args:
            repository: Persistence for cache entries
            clock: Source of the current time
        """
        self.repository = repository
        self.clock = clock

    def get(self, kind: Any, fingerprint_input: Any, model_id: str) -> Optional[Any]:
        """Look up a cached payload.

        Args:
            kind: Artifact kind
            fingerprint_input: Canonical input the payload was derived from
            model_id: Model that produced the payload

        Returns:
            The cached payload, or None on a miss, an expired entry, or a
            persistence error
        """
        kind = _kind_value(kind)
        key = fingerprint(kind, model_id, fingerprint_input)

        entry = attempt("Cache lookup", self.repository.get, key).unwrap_or(None)
        if entry is None:
            return None

        now = self.clock()
        if entry.is_expired(now):
            logger.debug("Cache entry for %s (%s) expired at %s", kind, model_id, entry.expires_at)
            attempt("Expired cache entry removal", self.repository.delete, key)
            return None

        attempt("Cache hit count update", self.repository.increment_hits, key, now)
        logger.info("Cache hit for %s (%s)", kind, model_id)
        return entry.payload

    def set(
        self,
        kind: Any,
        fingerprint_input: Any,
        model_id: str,
        payload: Any,
        ttl_days: Optional[float] = None,
        input_size: Optional[int] = None,
        output_size: Optional[int] = None
    ) -> None:
        """Store a payload, overwriting any entry with the same fingerprint.

        Args:
            kind: Artifact kind
            fingerprint_input: Canonical input the payload was derived from
            model_id: Model that produced the payload
            payload: JSON-serializable result to cache
            ttl_days: Days until expiry; None keeps the entry forever
            input_size: Advisory input size in bytes
            output_size: Advisory output size in bytes
        """
        kind = _kind_value(kind)
        now = self.clock()
        expires_at = now + timedelta(days=ttl_days) if ttl_days is not None else None

        outcome = attempt(
            "Cache write",
            self.repository.upsert,
            fingerprint(kind, model_id, fingerprint_input),
            kind,
            model_id,
            payload,
            now,
            expires_at=expires_at,
            input_size=input_size,
            output_size=output_size
        )
        if outcome.ok:
            logger.info("Cached %s response (%s)", kind, model_id)

    def clear_expired(self) -> int:
        """Delete all entries past their expiry. Returns the number removed."""
        count = attempt(
            "Expired cache clear", self.repository.delete_expired, self.clock()
        ).unwrap_or(0)
        logger.info("Cleared %d expired cache entries", count)
        return count

    def clear_by_kind(self, kind: Any) -> int:
        """Delete all entries of one artifact kind. Returns the number removed."""
        kind = _kind_value(kind)
        count = attempt(
            f"Cache clear for {kind}", self.repository.delete_by_kind, kind
        ).unwrap_or(0)
        logger.info("Cleared %d cache entries of type: %s", count, kind)
        return count

    def clear_all(self) -> int:
        """Delete every entry. Returns the number removed."""
        count = attempt("Cache clear", self.repository.delete_all).unwrap_or(0)
        logger.info("Cleared %d cache entries", count)
        return count

    def storage_footprint(self) -> StorageFootprint:
        """Entry count and approximate size of the cache."""
        entries, approx_bytes = attempt(
            "Cache size query", self.repository.size_totals
        ).unwrap_or((0, 0))
        return StorageFootprint(entries=entries, approx_bytes=approx_bytes)

    def count_by_kind(self) -> Dict[str, int]:
        """Number of entries per artifact kind."""
        return attempt("Cache count query", self.repository.count_by_kind).unwrap_or({})

    def hits_by_kind(self) -> Dict[str, int]:
        """Total hits per artifact kind."""
        return attempt("Cache hit query", self.repository.hits_by_kind).unwrap_or({})

    def total_hits(self) -> int:
        return sum(self.hits_by_kind().values())
