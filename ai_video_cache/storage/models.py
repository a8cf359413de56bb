"""
Data models for storage layer.

Defines database entities and data structures.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Optional


class ArtifactKind(str, Enum):
    """Categories of cached AI output."""
    TRANSCRIPTION = "transcription"
    HIGHLIGHTS = "highlights"
    SUMMARY = "summary"
    TOPICS = "topics"
    EMBEDDINGS = "embeddings"


class UsageKind(str, Enum):
    """Billing categories of AI invocations."""
    TRANSCRIPTION = "transcription"
    COMPLETION = "completion"
    EMBEDDING = "embedding"


@dataclass(frozen=True)
class CacheEntry:
    """Cached AI output keyed by its fingerprint.

    The payload is opaque to the cache; its shape depends on the
    artifact kind. ``expires_at`` of None means the entry never expires.
    """
    fingerprint: str
    artifact_kind: str
    model_id: str
    payload: Any
    created_at: datetime
    updated_at: datetime
    expires_at: Optional[datetime] = None
    input_size: Optional[int] = None
    output_size: Optional[int] = None
    hit_count: int = 0

    def is_expired(self, now: datetime) -> bool:
        """Whether the entry is past its expiry at ``now``."""
        return self.expires_at is not None and self.expires_at < now


@dataclass(frozen=True)
class UsageRecord:
    """Immutable record of one AI invocation for cost accounting.

    Append-only events that create an auditable ledger of AI costs.
    ``estimated_cost`` is what the invocation actually cost; for cache
    hits it is zero and ``avoided_cost`` holds what the provider call
    would have cost.
    """
    timestamp: datetime
    kind: str
    model_id: str
    estimated_cost: float
    cached: bool
    input_tokens: Optional[int] = None
    output_tokens: Optional[int] = None
    input_minutes: Optional[float] = None
    avoided_cost: float = 0.0
    video_id: Optional[str] = None
    user_id: Optional[str] = None


@dataclass(frozen=True)
class UsageFilter:
    """Time window and attribution filter for ledger queries.

    Bounds are inclusive; None leaves that side open.
    """
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    user_id: Optional[str] = None
