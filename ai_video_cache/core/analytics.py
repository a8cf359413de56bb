"""
Cache analytics and reporting.

Read-only views over the cache store and the usage ledger.
"""

from dataclasses import dataclass, field
from typing import Dict, Optional

from .cache import CacheStore, StorageFootprint
from .ledger import UsageLedger, UsageStats

# Flat savings per cache hit, by artifact kind. Not reconciled with the
# ledger's accounting cost.
HEADLINE_SAVINGS_PER_HIT: Dict[str, float] = {
    "transcription": 0.03,  # ~10 minutes of audio
    "highlights": 0.002,
    "embeddings": 0.001,
    "summary": 0.001,
}


@dataclass(frozen=True)
class HeadlineSavings:
    """Savings estimate per artifact kind and in total."""
    by_kind: Dict[str, float] = field(default_factory=dict)
    total: float = 0.0


@dataclass(frozen=True)
class GlobalCacheStats:
    """Cache-wide figures for the operator dashboard."""
    by_kind: Dict[str, int]
    total_entries: int
    hit_rate: float
    estimated_savings: float


@dataclass(frozen=True)
class CacheDashboard:
    """Everything the operator stats view shows."""
    cache: GlobalCacheStats
    footprint: StorageFootprint
    usage: UsageStats


class CacheAnalytics:
    """Aggregates cache and ledger figures. Holds no state of its own."""

    def __init__(self, cache: CacheStore, ledger: UsageLedger):
        self.cache = cache
        self.ledger = ledger

    def headline_savings_estimate(self) -> HeadlineSavings:
        """Estimate savings as hits per kind times a flat per-hit cost.

        Kinds without a per-hit constant count as zero.
        """
        by_kind = {
            kind: HEADLINE_SAVINGS_PER_HIT.get(kind, 0.0) * hits
            for kind, hits in self.cache.hits_by_kind().items()
        }
        return HeadlineSavings(by_kind=by_kind, total=sum(by_kind.values()))

    def global_stats(self) -> GlobalCacheStats:
        """Entries per kind, hit rate and headline savings.

        The hit rate is cache hits over cache hits plus provider calls
        recorded in the ledger.
        """
        by_kind = self.cache.count_by_kind()
        cache_hits = self.cache.total_hits()
        provider_calls = self.ledger.provider_calls()
        lookups = cache_hits + provider_calls
        return GlobalCacheStats(
            by_kind=by_kind,
            total_entries=sum(by_kind.values()),
            hit_rate=cache_hits / lookups if lookups > 0 else 0.0,
            estimated_savings=self.headline_savings_estimate().total
        )

    def dashboard(self, user_id: Optional[str] = None, days: int = 30) -> CacheDashboard:
        """Global cache stats, storage footprint and recent usage."""
        return CacheDashboard(
            cache=self.global_stats(),
            footprint=self.cache.storage_footprint(),
            usage=self.ledger.recent_usage(user_id=user_id, days=days)
        )
