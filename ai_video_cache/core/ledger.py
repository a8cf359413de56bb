"""
Usage ledger.

Records every AI invocation, served by the provider or from cache,
with its estimated cost, and aggregates the ledger for reporting.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, List, Optional

from ai_video_cache.storage.models import UsageFilter, UsageRecord
from ai_video_cache.storage.repository import UsageRepository

from .budget import BudgetStatus, budget_status, month_start
from .outcome import attempt
from .pricing import estimate_cost
from .token_counter import UsageQuantities

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UsageBreakdown:
    """Requests and cost for one usage kind or model."""
    key: str
    requests: int
    cost: float


@dataclass(frozen=True)
class UsageStats:
    """Aggregated ledger figures for a time window."""
    total_cost: float = 0.0
    total_requests: int = 0
    by_kind: List[UsageBreakdown] = field(default_factory=list)
    by_model: List[UsageBreakdown] = field(default_factory=list)
    cache_hit_rate: float = 0.0
    estimated_savings: float = 0.0


@dataclass(frozen=True)
class VideoCost:
    """Accumulated cost of the invocations attributed to a video."""
    video_id: str
    total_cost: float
    requests: int


@dataclass(frozen=True)
class DailyUsage:
    """Ledger totals for one calendar day (``YYYY-MM-DD``)."""
    date: str
    cost: float
    requests: int
    cached_count: int


class UsageLedger:
    """Append-only accounting of AI invocations.

    Cache hits are recorded with zero cost; the accounting cost they
    would have incurred is kept as ``avoided_cost`` and reported as
    savings. Recording never fails the caller.
    """

    def __init__(
        self,
        repository: UsageRepository,
        clock: Callable[[], datetime] = datetime.now
    ):
        """Initialize the ledger.

        Args:
            repository: Persistence for usage records
            clock: Source of the current time
        """
        self.repository = repository
        self.clock = clock

    def record(
        self,
        kind: Any,
        model_id: str,
        quantities: UsageQuantities,
        cached: bool,
        video_id: Optional[str] = None,
        user_id: Optional[str] = None
    ) -> None:
        """Append one usage record.

        Args:
            kind: Usage kind (transcription, completion, embedding)
            model_id: Model used, or that would have been used
            quantities: Actual quantities, or estimates for cache hits
            cached: Whether the result was served from cache
            video_id: Optional video attribution
            user_id: Optional user attribution
        """
        kind = getattr(kind, "value", kind)
        cost = float(estimate_cost(
            kind,
            model_id,
            input_tokens=quantities.input_tokens,
            output_tokens=quantities.output_tokens,
            input_minutes=quantities.input_minutes
        ))
        record = UsageRecord(
            timestamp=self.clock(),
            kind=kind,
            model_id=model_id,
            input_tokens=quantities.input_tokens,
            output_tokens=quantities.output_tokens,
            input_minutes=quantities.input_minutes,
            estimated_cost=0.0 if cached else cost,
            avoided_cost=cost if cached else 0.0,
            cached=cached,
            video_id=video_id,
            user_id=user_id
        )
        outcome = attempt("Usage tracking", self.repository.insert, record)
        if outcome.ok:
            logger.info(
                "Tracked %s usage: $%.4f (cached: %s)",
                kind, record.estimated_cost, cached
            )

    def aggregate(self, usage_filter: Optional[UsageFilter] = None) -> UsageStats:
        """Aggregate the ledger over a window.

        Args:
            usage_filter: Optional time window and user filter

        Returns:
            UsageStats; zeroed if the ledger can not be read
        """
        return attempt("Usage aggregation", self._aggregate, usage_filter).unwrap_or(UsageStats())

    def _aggregate(self, usage_filter: Optional[UsageFilter]) -> UsageStats:
        totals = self.repository.totals(usage_filter)
        total_requests = totals["total_requests"]
        cache_hit_rate = (
            totals["cached_requests"] / total_requests if total_requests > 0 else 0.0
        )
        return UsageStats(
            total_cost=totals["total_cost"],
            total_requests=total_requests,
            by_kind=[
                UsageBreakdown(key, requests, cost)
                for key, requests, cost in self.repository.grouped("kind", usage_filter)
            ],
            by_model=[
                UsageBreakdown(key, requests, cost)
                for key, requests, cost in self.repository.grouped("model_id", usage_filter)
            ],
            cache_hit_rate=cache_hit_rate,
            estimated_savings=totals["avoided_cost"]
        )

    def recent_usage(self, user_id: Optional[str] = None, days: int = 30) -> UsageStats:
        """Aggregate the last ``days`` days."""
        now = self.clock()
        return self.aggregate(UsageFilter(start=now - timedelta(days=days), end=now, user_id=user_id))

    def recent_records(
        self,
        kind: Optional[str] = None,
        model_id: Optional[str] = None,
        limit: int = 100
    ) -> List[UsageRecord]:
        """Latest usage records, newest first; empty if the ledger can not be read."""
        return attempt(
            "Recent usage query",
            self.repository.fetch_recent,
            kind=getattr(kind, "value", kind),
            model_id=model_id,
            limit=limit
        ).unwrap_or([])

    def cost_by_video(self, user_id: Optional[str] = None) -> List[VideoCost]:
        """Cost per video, most expensive first."""
        rows = attempt(
            "Cost by video query", self.repository.cost_by_video, user_id
        ).unwrap_or([])
        return [VideoCost(video_id, cost, requests) for video_id, cost, requests in rows]

    def daily_series(
        self,
        start: datetime,
        end: datetime,
        user_id: Optional[str] = None
    ) -> List[DailyUsage]:
        """Per-day totals for the days in [start, end] that have usage."""
        rows = attempt(
            "Daily usage query",
            self.repository.daily,
            UsageFilter(start=start, end=end, user_id=user_id)
        ).unwrap_or([])
        return [DailyUsage(date, cost, requests, cached) for date, cost, requests, cached in rows]

    def budget_status(self, monthly_budget: float, user_id: Optional[str] = None) -> BudgetStatus:
        """Spend since the first of the current month against a budget.

        Raises:
            ValueError: If the budget is not positive
        """
        now = self.clock()
        stats = self.aggregate(UsageFilter(start=month_start(now), end=now, user_id=user_id))
        return budget_status(stats.total_cost, monthly_budget)

    def provider_calls(self) -> int:
        """Number of recorded invocations served by the provider."""
        return attempt(
            "Provider call count query", self.repository.count_provider_calls
        ).unwrap_or(0)
