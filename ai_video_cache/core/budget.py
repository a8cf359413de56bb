"""
Budget alerting.

Classifies monthly spend against a budget into alert levels.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class BudgetLevel(Enum):
    """Alert levels in order of severity."""
    LOW = "low"            # below 60% of budget
    MEDIUM = "medium"      # 60% to 80%
    HIGH = "high"          # 80% to 100%
    EXCEEDED = "exceeded"  # at or above budget


@dataclass(frozen=True)
class BudgetStatus:
    """Spend for the current month measured against the monthly budget."""
    spend: float
    budget: float
    percent_used: float
    level: BudgetLevel


def classify_budget(percent_used: float) -> BudgetLevel:
    """Map a percentage of budget used to an alert level."""
    if percent_used >= 100:
        return BudgetLevel.EXCEEDED
    if percent_used >= 80:
        return BudgetLevel.HIGH
    if percent_used >= 60:
        return BudgetLevel.MEDIUM
    return BudgetLevel.LOW


def month_start(now: datetime) -> datetime:
    """Midnight on the first day of ``now``'s month."""
    return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def budget_status(spend: float, monthly_budget: float) -> BudgetStatus:
    """Build the budget status for a month's spend.

    Args:
        spend: Spend so far this month
        monthly_budget: Monthly budget, must be > 0

    Returns:
        BudgetStatus with percentage and alert level

    Raises:
        ValueError: If the budget is not positive
    """
    if monthly_budget <= 0:
        raise ValueError("monthly budget must be > 0")
    percent_used = (spend / monthly_budget) * 100
    return BudgetStatus(
        spend=spend,
        budget=monthly_budget,
        percent_used=percent_used,
        level=classify_budget(percent_used)
    )
