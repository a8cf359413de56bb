"""
Pricing calculations and rate management.

Accounting cost model for AI invocations. Prices transcription per audio
minute and text/embedding models per 1K tokens.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Dict, Optional, Union

from ai_video_cache.storage.models import UsageKind

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
THOUSAND = Decimal("1000")

Number = Union[int, float, Decimal]


@dataclass(frozen=True)
class ModelPricing:
    """Rates for a specific model.

    Exactly one pricing shape applies: either ``cost_per_minute`` (audio)
    or the per-1K-token input/output rates (text and embedding models).
    """
    cost_per_minute: Optional[Decimal] = None  # Audio transcription
    input_cost_per_1k: Optional[Decimal] = None  # Cost per 1K input tokens
    output_cost_per_1k: Optional[Decimal] = None  # Cost per 1K output tokens

    def __post_init__(self):
        """Validate that exactly one pricing shape is defined."""
        per_minute = self.cost_per_minute is not None
        per_token = self.input_cost_per_1k is not None or self.output_cost_per_1k is not None
        if per_minute == per_token:
            raise ValueError("pricing must define either cost_per_minute or per-1K token rates")

    @property
    def is_per_minute(self) -> bool:
        return self.cost_per_minute is not None


@dataclass(frozen=True)
class PricingTable:
    """Rate table keyed by model identifier."""
    prices: Dict[str, ModelPricing]

    def get_pricing(self, model: str) -> Optional[ModelPricing]:
        """Get pricing for a specific model.

        Args:
            model: Model identifier

        Returns:
            ModelPricing for the model, or None if the model is unknown
        """
        return self.prices.get(model)


# OpenAI list prices in USD
PRICING_TABLE = PricingTable({
    "whisper-1": ModelPricing(
        cost_per_minute=Decimal("0.006")
    ),
    "gpt-4o-mini": ModelPricing(
        input_cost_per_1k=Decimal("0.00015"),
        output_cost_per_1k=Decimal("0.0006")
    ),
    "text-embedding-3-small": ModelPricing(
        input_cost_per_1k=Decimal("0.00002")
    ),
    "text-embedding-3-large": ModelPricing(
        input_cost_per_1k=Decimal("0.00013")
    ),
})


def _quantity(value: Optional[Number]) -> Decimal:
    """Convert an optional quantity to a non-negative Decimal."""
    if value is None:
        return ZERO
    amount = value if isinstance(value, Decimal) else Decimal(str(value))
    return amount if amount > ZERO else ZERO


def estimate_cost(
    kind: Union[UsageKind, str],
    model_id: str,
    input_tokens: Optional[Number] = None,
    output_tokens: Optional[Number] = None,
    input_minutes: Optional[Number] = None,
    table: PricingTable = PRICING_TABLE,
) -> Decimal:
    """Estimate the accounting cost of an AI invocation.

    Total function: unknown models, mismatched kinds and unusable
    quantities price at zero so usage tracking is never blocked.
    No rounding is applied here; see :func:`format_cost`.

    Args:
        kind: Usage kind (transcription, completion, embedding)
        model_id: Model identifier
        input_tokens: Prompt/input tokens (text and embedding models)
        output_tokens: Completion tokens (text models)
        input_minutes: Audio minutes (transcription models)
        table: Rate table to price against

    Returns:
        Estimated cost in USD
    """
    pricing = table.get_pricing(model_id)
    if pricing is None:
        return ZERO

    kind_value = getattr(kind, "value", kind)
    try:
        if kind_value == UsageKind.TRANSCRIPTION.value:
            if not pricing.is_per_minute:
                return ZERO
            return _quantity(input_minutes) * pricing.cost_per_minute

        if kind_value in (UsageKind.COMPLETION.value, UsageKind.EMBEDDING.value):
            if pricing.is_per_minute:
                return ZERO
            cost = ZERO
            if pricing.input_cost_per_1k is not None:
                cost += (_quantity(input_tokens) / THOUSAND) * pricing.input_cost_per_1k
            if pricing.output_cost_per_1k is not None:
                cost += (_quantity(output_tokens) / THOUSAND) * pricing.output_cost_per_1k
            return cost
    except (InvalidOperation, TypeError, ValueError) as e:
        logger.warning("Could not price %s usage for %s: %s", kind_value, model_id, e)
        return ZERO

    return ZERO


def format_cost(cost: Number, places: int = 4) -> str:
    """Format a cost for display, rounding half up to ``places`` decimals."""
    quantum = Decimal(1).scaleb(-places)
    rounded = Decimal(str(cost)).quantize(quantum, rounding=ROUND_HALF_UP)
    return f"${rounded:,}"
