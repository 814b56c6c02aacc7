"""
Pricing calculations and rate management.

Resolves a pricing tier from a free-text model identifier and computes
per-message cost across all four token categories.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Dict, Optional, Tuple

from .token_counter import UsageCounts

logger = logging.getLogger(__name__)

TOKENS_PER_MILLION = Decimal("1000000")
COST_PRECISION = Decimal("0.000001")


class ModelTier(Enum):
    """Pricing classes recognised from model identifiers."""
    OPUS = "opus"
    SONNET = "sonnet"
    HAIKU = "haiku"


@dataclass(frozen=True)
class ModelPricing:
    """Per-million-token USD rates for one tier."""
    input: Decimal
    output: Decimal
    cache_creation: Decimal
    cache_read: Decimal


@dataclass(frozen=True)
class PricingTable:
    """Versioned pricing lookup.

    ``rules`` is checked in order; the first keyword contained in the
    lowercased model name selects the tier. Anything unmatched, including a
    missing model, falls back to ``default_tier``.
    """
    version: str
    prices: Dict[ModelTier, ModelPricing]
    rules: Tuple[Tuple[str, ModelTier], ...]
    default_tier: ModelTier

    def resolve_tier(self, model: Optional[str]) -> ModelTier:
        """Resolve the pricing tier for a model identifier."""
        if not model:
            return self.default_tier

        name = model.lower()
        for keyword, tier in self.rules:
            if keyword in name:
                return tier

        logger.debug("Unknown model tier for %r, using %s", model, self.default_tier.value)
        return self.default_tier

    def get_pricing(self, tier: ModelTier) -> ModelPricing:
        """Get rates for a tier.

        Raises:
            ValueError: If the tier has no rates in this table
        """
        if tier not in self.prices:
            raise ValueError(f"No pricing for tier: {tier.value}")
        return self.prices[tier]


# Rates as of January 2025, USD per million tokens
PRICING_TABLE = PricingTable(
    version="2025-01",
    prices={
        ModelTier.OPUS: ModelPricing(
            input=Decimal("15.00"),
            output=Decimal("75.00"),
            cache_creation=Decimal("18.75"),
            cache_read=Decimal("1.50"),
        ),
        ModelTier.SONNET: ModelPricing(
            input=Decimal("3.00"),
            output=Decimal("15.00"),
            cache_creation=Decimal("3.75"),
            cache_read=Decimal("0.30"),
        ),
        ModelTier.HAIKU: ModelPricing(
            input=Decimal("0.25"),
            output=Decimal("1.25"),
            cache_creation=Decimal("0.30"),
            cache_read=Decimal("0.03"),
        ),
    },
    rules=(
        ("opus", ModelTier.OPUS),
        ("haiku", ModelTier.HAIKU),
        ("sonnet", ModelTier.SONNET),
    ),
    default_tier=ModelTier.SONNET,
)


def resolve_tier(model: Optional[str], table: PricingTable = PRICING_TABLE) -> ModelTier:
    """Resolve the pricing tier of ``model`` against ``table``."""
    return table.resolve_tier(model)


def calculate_cost_decimal(
    usage: UsageCounts,
    model: Optional[str],
    table: PricingTable = PRICING_TABLE,
) -> Decimal:
    """Calculate message cost as a Decimal rounded to 6 decimal places.

    Unlike the quota total, cost includes both cache counters.
    """
    pricing = table.get_pricing(table.resolve_tier(model))

    total = (
        Decimal(usage.input_tokens) * pricing.input
        + Decimal(usage.output_tokens) * pricing.output
        + Decimal(usage.cache_creation_tokens) * pricing.cache_creation
        + Decimal(usage.cache_read_tokens) * pricing.cache_read
    ) / TOKENS_PER_MILLION

    return total.quantize(COST_PRECISION, rounding=ROUND_HALF_UP)


def calculate_cost(
    usage: UsageCounts,
    model: Optional[str],
    table: PricingTable = PRICING_TABLE,
) -> float:
    """Calculate message cost in USD.

    Args:
        usage: Token counters for the message
        model: Model identifier, may be None
        table: Pricing table to use

    Returns:
        Cost rounded to 6 decimal places
    """
    return float(calculate_cost_decimal(usage, model, table))
