"""Cost accounting for AgentAssay.

Converts token usage into integer minor-currency units (cents) using the
project's per-model pricing table, and derives a suggested resale price.
"""

from __future__ import annotations

import logging
from typing import Optional

from agentassay.metrics import round_half_up
from agentassay.models import ModelPricing, TokenUsage
from agentassay.store import EvalStore

logger = logging.getLogger(__name__)

_PER_MILLION = 1_000_000


def compute_cost_cents(usage: TokenUsage, pricing: Optional[ModelPricing]) -> int:
    """Compute cost in cents for a given token usage.

    Args:
        usage: Token usage reported by the adapter.
        pricing: Pricing row, prices in cents per million tokens. ``None``
            means the model is unpriced and costs nothing.

    Returns:
        Non-negative cost in cents.
    """
    if pricing is None:
        return 0
    cost = (
        usage.input_tokens * pricing.input_price_per_million
        + usage.output_tokens * pricing.output_price_per_million
    ) / _PER_MILLION
    return max(0, round_half_up(cost))


def suggested_price(total_cost_cents: int, profit_margin: float) -> int:
    """Resale price for a total cost at the given margin (0.3 = 30%)."""
    return max(0, round_half_up(total_cost_cents * (1 + profit_margin)))


class CostCalculator:
    """Price token usage against a project's pricing table."""

    def __init__(self, store: EvalStore) -> None:
        self.store = store

    def cost_for(self, project_id: int, model_id: Optional[str], usage: TokenUsage) -> int:
        if not model_id:
            return 0
        pricing = self.store.get_pricing(project_id, model_id)
        if pricing is None:
            logger.debug("No pricing for model %r in project %s", model_id, project_id)
        return compute_cost_cents(usage, pricing)
