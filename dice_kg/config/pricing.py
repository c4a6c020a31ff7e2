"""
Estimated model prices used by cost telemetry.

Prices are USD per million tokens. A model missing from the table costs
0.0 and is reported as unpriced, so its token counts still show up.
"""

from __future__ import annotations

from typing import NamedTuple

PRICING_VERSION = "2026-10-estimate-v1"


class ModelPrice(NamedTuple):
    input_per_million: float
    output_per_million: float = 0.0

    def cost(self, input_tokens: int, output_tokens: int) -> float:
        return (input_tokens * self.input_per_million + output_tokens * self.output_per_million) / 1_000_000


MODEL_PRICING: dict[str, ModelPrice] = {
    # chat
    "gpt-5.1": ModelPrice(1.25, 10.0),
    "gpt-5": ModelPrice(1.25, 10.0),
    "gpt-5-mini": ModelPrice(0.25, 2.0),
    "gpt-4o": ModelPrice(5.0, 15.0),
    "gpt-4o-mini": ModelPrice(0.15, 0.6),
    # embeddings
    "text-embedding-3-large": ModelPrice(0.13),
    "text-embedding-3-small": ModelPrice(0.02),
}


def _lookup(model: str) -> ModelPrice | None:
    """Exact name first, then the longest table entry the name is a dated snapshot of."""
    if model in MODEL_PRICING:
        return MODEL_PRICING[model]
    snapshots = [name for name in MODEL_PRICING if model.startswith(f"{name}-2")]
    if not snapshots:
        return None
    return MODEL_PRICING[max(snapshots, key=len)]


def estimate_cost_usd(
    model: str,
    *,
    input_tokens: int,
    output_tokens: int = 0,
) -> tuple[float, bool]:
    """
    Estimate the cost of one call.

    Returns:
        (cost_usd, priced); priced is False when the model has no price.
    """
    price = _lookup(model)
    if price is None:
        return 0.0, False
    return price.cost(input_tokens, output_tokens), True
