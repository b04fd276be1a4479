"""
Cost Calculation

Converts token usage into USD using the fixed per-model pricing table.
"""

import logging

from lead_rank_core.domain.constants import MODEL_PRICING, _LOCAL_MODEL_PRICING
from lead_rank_core.domain.value_objects import CostMetrics, ModelResponse

logger = logging.getLogger(__name__)


def get_model_pricing(model_name: str) -> dict[str, float]:
    """
    Look up pricing (USD per 1M tokens) for a model

    Local models (lmstudio/ prefix) are free. Unknown models are priced at 0
    with a warning so that cost reporting never blocks an evaluation.

    Args:
        model_name: Model name

    Returns:
        {"input": float, "output": float}
    """
    if model_name.startswith("lmstudio/"):
        return _LOCAL_MODEL_PRICING
    pricing = MODEL_PRICING.get(model_name)
    if pricing is None:
        logger.warning("No pricing entry for model '%s'; cost is reported as 0.", model_name)
        return _LOCAL_MODEL_PRICING
    return pricing


def calculate_total_cost(metrics: CostMetrics) -> float:
    """
    Calculate token cost

    Args:
        metrics: CostMetrics instance

    Returns:
        Total cost (USD)
    """
    return (
        (metrics.input_tokens / 1_000_000) * metrics.input_price_per_m +
        (metrics.output_tokens / 1_000_000) * metrics.output_price_per_m
    )


def calculate_cost(model_name: str, input_tokens: int, output_tokens: int) -> float:
    """
    Calculate the USD cost of one model call

    Args:
        model_name: Model name used for the pricing lookup
        input_tokens: Prompt tokens
        output_tokens: Completion tokens

    Returns:
        Cost (USD)
    """
    pricing = get_model_pricing(model_name)
    return calculate_total_cost(CostMetrics(
        input_tokens=input_tokens,
        output_tokens=output_tokens,
        input_price_per_m=pricing["input"],
        output_price_per_m=pricing["output"],
    ))


def response_cost(response: ModelResponse) -> float:
    """Cost of a ModelResponse, priced by the model that produced it"""
    return calculate_cost(response.model_name, response.input_tokens, response.output_tokens)
