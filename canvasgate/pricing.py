from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping


@dataclass(frozen=True)
class ModelPricing:
    input_cost_per_token: float = 0.0
    output_cost_per_token: float = 0.0


# Keyed by provider, then model prefix. The longest matching prefix wins.
DEFAULT_RATE_TABLE: dict[str, dict[str, ModelPricing]] = {
    "openai": {
        "gpt-4": ModelPricing(input_cost_per_token=0.00003, output_cost_per_token=0.00006),
        "gpt-3.5-turbo": ModelPricing(input_cost_per_token=0.0000005, output_cost_per_token=0.0000015),
    },
    "anthropic": {
        "claude-3-opus": ModelPricing(input_cost_per_token=0.000015, output_cost_per_token=0.000075),
        "claude-3-5-sonnet": ModelPricing(input_cost_per_token=0.000003, output_cost_per_token=0.000015),
        "claude-3-haiku": ModelPricing(input_cost_per_token=0.00000025, output_cost_per_token=0.00000125),
    },
    "google": {
        "gemini-1.5-pro": ModelPricing(input_cost_per_token=0.00000125, output_cost_per_token=0.000005),
        "gemini-1.5-flash": ModelPricing(input_cost_per_token=0.000000075, output_cost_per_token=0.0000003),
    },
}


def get_model_pricing(
    provider: str,
    model: str,
    *,
    rate_table: Mapping[str, Mapping[str, ModelPricing]] | None = None,
) -> ModelPricing | None:
    table = (rate_table or DEFAULT_RATE_TABLE).get(provider) or {}
    if model in table:
        return table[model]

    for prefix in sorted(table.keys(), key=len, reverse=True):
        if model.startswith(prefix):
            return table[prefix]

    return None


def completion_cost(
    provider: str,
    model: str,
    input_tokens: int,
    output_tokens: int,
    *,
    rate_table: Mapping[str, Mapping[str, ModelPricing]] | None = None,
) -> float:
    """Estimated cost in USD; unknown models cost 0."""
    pricing = get_model_pricing(provider, model, rate_table=rate_table)
    if pricing is None:
        return 0.0

    prompt_cost = max(0, int(input_tokens)) * pricing.input_cost_per_token
    output_cost = max(0, int(output_tokens)) * pricing.output_cost_per_token
    return round(prompt_cost + output_cost, 10)
