"""Per-model token pricing (USD per 1M tokens) and cost calculation."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import NamedTuple

logger = logging.getLogger(__name__)


class ModelRate(NamedTuple):
    input: float
    output: float


@dataclass(frozen=True)
class Cost:
    input: float
    output: float

    @property
    def total(self) -> float:
        return self.input + self.output

    def as_dict(self) -> dict[str, float]:
        return {"input": self.input, "output": self.output, "total": self.total}


OPENAI_PRICING = {
    "gpt-4o": ModelRate(2.50, 10.00),
    "gpt-4o-mini": ModelRate(0.15, 0.60),
    "gpt-4-turbo": ModelRate(10.00, 30.00),
    "o1": ModelRate(15.00, 60.00),
    "o1-mini": ModelRate(3.00, 12.00),
    "o3-mini": ModelRate(1.10, 4.40),
}

ANTHROPIC_PRICING = {
    "claude-sonnet-4-20250514": ModelRate(3.00, 15.00),
    "claude-opus-4-20250514": ModelRate(15.00, 75.00),
    "claude-3-5-sonnet-20241022": ModelRate(3.00, 15.00),
    "claude-3-5-haiku-20241022": ModelRate(0.80, 4.00),
    "claude-3-opus-20240229": ModelRate(15.00, 75.00),
}

GOOGLE_PRICING = {
    "gemini-2.0-flash": ModelRate(0.10, 0.40),
    "gemini-2.0-flash-thinking": ModelRate(0.10, 0.40),
    "gemini-1.5-pro": ModelRate(1.25, 5.00),
    "gemini-1.5-flash": ModelRate(0.075, 0.30),
}

DEEPSEEK_PRICING = {
    "deepseek-chat": ModelRate(0.14, 0.28),
    "deepseek-reasoner": ModelRate(0.55, 2.19),
}

GROK_PRICING = {
    "grok-2": ModelRate(2.00, 10.00),
    "grok-2-mini": ModelRate(0.20, 1.00),
    "grok-3": ModelRate(3.00, 15.00),
    "grok-3-mini": ModelRate(0.30, 1.50),
}

KIMI_PRICING = {
    "moonshot-v1-8k": ModelRate(0.90, 0.90),
    "moonshot-v1-32k": ModelRate(1.50, 1.50),
    "moonshot-v1-128k": ModelRate(4.20, 4.20),
}


ZERO_RATE = ModelRate(0.0, 0.0)


def rate_for(pricing: dict[str, ModelRate], model: str, default_model: str) -> ModelRate:
    """Rate for *model*, falling back to the default model's rate.

    Models missing from the table entirely are priced at zero.
    """
    rate = pricing.get(model) or pricing.get(default_model)
    if rate is None:
        logger.warning("No pricing for model %s; reporting zero cost", model)
        return ZERO_RATE
    return rate


def calculate_cost(
    pricing: dict[str, ModelRate],
    default_model: str,
    model: str,
    prompt_tokens: int,
    completion_tokens: int,
) -> Cost:
    rate = rate_for(pricing, model, default_model)
    return Cost(
        input=prompt_tokens / 1_000_000 * rate.input,
        output=completion_tokens / 1_000_000 * rate.output,
    )
