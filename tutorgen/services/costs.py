"""
AI Model Pricing and Cost Estimation
USD per 1K tokens, OpenAI list prices
"""

import logging
from decimal import Decimal
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)

MODEL_PRICING: Dict[str, Dict[str, float]] = {
    # GPT-4 family
    "gpt-4": {"input": 0.03, "output": 0.06},
    "gpt-4-turbo": {"input": 0.01, "output": 0.03},
    "gpt-4o": {"input": 0.005, "output": 0.015},
    "gpt-4o-mini": {"input": 0.00015, "output": 0.0006},

    # GPT-3.5 family
    "gpt-3.5-turbo": {"input": 0.0015, "output": 0.002},

    # GPT-5 family ($1.25 / $10.00 per million for gpt-5)
    "gpt-5": {"input": 0.00125, "output": 0.01},
    "gpt-5-mini": {"input": 0.00025, "output": 0.002},
    "gpt-5-nano": {"input": 0.00005, "output": 0.0004},

    # Embeddings
    "text-embedding-3-small": {"input": 0.00002, "output": 0.0},
    "text-embedding-3-large": {"input": 0.00013, "output": 0.0},
    "text-embedding-ada-002": {"input": 0.0001, "output": 0.0},
}

FALLBACK_PRICING_MODEL = "gpt-4o-mini"


def estimate_cost_usd(
    model: str,
    prompt_tokens: int,
    completion_tokens: int = 0,
) -> Decimal:
    """
    Estimate the cost in USD for an AI call.

    cost = prompt/1000 * input_rate + completion/1000 * output_rate.
    Unknown models are priced at the fallback model's rate; this never raises.
    """
    pricing = MODEL_PRICING.get(model)
    if pricing is None:
        logger.warning(f"Unknown model pricing for: {model}, using {FALLBACK_PRICING_MODEL} fallback")
        pricing = MODEL_PRICING[FALLBACK_PRICING_MODEL]

    input_cost = (max(prompt_tokens, 0) / 1000) * pricing["input"]
    output_cost = (max(completion_tokens, 0) / 1000) * pricing["output"]
    return Decimal(str(round(input_cost + output_cost, 6)))


def format_cost(cost_usd: float) -> str:
    """Format cost as a currency string; sub-cent amounts are shown in cents"""
    cost_usd = float(cost_usd)
    if cost_usd < 0.01:
        return f"{cost_usd * 100:.3f}¢"
    return f"${cost_usd:.4f}"


def get_model_pricing(model: str) -> Optional[Dict[str, float]]:
    """Get pricing info for a model"""
    return MODEL_PRICING.get(model)


def get_supported_models() -> List[str]:
    """List all priced models"""
    return list(MODEL_PRICING.keys())
