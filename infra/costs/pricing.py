# Pricing utilities for chat turn accounting
"""Helper functions to calculate the monetary cost of a model call.

The assistant uses a simple per‑token pricing model. Prices are expressed in USD
per token for prompt (input) and completion (output) tokens. Values are rounded
to **six decimal places**, the precision of the `chat_turn.cost` column.
"""

from __future__ import annotations

import math
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Tuple

# Default per‑token prices (USD), typical for gpt‑4o‑mini.
DEFAULT_UNIT_PRICE_IN_USD: float = 0.00000015  # $ per input token
DEFAULT_UNIT_PRICE_OUT_USD: float = 0.0000006  # $ per output token

# Rough characters-per-token ratio used when the provider reports no usage.
CHARS_PER_TOKEN = 4


def _round_usd(value: float) -> float:
    """Round a float to 6 decimal places using Decimal for exactness."""
    d = Decimal(str(value)).quantize(Decimal("0.000001"), rounding=ROUND_HALF_UP)
    return float(d)


def estimate_tokens(text: str) -> int:
    """Estimate the token count of ``text`` from its length."""
    if not text:
        return 0
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def calculate_cost(
    prompt_tokens: int,
    completion_tokens: int,
    unit_price_in_usd: Optional[float] = None,
    unit_price_out_usd: Optional[float] = None,
) -> Tuple[float, float, float]:
    """Calculate input, output and total cost for a model call.

    The function uses the provided per‑token prices or falls back to the defaults.
    All returned values are rounded to six decimal places.
    """
    price_in = (
        unit_price_in_usd
        if unit_price_in_usd is not None
        else DEFAULT_UNIT_PRICE_IN_USD
    )
    price_out = (
        unit_price_out_usd
        if unit_price_out_usd is not None
        else DEFAULT_UNIT_PRICE_OUT_USD
    )

    cost_in = prompt_tokens * price_in
    cost_out = completion_tokens * price_out
    total = cost_in + cost_out

    return _round_usd(cost_in), _round_usd(cost_out), _round_usd(total)
