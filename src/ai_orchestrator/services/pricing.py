"""Token pricing used for usage cost estimates."""

# USD per 1M tokens: (input, output)
COST_PER_1M_TOKENS: dict[str, tuple[float, float]] = {
    "gemini-2.0-flash-exp": (0.075, 0.30),
    "gemini-2.5-flash": (0.075, 0.30),
    "gemini-1.5-flash": (0.075, 0.30),
    "gemini-2.5-pro": (1.25, 5.00),
    "gemini-1.5-pro": (1.25, 5.00),
}

FALLBACK_MODEL = "gemini-2.0-flash-exp"

# Providers only report a total, so assume a fixed input/output split.
INPUT_SHARE = 0.7
OUTPUT_SHARE = 0.3


def price_for(model: str) -> tuple[float, float]:
    """Look up a model's price, ignoring any ``vendor/`` prefix."""
    bare = model.rsplit("/", 1)[-1]
    return COST_PER_1M_TOKENS.get(bare, COST_PER_1M_TOKENS[FALLBACK_MODEL])


def estimate_cost(model: str, tokens_used: int | None) -> float:
    """Estimated USD cost of a call that consumed ``tokens_used`` tokens."""
    if not tokens_used:
        return 0.0
    input_price, output_price = price_for(model)
    input_cost = tokens_used * INPUT_SHARE / 1_000_000 * input_price
    output_cost = tokens_used * OUTPUT_SHARE / 1_000_000 * output_price
    return input_cost + output_cost
