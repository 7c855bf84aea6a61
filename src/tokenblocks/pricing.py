from dataclasses import dataclass

import structlog

logger = structlog.get_logger()


@dataclass(frozen=True, slots=True)
class ModelPrice:
    # USD per 1M tokens
    input_price: "float"
    output_price: "float"


MODEL_PRICING: "dict[str, ModelPrice]" = {
    "gpt-5": ModelPrice(1.25, 10.0),
    "gpt-5-mini": ModelPrice(0.25, 2.0),
    "gpt-5-nano": ModelPrice(0.05, 0.4),
    "gpt-5-codex": ModelPrice(1.25, 10.0),
    "gpt-4.1": ModelPrice(2.0, 8.0),
    "gpt-4.1-mini": ModelPrice(0.4, 1.6),
    "gpt-4.1-nano": ModelPrice(0.1, 0.4),
    "gpt-4o": ModelPrice(5.0, 15.0),
    "gpt-4o-mini": ModelPrice(0.15, 0.6),
    "gpt-4-turbo": ModelPrice(10.0, 30.0),
    "gpt-4": ModelPrice(30.0, 60.0),
    "gpt-3.5-turbo": ModelPrice(0.5, 1.5),
    "o1": ModelPrice(15.0, 60.0),
    "o3": ModelPrice(2.0, 8.0),
    "o3-mini": ModelPrice(1.1, 4.4),
    "o4-mini": ModelPrice(1.1, 4.4),
    "codex-mini-latest": ModelPrice(1.5, 6.0),
    "text-embedding-3-small": ModelPrice(0.02, 0.0),
    "text-embedding-3-large": ModelPrice(0.13, 0.0),
    "text-embedding-ada-002": ModelPrice(0.10, 0.0),
}


def get_model_price(model: "str") -> "ModelPrice | None":
    """
    looks up the price of a model. Dated or fine-tuned variants
    (e.g. "gpt-4o-2024-08-06") fall back to the longest known
    model name they start with.
    """
    price = MODEL_PRICING.get(model)
    if price is not None:
        return price

    best = ""
    for known in MODEL_PRICING:
        if model.startswith(known) and len(known) > len(best):
            best = known

    return MODEL_PRICING[best] if best else None


def estimate_cost(model: "str", prompt_tokens: "int", completion_tokens: "int") -> "float":
    """
    estimates the USD cost of a request from its token counts.
    Models without a known price cost nothing.
    """
    price = get_model_price(model)
    if price is None:
        logger.debug("model_price_unknown", model=model)
        return 0.0

    return (
        prompt_tokens * price.input_price + completion_tokens * price.output_price
    ) / 1_000_000
