from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

import yaml

from .models import Provider

logger = logging.getLogger("novtrans.pricing")

# Flat per-token rate used when a model has no entry in the pricing table.
DEFAULT_COST_PER_TOKEN = 0.000002


@dataclass(frozen=True)
class ModelPricing:
    input_per_million: float
    output_per_million: float

    def cost(self, input_tokens: int, output_tokens: int) -> float:
        return (
            max(0, input_tokens) * self.input_per_million + max(0, output_tokens) * self.output_per_million
        ) / 1_000_000.0


def _key(provider: str | Provider, model: str) -> tuple[str, str]:
    provider_name = provider.value if isinstance(provider, Provider) else provider
    return provider_name.strip().lower(), model.strip().lower()


class PricingTable:
    """Per-(provider, model) token prices with a flat per-token fallback."""

    def __init__(
        self,
        prices: Mapping[str, Mapping[str, ModelPricing]],
        *,
        currency: str = "USD",
        default_cost_per_token: float = DEFAULT_COST_PER_TOKEN,
    ) -> None:
        self._prices = {
            _key(provider, model): price for provider, models in prices.items() for model, price in models.items()
        }
        self.currency = currency or "USD"
        self.default_cost_per_token = float(default_cost_per_token)

    @classmethod
    def empty(cls, *, currency: str = "USD") -> "PricingTable":
        return cls({}, currency=currency)

    def get(self, provider: str | Provider, model: str) -> ModelPricing | None:
        return self._prices.get(_key(provider, model))

    def estimate_cost(
        self, provider: str | Provider, model: str, input_tokens: int, output_tokens: int
    ) -> float | None:
        price = self.get(provider, model)
        return None if price is None else price.cost(input_tokens, output_tokens)

    def cost_or_default(self, provider: str | Provider, model: str, input_tokens: int, output_tokens: int) -> float:
        cost = self.estimate_cost(provider, model, input_tokens, output_tokens)
        if cost is not None:
            return cost
        return (max(0, input_tokens) + max(0, output_tokens)) * self.default_cost_per_token


def _model_pricing(model_data: Any) -> ModelPricing | None:
    if not isinstance(model_data, dict):
        return None
    try:
        return ModelPricing(float(model_data["input_per_million"]), float(model_data["output_per_million"]))
    except KeyError:
        return None
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Invalid pricing rate in {model_data!r}") from exc


def load_pricing_table(path: str | Path, *, currency: str = "USD") -> PricingTable:
    """Load `{provider: {model: {input_per_million, output_per_million}}}` from YAML or JSON.

    Provider keys must name a known provider. Models missing either rate are skipped.
    """
    pricing_path = Path(path)
    text = pricing_path.read_text(encoding="utf-8")
    data = json.loads(text) if pricing_path.suffix.lower() == ".json" else yaml.safe_load(text)
    if not isinstance(data, dict):
        raise ValueError(f"Pricing file must contain mapping object: {pricing_path}")
    raw = data.get("pricing", data)
    if not isinstance(raw, dict):
        raise ValueError(f"Pricing table must be a mapping: {pricing_path}")

    prices: dict[str, dict[str, ModelPricing]] = {}
    for provider_name, models in raw.items():
        if not isinstance(models, dict):
            continue
        try:
            provider = Provider(str(provider_name).strip().lower())
        except ValueError:
            logger.warning("Ignoring pricing for unknown provider %r in %s", provider_name, pricing_path)
            continue
        for model, model_data in models.items():
            price = _model_pricing(model_data)
            if price is None:
                logger.debug("Skipping incomplete pricing for %s/%s", provider.value, model)
                continue
            prices.setdefault(provider.value, {})[str(model)] = price

    try:
        default_rate = float(data.get("default_cost_per_token", DEFAULT_COST_PER_TOKEN))
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Invalid default_cost_per_token in {pricing_path}") from exc
    return PricingTable(
        prices,
        currency=str(data.get("currency", currency)).strip() or currency,
        default_cost_per_token=default_rate,
    )
