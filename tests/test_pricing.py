from __future__ import annotations

import pytest

from novtrans.models import Provider
from novtrans.pricing import DEFAULT_COST_PER_TOKEN, ModelPricing, PricingTable, load_pricing_table


def test_load_pricing_table_yaml(tmp_path):
    path = tmp_path / "pricing.yaml"
    path.write_text(
        "currency: EUR\n"
        "pricing:\n"
        "  OpenAI:\n"
        "    GPT-4o-mini:\n"
        "      input_per_million: 0.15\n"
        "      output_per_million: 0.6\n"
        "    broken:\n"
        "      input_per_million: 1.0\n",
        encoding="utf-8",
    )
    table = load_pricing_table(path)
    assert table.currency == "EUR"
    assert table.get("openai", "gpt-4o-mini") is not None
    assert table.get("openai", "broken") is None
    assert table.estimate_cost("openai", "gpt-4o-mini", 1_000_000, 1_000_000) == pytest.approx(0.75)


def test_cost_falls_back_to_flat_rate():
    table = PricingTable.empty()
    assert table.estimate_cost("openai", "unknown", 10, 10) is None
    assert table.cost_or_default("openai", "unknown", 100, 50) == pytest.approx(150 * DEFAULT_COST_PER_TOKEN)


def test_load_pricing_table_rejects_non_mapping(tmp_path):
    path = tmp_path / "pricing.json"
    path.write_text("[1, 2]", encoding="utf-8")
    with pytest.raises(ValueError):
        load_pricing_table(path)


def test_load_pricing_table_skips_unknown_provider_and_reads_default_rate(tmp_path):
    path = tmp_path / "pricing.json"
    path.write_text(
        '{"default_cost_per_token": 0.00001,'
        ' "anthropic": {"claude-x": {"input_per_million": 3, "output_per_million": 15}},'
        ' "acme": {"m": {"input_per_million": 1, "output_per_million": 1}}}',
        encoding="utf-8",
    )
    table = load_pricing_table(path)
    assert table.get(Provider.ANTHROPIC, "Claude-X") == ModelPricing(3.0, 15.0)
    assert table.get("acme", "m") is None
    assert table.cost_or_default("acme", "m", 10, 0) == pytest.approx(10 * 0.00001)


def test_load_pricing_table_rejects_bad_rate(tmp_path):
    path = tmp_path / "pricing.yaml"
    path.write_text("openai:\n  m:\n    input_per_million: cheap\n    output_per_million: 1\n", encoding="utf-8")
    with pytest.raises(ValueError):
        load_pricing_table(path)
