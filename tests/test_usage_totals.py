from __future__ import annotations

from novtrans.usage import UsageRecord, UsageTotals


def test_usage_totals_snapshot_includes_phase_breakdown():
    totals = UsageTotals()
    totals.add(UsageRecord(provider="openai", model="m", phase="translate", input_tokens=120, output_tokens=55, cost=0.01))
    totals.add(UsageRecord(provider="openai", model="m", phase="Translate", input_tokens=30, output_tokens=5))
    totals.add(UsageRecord(provider="gemini", model="g", phase="extract_glossary", input_tokens=40, output_tokens=12))

    snap = totals.snapshot()
    assert snap["requests"] == 3
    assert snap["total_tokens"] == 262
    assert snap["cost"] == 0.01
    assert snap["by_phase"]["translate"]["requests"] == 2
    assert snap["by_phase"]["translate"]["cost_records"] == 1
    assert snap["by_phase"]["extract_glossary"]["output_tokens"] == 12
    assert totals.records()[0].total_tokens == 175


def test_usage_totals_cost_unknown_when_no_costs():
    totals = UsageTotals()
    totals.add(UsageRecord(provider="ollama", model="q", phase="translate", input_tokens=1, output_tokens=1))
    assert totals.snapshot()["cost"] is None
