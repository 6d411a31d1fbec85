from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from threading import Lock
from typing import Any


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class UsageRecord:
    provider: str
    model: str
    phase: str  # 'translate' | 'extract_glossary' | 'count_tokens'
    input_tokens: int
    output_tokens: int
    cost: float | None = None
    chapter_id: str | None = None
    duration_s: float | None = None
    ts: str = field(default_factory=_utc_now_iso)

    @property
    def total_tokens(self) -> int:
        return max(0, int(self.input_tokens)) + max(0, int(self.output_tokens))


class UsageTotals:
    """Per-run token/cost ledger, safe to feed from worker threads."""

    def __init__(self, currency: str = "USD") -> None:
        self._lock = Lock()
        self._records: list[UsageRecord] = []
        self.currency = currency
        self._by_phase: dict[str, dict[str, Any]] = {}

    def add(self, record: UsageRecord) -> None:
        with self._lock:
            self._records.append(record)
            key = str(record.phase or "").strip().lower() or "unknown"
            bucket = self._by_phase.setdefault(
                key,
                {"requests": 0, "input_tokens": 0, "output_tokens": 0, "cost": 0.0, "cost_records": 0},
            )
            bucket["requests"] += 1
            bucket["input_tokens"] += max(0, int(record.input_tokens))
            bucket["output_tokens"] += max(0, int(record.output_tokens))
            if record.cost is not None:
                bucket["cost"] += float(record.cost)
                bucket["cost_records"] += 1

    def snapshot(self) -> dict[str, Any]:
        with self._lock:
            input_tokens = sum(max(0, int(r.input_tokens)) for r in self._records)
            output_tokens = sum(max(0, int(r.output_tokens)) for r in self._records)
            costs = [float(r.cost) for r in self._records if r.cost is not None]
            return {
                "requests": len(self._records),
                "input_tokens": input_tokens,
                "output_tokens": output_tokens,
                "total_tokens": input_tokens + output_tokens,
                "cost": (sum(costs) if costs else None),
                "currency": self.currency,
                "by_phase": {k: dict(v) for k, v in self._by_phase.items()},
            }

    def records(self) -> list[UsageRecord]:
        with self._lock:
            return list(self._records)
