"""Run telemetry: per-item outcomes and an on-disk JSON report."""

from __future__ import annotations

import json
import time
from collections import Counter
from typing import Any, Dict, List, Optional

from . import config
from .models import ItemOutcome


class RunTelemetry:
    """Collect per-run outcomes for the run summary and the JSON report."""

    def __init__(self, provider: str, run_id: Optional[int] = None) -> None:
        self.provider = provider
        self.run_id = run_id
        self.started_at = time.time()
        self.entries: List[Dict[str, Any]] = []
        self.fail_reasons: Counter[str] = Counter()
        self._counts: Counter[str] = Counter()

    def add(
        self,
        item_id: str,
        outcome: ItemOutcome,
        *,
        error_code: Optional[str] = None,
        error_message: Optional[str] = None,
    ) -> None:
        self.entries.append(
            {
                "item_id": item_id,
                "outcome": outcome.value,
                "error_code": error_code,
                "error_message": error_message,
            }
        )
        self._counts[outcome.value] += 1
        if outcome is ItemOutcome.FAILED:
            self.fail_reasons[error_code or "unknown"] += 1

    @property
    def counts(self) -> Dict[str, int]:
        return {outcome.value: self._counts.get(outcome.value, 0) for outcome in ItemOutcome}

    @property
    def processed(self) -> int:
        return len(self.entries)

    def finalize(self, extra: Optional[Dict[str, Any]] = None) -> str:
        payload = {
            "run_id": self.run_id,
            "provider": self.provider,
            "started_at": self.started_at,
            "ended_at": time.time(),
            "summary": self.counts,
            "fail_reasons": dict(self.fail_reasons),
            "entries": self.entries,
            **(extra or {}),
        }
        config.RUNS_DIR.mkdir(parents=True, exist_ok=True)
        label = self.run_id if self.run_id is not None else time.strftime("%Y%m%d_%H%M%S")
        path = config.RUNS_DIR / f"run_{self.provider}_{label}.json"
        with path.open("w", encoding="utf-8") as handle:
            json.dump(payload, handle, ensure_ascii=False, indent=2)
        return str(path)


__all__ = ["RunTelemetry"]
