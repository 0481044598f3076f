"""Run loop that stops after a run of already-processed items."""
from __future__ import annotations

import time
from dataclasses import dataclass, field, replace
from typing import Callable, Iterable, Optional

from . import config
from .error_codes import ErrorCode
from .logging_utils import _sync_event
from .models import ItemOutcome
from .telemetry import RunTelemetry
from .utils import log_line

STOP_DUPLICATE_BUDGET = "duplicate_budget"
STOP_LISTING_EXHAUSTED = "listing_exhausted"
STOP_INTERRUPTED = "interrupted"


@dataclass(frozen=True)
class GovernorState:
    """Remaining duplicate budget.

    A new item refills the budget to ``max_dup_count``; duplicates, missing
    items and failures each spend one. The run stops once nothing remains.
    """

    max_dup_count: int
    remaining: int

    @classmethod
    def start(cls, max_dup_count: int) -> "GovernorState":
        return cls(max_dup_count=max_dup_count, remaining=max_dup_count)

    def observe(self, outcome: ItemOutcome) -> "GovernorState":
        if outcome is ItemOutcome.NEW:
            return replace(self, remaining=self.max_dup_count)
        return replace(self, remaining=self.remaining - 1)

    @property
    def exhausted(self) -> bool:
        return self.remaining <= 0


@dataclass
class ItemResult:
    item_id: str
    outcome: ItemOutcome
    files_count: int = 0
    error_code: Optional[str] = None
    error_message: Optional[str] = None


@dataclass
class RunSummary:
    provider: str
    stop_reason: str
    counts: dict[str, int] = field(default_factory=dict)
    run_id: Optional[int] = None
    report_path: Optional[str] = None

    @property
    def processed(self) -> int:
        return sum(self.counts.values())


class DuplicateRunGovernor:
    """Drive items through ``process`` one at a time, in listing order.

    ``process`` must finish persisting an item before it returns; the next
    identifier is only pulled from the listing afterwards. Any exception from
    ``process`` is recorded as a failed item and the loop carries on.
    """

    def __init__(
        self,
        provider: str,
        max_dup_count: int = config.MAX_DUP_COUNT,
        *,
        item_delay: float = config.ITEM_DELAY,
        sleep: Callable[[float], None] = time.sleep,
        telemetry: Optional[RunTelemetry] = None,
    ) -> None:
        self.provider = provider
        self.state = GovernorState.start(max_dup_count)
        self.item_delay = item_delay
        self._sleep = sleep
        self.telemetry = telemetry or RunTelemetry(provider)

    def _process_safely(self, item_id: str, process: Callable[[str], ItemResult]) -> ItemResult:
        try:
            return process(item_id)
        except Exception as exc:  # noqa: BLE001
            error_code = getattr(exc, "error_code", None) or ErrorCode.INTERNAL
            log_line(f"[RUN] #{item_id} failed ({error_code}): {exc}")
            return ItemResult(
                item_id=item_id,
                outcome=ItemOutcome.FAILED,
                error_code=error_code,
                error_message=str(exc),
            )

    def run(
        self,
        item_ids: Iterable[str],
        process: Callable[[str], ItemResult],
        *,
        on_result: Optional[Callable[[ItemResult], None]] = None,
    ) -> RunSummary:
        iterator = iter(item_ids)
        stop_reason = STOP_LISTING_EXHAUSTED
        try:
            while True:
                if self.state.exhausted:
                    stop_reason = STOP_DUPLICATE_BUDGET
                    log_line(
                        f"[RUN] {self.state.max_dup_count} consecutive already-processed items; stopping."
                    )
                    break
                try:
                    item_id = next(iterator)
                except StopIteration:
                    break

                if self.telemetry.processed and self.item_delay > 0:
                    self._sleep(self.item_delay)

                log_line(f"#{item_id}")
                result = self._process_safely(item_id, process)
                self.state = self.state.observe(result.outcome)
                self.telemetry.add(
                    item_id,
                    result.outcome,
                    error_code=result.error_code,
                    error_message=result.error_message,
                )
                log_line(
                    f"#{item_id} {result.outcome.value} "
                    f"(budget {self.state.remaining}/{self.state.max_dup_count})"
                )
                if on_result is not None:
                    try:
                        on_result(result)
                    except Exception as exc:  # noqa: BLE001
                        log_line(f"[RUN] Could not record #{item_id}: {exc}")
        except KeyboardInterrupt:
            stop_reason = STOP_INTERRUPTED
            log_line("[RUN] Interrupted; stopping between items.")
        finally:
            close = getattr(iterator, "close", None)
            if callable(close):
                close()

        _sync_event(
            "state",
            phase="run",
            kind="finished",
            provider=self.provider,
            stop_reason=stop_reason,
            **self.telemetry.counts,
        )
        return RunSummary(
            provider=self.provider,
            stop_reason=stop_reason,
            counts=self.telemetry.counts,
            run_id=self.telemetry.run_id,
        )


__all__ = [
    "DuplicateRunGovernor",
    "GovernorState",
    "ItemResult",
    "RunSummary",
    "STOP_DUPLICATE_BUDGET",
    "STOP_LISTING_EXHAUSTED",
    "STOP_INTERRUPTED",
]
