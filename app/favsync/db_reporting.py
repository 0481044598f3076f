from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional

from . import db


class RunNotFoundError(Exception):
    """Raised when a requested run identifier does not exist."""


@dataclass
class RunItemSummary:
    """Aggregate item outcomes and failure codes for a single run."""

    run_id: int
    provider: str
    status: str
    stop_reason: Optional[str]
    started_at: str
    ended_at: Optional[str]
    outcome_counts: Dict[str, int]
    fail_reasons: Dict[str, int]


def summarise_run(run_id: int) -> RunItemSummary:
    """Compute outcome counts and error-code breakdowns for ``run_id``."""

    conn = db.get_connection()
    try:
        run_row = conn.execute("SELECT * FROM runs WHERE id = ?", (run_id,)).fetchone()
        if run_row is None:
            raise RunNotFoundError(f"Run {run_id} does not exist")

        outcome_counts: Dict[str, int] = {}
        for row in conn.execute(
            "SELECT outcome, COUNT(*) AS n FROM run_items WHERE run_id = ? GROUP BY outcome",
            (run_id,),
        ).fetchall():
            outcome_counts[row["outcome"] or ""] = int(row["n"])

        fail_reasons: Dict[str, int] = {}
        for row in conn.execute(
            """
            SELECT COALESCE(error_code, '') AS error_code, COUNT(*) AS n
            FROM run_items
            WHERE run_id = ? AND outcome = 'failed'
            GROUP BY error_code
            """,
            (run_id,),
        ).fetchall():
            code = (row["error_code"] or "").strip() or "unknown"
            fail_reasons[code] = int(row["n"])
    finally:
        conn.close()

    return RunItemSummary(
        run_id=run_id,
        provider=run_row["provider"],
        status=run_row["status"],
        stop_reason=run_row["stop_reason"],
        started_at=run_row["started_at"],
        ended_at=run_row["ended_at"],
        outcome_counts=outcome_counts,
        fail_reasons=fail_reasons,
    )


def latest_run_id(provider: Optional[str] = None) -> Optional[int]:
    """Return the most recent run id, optionally for one provider."""

    conn = db.get_connection()
    try:
        if provider is None:
            row = conn.execute("SELECT id FROM runs ORDER BY id DESC LIMIT 1").fetchone()
        else:
            row = conn.execute(
                "SELECT id FROM runs WHERE provider = ? ORDER BY id DESC LIMIT 1",
                (provider,),
            ).fetchone()
    finally:
        conn.close()
    return int(row["id"]) if row else None


__all__ = ["RunItemSummary", "RunNotFoundError", "summarise_run", "latest_run_id"]
