
"""CLI helper for printing run-level item summaries."""

from __future__ import annotations

import argparse
from typing import Sequence

from . import config, db_reporting


def _build_parser() -> argparse.ArgumentParser:
    """Return an argument parser for the run summary CLI."""

    parser = argparse.ArgumentParser(
        description="Show the item outcome summary for a sync run.",
    )
    parser.add_argument(
        "--run-id",
        type=int,
        help="Run ID to summarise.",
    )
    parser.add_argument(
        "--latest",
        action="store_true",
        help="Summarise the most recent run.",
    )
    parser.add_argument(
        "--provider",
        choices=config.ALL_PROVIDERS,
        help="With --latest, restrict to one provider.",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for the run summary CLI."""

    parser = _build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    run_id = args.run_id
    if args.latest and run_id is None:
        run_id = db_reporting.latest_run_id(args.provider)
    if run_id is None:
        parser.error("You must provide --run-id or --latest")

    try:
        summary = db_reporting.summarise_run(run_id)
    except db_reporting.RunNotFoundError as exc:
        parser.error(str(exc))

    print(f"Run {summary.run_id} ({summary.provider}) {summary.status}")
    print(f"  started: {summary.started_at}")
    print(f"  ended: {summary.ended_at or '-'}")
    print(f"  stop reason: {summary.stop_reason or '-'}")
    for outcome, count in sorted(summary.outcome_counts.items()):
        print(f"  {outcome}: {count}")

    if summary.fail_reasons:
        print("\nFail reasons:")
        for code, count in sorted(summary.fail_reasons.items()):
            print(f"  {code}: {count}")

    return 0


if __name__ == "__main__":  # pragma: no cover - CLI entry
    raise SystemExit(main())
