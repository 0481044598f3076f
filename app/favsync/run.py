"""Incremental favorites sync: one run per provider.

Workflow:

- Validate configuration and open a ``runs`` row.
- Log in (inkbunny) or attach session cookies (furaffinity).
- Walk the favorites listing lazily, newest first.
- For every submission: extract metadata, acquire each file (download,
  hash, inspect, thumbnail), then upsert files and pools.
- Stop after ``MAX_DUP_COUNT`` consecutive already-processed items or when
  the listing runs out, then write the run summary.
"""
from __future__ import annotations

import argparse
import time
from dataclasses import dataclass
from functools import partial
from typing import Callable, Optional, Sequence

import requests

from . import config, db
from .config_validation import validate_runtime_config
from .crawler import ListingCrawler
from .download_executor import DownloadExecutor
from .error_codes import ErrorCode
from .errors import FavSyncError, NotFoundError
from .governor import (
    STOP_INTERRUPTED,
    STOP_LISTING_EXHAUSTED,
    DuplicateRunGovernor,
    ItemResult,
    RunSummary,
)
from .media import MediaPipeline
from .models import ItemOutcome
from .providers import Extractor, build_provider
from .telemetry import RunTelemetry
from .utils import ensure_dirs, log_line, setup_run_logger

STOP_SETUP_FAILED = "setup_failed"
STOP_LISTING_FAILED = "listing_failed"
STOP_RUN_ERROR = "run_error"


@dataclass
class SyncContext:
    provider: str
    extractor: Extractor
    pipeline: MediaPipeline
    executor: DownloadExecutor


def sync_submission(ctx: SyncContext, submission_id: str) -> ItemResult:
    """Extract, acquire and persist one submission.

    The outcome is ``duplicate`` when the submission was already stored or
    none of its files had to be downloaded.
    """

    try:
        submission = ctx.extractor.extract(submission_id)
    except NotFoundError as exc:
        log_line(f"#{submission_id} File Not Found")
        return ItemResult(
            item_id=submission_id,
            outcome=ItemOutcome.NOT_FOUND,
            error_code=exc.error_code,
            error_message=str(exc),
        )

    if not submission.files:
        return ItemResult(
            item_id=submission_id,
            outcome=ItemOutcome.NOT_FOUND,
            error_code=ErrorCode.NOT_FOUND,
            error_message="submission has no files",
        )

    known = db.submission_exists(ctx.provider, submission.submission_id)

    # Files sharing a destination must not be written concurrently.
    destinations = {ctx.pipeline.destination_for(record) for record in submission.files}
    results = ctx.executor.run_all(
        [(str(record.file_id), partial(ctx.pipeline.acquire, record)) for record in submission.files],
        inline=len(destinations) < len(submission.files),
    )
    acquired = [result.value for result in results if result.ok and result.value is not None]
    failures = [result for result in results if not result.ok]
    for failure in failures:
        log_line(f"#{submission_id} file {failure.token} not acquired: {failure.error}")

    for item in acquired:
        db.upsert_file(item.record)

    member_ids = [item.record.file_id for item in acquired]
    if member_ids:
        for pool in submission.pools:
            db.upsert_pool(pool, member_ids)

    if failures:
        first_error = failures[0].error
        return ItemResult(
            item_id=submission_id,
            outcome=ItemOutcome.FAILED,
            files_count=len(acquired),
            error_code=getattr(first_error, "error_code", None) or ErrorCode.INTERNAL,
            error_message=str(first_error),
        )

    fresh = any(item.downloaded for item in acquired)
    if known or not fresh:
        log_line(f"#{submission_id} File Already Exists")
        outcome = ItemOutcome.DUPLICATE
    else:
        outcome = ItemOutcome.NEW
    return ItemResult(item_id=submission_id, outcome=outcome, files_count=len(acquired))


def sync(
    provider: str,
    *,
    trigger: str = "cli",
    session: Optional[requests.Session] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> RunSummary:
    """Run one incremental sync for ``provider`` and return its summary."""

    provider = provider.strip().lower()
    validate_runtime_config("cli", provider=provider)
    setup_run_logger(provider)
    ensure_dirs(provider)
    db.initialize_schema()

    run_id = db.create_run(provider=provider, trigger=trigger, max_dup_count=config.MAX_DUP_COUNT)
    telemetry = RunTelemetry(provider, run_id)
    log_line(f"[RUN] Starting {provider} sync (run {run_id})")

    try:
        client = build_provider(provider, session, sleep=sleep)
    except FavSyncError as exc:
        log_line(f"[RUN] Could not set up {provider}: {exc}")
        db.finish_run(
            run_id,
            status="failed",
            stop_reason=STOP_SETUP_FAILED,
            counts=telemetry.counts,
            error_summary={"error_code": exc.error_code, "message": str(exc)},
        )
        return RunSummary(
            provider=provider,
            stop_reason=STOP_SETUP_FAILED,
            counts=telemetry.counts,
            run_id=run_id,
            report_path=telemetry.finalize({"stop_reason": STOP_SETUP_FAILED}),
        )

    executor = DownloadExecutor(config.MAX_PARALLEL_DOWNLOADS)
    ctx = SyncContext(
        provider=provider,
        extractor=client.extractor,
        pipeline=MediaPipeline(client.downloads),
        executor=executor,
    )
    crawler = ListingCrawler(client.listing, sleep=sleep)
    governor = DuplicateRunGovernor(
        provider,
        config.MAX_DUP_COUNT,
        item_delay=config.ITEM_DELAY,
        sleep=sleep,
        telemetry=telemetry,
    )

    def _record(result: ItemResult) -> None:
        db.record_run_item(
            run_id,
            result.item_id,
            result.outcome.value,
            error_code=result.error_code,
            error_message=result.error_message,
            files_count=result.files_count,
        )

    try:
        summary = governor.run(crawler.crawl(), partial(sync_submission, ctx), on_result=_record)
    except Exception as exc:  # noqa: BLE001
        error_code = getattr(exc, "error_code", None) or ErrorCode.INTERNAL
        log_line(f"[RUN] {provider} run aborted ({error_code}): {exc}")
        status = "failed"
        summary = RunSummary(
            provider=provider,
            stop_reason=STOP_RUN_ERROR,
            counts=telemetry.counts,
            run_id=run_id,
        )
        error_summary = {
            **telemetry.fail_reasons,
            STOP_RUN_ERROR: {"error_code": error_code, "message": str(exc)},
        }
    else:
        status = "interrupted" if summary.stop_reason == STOP_INTERRUPTED else "completed"
        if (
            summary.stop_reason == STOP_LISTING_EXHAUSTED
            and crawler.stop_reason in ListingCrawler.FAILURE_STOPS
        ):
            summary.stop_reason = STOP_LISTING_FAILED
        error_summary = dict(telemetry.fail_reasons) or None
    finally:
        executor.log_summary()
        executor.shutdown()

    db.finish_run(
        run_id,
        status=status,
        stop_reason=summary.stop_reason,
        counts=summary.counts,
        error_summary=error_summary,
    )
    summary.report_path = telemetry.finalize(
        {
            "stop_reason": summary.stop_reason,
            "crawl_stop_reason": crawler.stop_reason,
            "pages_fetched": crawler.pages_fetched,
        }
    )
    counts = ", ".join(f"{name}={count}" for name, count in summary.counts.items())
    log_line(f"[RUN] {provider} finished ({summary.stop_reason}): {counts}")
    return summary


def main(argv: Sequence[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Mirror a favorites collection locally.")
    parser.add_argument("provider", choices=config.ALL_PROVIDERS)
    args = parser.parse_args(list(argv) if argv is not None else None)

    try:
        summary = sync(args.provider)
    except ValueError as exc:
        log_line(f"[RUN] Configuration error: {exc}")
        return 1
    return 1 if summary.stop_reason in (STOP_SETUP_FAILED, STOP_RUN_ERROR) else 0


def main_furaffinity() -> int:
    return main([config.FURAFFINITY])


def main_inkbunny() -> int:
    return main([config.INKBUNNY])


if __name__ == "__main__":  # pragma: no cover - CLI entry
    raise SystemExit(main())
