"""Regenerate missing thumbnails for every original already on disk."""
from __future__ import annotations

import argparse
from dataclasses import dataclass, field
from pathlib import Path
from typing import Sequence

from . import config
from .errors import UnsupportedMediaError
from .thumbnails import create_thumbnail
from .utils import log_line


@dataclass
class ThumbnailReport:
    processed: int = 0
    failed: list[str] = field(default_factory=list)


def _iter_originals(input_dir: Path) -> list[Path]:
    if not input_dir.is_dir():
        return []
    return sorted(
        path
        for path in input_dir.rglob("*")
        if path.is_file() and not path.name.endswith(".part")
    )


def rebuild_thumbnails(providers: Sequence[str] = config.ALL_PROVIDERS) -> ThumbnailReport:
    report = ThumbnailReport()
    for provider in providers:
        input_dir = config.originals_dir(provider)
        output_dir = config.thumbnails_dir(provider)
        output_dir.mkdir(parents=True, exist_ok=True)

        files = _iter_originals(input_dir)
        total = len(files)
        for index, path in enumerate(files, start=1):
            relative = path.relative_to(input_dir)
            log_line(f"[{index}/{total}] Processing {provider}/{relative}")
            report.processed += 1
            try:
                create_thumbnail(path, output_dir / relative)
            except UnsupportedMediaError as exc:
                report.failed.append(str(relative))
                log_line(f"[THUMB] {relative}: {exc}")
    return report


def main(argv: Sequence[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Create missing thumbnails.")
    parser.add_argument(
        "providers",
        nargs="*",
        help="Providers to scan (default: all).",
    )
    args = parser.parse_args(list(argv) if argv is not None else None)
    unknown = [name for name in args.providers if not config.is_known_provider(name)]
    if unknown:
        parser.error(f"Unknown provider(s): {', '.join(unknown)}")

    providers = [name.strip().lower() for name in args.providers]
    report = rebuild_thumbnails(providers or config.ALL_PROVIDERS)
    log_line(f"[THUMB] {report.processed} files scanned, {len(report.failed)} skipped")
    return 0


if __name__ == "__main__":  # pragma: no cover - CLI entry
    raise SystemExit(main())
