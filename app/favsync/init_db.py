"""Create the store schema and indexes."""
from __future__ import annotations

from . import db
from .utils import log_line


def main() -> int:
    db.initialize_schema()
    log_line(f"[DB] Schema ready at {db.DB_PATH}")
    return 0


if __name__ == "__main__":  # pragma: no cover - CLI entry
    raise SystemExit(main())
