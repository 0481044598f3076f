"""SQLite document store for synchronised files, pools and runs.

This module defines the database path, connection helper, schema
initialisation, idempotent upserts keyed by ``(provider, file_id)`` and
``(provider, pool_id)``, and run/item bookkeeping.
"""
from __future__ import annotations

import json
import sqlite3
import time
from pathlib import Path
from typing import Any, Iterable, Iterator, Optional

from . import config
from .errors import PersistenceError
from .models import MediaRecord, PoolRecord

DB_PATH: Path = config.DB_PATH


def get_connection() -> sqlite3.Connection:
    """Return a SQLite connection to the project database.

    The parent directory is created if missing and ``check_same_thread`` is
    disabled to allow reuse from different threads. Callers must manage
    concurrency at a higher layer.
    """

    DB_PATH.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(DB_PATH, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    return conn


def _utc_now() -> str:
    """Return a UTC timestamp formatted as ISO8601 without fractional seconds."""

    return time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime())


class _Transaction:
    """Open a connection, commit on success and wrap SQLite errors."""

    def __init__(self, action: str) -> None:
        self.action = action
        self.conn: Optional[sqlite3.Connection] = None

    def __enter__(self) -> sqlite3.Connection:
        try:
            conn = get_connection()
        except sqlite3.Error as exc:
            raise PersistenceError(f"{self.action}: {exc}") from exc
        try:
            conn.execute("BEGIN")
        except sqlite3.Error as exc:
            conn.close()
            raise PersistenceError(f"{self.action}: {exc}") from exc
        self.conn = conn
        return conn

    def __exit__(self, exc_type, exc, tb) -> bool:  # noqa: ANN001
        conn, self.conn = self.conn, None
        if conn is None:
            return False
        try:
            if exc_type is None:
                conn.commit()
            else:
                conn.rollback()
        except sqlite3.Error as end_exc:
            raise PersistenceError(f"{self.action}: {end_exc}") from end_exc
        finally:
            conn.close()
        if exc_type is not None and issubclass(exc_type, sqlite3.Error):
            raise PersistenceError(f"{self.action}: {exc}") from exc
        return False


def _read(action: str, sql: str, params: Iterable[Any] = ()) -> list[sqlite3.Row]:
    try:
        conn = get_connection()
        try:
            return conn.execute(sql, tuple(params)).fetchall()
        finally:
            conn.close()
    except sqlite3.Error as exc:
        raise PersistenceError(f"{action}: {exc}") from exc


SCHEMA: tuple[str, ...] = (
    """
    CREATE TABLE IF NOT EXISTS files (
        provider          TEXT NOT NULL,
        file_id           INTEGER NOT NULL,
        submission_id     INTEGER NOT NULL,
        user_id           INTEGER,
        username          TEXT NOT NULL,
        title             TEXT,
        description       TEXT,
        file_name         TEXT NOT NULL,
        mimetype          TEXT,
        width             INTEGER NOT NULL DEFAULT 0,
        height            INTEGER NOT NULL DEFAULT 0,
        content_hash      TEXT,
        create_timestamp  INTEGER,
        create_datetime   TEXT,
        source_url        TEXT,
        created_at        TEXT NOT NULL,
        updated_at        TEXT NOT NULL,
        UNIQUE(provider, file_id)
    );
    """,
    "CREATE INDEX IF NOT EXISTS idx_files_username ON files(username);",
    "CREATE INDEX IF NOT EXISTS idx_files_user_id ON files(user_id);",
    "CREATE INDEX IF NOT EXISTS idx_files_submission ON files(provider, submission_id);",
    "CREATE INDEX IF NOT EXISTS idx_files_file_name ON files(file_name);",
    "CREATE INDEX IF NOT EXISTS idx_files_content_hash ON files(content_hash);",
    "CREATE INDEX IF NOT EXISTS idx_files_create_timestamp ON files(create_timestamp);",
    """
    CREATE TABLE IF NOT EXISTS file_tags (
        provider  TEXT NOT NULL,
        file_id   INTEGER NOT NULL,
        tag       TEXT NOT NULL,
        UNIQUE(provider, file_id, tag)
    );
    """,
    "CREATE INDEX IF NOT EXISTS idx_file_tags_tag ON file_tags(tag);",
    """
    CREATE TABLE IF NOT EXISTS file_pools (
        provider  TEXT NOT NULL,
        file_id   INTEGER NOT NULL,
        pool_id   INTEGER NOT NULL,
        UNIQUE(provider, file_id, pool_id)
    );
    """,
    "CREATE INDEX IF NOT EXISTS idx_file_pools_pool ON file_pools(provider, pool_id);",
    """
    CREATE TABLE IF NOT EXISTS pools (
        provider     TEXT NOT NULL,
        pool_id      INTEGER NOT NULL,
        name         TEXT,
        description  TEXT,
        created_at   TEXT NOT NULL,
        updated_at   TEXT NOT NULL,
        UNIQUE(provider, pool_id)
    );
    """,
    "CREATE INDEX IF NOT EXISTS idx_pools_name ON pools(provider, name);",
    """
    CREATE TABLE IF NOT EXISTS pool_files (
        provider  TEXT NOT NULL,
        pool_id   INTEGER NOT NULL,
        file_id   INTEGER NOT NULL,
        UNIQUE(provider, pool_id, file_id)
    );
    """,
    "CREATE INDEX IF NOT EXISTS idx_pool_files_file ON pool_files(provider, file_id);",
    """
    CREATE VIRTUAL TABLE IF NOT EXISTS files_fts USING fts5(
        provider UNINDEXED,
        file_id UNINDEXED,
        title,
        description
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS runs (
        id               INTEGER PRIMARY KEY AUTOINCREMENT,
        provider         TEXT NOT NULL,
        trigger          TEXT NOT NULL,
        started_at       TEXT NOT NULL,
        ended_at         TEXT,
        status           TEXT NOT NULL,
        stop_reason      TEXT,
        max_dup_count    INTEGER,
        items_new        INTEGER NOT NULL DEFAULT 0,
        items_duplicate  INTEGER NOT NULL DEFAULT 0,
        items_not_found  INTEGER NOT NULL DEFAULT 0,
        items_failed     INTEGER NOT NULL DEFAULT 0,
        error_summary    TEXT
    );
    """,
    "CREATE INDEX IF NOT EXISTS idx_runs_started_at ON runs(started_at DESC);",
    """
    CREATE TABLE IF NOT EXISTS run_items (
        id             INTEGER PRIMARY KEY AUTOINCREMENT,
        run_id         INTEGER NOT NULL,
        item_id        TEXT NOT NULL,
        outcome        TEXT NOT NULL,
        error_code     TEXT,
        error_message  TEXT,
        files_count    INTEGER NOT NULL DEFAULT 0,
        created_at     TEXT NOT NULL,
        FOREIGN KEY(run_id) REFERENCES runs(id)
    );
    """,
    "CREATE INDEX IF NOT EXISTS idx_run_items_run ON run_items(run_id, outcome);",
)


def initialize_schema() -> None:
    """Create every table and index if they do not yet exist.

    Safe to call multiple times; each statement uses ``IF NOT EXISTS``.
    """

    with _Transaction("initialize schema") as conn:
        for statement in SCHEMA:
            conn.execute(statement)


def upsert_file(record: MediaRecord) -> None:
    """Insert or refresh one file document and its tag/pool/full-text rows.

    Tags are replaced with the current sighting. Pool memberships are only
    ever added.
    """

    now = _utc_now()
    with _Transaction(f"upsert file {record.provider}/{record.file_id}") as conn:
        conn.execute(
            """
            INSERT INTO files (
                provider, file_id, submission_id, user_id, username, title,
                description, file_name, mimetype, width, height, content_hash,
                create_timestamp, create_datetime, source_url, created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(provider, file_id) DO UPDATE SET
                submission_id    = excluded.submission_id,
                user_id          = COALESCE(excluded.user_id, files.user_id),
                username         = excluded.username,
                title            = excluded.title,
                description      = excluded.description,
                file_name        = excluded.file_name,
                mimetype         = COALESCE(excluded.mimetype, files.mimetype),
                width            = excluded.width,
                height           = excluded.height,
                content_hash     = COALESCE(excluded.content_hash, files.content_hash),
                create_timestamp = COALESCE(excluded.create_timestamp, files.create_timestamp),
                create_datetime  = COALESCE(excluded.create_datetime, files.create_datetime),
                source_url       = COALESCE(excluded.source_url, files.source_url),
                updated_at       = excluded.updated_at
            """,
            (
                record.provider,
                record.file_id,
                record.submission_id,
                record.user_id,
                record.username,
                record.title,
                record.description,
                record.file_name,
                record.mime_type,
                record.width,
                record.height,
                record.content_hash,
                record.create_timestamp,
                record.create_datetime,
                record.source_url,
                now,
                now,
            ),
        )
        key = (record.provider, record.file_id)
        conn.execute("DELETE FROM file_tags WHERE provider = ? AND file_id = ?", key)
        conn.executemany(
            "INSERT OR IGNORE INTO file_tags (provider, file_id, tag) VALUES (?, ?, ?)",
            [(*key, tag) for tag in record.tags],
        )
        conn.executemany(
            "INSERT OR IGNORE INTO file_pools (provider, file_id, pool_id) VALUES (?, ?, ?)",
            [(*key, pool_id) for pool_id in record.pools],
        )
        conn.execute("DELETE FROM files_fts WHERE provider = ? AND file_id = ?", key)
        conn.execute(
            "INSERT INTO files_fts (provider, file_id, title, description) VALUES (?, ?, ?, ?)",
            (*key, record.title or "", record.description or ""),
        )


def upsert_pool(pool: PoolRecord, member_file_ids: Iterable[int] = ()) -> None:
    """Overwrite pool metadata and add ``member_file_ids`` to its members."""

    now = _utc_now()
    members = sorted({int(file_id) for file_id in list(pool.files) + list(member_file_ids)})
    with _Transaction(f"upsert pool {pool.provider}/{pool.pool_id}") as conn:
        conn.execute(
            """
            INSERT INTO pools (provider, pool_id, name, description, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?)
            ON CONFLICT(provider, pool_id) DO UPDATE SET
                name        = excluded.name,
                description = excluded.description,
                updated_at  = excluded.updated_at
            """,
            (pool.provider, pool.pool_id, pool.name, pool.description, now, now),
        )
        conn.executemany(
            "INSERT OR IGNORE INTO pool_files (provider, pool_id, file_id) VALUES (?, ?, ?)",
            [(pool.provider, pool.pool_id, file_id) for file_id in members],
        )


def _row_to_record(row: sqlite3.Row, tags: list[str], pools: list[int]) -> MediaRecord:
    return MediaRecord(
        provider=row["provider"],
        submission_id=int(row["submission_id"]),
        file_id=int(row["file_id"]),
        file_name=row["file_name"],
        username=row["username"],
        title=row["title"] or "",
        description=row["description"] or "",
        user_id=row["user_id"],
        mime_type=row["mimetype"],
        width=int(row["width"] or 0),
        height=int(row["height"] or 0),
        tags=tags,
        create_timestamp=row["create_timestamp"],
        create_datetime=row["create_datetime"],
        content_hash=row["content_hash"],
        pools=pools,
        source_url=row["source_url"],
    )


def _hydrate(rows: list[sqlite3.Row]) -> list[MediaRecord]:
    records: list[MediaRecord] = []
    for row in rows:
        key = (row["provider"], row["file_id"])
        tags = [
            r["tag"]
            for r in _read(
                "load tags",
                "SELECT tag FROM file_tags WHERE provider = ? AND file_id = ? ORDER BY rowid",
                key,
            )
        ]
        pools = [
            int(r["pool_id"])
            for r in _read(
                "load pools",
                "SELECT pool_id FROM file_pools WHERE provider = ? AND file_id = ? ORDER BY pool_id",
                key,
            )
        ]
        records.append(_row_to_record(row, tags, pools))
    return records


def find_file(provider: str, file_id: int) -> Optional[MediaRecord]:
    rows = _read(
        "find file",
        "SELECT * FROM files WHERE provider = ? AND file_id = ?",
        (provider, int(file_id)),
    )
    hydrated = _hydrate(rows)
    return hydrated[0] if hydrated else None


def submission_exists(provider: str, submission_id: int) -> bool:
    rows = _read(
        "find submission",
        "SELECT 1 FROM files WHERE provider = ? AND submission_id = ? LIMIT 1",
        (provider, int(submission_id)),
    )
    return bool(rows)


def find_existing(
    provider: str,
    *,
    file_id: Optional[int] = None,
    submission_id: Optional[int] = None,
) -> bool:
    """Return True when a file (or any file of a submission) is stored."""

    if file_id is not None:
        return find_file(provider, file_id) is not None
    if submission_id is not None:
        return submission_exists(provider, submission_id)
    raise ValueError("file_id or submission_id is required")


def get_pool(provider: str, pool_id: int) -> Optional[PoolRecord]:
    rows = _read(
        "find pool",
        "SELECT * FROM pools WHERE provider = ? AND pool_id = ?",
        (provider, int(pool_id)),
    )
    if not rows:
        return None
    row = rows[0]
    members = _read(
        "load pool members",
        "SELECT file_id FROM pool_files WHERE provider = ? AND pool_id = ? ORDER BY file_id",
        (provider, int(pool_id)),
    )
    return PoolRecord(
        provider=row["provider"],
        pool_id=int(row["pool_id"]),
        name=row["name"] or "",
        description=row["description"] or "",
        files=[int(r["file_id"]) for r in members],
    )


def count_files(provider: Optional[str] = None) -> int:
    if provider is None:
        rows = _read("count files", "SELECT COUNT(*) AS n FROM files")
    else:
        rows = _read("count files", "SELECT COUNT(*) AS n FROM files WHERE provider = ?", (provider,))
    return int(rows[0]["n"])


def iter_file_ids(provider: str) -> Iterator[int]:
    for row in _read(
        "list files",
        "SELECT file_id FROM files WHERE provider = ? ORDER BY file_id",
        (provider,),
    ):
        yield int(row["file_id"])


def search_files(text: str, *, provider: Optional[str] = None, limit: int = 50) -> list[MediaRecord]:
    """Full-text lookup over title and description, newest first."""

    phrase = '"' + (text or "").replace('"', '""') + '"'
    sql = """
        SELECT files.* FROM files_fts
        JOIN files
          ON files.provider = files_fts.provider AND files.file_id = CAST(files_fts.file_id AS INTEGER)
        WHERE files_fts MATCH ?
    """
    params: list[Any] = [phrase]
    if provider is not None:
        sql += " AND files.provider = ?"
        params.append(provider)
    sql += " ORDER BY files.create_timestamp DESC LIMIT ?"
    params.append(int(limit))
    return _hydrate(_read("search files", sql, params))


def create_run(*, provider: str, trigger: str, max_dup_count: int) -> int:
    """Insert a runs row with status ``running`` and return its identifier."""

    with _Transaction("create run") as conn:
        cursor = conn.execute(
            """
            INSERT INTO runs (provider, trigger, started_at, status, max_dup_count)
            VALUES (?, ?, ?, 'running', ?)
            """,
            (provider, trigger, _utc_now(), max_dup_count),
        )
        return int(cursor.lastrowid)


def record_run_item(
    run_id: int,
    item_id: str,
    outcome: str,
    *,
    error_code: Optional[str] = None,
    error_message: Optional[str] = None,
    files_count: int = 0,
) -> None:
    with _Transaction("record run item") as conn:
        conn.execute(
            """
            INSERT INTO run_items (
                run_id, item_id, outcome, error_code, error_message, files_count, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (run_id, str(item_id), outcome, error_code, error_message, files_count, _utc_now()),
        )


def finish_run(
    run_id: int,
    *,
    status: str,
    stop_reason: Optional[str],
    counts: dict[str, int],
    error_summary: Optional[dict[str, Any]] = None,
) -> None:
    with _Transaction("finish run") as conn:
        conn.execute(
            """
            UPDATE runs
               SET ended_at = ?,
                   status = ?,
                   stop_reason = ?,
                   items_new = ?,
                   items_duplicate = ?,
                   items_not_found = ?,
                   items_failed = ?,
                   error_summary = ?
             WHERE id = ?
            """,
            (
                _utc_now(),
                status,
                stop_reason,
                int(counts.get("new", 0)),
                int(counts.get("duplicate", 0)),
                int(counts.get("not_found", 0)),
                int(counts.get("failed", 0)),
                json.dumps(error_summary) if error_summary else None,
                run_id,
            ),
        )


__all__ = [
    "DB_PATH",
    "get_connection",
    "initialize_schema",
    "upsert_file",
    "upsert_pool",
    "find_file",
    "find_existing",
    "submission_exists",
    "get_pool",
    "count_files",
    "iter_file_ids",
    "search_files",
    "create_run",
    "record_run_item",
    "finish_run",
]
