from __future__ import annotations

from pathlib import Path

import pytest

from app.favsync import config, db
from app.favsync.errors import PersistenceError
from app.favsync.models import MediaRecord, PoolRecord


def _configure_temp_paths(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    data_dir = tmp_path / "data"
    data_dir.mkdir(parents=True, exist_ok=True)
    db_path = data_dir / "favsync.db"
    monkeypatch.setattr(config, "DATA_DIR", data_dir)
    monkeypatch.setattr(config, "LOG_DIR", data_dir / "logs")
    monkeypatch.setattr(config, "LOG_FILE", data_dir / "logs" / "latest.log")
    monkeypatch.setattr(config, "RUNS_DIR", data_dir / "runs")
    monkeypatch.setattr(config, "DB_PATH", db_path)
    monkeypatch.setattr(db, "DB_PATH", db_path)
    return data_dir


def _record(**overrides) -> MediaRecord:  # noqa: ANN003
    values = dict(
        provider=config.INKBUNNY,
        submission_id=100,
        file_id=5,
        file_name="5_artist_picture.png",
        username="Artist",
        title="Blue sky",
        description="A picture of a blue sky",
        user_id=42,
        mime_type="image/png",
        width=640,
        height=480,
        tags=["sky", "artist:artist"],
        create_timestamp=1_600_000_000_000,
        create_datetime="2020-09-13 12:26:40+00",
        content_hash="abc",
        pools=[9],
        source_url="https://example.com/5.png",
    )
    values.update(overrides)
    return MediaRecord(**values)


def test_initialize_schema_is_repeatable(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _configure_temp_paths(tmp_path, monkeypatch)
    db.initialize_schema()
    db.initialize_schema()

    assert db.count_files() == 0


def test_upsert_file_twice_keeps_one_document(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _configure_temp_paths(tmp_path, monkeypatch)
    db.initialize_schema()

    db.upsert_file(_record())
    db.upsert_file(_record(title="Blue sky (edited)"))

    assert db.count_files() == 1
    stored = db.find_file(config.INKBUNNY, 5)
    assert stored is not None
    assert stored.title == "Blue sky (edited)"
    assert stored.pools == [9]
    assert stored.width == 640 and stored.height == 480


def test_upsert_file_replaces_tags_and_merges_pools(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    _configure_temp_paths(tmp_path, monkeypatch)
    db.initialize_schema()

    db.upsert_file(_record(tags=["sky", "clouds"], pools=[9]))
    db.upsert_file(_record(tags=["sunset"], pools=[9, 11]))

    stored = db.find_file(config.INKBUNNY, 5)
    assert stored is not None
    assert stored.tags == ["sunset"]
    assert stored.pools == [9, 11]


def test_upsert_file_keeps_known_hash_when_new_value_missing(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    _configure_temp_paths(tmp_path, monkeypatch)
    db.initialize_schema()

    db.upsert_file(_record(content_hash="abc"))
    db.upsert_file(_record(content_hash=None))

    stored = db.find_file(config.INKBUNNY, 5)
    assert stored is not None
    assert stored.content_hash == "abc"


def test_same_file_id_on_two_providers_is_two_documents(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    _configure_temp_paths(tmp_path, monkeypatch)
    db.initialize_schema()

    db.upsert_file(_record())
    db.upsert_file(_record(provider=config.FURAFFINITY, pools=[]))

    assert db.count_files() == 2
    assert db.count_files(config.FURAFFINITY) == 1
    assert list(db.iter_file_ids(config.INKBUNNY)) == [5]


def test_pool_membership_is_a_set(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _configure_temp_paths(tmp_path, monkeypatch)
    db.initialize_schema()

    pool = PoolRecord(provider=config.INKBUNNY, pool_id=9, name="Skies", description="first")
    db.upsert_pool(pool, [5])
    db.upsert_pool(
        PoolRecord(provider=config.INKBUNNY, pool_id=9, name="Skies", description="second"),
        [5, 6],
    )

    stored = db.get_pool(config.INKBUNNY, 9)
    assert stored is not None
    assert stored.files == [5, 6]
    assert stored.description == "second"
    assert db.get_pool(config.INKBUNNY, 10) is None


def test_find_existing_by_file_or_submission(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _configure_temp_paths(tmp_path, monkeypatch)
    db.initialize_schema()
    db.upsert_file(_record())

    assert db.find_existing(config.INKBUNNY, file_id=5) is True
    assert db.find_existing(config.INKBUNNY, submission_id=100) is True
    assert db.find_existing(config.INKBUNNY, submission_id=101) is False
    with pytest.raises(ValueError):
        db.find_existing(config.INKBUNNY)


def test_search_files_matches_title_and_description(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    _configure_temp_paths(tmp_path, monkeypatch)
    db.initialize_schema()

    db.upsert_file(_record())
    db.upsert_file(
        _record(
            file_id=6,
            submission_id=101,
            title="Night",
            description="Stars over the harbour",
            create_timestamp=1_700_000_000_000,
        )
    )

    assert [r.file_id for r in db.search_files("harbour")] == [6]
    assert [r.file_id for r in db.search_files("blue sky")] == [5]
    assert db.search_files("harbour", provider=config.FURAFFINITY) == []


def test_search_index_follows_updates(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _configure_temp_paths(tmp_path, monkeypatch)
    db.initialize_schema()

    db.upsert_file(_record(title="Morning"))
    db.upsert_file(_record(title="Evening"))

    assert db.search_files("morning") == []
    assert [r.file_id for r in db.search_files("evening")] == [5]


def test_run_bookkeeping(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _configure_temp_paths(tmp_path, monkeypatch)
    db.initialize_schema()

    run_id = db.create_run(provider=config.INKBUNNY, trigger="test", max_dup_count=10)
    db.record_run_item(run_id, "100", "new", files_count=2)
    db.finish_run(
        run_id,
        status="completed",
        stop_reason="listing_exhausted",
        counts={"new": 1},
    )

    conn = db.get_connection()
    try:
        row = conn.execute("SELECT * FROM runs WHERE id = ?", (run_id,)).fetchone()
        items = conn.execute("SELECT * FROM run_items WHERE run_id = ?", (run_id,)).fetchall()
    finally:
        conn.close()

    assert row["status"] == "completed"
    assert row["stop_reason"] == "listing_exhausted"
    assert row["items_new"] == 1
    assert row["ended_at"] is not None
    assert len(items) == 1
    assert items[0]["files_count"] == 2


def test_failed_statement_rolls_back_and_raises_persistence_error(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    _configure_temp_paths(tmp_path, monkeypatch)
    db.initialize_schema()

    with pytest.raises(PersistenceError, match="record run"):
        with db._Transaction("record run") as conn:
            conn.execute(
                "INSERT INTO runs (provider, trigger, started_at, status) VALUES (?, ?, ?, ?)",
                (config.INKBUNNY, "test", "2024-01-01T00:00:00Z", "running"),
            )
            conn.execute("INSERT INTO missing_table VALUES (1)")

    conn = db.get_connection()
    try:
        count = conn.execute("SELECT COUNT(*) AS n FROM runs").fetchone()["n"]
    finally:
        conn.close()
    assert count == 0
    assert db.create_run(provider=config.INKBUNNY, trigger="test", max_dup_count=1) > 0
