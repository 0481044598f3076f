from __future__ import annotations

from pathlib import Path

import pytest

from app.favsync import config, db, healthcheck

from tests.test_db_store import _configure_temp_paths


def test_run_health_checks_happy_path(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _configure_temp_paths(tmp_path, monkeypatch)
    monkeypatch.setattr(config, "MIN_FREE_MB", 0)

    result = healthcheck.run_health_checks()

    assert result.ok is True
    assert result.checks["config"]["ok"] is True
    assert result.checks["filesystem"]["ok"] is True
    assert result.checks["database"]["ok"] is True
    assert result.checks["database"]["files"] == 0


def test_run_health_checks_handles_invalid_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _configure_temp_paths(tmp_path, monkeypatch)
    monkeypatch.setattr(config, "MIN_FREE_MB", -1)

    result = healthcheck.run_health_checks()

    assert result.ok is False
    assert result.checks["config"]["ok"] is False


def test_run_health_checks_reports_missing_credentials(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    _configure_temp_paths(tmp_path, monkeypatch)
    monkeypatch.setattr(config, "MIN_FREE_MB", 0)
    monkeypatch.setattr(config, "IB_PASSWORD", "")

    result = healthcheck.run_health_checks(config.INKBUNNY)

    assert result.ok is False
    assert "IB_PASSWORD" in result.checks["config"]["error"]


def test_database_failure_is_reported(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _configure_temp_paths(tmp_path, monkeypatch)
    monkeypatch.setattr(config, "MIN_FREE_MB", 0)
    monkeypatch.setattr(db, "initialize_schema", lambda: (_ for _ in ()).throw(RuntimeError("db error")))

    result = healthcheck.run_health_checks()

    assert result.ok is False
    assert result.checks["database"]["ok"] is False
    assert healthcheck.main() == 1
