from app.favsync import logging_utils


def test_sync_event_label_and_phase(monkeypatch):
    events: list[str] = []
    monkeypatch.setattr(logging_utils, "log_line", lambda msg: events.append(msg))

    logging_utils._sync_event("state", phase="download_executor", kind="summary")

    assert events
    line = events[-1]
    assert line.startswith("[FAVSYNC][STATE]")
    assert "phase='download_executor'" in line
    assert "kind='summary'" in line


def test_sync_event_never_raises(monkeypatch):
    def _broken(_msg):
        raise OSError("disk full")

    monkeypatch.setattr(logging_utils, "log_line", _broken)

    logging_utils._sync_event("media", file_id=1)
