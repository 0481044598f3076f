import threading

from app.favsync import download_executor
from app.favsync.download_executor import DownloadExecutor


def test_single_worker_runs_inline_in_order():
    calls = []
    executor = DownloadExecutor(1)

    results = executor.run_all([("a", lambda: calls.append("a") or 1), ("b", lambda: calls.append("b") or 2)])
    executor.shutdown()

    assert calls == ["a", "b"]
    assert [r.value for r in results] == [1, 2]
    assert all(r.ok for r in results)
    assert executor.peak_in_flight == 1


def test_errors_are_captured_per_task():
    executor = DownloadExecutor(1)

    def boom():
        raise RuntimeError("nope")

    results = executor.run_all([("ok", lambda: "fine"), ("bad", boom)])

    assert results[0].ok is True
    assert results[1].ok is False
    assert str(results[1].error) == "nope"
    assert results[1].token == "bad"


def test_parallel_workers_overlap_and_keep_order():
    executor = DownloadExecutor(2)
    barrier = threading.Barrier(2, timeout=5)

    def task(value):
        def _run():
            barrier.wait()
            return value

        return _run

    results = executor.run_all([("one", task(1)), ("two", task(2))])
    executor.shutdown()

    assert [r.value for r in results] == [1, 2]
    assert executor.peak_in_flight == 2
    assert executor.max_workers == 2


def test_inline_flag_runs_in_calling_thread():
    executor = DownloadExecutor(2)
    caller = threading.get_ident()

    results = executor.run_all(
        [("one", threading.get_ident), ("two", threading.get_ident)],
        inline=True,
    )
    executor.shutdown()

    assert [r.value for r in results] == [caller, caller]
    assert executor.peak_in_flight == 1


def test_zero_workers_is_clamped():
    assert DownloadExecutor(0).max_workers == 1


def test_log_summary_emits_event(monkeypatch):
    events: list[dict] = []
    monkeypatch.setattr(download_executor, "_sync_event", lambda *args, **kwargs: events.append(kwargs))

    executor = DownloadExecutor(1)
    executor.run_all([("x", lambda: None)])
    executor.log_summary()

    assert events[-1]["phase"] == "download_executor"
    assert events[-1]["kind"] == "summary"
    assert events[-1]["peak_in_flight"] == 1
