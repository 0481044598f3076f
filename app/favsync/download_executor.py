from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from threading import Lock
from typing import Callable, Generic, Optional, Sequence, TypeVar

from .logging_utils import _sync_event

T = TypeVar("T")


@dataclass
class TaskResult(Generic[T]):
    token: str
    value: Optional[T] = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class DownloadExecutor:
    """
    Bounded concurrency for the file downloads of one submission.

    - With ``max_workers`` 1 (the default) tasks run inline, in order.
    - Results always come back in task order, so callers can persist them
      before moving on to the next item.
    """

    def __init__(self, max_workers: int) -> None:
        self._max_workers = max(1, max_workers)
        self._executor: Optional[ThreadPoolExecutor] = (
            ThreadPoolExecutor(max_workers=self._max_workers) if self._max_workers > 1 else None
        )
        self._lock = Lock()
        self._in_flight: int = 0
        self._peak_in_flight: int = 0

    def _run_one(self, token: str, fn: Callable[[], T]) -> TaskResult[T]:
        with self._lock:
            self._in_flight += 1
            self._peak_in_flight = max(self._peak_in_flight, self._in_flight)
        try:
            return TaskResult(token=token, value=fn())
        except Exception as exc:  # noqa: BLE001
            return TaskResult(token=token, error=exc)
        finally:
            with self._lock:
                self._in_flight -= 1

    def run_all(
        self,
        tasks: Sequence[tuple[str, Callable[[], T]]],
        *,
        inline: bool = False,
    ) -> list[TaskResult[T]]:
        """Run ``(token, fn)`` pairs and return one ``TaskResult`` per pair.

        ``inline`` forces sequential execution in the calling thread.
        """

        if inline or self._executor is None or len(tasks) < 2:
            return [self._run_one(token, fn) for token, fn in tasks]

        futures = [self._executor.submit(self._run_one, token, fn) for token, fn in tasks]
        return [future.result() for future in futures]

    @property
    def max_workers(self) -> int:
        return self._max_workers

    @property
    def peak_in_flight(self) -> int:
        with self._lock:
            return self._peak_in_flight

    def log_summary(self) -> None:
        _sync_event(
            "state",
            phase="download_executor",
            kind="summary",
            peak_in_flight=self.peak_in_flight,
            max_parallel=self._max_workers,
        )

    def shutdown(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=True)
