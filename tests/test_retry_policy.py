from __future__ import annotations

import pytest

from app.favsync import retry_policy
from app.favsync.error_codes import ErrorCode


@pytest.fixture
def event_recorder(monkeypatch: pytest.MonkeyPatch) -> list[tuple[str, dict]]:
    events: list[tuple[str, dict]] = []

    def _record(event_phase: str, **fields: object) -> None:
        events.append((event_phase, fields))

    monkeypatch.setattr(retry_policy, "_sync_event", _record)
    return events


@pytest.mark.parametrize(
    "attempt, expected, kind",
    [
        (1, True, "retryable"),
        (2, True, "retryable"),
        (3, False, "capped"),
        (5, False, "capped"),
    ],
)
def test_transport_errors_retry_until_budget(
    attempt: int, expected: bool, kind: str, event_recorder: list[tuple[str, dict]]
) -> None:
    result = retry_policy.decide_retry(attempt, 3, error_code=ErrorCode.HTTP_5XX, http_status=502)
    assert result is expected
    assert len(event_recorder) == 1
    phase, fields = event_recorder[0]
    assert phase == "state"
    assert fields["phase"] == "retry_decision"
    assert fields["attempt"] == attempt
    assert fields["max_attempts"] == 3
    assert fields["will_retry"] is expected
    assert fields["kind"] == kind


@pytest.mark.parametrize(
    "error_code",
    [ErrorCode.NETWORK, ErrorCode.HTTP_404, ErrorCode.HTTP_403, ErrorCode.HTTP_429],
)
def test_every_transport_failure_is_retryable(error_code: str, event_recorder) -> None:  # noqa: ANN001
    assert retry_policy.decide_retry(1, 3, error_code=error_code) is True


@pytest.mark.parametrize(
    "error_code",
    [ErrorCode.API_ERROR, ErrorCode.NOT_FOUND, ErrorCode.SITE_STRUCTURE, ErrorCode.PERSISTENCE],
)
def test_non_retryable_error_codes(error_code: str, event_recorder: list[tuple[str, dict]]) -> None:
    assert error_code in retry_policy.NON_RETRYABLE_ERROR_CODES
    result = retry_policy.decide_retry(1, 10, error_code=error_code)
    assert result is False
    assert len(event_recorder) == 1
    _, fields = event_recorder[0]
    assert fields["kind"] == "non_retryable"
    assert fields["will_retry"] is False
    assert fields["error_code"] == error_code


@pytest.mark.parametrize(
    "error_code, expected_kind",
    [
        ("", "missing_error_code"),
        (None, "missing_error_code"),
        ("unexpected_code", "unknown"),
    ],
)
def test_missing_or_unknown_error_codes(
    error_code: str | None, expected_kind: str, event_recorder: list[tuple[str, dict]]
) -> None:
    assert retry_policy.decide_retry(1, 3, error_code=error_code) is False
    _, fields = event_recorder[0]
    assert fields["will_retry"] is False
    assert fields["kind"] == expected_kind
