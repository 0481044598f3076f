from __future__ import annotations

import pytest
import requests

from app.favsync import transport
from app.favsync.error_codes import ErrorCode
from app.favsync.errors import ApiError, TransportError
from app.favsync.transport import RetryTransport


class _FakeResponse:
    def __init__(self, status_code: int, payload=None, text: str = "") -> None:  # noqa: ANN001
        self.status_code = status_code
        self._payload = payload
        self.text = text
        self.closed = False

    def json(self):  # noqa: ANN201
        if self._payload is None:
            raise ValueError("no json")
        return self._payload

    def close(self) -> None:
        self.closed = True


class _ScriptedSession:
    """Return (or raise) the scripted outcomes in order."""

    def __init__(self, outcomes) -> None:  # noqa: ANN001
        self.outcomes = list(outcomes)
        self.calls: list[dict] = []
        self.headers: dict[str, str] = {}

    def request(self, method, url, **kwargs):  # noqa: ANN001, ANN201
        self.calls.append({"method": method, "url": url, **kwargs})
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


@pytest.fixture
def warnings(monkeypatch: pytest.MonkeyPatch) -> list[str]:
    messages: list[str] = []
    monkeypatch.setattr(transport, "log_warning", lambda msg: messages.append(msg))
    return messages


def test_retries_then_succeeds(warnings: list[str]) -> None:
    delays: list[float] = []
    session = _ScriptedSession([_FakeResponse(503), _FakeResponse(503), _FakeResponse(200, text="ok")])
    client = RetryTransport(session, max_attempts=3, retry_delay=1.5, sleep=delays.append)

    assert client.get_text("https://example.com/page") == "ok"
    assert len(session.calls) == 3
    assert delays == [1.5, 1.5]
    assert "Retrying 1/3 after 1.5s..." in warnings[0]
    assert "Retrying 2/3 after 1.5s..." in warnings[1]


def test_exhausted_budget_raises_last_error(warnings: list[str]) -> None:
    session = _ScriptedSession([_FakeResponse(500), _FakeResponse(502)])
    client = RetryTransport(session, max_attempts=2, retry_delay=0, sleep=lambda _: None)

    with pytest.raises(TransportError) as excinfo:
        client.send("https://example.com/x")

    assert excinfo.value.http_status == 502
    assert excinfo.value.error_code == ErrorCode.HTTP_5XX
    assert len(session.calls) == 2
    assert len(warnings) == 1


def test_connection_errors_are_retried(warnings: list[str]) -> None:
    session = _ScriptedSession(
        [requests.ConnectionError("reset"), _FakeResponse(200, payload={"ok": True})]
    )
    client = RetryTransport(session, max_attempts=3, retry_delay=0, sleep=lambda _: None)

    assert client.get_json("https://example.com/api") == {"ok": True}
    assert len(session.calls) == 2


def test_not_found_status_is_retried_like_any_other(warnings: list[str]) -> None:
    session = _ScriptedSession([_FakeResponse(404), _FakeResponse(404), _FakeResponse(404)])
    client = RetryTransport(session, max_attempts=3, retry_delay=0, sleep=lambda _: None)

    with pytest.raises(TransportError) as excinfo:
        client.send("https://example.com/gone")

    assert excinfo.value.error_code == ErrorCode.HTTP_404
    assert len(session.calls) == 3


def test_success_status_with_error_body_is_not_retried(warnings: list[str]) -> None:
    body = {"error_code": 2, "error_message": "Invalid session"}
    session = _ScriptedSession([_FakeResponse(200, payload=body)])
    client = RetryTransport(session, max_attempts=5, retry_delay=0, sleep=lambda _: None)

    assert client.get_json("https://example.com/api") == body
    assert len(session.calls) == 1
    assert warnings == []


def test_attempt_counter_is_per_call(warnings: list[str]) -> None:
    session = _ScriptedSession(
        [_FakeResponse(500), _FakeResponse(200, text="a"), _FakeResponse(500), _FakeResponse(200, text="b")]
    )
    client = RetryTransport(session, max_attempts=2, retry_delay=0, sleep=lambda _: None)

    assert client.get_text("https://example.com/1") == "a"
    assert client.get_text("https://example.com/2") == "b"
    assert all("Retrying 1/2" in msg for msg in warnings)


def test_malformed_json_raises_api_error(warnings: list[str]) -> None:
    session = _ScriptedSession([_FakeResponse(200, payload=None)])
    client = RetryTransport(session, max_attempts=3, retry_delay=0, sleep=lambda _: None)

    with pytest.raises(ApiError) as excinfo:
        client.get_json("https://example.com/api")

    assert excinfo.value.error_code == ErrorCode.SITE_STRUCTURE
    assert len(session.calls) == 1


def test_with_budget_shares_session_and_params(warnings: list[str]) -> None:
    session = _ScriptedSession([_FakeResponse(200, text="x")])
    base = RetryTransport(session, params={"sid": "abc"}, sleep=lambda _: None)
    detail = base.with_budget(10, 5.0)

    detail.send("https://example.com/api", params={"page": 2})

    assert detail.session is session
    assert detail.max_attempts == 10
    assert session.calls[0]["params"] == {"sid": "abc", "page": 2}


def test_warnings_redact_query_string(warnings: list[str]) -> None:
    session = _ScriptedSession([_FakeResponse(500), _FakeResponse(200)])
    client = RetryTransport(session, max_attempts=2, retry_delay=0, sleep=lambda _: None)

    client.send("https://example.com/api?sid=secret")

    assert all("secret" not in msg for msg in warnings)
