"""HTTP transport with a bounded, fixed-delay retry budget."""
from __future__ import annotations

import time
import urllib.parse
from typing import Any, Callable, Mapping, Optional

import requests

from . import config
from .error_codes import ErrorCode, classify_http_status
from .errors import ApiError, TransportError
from .retry_policy import decide_retry
from .utils import log_warning


def build_session(headers: Optional[Mapping[str, str]] = None) -> requests.Session:
    """Return a requests session carrying the common headers plus ``headers``."""

    session = requests.Session()
    session.headers.update(config.COMMON_HEADERS)
    if headers:
        session.headers.update(headers)
    return session


def _redact_url(url: str) -> str:
    try:
        parsed = urllib.parse.urlparse(url)
        return urllib.parse.urlunparse(parsed._replace(query=""))
    except Exception:
        return url


class RetryTransport:
    """Send requests through a shared session, retrying transport failures.

    Only connection errors and non-2xx responses count as failures. A 2xx
    response whose body describes an error is returned untouched; interpreting
    it is up to the caller. The attempt counter is local to each ``send`` call.
    """

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        *,
        max_attempts: int = 3,
        retry_delay: float = 1.0,
        timeout: float = config.HTTP_TIMEOUT_S,
        params: Optional[Mapping[str, Any]] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.session = session if session is not None else build_session()
        self.max_attempts = max(1, int(max_attempts))
        self.retry_delay = max(0.0, float(retry_delay))
        self.timeout = timeout
        self.params: dict[str, Any] = dict(params or {})
        self._sleep = sleep

    def with_budget(self, max_attempts: int, retry_delay: float) -> "RetryTransport":
        """Return a transport sharing this session and credentials with a new budget."""

        return RetryTransport(
            self.session,
            max_attempts=max_attempts,
            retry_delay=retry_delay,
            timeout=self.timeout,
            params=self.params,
            sleep=self._sleep,
        )

    def send(
        self,
        url: str,
        *,
        method: str = "GET",
        params: Optional[Mapping[str, Any]] = None,
        headers: Optional[Mapping[str, str]] = None,
        data: Optional[Mapping[str, Any]] = None,
        stream: bool = False,
    ) -> requests.Response:
        merged_params = {**self.params, **dict(params or {})}
        safe_url = _redact_url(url)
        attempt = 0

        while True:
            attempt += 1
            try:
                response = self.session.request(
                    method,
                    url,
                    params=merged_params or None,
                    headers=dict(headers) if headers else None,
                    data=dict(data) if data else None,
                    stream=stream,
                    timeout=self.timeout,
                )
            except requests.RequestException as exc:
                error = TransportError(str(exc) or exc.__class__.__name__, error_code=ErrorCode.NETWORK)
            else:
                status = response.status_code
                if 200 <= status < 300:
                    return response
                response.close()
                error = TransportError(
                    f"HTTP {status}",
                    error_code=classify_http_status(status),
                    http_status=status,
                )

            should_retry = decide_retry(
                attempt_index=attempt,
                max_attempts=self.max_attempts,
                error=error,
                error_code=error.error_code,
                http_status=error.http_status,
            )
            if not should_retry:
                raise error

            log_warning(
                f"[TRANSPORT] {method} {safe_url} failed: {error}. "
                f"Retrying {attempt}/{self.max_attempts} after {self.retry_delay}s..."
            )
            self._sleep(self.retry_delay)

    def get_json(self, url: str, **kwargs: Any) -> Any:
        """``send`` and decode the JSON body."""

        response = self.send(url, **kwargs)
        try:
            return response.json()
        except ValueError as exc:
            raise ApiError(
                f"Malformed JSON from {_redact_url(url)}: {exc}",
                error_code=ErrorCode.SITE_STRUCTURE,
            ) from exc

    def get_text(self, url: str, **kwargs: Any) -> str:
        return self.send(url, **kwargs).text


__all__ = ["RetryTransport", "build_session"]
