from __future__ import annotations

from typing import Optional

from .error_codes import ErrorCode
from .logging_utils import _sync_event

# Transport-level failures: every non-2xx status and every connection error.
RETRYABLE_ERROR_CODES = {
    ErrorCode.NETWORK,
    ErrorCode.HTTP_4XX,
    ErrorCode.HTTP_401,
    ErrorCode.HTTP_403,
    ErrorCode.HTTP_404,
    ErrorCode.HTTP_429,
    ErrorCode.HTTP_5XX,
}

NON_RETRYABLE_ERROR_CODES = {
    # The remote answered with a parseable error body.
    ErrorCode.API_ERROR,
    ErrorCode.NOT_FOUND,
    ErrorCode.SITE_STRUCTURE,
    ErrorCode.UNSUPPORTED_MEDIA,
    ErrorCode.PERSISTENCE,
}


def decide_retry(
    attempt_index: int,
    max_attempts: int,
    error: BaseException | None = None,
    *,
    error_code: Optional[str] = None,
    http_status: Optional[int] = None,
) -> bool:
    """Decide whether a failed attempt (1-based) should be retried."""

    if attempt_index >= max_attempts:
        _sync_event(
            "state",
            phase="retry_decision",
            kind="capped",
            attempt=attempt_index,
            max_attempts=max_attempts,
            error_code=error_code,
            http_status=http_status,
            will_retry=False,
        )
        return False

    code = (error_code or "").strip()
    if code in NON_RETRYABLE_ERROR_CODES:
        _sync_event(
            "state",
            phase="retry_decision",
            kind="non_retryable",
            error_code=code,
            attempt=attempt_index,
            max_attempts=max_attempts,
            http_status=http_status,
            will_retry=False,
        )
        return False

    if code in RETRYABLE_ERROR_CODES or (http_status is not None and http_status >= 400):
        _sync_event(
            "state",
            phase="retry_decision",
            kind="retryable",
            error_code=code or None,
            attempt=attempt_index,
            max_attempts=max_attempts,
            http_status=http_status,
            will_retry=True,
        )
        return True

    _sync_event(
        "state",
        phase="retry_decision",
        kind="unknown" if code else "missing_error_code",
        error_code=code or None,
        attempt=attempt_index,
        max_attempts=max_attempts,
        http_status=http_status,
        will_retry=False,
        error_repr=repr(error) if error is not None else None,
    )
    return False


__all__ = ["decide_retry", "RETRYABLE_ERROR_CODES", "NON_RETRYABLE_ERROR_CODES"]
