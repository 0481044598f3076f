"""Centralised error code taxonomy for sync failures.

These codes are persisted in the run_items.error_code column and included in
structured logs so that a run summary can explain why an item failed.
"""
from __future__ import annotations


class ErrorCode:
    NETWORK = "network_error"
    HTTP_4XX = "http_4xx"
    HTTP_401 = "http_401_unauthorised"
    HTTP_403 = "http_403_forbidden"
    HTTP_404 = "http_404_not_found"
    HTTP_429 = "http_429_rate_limited"
    HTTP_5XX = "http_5xx"
    API_ERROR = "api_error"
    NOT_FOUND = "not_found"
    ACQUISITION = "acquisition_failed"
    UNSUPPORTED_MEDIA = "unsupported_media"
    PERSISTENCE = "persistence_failed"
    SITE_STRUCTURE = "site_structure_changed"
    INTERNAL = "internal_error"


def classify_http_status(status: int | None) -> str:
    """Map an HTTP status code onto the error taxonomy."""

    if status is None:
        return ErrorCode.INTERNAL
    if status == 401:
        return ErrorCode.HTTP_401
    if status == 403:
        return ErrorCode.HTTP_403
    if status == 404:
        return ErrorCode.HTTP_404
    if status == 429:
        return ErrorCode.HTTP_429
    if 400 <= status < 500:
        return ErrorCode.HTTP_4XX
    if status >= 500:
        return ErrorCode.HTTP_5XX
    return ErrorCode.INTERNAL


__all__ = ["ErrorCode", "classify_http_status"]
