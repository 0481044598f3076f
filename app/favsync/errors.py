"""Exception hierarchy shared by the sync engine."""
from __future__ import annotations

from .error_codes import ErrorCode


class FavSyncError(Exception):
    """Base class for every failure raised by the sync engine."""

    default_code = ErrorCode.INTERNAL

    def __init__(self, message: str, *, error_code: str | None = None) -> None:
        super().__init__(message)
        self.error_code = error_code or self.default_code

    def __str__(self) -> str:  # pragma: no cover - inherited behaviour
        return str(self.args[0]) if self.args else ""


class TransportError(FavSyncError):
    """Network or HTTP failure that survived the retry budget."""

    default_code = ErrorCode.NETWORK

    def __init__(
        self,
        message: str,
        *,
        error_code: str | None = None,
        http_status: int | None = None,
    ) -> None:
        super().__init__(message, error_code=error_code)
        self.http_status = http_status


class ApiError(FavSyncError):
    """The remote answered with a well-formed error body."""

    default_code = ErrorCode.API_ERROR


class NotFoundError(FavSyncError):
    """The remote item was deleted or is not accessible."""

    default_code = ErrorCode.NOT_FOUND


class AcquisitionError(FavSyncError):
    """The primary asset could not be downloaded or inspected."""

    default_code = ErrorCode.ACQUISITION


class UnsupportedMediaError(FavSyncError):
    """No thumbnail strategy exists for the media type."""

    default_code = ErrorCode.UNSUPPORTED_MEDIA


class PersistenceError(FavSyncError):
    """A store write or read failed."""

    default_code = ErrorCode.PERSISTENCE


__all__ = [
    "FavSyncError",
    "TransportError",
    "ApiError",
    "NotFoundError",
    "AcquisitionError",
    "UnsupportedMediaError",
    "PersistenceError",
]
