from __future__ import annotations

from typing import Literal, Optional

from . import config
from .logging_utils import _sync_event
from .utils import log_line

Entrypoint = Literal["cli", "thumbnails", "health", "tests"]


def _raise_config_error(
    message: str, *, entrypoint: Entrypoint, error: str, provider: Optional[str]
) -> None:
    _sync_event(
        "error",
        phase="config",
        context="runtime_validation",
        error=error,
        entrypoint=entrypoint,
        provider=provider,
    )
    provider_fragment = f", provider={provider}" if provider else ""
    log_line(f"[CONFIG] {message} (entrypoint={entrypoint}{provider_fragment})")
    raise ValueError(message)


def _require(values: dict[str, str], *, entrypoint: Entrypoint, provider: str) -> None:
    missing = [name for name, value in values.items() if not (value or "").strip()]
    if missing:
        _raise_config_error(
            f"Missing credentials for {provider}: {', '.join(missing)}",
            entrypoint=entrypoint,
            error="missing_credentials",
            provider=provider,
        )


def validate_runtime_config(entrypoint: Entrypoint, *, provider: Optional[str] = None) -> None:
    """Validate runtime configuration for the given entrypoint.

    Raises ``ValueError`` when a blocking misconfiguration is detected.
    Non-fatal adjustments (e.g., clamping download parallelism) are logged but
    do not raise.
    """

    if provider is not None:
        if not config.is_known_provider(provider):
            _raise_config_error(
                f"Unknown provider {provider!r}; expected one of {', '.join(config.ALL_PROVIDERS)}.",
                entrypoint=entrypoint,
                error="unknown_provider",
                provider=provider,
            )
        if provider == config.FURAFFINITY:
            _require(
                {
                    "FA_USERNAME": config.FA_USERNAME,
                    "FA_COOKIE_A": config.FA_COOKIE_A,
                    "FA_COOKIE_B": config.FA_COOKIE_B,
                },
                entrypoint=entrypoint,
                provider=provider,
            )
        elif provider == config.INKBUNNY:
            _require(
                {"IB_USERNAME": config.IB_USERNAME, "IB_PASSWORD": config.IB_PASSWORD},
                entrypoint=entrypoint,
                provider=provider,
            )

    if config.MAX_DUP_COUNT < 1:
        _raise_config_error(
            "FAVSYNC_MAX_DUP_COUNT must be at least 1.",
            entrypoint=entrypoint,
            error="max_dup_count_invalid",
            provider=provider,
        )

    if config.PAGE_FAILURE_BUDGET < 0:
        _raise_config_error(
            "FAVSYNC_PAGE_FAILURE_BUDGET must be non-negative.",
            entrypoint=entrypoint,
            error="page_failure_budget_invalid",
            provider=provider,
        )

    attempt_fields = [
        ("LISTING_MAX_ATTEMPTS", config.LISTING_MAX_ATTEMPTS),
        ("DETAIL_MAX_ATTEMPTS", config.DETAIL_MAX_ATTEMPTS),
        ("DOWNLOAD_MAX_ATTEMPTS", config.DOWNLOAD_MAX_ATTEMPTS),
        ("THUMBNAIL_SIZE", config.THUMBNAIL_SIZE),
        ("HTTP_TIMEOUT_S", config.HTTP_TIMEOUT_S),
    ]
    for field_name, value in attempt_fields:
        if value <= 0:
            _raise_config_error(
                f"{field_name} must be greater than zero.",
                entrypoint=entrypoint,
                error="invalid_budget",
                provider=provider,
            )

    if config.MAX_PARALLEL_DOWNLOADS < 1:
        adjusted = 1
        _sync_event(
            "state",
            phase="config",
            context="runtime_validation",
            kind="config_adjustment",
            field="MAX_PARALLEL_DOWNLOADS",
            value=config.MAX_PARALLEL_DOWNLOADS,
            adjusted=adjusted,
            entrypoint=entrypoint,
            provider=provider,
        )
        log_line("[CONFIG] MAX_PARALLEL_DOWNLOADS < 1; clamping to 1.")
        config.MAX_PARALLEL_DOWNLOADS = adjusted

    if config.MIN_FREE_MB < 0:
        _raise_config_error(
            "MIN_FREE_MB must be non-negative.",
            entrypoint=entrypoint,
            error="min_free_mb_invalid",
            provider=provider,
        )


__all__ = ["validate_runtime_config", "Entrypoint"]
