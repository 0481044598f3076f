"""Per-provider wiring of listing, extractor and download transports."""
from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Optional, Protocol

import requests

from . import config, inkbunny
from .crawler import ListingSource
from .furaffinity import FurAffinityExtractor, FurAffinityListing, cookie_header
from .inkbunny import InkbunnyExtractor, InkbunnyListing
from .models import Submission
from .transport import RetryTransport, build_session
from .utils import log_line


class Extractor(Protocol):
    """Turn a remote identifier into a ``Submission``.

    Raises ``NotFoundError`` for deleted or hidden items and
    ``TransportError``/``ApiError`` for hard failures.
    """

    provider: str

    def extract(self, submission_id: str) -> Submission:
        ...


@dataclass
class ProviderClient:
    name: str
    listing: ListingSource
    extractor: Extractor
    downloads: RetryTransport


def _budgets(base: RetryTransport) -> tuple[RetryTransport, RetryTransport, RetryTransport]:
    return (
        base.with_budget(config.LISTING_MAX_ATTEMPTS, config.LISTING_RETRY_DELAY),
        base.with_budget(config.DETAIL_MAX_ATTEMPTS, config.DETAIL_RETRY_DELAY),
        base.with_budget(config.DOWNLOAD_MAX_ATTEMPTS, config.DOWNLOAD_RETRY_DELAY),
    )


def build_furaffinity(
    session: Optional[requests.Session] = None,
    *,
    sleep: Callable[[float], None] = time.sleep,
) -> ProviderClient:
    session = session if session is not None else build_session()
    session.headers.update(cookie_header(config.FA_COOKIE_A, config.FA_COOKIE_B))
    listing, detail, downloads = _budgets(RetryTransport(session, sleep=sleep))
    return ProviderClient(
        name=config.FURAFFINITY,
        listing=FurAffinityListing(listing, config.FA_USERNAME),
        extractor=FurAffinityExtractor(detail),
        downloads=downloads,
    )


def build_inkbunny(
    session: Optional[requests.Session] = None,
    *,
    sleep: Callable[[float], None] = time.sleep,
) -> ProviderClient:
    session = session if session is not None else build_session()
    # Asset URLs are public; only API calls carry the session id.
    downloads = RetryTransport(session, sleep=sleep).with_budget(
        config.DOWNLOAD_MAX_ATTEMPTS, config.DOWNLOAD_RETRY_DELAY
    )
    api = RetryTransport(session, sleep=sleep)
    token = inkbunny.login(
        api.with_budget(config.DETAIL_MAX_ATTEMPTS, config.DETAIL_RETRY_DELAY),
        config.IB_USERNAME,
        config.IB_PASSWORD,
    )
    log_line(f"[INKBUNNY] Logged in as user {token.user_id}")
    api.params["sid"] = token.sid
    listing, detail, _ = _budgets(api)
    return ProviderClient(
        name=config.INKBUNNY,
        listing=InkbunnyListing(listing, token.user_id),
        extractor=InkbunnyExtractor(detail),
        downloads=downloads,
    )


_BUILDERS = {
    config.FURAFFINITY: build_furaffinity,
    config.INKBUNNY: build_inkbunny,
}


def build_provider(
    name: str,
    session: Optional[requests.Session] = None,
    *,
    sleep: Callable[[float], None] = time.sleep,
) -> ProviderClient:
    try:
        builder = _BUILDERS[name]
    except KeyError:
        raise ValueError(f"Unknown provider {name!r}") from None
    return builder(session, sleep=sleep)


__all__ = ["ProviderClient", "Extractor", "build_provider", "build_furaffinity", "build_inkbunny"]
