"""Lazy walk over a paginated remote listing."""
from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Callable, Hashable, Iterator, Optional, Protocol

from . import config
from .errors import FavSyncError, TransportError
from .logging_utils import _sync_event
from .utils import log_line


@dataclass
class ListingPage:
    """Identifiers found on one page plus the cursor of the following page."""

    item_ids: list[str] = field(default_factory=list)
    next_cursor: Optional[Hashable] = None


class ListingSource(Protocol):
    """Provider strategy that knows how to fetch and parse one listing page."""

    def first_cursor(self) -> Hashable:
        ...

    def fetch_page(self, cursor: Hashable) -> ListingPage:
        ...


class ListingCrawler:
    """Yield item identifiers page by page until the listing runs out.

    The walk stops when a page has no next cursor, when the next cursor equals
    the current one, or when more than ``page_failure_budget`` consecutive
    page fetches fail. A page that answers with an error body or an
    unparseable document ends the walk at once. Nothing is persisted between
    runs; every crawl starts from ``seed`` or the source's first cursor.
    """

    FAILURE_STOPS = ("page_failures", "page_error")

    def __init__(
        self,
        source: ListingSource,
        *,
        page_failure_budget: int = config.PAGE_FAILURE_BUDGET,
        failure_delay: float = config.PAGE_FAILURE_DELAY,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.source = source
        self.page_failure_budget = max(0, page_failure_budget)
        self.failure_delay = failure_delay
        self._sleep = sleep
        self.pages_fetched = 0
        self.stop_reason: Optional[str] = None

    def crawl(self, seed: Any = None) -> Iterator[str]:
        cursor = seed if seed is not None else self.source.first_cursor()
        failures = 0

        while True:
            try:
                page = self.source.fetch_page(cursor)
            except TransportError as exc:
                failures += 1
                _sync_event(
                    "state",
                    phase="listing_page",
                    kind="fetch_failed",
                    cursor=cursor,
                    failures=failures,
                    budget=self.page_failure_budget,
                    error_code=exc.error_code,
                )
                if failures > self.page_failure_budget:
                    log_line(f"[CRAWL] Giving up on listing page {cursor!r} after {failures} failures")
                    self.stop_reason = "page_failures"
                    return
                self._sleep(self.failure_delay)
                continue
            except FavSyncError as exc:
                _sync_event(
                    "error",
                    phase="listing_page",
                    kind="unreadable",
                    cursor=cursor,
                    error_code=exc.error_code,
                )
                log_line(f"[CRAWL] Listing page {cursor!r} unreadable ({exc.error_code}): {exc}")
                self.stop_reason = "page_error"
                return

            failures = 0
            self.pages_fetched += 1
            log_line(
                f"[CRAWL] Page {self.pages_fetched} ({cursor!r}): {len(page.item_ids)} items"
            )
            yield from page.item_ids

            next_cursor = page.next_cursor
            if next_cursor is None:
                self.stop_reason = "no_next_page"
                return
            if next_cursor == cursor:
                self.stop_reason = "self_loop"
                return
            cursor = next_cursor


__all__ = ["ListingCrawler", "ListingPage", "ListingSource"]
