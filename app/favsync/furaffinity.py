"""FurAffinity favorites listing and submission page parsing."""
from __future__ import annotations

import re
from typing import Optional

from bs4 import BeautifulSoup

from . import config
from .crawler import ListingPage
from .date_utils import to_epoch_millis
from .error_codes import ErrorCode
from .errors import ApiError, NotFoundError
from .models import MediaRecord, Submission, normalize_tags
from .transport import RetryTransport

_VIEW_HREF = re.compile(r"/view/([0-9]+)/")
_NEXT_HREF = re.compile(r"/favorites/[^/]+/[0-9]+/next")
_DESCRIPTION_BREAKS = re.compile(r"\n\s*")
# The description block opens with the author header lines.
_DESCRIPTION_HEADER_LINES = 3


def cookie_header(cookie_a: str, cookie_b: str) -> dict[str, str]:
    """Return the request headers that carry the FurAffinity session."""

    return {"Cookie": f"a={cookie_a}; b={cookie_b}"}


def absolute_asset_url(url: str) -> str:
    if url.startswith("http"):
        return url
    return "https://" + url.lstrip("/")


def parse_favorites_page(html: str) -> ListingPage:
    """Extract submission ids and the next-page href from a favorites page."""

    soup = BeautifulSoup(html, "html5lib")
    item_ids: list[str] = []
    for figure in soup.select("section#gallery-favorites figure"):
        anchor = figure.find("a")
        href = anchor.get("href") if anchor is not None else None
        match = _VIEW_HREF.search(href or "")
        if match:
            item_ids.append(match.group(1))

    next_href = ""
    button = soup.select_one(".pagination a.button.right")
    if button is not None:
        next_href = button.get("href") or ""

    next_cursor: Optional[str] = next_href if _NEXT_HREF.search(next_href) else None
    return ListingPage(item_ids=item_ids, next_cursor=next_cursor)


def _clean_description(raw: str) -> str:
    collapsed = _DESCRIPTION_BREAKS.sub("\n", raw)
    return "\n".join(collapsed.split("\n")[_DESCRIPTION_HEADER_LINES:]).strip()


def parse_submission_page(html: str, submission_id: str | int) -> MediaRecord:
    """Build a ``MediaRecord`` from a ``/view/<id>/`` page.

    Raises ``NotFoundError`` when the page lacks an author, asset or title,
    which is how deleted or hidden submissions render.
    """

    soup = BeautifulSoup(html, "html5lib")

    author_el = soup.select_one(".submission-id-sub-container a strong")
    title_el = soup.select_one(".submission-title h2")
    author = author_el.get_text(strip=True) if author_el is not None else ""
    title = title_el.get_text(strip=True) if title_el is not None else ""

    image_el = soup.select_one("#submissionImg")
    image = image_el.get("data-fullview-src") if image_el is not None else None
    if not image:
        object_el = soup.select_one(".submission-area object")
        image = object_el.get("data") if object_el is not None else None

    if not author or not image or not title:
        raise NotFoundError(f"Submission {submission_id} is missing or deleted")

    file_name = image.rstrip("/").split("/")[-1]
    prefix = file_name.split(".")[0]
    if not prefix.isdigit():
        raise ApiError(
            f"Cannot derive a file id from {file_name!r}",
            error_code=ErrorCode.SITE_STRUCTURE,
        )

    description_el = soup.select_one(".submission-description")
    description = _clean_description(description_el.get_text()) if description_el is not None else ""

    tags = [a.get_text() for a in soup.select(".tags-row .tags a")]

    date_el = soup.select_one("div.submission-id-sub-container strong span.popup_date")
    create_datetime = date_el.get("title") if date_el is not None else None

    return MediaRecord(
        provider=config.FURAFFINITY,
        submission_id=int(submission_id),
        file_id=int(prefix),
        file_name=file_name,
        username=author,
        title=title,
        description=description,
        tags=normalize_tags(tags, author),
        create_datetime=create_datetime,
        create_timestamp=to_epoch_millis(create_datetime),
        source_url=absolute_asset_url(image),
    )


class FurAffinityListing:
    """Walk ``/favorites/<username>`` following the "next" button."""

    def __init__(
        self,
        transport: RetryTransport,
        username: str,
        *,
        base_url: str = config.FA_BASE_URL,
    ) -> None:
        self.transport = transport
        self.username = username
        self.base_url = base_url.rstrip("/")

    def first_cursor(self) -> str:
        return f"/favorites/{self.username}"

    def fetch_page(self, cursor: str) -> ListingPage:
        return parse_favorites_page(self.transport.get_text(self.base_url + cursor))


class FurAffinityExtractor:
    provider = config.FURAFFINITY

    def __init__(self, transport: RetryTransport, *, base_url: str = config.FA_BASE_URL) -> None:
        self.transport = transport
        self.base_url = base_url.rstrip("/")

    def extract(self, submission_id: str) -> Submission:
        html = self.transport.get_text(f"{self.base_url}/view/{submission_id}/")
        record = parse_submission_page(html, submission_id)
        return Submission(
            provider=self.provider,
            submission_id=record.submission_id,
            files=[record],
        )


__all__ = [
    "FurAffinityListing",
    "FurAffinityExtractor",
    "parse_favorites_page",
    "parse_submission_page",
    "cookie_header",
    "absolute_asset_url",
]
