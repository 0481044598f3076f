"""Inkbunny JSON API: login, favorites search and submission details."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from . import config
from .crawler import ListingPage
from .date_utils import to_epoch_millis
from .error_codes import ErrorCode
from .errors import ApiError, NotFoundError
from .models import MediaRecord, PoolRecord, Submission, normalize_tags
from .transport import RetryTransport

SUBMISSION_DETAIL_PARAMS: dict[str, str] = {
    "output_mode": "json",
    "sort_keywords_by": "alphabetical",
    "show_description": "yes",
    "show_description_bbcode_parsed": "no",
    "show_writing": "yes",
    "show_writing_bbcode_parsed": "no",
    "show_pools": "yes",
}


@dataclass
class InkbunnyToken:
    sid: str
    user_id: str


def check_api_error(body: Any) -> Any:
    """Raise ``ApiError`` when ``body`` is an Inkbunny error document."""

    if not isinstance(body, dict):
        raise ApiError("Unexpected response shape", error_code=ErrorCode.SITE_STRUCTURE)
    if body.get("error_code") is not None:
        raise ApiError(
            f"Inkbunny error {body.get('error_code')}: {body.get('error_message') or 'unknown'}"
        )
    return body


def _to_int(value: Any, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def login(
    transport: RetryTransport,
    username: str,
    password: str,
    *,
    base_url: str = config.IB_BASE_URL,
) -> InkbunnyToken:
    body = check_api_error(
        transport.get_json(
            f"{base_url}/api_login.php",
            method="POST",
            data={"username": username, "password": password, "output_mode": "json"},
        )
    )
    sid = body.get("sid")
    if not sid:
        raise ApiError("Login response carried no session id")
    return InkbunnyToken(sid=str(sid), user_id=str(body.get("user_id") or ""))


def parse_submission(data: dict[str, Any]) -> Submission:
    submission_id = _to_int(data.get("submission_id"))
    username = str(data.get("username") or "")
    user_id = _to_int(data.get("user_id"), default=0) or None
    title = str(data.get("title") or "")
    description = str(data.get("description") or "")

    keywords = [str(k.get("keyword_name") or "") for k in data.get("keywords") or []]
    tags = normalize_tags(keywords, username)

    pools = [
        PoolRecord(
            provider=config.INKBUNNY,
            pool_id=_to_int(p.get("pool_id")),
            name=str(p.get("name") or ""),
            description=str(p.get("description") or ""),
        )
        for p in data.get("pools") or []
    ]
    pool_ids = [pool.pool_id for pool in pools]

    files: list[MediaRecord] = []
    for item in data.get("files") or []:
        create_datetime: Optional[str] = item.get("create_datetime")
        files.append(
            MediaRecord(
                provider=config.INKBUNNY,
                submission_id=submission_id,
                file_id=_to_int(item.get("file_id")),
                file_name=str(item.get("file_name") or ""),
                username=username,
                user_id=user_id,
                title=title,
                description=description,
                mime_type=item.get("mimetype") or None,
                width=_to_int(item.get("full_size_x")),
                height=_to_int(item.get("full_size_y")),
                tags=list(tags),
                create_datetime=create_datetime,
                create_timestamp=to_epoch_millis(create_datetime),
                pools=list(pool_ids),
                source_url=item.get("file_url_full") or None,
            )
        )

    return Submission(
        provider=config.INKBUNNY,
        submission_id=submission_id,
        files=files,
        pools=pools,
    )


class InkbunnyListing:
    """Favorites search walked through the API's ``(rid, page)`` cursor."""

    def __init__(
        self,
        transport: RetryTransport,
        favs_user_id: str,
        *,
        base_url: str = config.IB_BASE_URL,
        per_page: int = config.IB_SUBMISSIONS_PER_PAGE,
    ) -> None:
        self.transport = transport
        self.favs_user_id = favs_user_id
        self.base_url = base_url.rstrip("/")
        self.per_page = per_page

    def first_cursor(self) -> tuple[Optional[str], int]:
        return (None, 1)

    def fetch_page(self, cursor: tuple[Optional[str], int]) -> ListingPage:
        rid, page = cursor
        params: dict[str, Any] = {
            "output_mode": "json",
            "submission_ids_only": "yes",
            "submissions_per_page": self.per_page,
        }
        if rid is None:
            params.update(
                favs_user_id=self.favs_user_id,
                orderby="fav_datetime",
                get_rid="yes",
            )
        else:
            params.update(rid=rid, page=page)

        body = check_api_error(self.transport.get_json(f"{self.base_url}/api_search.php", params=params))
        item_ids = [
            str(s.get("submission_id"))
            for s in body.get("submissions") or []
            if s.get("submission_id") is not None
        ]

        next_rid = body.get("rid") or rid
        current_page = _to_int(body.get("page"), default=page)
        pages_count = _to_int(body.get("pages_count"))
        next_cursor = None
        if next_rid and current_page < pages_count:
            next_cursor = (str(next_rid), current_page + 1)
        return ListingPage(item_ids=item_ids, next_cursor=next_cursor)


class InkbunnyExtractor:
    provider = config.INKBUNNY

    def __init__(self, transport: RetryTransport, *, base_url: str = config.IB_BASE_URL) -> None:
        self.transport = transport
        self.base_url = base_url.rstrip("/")

    def extract(self, submission_id: str) -> Submission:
        body = check_api_error(
            self.transport.get_json(
                f"{self.base_url}/api_submissions.php",
                params={"submission_ids": submission_id, **SUBMISSION_DETAIL_PARAMS},
            )
        )
        submissions = body.get("submissions") or []
        if not submissions:
            raise NotFoundError(f"Submission {submission_id} not found")
        return parse_submission(submissions[0])


__all__ = [
    "InkbunnyToken",
    "InkbunnyListing",
    "InkbunnyExtractor",
    "login",
    "parse_submission",
    "check_api_error",
]
