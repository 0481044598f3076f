from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Iterable, Optional


class ItemOutcome(str, Enum):
    NEW = "new"
    DUPLICATE = "duplicate"
    NOT_FOUND = "not_found"
    FAILED = "failed"


def normalize_tag(tag: str) -> str:
    """Lowercase ``tag`` and join its words with underscores."""

    return "_".join(str(tag).strip().lower().split())


def artist_tag(username: str) -> str:
    return f"artist:{str(username).strip().lower()}"


def normalize_tags(tags: Iterable[str], username: Optional[str] = None) -> list[str]:
    """Return normalized, de-duplicated tags in first-seen order.

    When ``username`` is given the synthetic ``artist:<username>`` tag is
    appended.
    """

    seen: set[str] = set()
    out: list[str] = []
    candidates = list(tags)
    if username:
        candidates.append(artist_tag(username))
    for raw in candidates:
        tag = raw if raw.startswith("artist:") else normalize_tag(raw)
        if tag and tag not in seen:
            seen.add(tag)
            out.append(tag)
    return out


@dataclass
class MediaRecord:
    """Metadata for one remote file, keyed by ``(provider, file_id)``."""

    provider: str
    submission_id: int
    file_id: int
    file_name: str
    username: str
    title: str = ""
    description: str = ""
    user_id: Optional[int] = None
    mime_type: Optional[str] = None
    width: int = 0
    height: int = 0
    tags: list[str] = field(default_factory=list)
    create_timestamp: Optional[int] = None
    create_datetime: Optional[str] = None
    content_hash: Optional[str] = None
    pools: list[int] = field(default_factory=list)
    source_url: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class PoolRecord:
    provider: str
    pool_id: int
    name: str = ""
    description: str = ""
    files: list[int] = field(default_factory=list)


@dataclass
class Submission:
    """One remote post as returned by an extractor."""

    provider: str
    submission_id: int
    files: list[MediaRecord] = field(default_factory=list)
    pools: list[PoolRecord] = field(default_factory=list)


__all__ = [
    "ItemOutcome",
    "MediaRecord",
    "PoolRecord",
    "Submission",
    "normalize_tag",
    "normalize_tags",
    "artist_tag",
]
