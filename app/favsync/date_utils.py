from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Iterable, Optional

_DATE_FORMATS: Iterable[str] = (
    # inkbunny: 2010-06-20 07:36:19.417447+00
    "%Y-%m-%d %H:%M:%S.%f%z",
    "%Y-%m-%d %H:%M:%S%z",
    "%Y-%m-%d %H:%M:%S.%f",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%dT%H:%M:%S%z",
    # furaffinity: Jan 4, 2017 01:50 AM
    "%b %d, %Y %I:%M %p",
    "%B %d, %Y %I:%M %p",
    "%b %d, %Y %H:%M",
)

_SHORT_OFFSET = re.compile(r"([+-]\d{2})$")


def to_epoch_millis(value: Optional[str]) -> Optional[int]:
    """Return UTC epoch milliseconds for a remote date string.

    Values without an explicit offset are taken as UTC. Returns ``None`` when
    no known format matches.
    """

    candidate = re.sub(r"\s+", " ", (value or "").strip())
    if not candidate:
        return None

    # "+00" offsets are not understood by %z.
    candidate = _SHORT_OFFSET.sub(r"\g<1>00", candidate)

    for fmt in _DATE_FORMATS:
        try:
            parsed = datetime.strptime(candidate, fmt)
        except ValueError:
            continue
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return int(parsed.timestamp() * 1000)

    return None
