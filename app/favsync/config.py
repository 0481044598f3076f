"""Configuration constants for the favorites synchroniser."""
from __future__ import annotations

import os
from pathlib import Path

DATA_DIR: Path = Path(os.getenv("FAVSYNC_DATA_DIR", "./data"))
LOG_DIR: Path = Path(os.getenv("FAVSYNC_LOG_DIR", str(DATA_DIR / "logs")))
LOG_FILE: Path = LOG_DIR / "latest.log"
RUNS_DIR: Path = DATA_DIR / "runs"
DB_PATH: Path = Path(os.getenv("FAVSYNC_DB_PATH", str(DATA_DIR / "favsync.db")))

FURAFFINITY = "furaffinity"
INKBUNNY = "inkbunny"
ALL_PROVIDERS = (FURAFFINITY, INKBUNNY)

FA_BASE_URL: str = "https://www.furaffinity.net"
IB_BASE_URL: str = "https://inkbunny.net"

FA_USERNAME: str = os.getenv("FA_USERNAME", "")
FA_COOKIE_A: str = os.getenv("FA_COOKIE_A", "")
FA_COOKIE_B: str = os.getenv("FA_COOKIE_B", "")
IB_USERNAME: str = os.getenv("IB_USERNAME", "")
IB_PASSWORD: str = os.getenv("IB_PASSWORD", "")
IB_SUBMISSIONS_PER_PAGE: int = int(os.getenv("IB_SUBMISSIONS_PER_PAGE", "100"))

# Consecutive already-processed items tolerated before a run halts.
MAX_DUP_COUNT: int = int(os.getenv("FAVSYNC_MAX_DUP_COUNT", "10"))
# Polite delay between items (seconds).
ITEM_DELAY: float = float(os.getenv("FAVSYNC_ITEM_DELAY", "1.0"))

# Listing pages: consecutive page failures tolerated after transport retries.
PAGE_FAILURE_BUDGET: int = int(os.getenv("FAVSYNC_PAGE_FAILURE_BUDGET", "5"))
PAGE_FAILURE_DELAY: float = float(os.getenv("FAVSYNC_PAGE_FAILURE_DELAY", "10"))

# Transport retry budgets (attempts, fixed delay in seconds) per call kind.
LISTING_MAX_ATTEMPTS: int = int(os.getenv("FAVSYNC_LISTING_MAX_ATTEMPTS", "3"))
LISTING_RETRY_DELAY: float = float(os.getenv("FAVSYNC_LISTING_RETRY_DELAY", "1.0"))
DETAIL_MAX_ATTEMPTS: int = int(os.getenv("FAVSYNC_DETAIL_MAX_ATTEMPTS", "10"))
DETAIL_RETRY_DELAY: float = float(os.getenv("FAVSYNC_DETAIL_RETRY_DELAY", "5.0"))
DOWNLOAD_MAX_ATTEMPTS: int = int(os.getenv("FAVSYNC_DOWNLOAD_MAX_ATTEMPTS", "3"))
DOWNLOAD_RETRY_DELAY: float = float(os.getenv("FAVSYNC_DOWNLOAD_RETRY_DELAY", "5.0"))
HTTP_TIMEOUT_S: int = int(os.getenv("FAVSYNC_HTTP_TIMEOUT", "120"))
DOWNLOAD_CHUNK_SIZE: int = 64 * 1024

# Max number of file downloads in flight for a single submission.
MAX_PARALLEL_DOWNLOADS: int = int(os.getenv("FAVSYNC_MAX_PARALLEL_DOWNLOADS", "1"))

THUMBNAIL_SIZE: int = int(os.getenv("FAVSYNC_THUMBNAIL_SIZE", "120"))

MIN_FREE_MB: int = int(os.getenv("MIN_FREE_MB", "400"))

COMMON_HEADERS: dict[str, str] = {
    "User-Agent": (
        "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    ),
    "Accept": "*/*",
    "Accept-Language": "en-US,en;q=0.9",
    "Connection": "keep-alive",
}


def originals_dir(provider: str) -> Path:
    """Return the directory holding downloaded originals for ``provider``."""

    return DATA_DIR / provider


def thumbnails_dir(provider: str) -> Path:
    """Return the directory holding thumbnails for ``provider``."""

    return DATA_DIR / f"{provider}-thumbnails"


def is_known_provider(provider: str) -> bool:
    return str(provider).strip().lower() in ALL_PROVIDERS
