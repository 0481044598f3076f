from __future__ import annotations

import hashlib
import logging
import re
import shutil
import sys
from datetime import datetime
from pathlib import Path

from . import config

LOGGER = logging.getLogger("favsync")
_LOGGER_INITIALISED = False


def _configure_logger(log_path: Path) -> None:
    """Configure the shared application logger to write to ``log_path``."""

    global _LOGGER_INITIALISED

    log_path.parent.mkdir(parents=True, exist_ok=True)

    for handler in list(LOGGER.handlers):
        LOGGER.removeHandler(handler)
        try:
            handler.close()
        except Exception:  # noqa: BLE001
            continue

    formatter = logging.Formatter(
        fmt="[%(asctime)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    stream_handler = logging.StreamHandler(sys.stdout)
    stream_handler.setFormatter(formatter)

    file_handler = logging.FileHandler(log_path, encoding="utf-8")
    file_handler.setFormatter(formatter)

    LOGGER.setLevel(logging.INFO)
    LOGGER.addHandler(stream_handler)
    LOGGER.addHandler(file_handler)
    LOGGER.propagate = False

    _LOGGER_INITIALISED = True


def _ensure_logger() -> None:
    """Initialise the logger lazily using the default log file."""

    if _LOGGER_INITIALISED:
        return

    _configure_logger(config.LOG_FILE)


def setup_run_logger(provider: str) -> Path:
    """Rotate to a fresh timestamped log file for the current run."""

    timestamp = datetime.utcnow().strftime("%Y%m%d_%H%M%S")
    log_path = config.LOG_DIR / f"sync_{provider}_{timestamp}.log"
    _configure_logger(log_path)
    LOGGER.info("Logging to %s", log_path)
    return log_path


def ensure_dirs(*providers: str) -> None:
    """Ensure the data, log and per-provider media directories exist."""

    config.DATA_DIR.mkdir(parents=True, exist_ok=True)
    config.LOG_DIR.mkdir(parents=True, exist_ok=True)
    for provider in providers:
        config.originals_dir(provider).mkdir(parents=True, exist_ok=True)
        config.thumbnails_dir(provider).mkdir(parents=True, exist_ok=True)


def log_line(message: str) -> None:
    """Write a timestamped log line to stdout and the active log file."""

    _ensure_logger()
    LOGGER.info(message)


def log_warning(message: str) -> None:
    _ensure_logger()
    LOGGER.warning(message)


def sanitize_path_component(component: str | None, fallback: str = "unknown") -> str:
    """Return ``component`` with path separators and control characters removed."""

    if not component:
        return fallback

    cleaned = "".join(ch if ord(ch) >= 32 else " " for ch in str(component))
    cleaned = re.sub(r"[\\/:*?\"<>|]+", "_", cleaned)
    cleaned = cleaned.strip(" .")

    return cleaned or fallback


def md5_file(path: Path, chunk_size: int = 1024 * 1024) -> str:
    """Return the hex MD5 digest of the file at ``path``."""

    digest = hashlib.md5()
    with Path(path).open("rb") as handle:
        for chunk in iter(lambda: handle.read(chunk_size), b""):
            digest.update(chunk)
    return digest.hexdigest()


def disk_has_room(min_free_mb: int, path: Path) -> bool:
    """Return True when the filesystem holding ``path`` has ``min_free_mb`` free."""

    try:
        usage = shutil.disk_usage(path)
    except OSError:
        return False
    return usage.free >= min_free_mb * 1024 * 1024


__all__ = [
    "LOGGER",
    "ensure_dirs",
    "setup_run_logger",
    "log_line",
    "log_warning",
    "sanitize_path_component",
    "md5_file",
    "disk_has_room",
]
