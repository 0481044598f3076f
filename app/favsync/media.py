"""Download originals, inspect their bytes and derive thumbnails."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

import cv2
import requests
from PIL import Image, UnidentifiedImageError

from . import config
from .errors import AcquisitionError, TransportError, UnsupportedMediaError
from .logging_utils import _sync_event
from .models import MediaRecord
from .thumbnails import create_thumbnail, guess_mime_type
from .transport import RetryTransport
from .utils import log_line, md5_file, sanitize_path_component

ProgressCallback = Callable[[int, int], None]


@dataclass
class MediaInfo:
    mime_type: Optional[str]
    width: int = 0
    height: int = 0


@dataclass
class AcquiredMedia:
    record: MediaRecord
    path: Path
    downloaded: bool
    thumbnail_path: Optional[Path] = None
    thumbnail_error: Optional[str] = None


def progress_logger(label: str) -> ProgressCallback:
    """Return a progress callback logging every 25% of a known-size download."""

    last_bucket = -1

    def _report(received: int, total: int) -> None:
        nonlocal last_bucket
        if total <= 0:
            return
        bucket = min(4, received * 4 // total)
        if bucket > last_bucket:
            last_bucket = bucket
            log_line(f"[DOWNLOAD] {label}: {received}/{total} bytes ({bucket * 25}%)")

    return _report


def _video_dimensions(path: Path) -> tuple[int, int]:
    capture = cv2.VideoCapture(str(path))
    try:
        if not capture.isOpened():
            return 0, 0
        width = int(capture.get(cv2.CAP_PROP_FRAME_WIDTH) or 0)
        height = int(capture.get(cv2.CAP_PROP_FRAME_HEIGHT) or 0)
        return width, height
    finally:
        capture.release()


_FTYP_BRANDS = {
    b"qt  ": "video/quicktime",
    b"M4V ": "video/x-m4v",
    b"M4A ": "audio/mp4",
}

_HEADER_SIGNATURES = (
    (b"%PDF-", "application/pdf"),
    (b"FLV\x01", "video/x-flv"),
    (b"FWS", "application/x-shockwave-flash"),
    (b"CWS", "application/x-shockwave-flash"),
    (b"ZWS", "application/x-shockwave-flash"),
    (b"ID3", "audio/mpeg"),
    (b"fLaC", "audio/flac"),
    (b"PK\x03\x04", "application/zip"),
)

_SNIFF_BYTES = 64


def sniff_mime(path: Path) -> Optional[str]:
    """Return the MIME type named by the leading bytes of ``path``, if known."""

    try:
        with path.open("rb") as handle:
            head = handle.read(_SNIFF_BYTES)
    except OSError:
        return None

    if head[4:8] == b"ftyp":
        brand = head[8:12]
        if brand.startswith(b"3g"):
            return "video/3gpp"
        return _FTYP_BRANDS.get(brand, "video/mp4")
    if head.startswith(b"\x1a\x45\xdf\xa3"):
        return "video/x-matroska" if b"matroska" in head else "video/webm"
    if head.startswith(b"RIFF") and head[8:12] == b"AVI ":
        return "video/x-msvideo"
    if head.startswith(b"RIFF") and head[8:12] == b"WAVE":
        return "audio/wav"
    if head.startswith(b"OggS"):
        return "audio/ogg" if b"vorbis" in head or b"OpusHead" in head else "video/ogg"
    for signature, mime in _HEADER_SIGNATURES:
        if head.startswith(signature):
            return mime
    return None


def detect_media(path: Path) -> MediaInfo:
    """Detect MIME type and pixel size from the file contents.

    Pillow identifies images. Other files are recognised by their leading
    bytes, and only an unrecognised header falls back to the extension.
    Undecodable media keep 0x0 dimensions.
    """

    try:
        with Image.open(path) as image:
            mime = Image.MIME.get(image.format or "") or guess_mime_type(path)
            width, height = image.size
            return MediaInfo(mime_type=mime, width=int(width), height=int(height))
    except (UnidentifiedImageError, OSError, Image.DecompressionBombError):
        pass

    mime = sniff_mime(path) or guess_mime_type(path)
    if mime.startswith("video/"):
        width, height = _video_dimensions(path)
        return MediaInfo(mime_type=mime, width=width, height=height)
    return MediaInfo(mime_type=mime)


def stream_download(
    transport: RetryTransport,
    url: str,
    dest_path: Path,
    *,
    progress: Optional[ProgressCallback] = None,
    chunk_size: int = config.DOWNLOAD_CHUNK_SIZE,
) -> int:
    """Stream ``url`` into ``dest_path`` and return the number of bytes written.

    Bytes land in ``<dest>.part`` first and are moved into place only once
    the stream completes.
    """

    part_path = dest_path.with_name(dest_path.name + ".part")
    try:
        response = transport.send(url, stream=True)
    except TransportError as exc:
        raise AcquisitionError(f"Cannot fetch {url}: {exc}") from exc

    total = int(response.headers.get("content-length") or 0)
    received = 0
    try:
        with response, part_path.open("wb") as handle:
            for chunk in response.iter_content(chunk_size=chunk_size):
                if not chunk:
                    continue
                handle.write(chunk)
                received += len(chunk)
                if progress is not None:
                    progress(received, total)
        part_path.replace(dest_path)
    except (requests.RequestException, OSError) as exc:
        part_path.unlink(missing_ok=True)
        raise AcquisitionError(f"Stream of {url} failed after {received} bytes: {exc}") from exc

    return received


class MediaPipeline:
    """Per-record download, hash, inspection and thumbnail steps.

    Every step is skipped when its output already exists on disk, so running
    it again for the same record only refreshes the derived fields.
    """

    def __init__(
        self,
        transport: RetryTransport,
        *,
        thumbnail_size: int = config.THUMBNAIL_SIZE,
        progress_factory: Callable[[str], ProgressCallback] = progress_logger,
    ) -> None:
        self.transport = transport
        self.thumbnail_size = thumbnail_size
        self.progress_factory = progress_factory

    @staticmethod
    def destination_for(record: MediaRecord) -> Path:
        return (
            config.originals_dir(record.provider)
            / sanitize_path_component(record.username)
            / sanitize_path_component(record.file_name, fallback=str(record.file_id))
        )

    @staticmethod
    def thumbnail_for(record: MediaRecord) -> Path:
        return (
            config.thumbnails_dir(record.provider)
            / sanitize_path_component(record.username)
            / sanitize_path_component(record.file_name, fallback=str(record.file_id))
        )

    def acquire(self, record: MediaRecord) -> AcquiredMedia:
        dest_path = self.destination_for(record)
        downloaded = False

        if dest_path.exists():
            log_line(f"[MEDIA] {dest_path.name} already exists; skipping download")
        else:
            if not record.source_url:
                raise AcquisitionError(f"File {record.file_id} has no download URL")
            dest_path.parent.mkdir(parents=True, exist_ok=True)
            size = stream_download(
                self.transport,
                record.source_url,
                dest_path,
                progress=self.progress_factory(dest_path.name),
            )
            downloaded = True
            _sync_event(
                "media",
                phase="download",
                provider=record.provider,
                file_id=record.file_id,
                bytes=size,
            )

        try:
            record.content_hash = md5_file(dest_path)
        except OSError as exc:
            raise AcquisitionError(f"Cannot hash {dest_path}: {exc}") from exc

        info = detect_media(dest_path)
        if info.mime_type:
            record.mime_type = info.mime_type
        if info.width and info.height:
            record.width, record.height = info.width, info.height

        acquired = AcquiredMedia(record=record, path=dest_path, downloaded=downloaded)
        try:
            acquired.thumbnail_path = create_thumbnail(
                dest_path,
                self.thumbnail_for(record),
                mime_type=record.mime_type,
                size=self.thumbnail_size,
            )
        except UnsupportedMediaError as exc:
            acquired.thumbnail_error = str(exc)
            log_line(f"[THUMB] Skipped {dest_path.name}: {exc}")

        return acquired


__all__ = [
    "MediaPipeline",
    "AcquiredMedia",
    "MediaInfo",
    "detect_media",
    "sniff_mime",
    "stream_download",
    "progress_logger",
]
