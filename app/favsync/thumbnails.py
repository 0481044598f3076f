"""Thumbnail generation for downloaded originals."""
from __future__ import annotations

import mimetypes
from pathlib import Path
from typing import Optional

import cv2
from PIL import Image

from . import config
from .errors import UnsupportedMediaError
from .utils import log_line

VIDEO_THUMBNAIL_SUFFIX = ".png"


def guess_mime_type(path: Path) -> str:
    return mimetypes.guess_type(str(path))[0] or "application/octet-stream"


def thumbnail_target(output_path: Path, mime_type: str) -> Path:
    """Return where the thumbnail for ``mime_type`` is written.

    Video thumbnails are always PNG images whatever the source extension.
    """

    if mime_type.startswith("video/"):
        return Path(output_path).with_suffix(VIDEO_THUMBNAIL_SUFFIX)
    return Path(output_path)


def _grab_video_frame(input_path: Path) -> Image.Image:
    """Return the frame at the middle of the video as an RGB image."""

    capture = cv2.VideoCapture(str(input_path))
    try:
        if not capture.isOpened():
            raise UnsupportedMediaError(f"Cannot open video {input_path.name}")
        frame_count = int(capture.get(cv2.CAP_PROP_FRAME_COUNT) or 0)
        if frame_count > 1:
            capture.set(cv2.CAP_PROP_POS_FRAMES, frame_count // 2)
        ok, frame = capture.read()
        if not ok or frame is None:
            raise UnsupportedMediaError(f"Cannot read a frame from {input_path.name}")
        return Image.fromarray(cv2.cvtColor(frame, cv2.COLOR_BGR2RGB))
    finally:
        capture.release()


def _save_fitted(image: Image.Image, target: Path, size: int) -> None:
    image.thumbnail((size, size))
    image_format = Image.registered_extensions().get(target.suffix.lower()) or "PNG"
    if image_format == "JPEG" and image.mode not in ("RGB", "L"):
        image = image.convert("RGB")
    image.save(target, format=image_format)


def create_thumbnail(
    input_path: Path,
    output_path: Path,
    *,
    mime_type: Optional[str] = None,
    size: int = config.THUMBNAIL_SIZE,
) -> Path:
    """Write a thumbnail fitting inside ``size`` x ``size`` and return its path.

    Images are shrunk (never enlarged) keeping their format; videos use their
    midpoint frame. An existing thumbnail is left untouched. Raises
    ``UnsupportedMediaError`` for other media types or undecodable input.
    """

    input_path = Path(input_path)
    mime = mime_type or guess_mime_type(input_path)
    if not (mime.startswith("image/") or mime.startswith("video/")):
        raise UnsupportedMediaError(f"Cannot thumbnail {input_path.name} ({mime})")

    target = thumbnail_target(Path(output_path), mime)
    if target.exists():
        log_line(f"[THUMB] Thumbnail already exists, skipping {target.name}")
        return target

    target.parent.mkdir(parents=True, exist_ok=True)
    try:
        if mime.startswith("video/"):
            _save_fitted(_grab_video_frame(input_path), target, size)
        else:
            with Image.open(input_path) as image:
                _save_fitted(image, target, size)
    except UnsupportedMediaError:
        target.unlink(missing_ok=True)
        raise
    except (OSError, ValueError, Image.DecompressionBombError) as exc:
        target.unlink(missing_ok=True)
        raise UnsupportedMediaError(f"Cannot decode {input_path.name}: {exc}") from exc

    log_line(f"[THUMB] Wrote {target}")
    return target


__all__ = ["create_thumbnail", "thumbnail_target", "guess_mime_type", "VIDEO_THUMBNAIL_SUFFIX"]
