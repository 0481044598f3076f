from __future__ import annotations

from pathlib import Path

import pytest
from PIL import Image

from app.favsync import thumbnails
from app.favsync.errors import UnsupportedMediaError
from app.favsync.thumbnails import create_thumbnail, thumbnail_target


def _write_image(path: Path, size: tuple[int, int], fmt: str = "PNG") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    Image.new("RGB", size, color=(10, 120, 200)).save(path, format=fmt)
    return path


def test_image_is_shrunk_to_fit_keeping_aspect(tmp_path: Path) -> None:
    source = _write_image(tmp_path / "in" / "wide.png", (600, 300))

    target = create_thumbnail(source, tmp_path / "out" / "wide.png")

    with Image.open(target) as thumb:
        assert thumb.size == (120, 60)
        assert thumb.format == "PNG"


def test_small_image_is_not_enlarged(tmp_path: Path) -> None:
    source = _write_image(tmp_path / "tiny.jpg", (50, 40), fmt="JPEG")

    target = create_thumbnail(source, tmp_path / "out" / "tiny.jpg")

    with Image.open(target) as thumb:
        assert thumb.size == (50, 40)
        assert thumb.format == "JPEG"


def test_video_thumbnail_is_written_as_png(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    source = tmp_path / "clip.mp4"
    source.write_bytes(b"not really a video")
    monkeypatch.setattr(thumbnails, "_grab_video_frame", lambda _path: Image.new("RGB", (640, 480)))

    target = create_thumbnail(source, tmp_path / "out" / "clip.mp4", mime_type="video/mp4")

    assert target == tmp_path / "out" / "clip.png"
    with Image.open(target) as thumb:
        assert thumb.size == (120, 90)
    assert not (tmp_path / "out" / "clip.mp4").exists()


def test_thumbnail_target_only_rewrites_video() -> None:
    assert thumbnail_target(Path("a/b.webm"), "video/webm") == Path("a/b.png")
    assert thumbnail_target(Path("a/b.gif"), "image/gif") == Path("a/b.gif")


def test_unsupported_media_type(tmp_path: Path) -> None:
    source = tmp_path / "story.pdf"
    source.write_bytes(b"%PDF-1.4")

    with pytest.raises(UnsupportedMediaError):
        create_thumbnail(source, tmp_path / "out" / "story.pdf", mime_type="application/pdf")


def test_undecodable_image_leaves_no_output(tmp_path: Path) -> None:
    source = tmp_path / "broken.png"
    source.write_bytes(b"garbage")
    output = tmp_path / "out" / "broken.png"

    with pytest.raises(UnsupportedMediaError):
        create_thumbnail(source, output)

    assert not output.exists()


def test_existing_thumbnail_is_kept(tmp_path: Path) -> None:
    source = _write_image(tmp_path / "a.png", (300, 300))
    output = tmp_path / "out" / "a.png"
    output.parent.mkdir(parents=True)
    output.write_bytes(b"previous")

    assert create_thumbnail(source, output) == output
    assert output.read_bytes() == b"previous"
