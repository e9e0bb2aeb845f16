from pathlib import Path

import pytest

from pdf_converter.detection import (
    DetectionError,
    ImageFormat,
    detect_image_format,
    filter_sources,
    is_supported,
    mime_for,
)
from pdf_converter.sources import ImageSource


@pytest.mark.parametrize(
    "value",
    ["photo.jpg", "photo.JPEG", "scan.png", "anim.gif", "old.bmp", "web.webp", "logo.svg", "image/png", "image/svg+xml"],
)
def test_supported_names_and_mime_types(value: str) -> None:
    assert is_supported(value)


@pytest.mark.parametrize("value", ["notes.txt", "archive.tar.gz", "README", "", "image/tiff", "text/plain"])
def test_unsupported_values(value: str) -> None:
    assert not is_supported(value)


def test_allowed_extensions_restrict_mime_types() -> None:
    assert is_supported("image/jpeg", allowed=(".jpg",))
    assert not is_supported("image/png", allowed=(".jpg",))
    assert not is_supported("scan.png", allowed=(".jpg",))


def test_detect_format_prefers_extension() -> None:
    assert detect_image_format("a.PNG", "image/jpeg") is ImageFormat.PNG
    assert detect_image_format("upload", "image/jpeg; charset=binary") is ImageFormat.JPEG


def test_detect_format_rejects_unknown() -> None:
    with pytest.raises(DetectionError):
        detect_image_format("notes.txt")


def test_mime_for_known_and_unknown_names() -> None:
    assert mime_for("a.jpg") == "image/jpeg"
    assert mime_for("a.svg") == "image/svg+xml"
    assert mime_for(str(Path("dir") / "blob.unknownext")) == "application/octet-stream"


def test_filter_sources_keeps_order_and_mime_only_uploads() -> None:
    sources = [
        ImageSource.from_bytes("b.png", b"x"),
        ImageSource.from_bytes("c.txt", b"x"),
        ImageSource.from_bytes("clipboard", b"x", "image/png"),
        ImageSource.from_bytes("a.jpg", b"x"),
        ImageSource.from_bytes("fake.txt", b"x", "image/png"),
    ]
    result = filter_sources(sources)
    assert [item.display_name for item in result.accepted] == ["b.png", "clipboard", "a.jpg"]
    assert [item.display_name for item in result.rejected] == ["c.txt", "fake.txt"]
