from __future__ import annotations

import mimetypes
from dataclasses import dataclass
from enum import Enum
from pathlib import PurePosixPath
from typing import TYPE_CHECKING, Iterable

if TYPE_CHECKING:
    from .sources import ImageSource


class ImageFormat(str, Enum):
    JPEG = "jpeg"
    PNG = "png"
    GIF = "gif"
    BMP = "bmp"
    WEBP = "webp"
    SVG = "svg"

    @property
    def mime_type(self) -> str:
        return MIME_MAP[self]


EXTENSION_MAP: dict[str, ImageFormat] = {
    ".jpg": ImageFormat.JPEG,
    ".jpeg": ImageFormat.JPEG,
    ".png": ImageFormat.PNG,
    ".gif": ImageFormat.GIF,
    ".bmp": ImageFormat.BMP,
    ".webp": ImageFormat.WEBP,
    ".svg": ImageFormat.SVG,
}

MIME_MAP: dict[ImageFormat, str] = {
    ImageFormat.JPEG: "image/jpeg",
    ImageFormat.PNG: "image/png",
    ImageFormat.GIF: "image/gif",
    ImageFormat.BMP: "image/bmp",
    ImageFormat.WEBP: "image/webp",
    ImageFormat.SVG: "image/svg+xml",
}

_MIME_LOOKUP: dict[str, ImageFormat] = {mime: fmt for fmt, mime in MIME_MAP.items()}
_MIME_LOOKUP["image/jpg"] = ImageFormat.JPEG
_MIME_LOOKUP["image/x-ms-bmp"] = ImageFormat.BMP

SUPPORTED_EXTENSIONS: tuple[str, ...] = tuple(EXTENSION_MAP)


class DetectionError(RuntimeError):
    """Raised when a name or MIME type is not a supported image format."""


@dataclass(slots=True)
class FilterResult:
    accepted: list["ImageSource"]
    rejected: list["ImageSource"]


def _extension(name: str) -> str:
    return PurePosixPath(name.replace("\\", "/")).suffix.lower()


def _format_from_mime(mime: str) -> ImageFormat | None:
    return _MIME_LOOKUP.get(mime.split(";", 1)[0].strip().lower())


def is_supported(name_or_mime: str, allowed: Iterable[str] = SUPPORTED_EXTENSIONS) -> bool:
    """True when *name_or_mime* is a supported file name or image MIME type."""
    value = name_or_mime.strip()
    if not value:
        return False
    if "/" in value and value.lower().startswith("image/"):
        fmt = _format_from_mime(value)
        if fmt is None:
            return False
        return any(EXTENSION_MAP.get(ext) is fmt for ext in allowed)
    return _extension(value) in {ext.lower() for ext in allowed}


def detect_image_format(name: str, mime: str | None = None) -> ImageFormat:
    fmt = EXTENSION_MAP.get(_extension(name))
    if fmt is None and mime:
        fmt = _format_from_mime(mime)
    if fmt is None:
        raise DetectionError(f"Unsupported image type: {name or '<unnamed>'} ({mime or 'unknown'})")
    return fmt


def mime_for(name: str) -> str:
    fmt = EXTENSION_MAP.get(_extension(name))
    if fmt is not None:
        return fmt.mime_type
    mime, _ = mimetypes.guess_type(name)
    return mime or "application/octet-stream"


def filter_sources(
    sources: Iterable["ImageSource"], allowed: Iterable[str] = SUPPORTED_EXTENSIONS
) -> FilterResult:
    allowed = tuple(allowed)
    accepted: list[ImageSource] = []
    rejected: list[ImageSource] = []
    for source in sources:
        if is_supported(source.display_name, allowed) or (
            _extension(source.display_name) == ""
            and source.declared_mime_type
            and is_supported(source.declared_mime_type, allowed)
        ):
            accepted.append(source)
        else:
            rejected.append(source)
    return FilterResult(accepted=accepted, rejected=rejected)


__all__ = [
    "ImageFormat",
    "DetectionError",
    "FilterResult",
    "SUPPORTED_EXTENSIONS",
    "is_supported",
    "detect_image_format",
    "mime_for",
    "filter_sources",
]
