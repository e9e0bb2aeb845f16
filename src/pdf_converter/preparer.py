"""Decode a single image and turn it into something the PDF canvas can embed."""

from __future__ import annotations

from contextlib import ExitStack
from dataclasses import dataclass
from io import BytesIO

from PIL import ExifTags, Image, ImageOps, UnidentifiedImageError

from .detection import DetectionError, ImageFormat, detect_image_format
from .errors import DecodeError, OversizeError
from .sources import ImageSource

DEFAULT_MAX_BYTES = 50 * 1024 * 1024
HIGH_QUALITY_MAX_SIDE = 2048
LOW_QUALITY_MAX_SIDE = 1536

PASSTHROUGH_FORMATS = {"JPEG", "PNG"}

_DECODE_ERRORS = (UnidentifiedImageError, Image.DecompressionBombError, OSError, SyntaxError, ValueError)


@dataclass(slots=True)
class PreparedImage:
    data: bytes
    width: int
    height: int
    format: str

    @property
    def size_bytes(self) -> int:
        return len(self.data)


def max_side_for(quality: float) -> int:
    return HIGH_QUALITY_MAX_SIDE if quality >= 0.5 else LOW_QUALITY_MAX_SIDE


def _has_alpha(image: Image.Image) -> bool:
    if image.mode in ("RGBA", "LA", "PA"):
        return True
    return image.mode == "P" and "transparency" in image.info


def _is_upright(image: Image.Image) -> bool:
    orientation = image.getexif().get(ExifTags.Base.Orientation)
    return orientation in (None, 1)


def _flatten_to_rgb(image: Image.Image, stack: ExitStack) -> Image.Image:
    # PDF JPEG streams have no alpha channel, so transparent pixels go on white.
    if _has_alpha(image) or image.mode == "P":
        rgba = stack.enter_context(image.convert("RGBA"))
        background = stack.enter_context(Image.new("RGB", rgba.size, (255, 255, 255)))
        background.paste(rgba, mask=rgba.split()[-1])
        return background
    if image.mode != "RGB":
        return stack.enter_context(image.convert("RGB"))
    return image


class ImagePreparer:
    def __init__(self, max_bytes: int = DEFAULT_MAX_BYTES) -> None:
        self._max_bytes = max_bytes

    @property
    def max_bytes(self) -> int:
        return self._max_bytes

    def prepare(self, source: ImageSource, quality: float) -> PreparedImage:
        """Decode *source* and re-encode it when quality or size call for it.

        All Pillow handles opened here are closed before returning, whether
        the image could be prepared or not.
        """
        quality = max(0.1, min(1.0, quality))
        self._check_size(source.size_hint, source)
        payload = self._read(source)
        self._check_size(len(payload), source)
        try:
            fmt = detect_image_format(source.display_name, source.declared_mime_type)
        except DetectionError as exc:
            raise DecodeError(str(exc)) from exc
        if fmt is ImageFormat.SVG:
            payload = self._rasterize_svg(payload, source)

        with ExitStack() as stack:
            try:
                image = stack.enter_context(Image.open(BytesIO(payload)))
                image.load()
                upright = _is_upright(image)
                if not upright:
                    image = stack.enter_context(ImageOps.exif_transpose(image))
                width, height = image.size
                limit = max_side_for(quality)
                if (
                    upright
                    and quality >= 1.0
                    and max(width, height) <= limit
                    and image.format in PASSTHROUGH_FORMATS
                ):
                    return PreparedImage(data=payload, width=width, height=height, format=image.format)
                return self._reencode(image, quality, limit, stack)
            except _DECODE_ERRORS as exc:
                raise DecodeError(f"Cannot decode {source.display_name}: {exc}") from exc

    def _check_size(self, size: int | None, source: ImageSource) -> None:
        if size is not None and size > self._max_bytes:
            limit_mb = self._max_bytes / (1024 * 1024)
            raise OversizeError(f"{source.display_name} is larger than {limit_mb:.0f} MB")

    def _read(self, source: ImageSource) -> bytes:
        try:
            return source.read()
        except OSError as exc:
            raise DecodeError(f"Cannot read {source.display_name}: {exc}") from exc

    def _rasterize_svg(self, payload: bytes, source: ImageSource) -> bytes:
        try:
            import cairosvg
        except (ImportError, OSError) as exc:
            raise DecodeError(f"SVG support is unavailable for {source.display_name}: {exc}") from exc
        try:
            return cairosvg.svg2png(bytestring=payload)
        except Exception as exc:
            raise DecodeError(f"Cannot rasterize {source.display_name}: {exc}") from exc

    def _reencode(self, image: Image.Image, quality: float, limit: int, stack: ExitStack) -> PreparedImage:
        frame = stack.enter_context(image.copy())
        if max(frame.size) > limit:
            frame.thumbnail((limit, limit), Image.Resampling.LANCZOS)
        buffer = BytesIO()
        if quality >= 1.0 and _has_alpha(frame):
            rgba = stack.enter_context(frame.convert("RGBA"))
            rgba.save(buffer, "PNG", optimize=True)
            fmt = "PNG"
        else:
            rgb = _flatten_to_rgb(frame, stack)
            rgb.save(buffer, "JPEG", quality=int(round(quality * 100)), optimize=True)
            fmt = "JPEG"
        width, height = frame.size
        return PreparedImage(data=buffer.getvalue(), width=width, height=height, format=fmt)


__all__ = [
    "ImagePreparer",
    "PreparedImage",
    "DEFAULT_MAX_BYTES",
    "max_side_for",
]
