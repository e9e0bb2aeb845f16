"""Page geometry: page sizes and image placement, all in millimetres."""

from __future__ import annotations

from dataclasses import dataclass

from .errors import InvalidDimensionsError

CAPTION_BAND_MM = 20.0
CAPTION_BASELINE_MM = 10.0

PAGE_SIZES_MM: dict[str, tuple[float, float]] = {
    "a4": (210.0, 297.0),
    "letter": (215.9, 279.4),
    "legal": (215.9, 355.6),
}


@dataclass(frozen=True, slots=True)
class LayoutRect:
    """Placement rectangle, origin at the top-left corner of the page."""

    x: float
    y: float
    width: float
    height: float

    @property
    def aspect_ratio(self) -> float:
        return self.width / self.height


def page_dimensions(page_size: str, orientation: str = "portrait") -> tuple[float, float]:
    try:
        width, height = PAGE_SIZES_MM[page_size.lower()]
    except KeyError as exc:
        raise ValueError(f"Unknown page size: {page_size}") from exc
    if orientation == "landscape":
        return max(width, height), min(width, height)
    return min(width, height), max(width, height)


def printable_area(
    page_width: float, page_height: float, margin: float, caption_band_height: float = CAPTION_BAND_MM
) -> tuple[float, float]:
    return page_width - 2 * margin, page_height - 2 * margin - caption_band_height


def compute_layout(
    img_width: float,
    img_height: float,
    page_width: float,
    page_height: float,
    margin: float,
    caption_band_height: float = CAPTION_BAND_MM,
) -> LayoutRect:
    """Fit an image into the printable area, centred horizontally and top aligned.

    The caption band below the image stays free for the file name and the
    page indicator.
    """
    if img_width <= 0 or img_height <= 0:
        raise InvalidDimensionsError(f"Image has degenerate dimensions {img_width}x{img_height}")
    max_width, max_height = printable_area(page_width, page_height, margin, caption_band_height)
    if max_width <= 0 or max_height <= 0:
        raise InvalidDimensionsError(
            f"No printable area left on a {page_width}x{page_height} page with margin {margin}"
        )
    scale = min(max_width / img_width, max_height / img_height)
    final_width = img_width * scale
    final_height = img_height * scale
    return LayoutRect(
        x=(page_width - final_width) / 2,
        y=margin,
        width=final_width,
        height=final_height,
    )


__all__ = [
    "CAPTION_BAND_MM",
    "CAPTION_BASELINE_MM",
    "PAGE_SIZES_MM",
    "LayoutRect",
    "page_dimensions",
    "printable_area",
    "compute_layout",
]
