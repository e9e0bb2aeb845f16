"""Thin drawing surface over a ReportLab canvas.

Pages are built in two steps. :meth:`PdfDocument.stage_page` decodes the
image into the reader ReportLab embeds from, without touching the canvas.
:meth:`PdfDocument.commit` draws the page into a form XObject and only places
that form on a new page once every drawing call succeeded, so a failed item
never leaves a blank or half-drawn page behind.
"""

from __future__ import annotations

from dataclasses import dataclass
from io import BytesIO

from reportlab.lib.units import mm
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from .errors import DecodeError, SinkError
from .layout import CAPTION_BASELINE_MM, LayoutRect
from .preparer import PreparedImage

CAPTION_FONT = "Helvetica"
CAPTION_GREY = (100 / 255, 100 / 255, 100 / 255)
FOOTER_FONT_SIZE = 8


@dataclass(slots=True)
class StagedPage:
    reader: ImageReader
    rect: LayoutRect
    caption: str
    footer: str
    font_size: float


class PdfDocument:
    def __init__(
        self,
        page_width_mm: float,
        page_height_mm: float,
        *,
        margin: float,
        title: str | None = None,
    ) -> None:
        self._buffer = BytesIO()
        self._page_width = page_width_mm
        self._page_height = page_height_mm
        self._margin = margin
        try:
            self._canvas = canvas.Canvas(self._buffer, pagesize=(page_width_mm * mm, page_height_mm * mm))
        except Exception as exc:
            raise SinkError(f"Cannot start PDF document: {exc}") from exc
        if title:
            self._canvas.setTitle(title)
        self._canvas.setCreator("image-pdf-converter")
        self._captions: list[str] = []
        self._finalized = False
        self._attempts = 0

    @property
    def page_width(self) -> float:
        return self._page_width

    @property
    def page_height(self) -> float:
        return self._page_height

    @property
    def page_count(self) -> int:
        return len(self._captions)

    @property
    def captions(self) -> list[str]:
        return list(self._captions)

    def stage_page(
        self, image: PreparedImage, rect: LayoutRect, caption: str, footer: str, font_size: float
    ) -> StagedPage:
        try:
            reader = ImageReader(BytesIO(image.data))
            reader.getSize()
            # drawImage decodes through the same call; the reader caches the pixels.
            reader.getRGBData()
        except Exception as exc:
            raise DecodeError(f"Cannot embed {caption}: {exc}", code="DRAW") from exc
        return StagedPage(reader=reader, rect=rect, caption=caption, footer=footer, font_size=font_size)

    def commit(self, page: StagedPage) -> int:
        """Draw a staged page and close it. Returns the new page count.

        Drawing errors are reported as ``DecodeError`` with code ``DRAW``; the
        document is left exactly as it was before the call.
        """
        if self._finalized:
            raise SinkError("Document already finalized")
        pdf = self._canvas
        self._attempts += 1
        form_name = f"item{self._attempts}"
        pdf.beginForm(form_name)
        try:
            self._draw(page)
        except Exception as exc:
            self._close_form()
            raise DecodeError(f"Failed to draw page for {page.caption}: {exc}", code="DRAW") from exc
        self._close_form()
        try:
            pdf.doForm(form_name)
            pdf.showPage()
        except Exception as exc:
            raise SinkError(f"Cannot add page for {page.caption}: {exc}") from exc
        self._captions.append(page.caption)
        return self.page_count

    def _draw(self, page: StagedPage) -> None:
        pdf = self._canvas
        rect = page.rect
        # ReportLab measures from the bottom-left corner.
        bottom = self._page_height - rect.y - rect.height
        pdf.drawImage(
            page.reader,
            rect.x * mm,
            bottom * mm,
            width=rect.width * mm,
            height=rect.height * mm,
            mask="auto",
        )
        pdf.setFillColorRGB(*CAPTION_GREY)
        pdf.setFont(CAPTION_FONT, page.font_size)
        pdf.drawString(self._margin * mm, CAPTION_BASELINE_MM * mm, page.caption)
        pdf.setFont(CAPTION_FONT, FOOTER_FONT_SIZE)
        pdf.drawRightString((self._page_width - self._margin) * mm, CAPTION_BASELINE_MM * mm, page.footer)

    def _close_form(self) -> None:
        try:
            self._canvas.endForm()
        except Exception as exc:
            raise SinkError(f"Cannot close page form: {exc}") from exc

    def finalize(self) -> bytes:
        if self._finalized:
            raise SinkError("Document already finalized")
        self._finalized = True
        try:
            self._canvas.save()
            return self._buffer.getvalue()
        except Exception as exc:
            raise SinkError(f"Cannot serialize PDF document: {exc}") from exc
        finally:
            self._buffer.close()


__all__ = ["PdfDocument", "StagedPage"]
