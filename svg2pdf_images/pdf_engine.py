"""Render engine that places decoded images on PDF pages (pymupdf).

Lengths are converted to PDF points here: ``px`` at 96 per inch,
absolute units by their usual factors, ``em``/``ex`` against a font size
and percentages against the page size along the length's orientation.
"""

from __future__ import annotations

import logging
import math
from pathlib import Path
from typing import Iterable

import pymupdf

from svg2pdf_images.length import Length, LengthUnit, Orientation
from svg2pdf_images.node import ImageNode
from svg2pdf_images.pixels import bgra_to_rgba
from svg2pdf_images.resolver import ImageResourceResolver

_log = logging.getLogger("pdf")

DEFAULT_FONT_SIZE = 12.0
"""Font size in points used for ``em`` / ``ex`` lengths."""

DEFAULT_PAGE_SIZE = (595.0, 842.0)
"""A4 portrait in points."""

_POINTS_PER_UNIT = {
    LengthUnit.PX: 72.0 / 96.0,
    LengthUnit.PT: 1.0,
    LengthUnit.PC: 12.0,
    LengthUnit.IN: 72.0,
    LengthUnit.CM: 72.0 / 2.54,
    LengthUnit.MM: 72.0 / 25.4,
}


def to_points(
    length: Length,
    page_rect: pymupdf.Rect,
    font_size: float = DEFAULT_FONT_SIZE,
) -> float:
    """Convert *length* to PDF points for a page of size *page_rect*."""
    if length.unit in _POINTS_PER_UNIT:
        return length.value * _POINTS_PER_UNIT[length.unit]
    if length.unit is LengthUnit.EM:
        return length.value * font_size
    if length.unit is LengthUnit.EX:
        return length.value * font_size / 2
    if length.orientation is Orientation.HORIZONTAL:
        reference = page_rect.width
    elif length.orientation is Orientation.VERTICAL:
        reference = page_rect.height
    else:
        reference = math.hypot(page_rect.width, page_rect.height) / math.sqrt(2)
    return length.value * reference / 100.0


class PdfRenderEngine:
    """Place canonical pixel buffers on one pymupdf page."""

    def __init__(self, page: pymupdf.Page, font_size: float = DEFAULT_FONT_SIZE) -> None:
        self._page = page
        self._font_size = font_size

    def render_image(
        self,
        pixels: bytes,
        pixel_width: int,
        pixel_height: int,
        x: Length,
        y: Length,
        width: Length,
        height: Length,
    ) -> None:
        page_rect = self._page.rect
        x0 = to_points(x, page_rect, self._font_size)
        y0 = to_points(y, page_rect, self._font_size)
        rect = pymupdf.Rect(
            x0, y0,
            x0 + to_points(width, page_rect, self._font_size),
            y0 + to_points(height, page_rect, self._font_size),
        )
        # MuPDF pixmaps with alpha hold premultiplied samples, as ours are.
        rgba = bgra_to_rgba(pixels, pixel_width, pixel_height)
        pix = pymupdf.Pixmap(pymupdf.csRGB, pixel_width, pixel_height, rgba.tobytes(), True)
        # Centered and proportional, i.e. "xMidYMid meet".
        self._page.insert_image(rect, pixmap=pix)
        _log.debug(
            "  placed %dx%d px image at (%.1f, %.1f, %.1f, %.1f) pt",
            pixel_width, pixel_height, rect.x0, rect.y0, rect.x1, rect.y1,
        )


def render_nodes_to_pdf(
    nodes: Iterable[ImageNode],
    output: Path,
    resolver: ImageResourceResolver,
    page_size: tuple[float, float] = DEFAULT_PAGE_SIZE,
) -> None:
    """Render *nodes* onto a single new PDF page and save it to *output*.

    Errors from any node propagate; nothing is written in that case.
    """
    doc = pymupdf.open()
    try:
        page = doc.new_page(width=page_size[0], height=page_size[1])
        engine = PdfRenderEngine(page)
        for node in nodes:
            node.render(engine, resolver)
        doc.save(str(output))
    finally:
        doc.close()
    _log.info("  Saved %s", output)
