"""Canonical pixel buffer and the normalization shared by all decoders.

Every decoder produces the same layout: 4 bytes per pixel in blue, green,
red, alpha order, rows packed top-first with a stride of ``width * 4``
and color channels premultiplied by alpha.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from svg2pdf_images.errors import ImageMemoryError, ImageParseError

BYTES_PER_PIXEL = 4

DEFAULT_MAX_PIXELS = 1 << 26
"""Largest width x height accepted before allocating an output buffer."""

ALPHA_OPAQUE = 0xFF


@dataclass(frozen=True)
class DecodeOptions:
    """Runtime limits and defaults for decoding."""

    max_pixels: int = DEFAULT_MAX_PIXELS
    """Images with more pixels than this fail with ``NO_MEMORY``."""
    default_mime_type: str = "image/png"
    """Mime type assumed for inline references that name none."""


@dataclass(frozen=True)
class DecodedImage:
    """A fully decoded image in the canonical layout."""

    pixels: bytes
    """Premultiplied BGRA bytes, ``width * height * 4`` long."""
    width: int
    """Pixel width."""
    height: int
    """Pixel height."""

    @property
    def stride(self) -> int:
        """Bytes per row."""
        return self.width * BYTES_PER_PIXEL


class PixelBuffer:
    """Pre-sized output buffer filled one row at a time.

    The buffer is allocated once from the image dimensions; every row
    write is checked against the row index and stride so a decoder can
    never write outside it.

    Usage::

        buf = PixelBuffer(width, height, options)
        for y, row in enumerate(rows):
            buf.write_row(y, row)
        image = buf.finish()
    """

    def __init__(
        self,
        width: int,
        height: int,
        options: DecodeOptions | None = None,
    ) -> None:
        options = options or DecodeOptions()
        check_dimensions(width, height, options)
        self.width = width
        self.height = height
        self.stride = width * BYTES_PER_PIXEL
        try:
            self._data = bytearray(self.stride * height)
        except MemoryError as exc:
            raise ImageMemoryError(
                f"Cannot allocate {width}x{height} pixel buffer"
            ) from exc
        self._written = bytearray(height)

    def write_row(self, y: int, row: bytes | bytearray | memoryview | np.ndarray) -> None:
        """Copy one row of canonical pixels into row *y*."""
        if not 0 <= y < self.height:
            raise ImageParseError(
                f"Row index {y} outside image of height {self.height}"
            )
        data = row.tobytes() if isinstance(row, np.ndarray) else row
        if len(data) != self.stride:
            raise ImageParseError(
                f"Row {y} has {len(data)} bytes, expected {self.stride}"
            )
        offset = y * self.stride
        self._data[offset:offset + self.stride] = data
        self._written[y] = 1

    def finish(self) -> DecodedImage:
        """Return the completed image and release the working buffer."""
        rows = sum(self._written)
        if rows < self.height:
            raise ImageParseError(f"Only {rows} of {self.height} rows decoded")
        image = DecodedImage(bytes(self._data), self.width, self.height)
        self._data = bytearray()
        self._written = bytearray()
        return image


def check_dimensions(width: int, height: int, options: DecodeOptions) -> None:
    """Reject empty images and images over the configured pixel limit."""
    if width <= 0 or height <= 0:
        raise ImageParseError(f"Invalid image dimensions {width}x{height}")
    if width * height > options.max_pixels:
        raise ImageMemoryError(
            f"Image {width}x{height} exceeds limit of {options.max_pixels} pixels"
        )


# ---------------------------------------------------------------------------
# Shared normalization
# ---------------------------------------------------------------------------


def rgb_to_bgra(rgb: np.ndarray, alpha: np.ndarray | None = None) -> np.ndarray:
    """Reorder ``(..., 3)`` RGB samples to BGRA.

    When *alpha* is ``None`` the alpha channel is synthesized fully
    opaque.
    """
    out = np.empty(rgb.shape[:-1] + (BYTES_PER_PIXEL,), dtype=np.uint8)
    out[..., 0] = rgb[..., 2]
    out[..., 1] = rgb[..., 1]
    out[..., 2] = rgb[..., 0]
    out[..., 3] = ALPHA_OPAQUE if alpha is None else alpha
    return out


def premultiply(bgra: np.ndarray) -> np.ndarray:
    """Scale blue, green and red by ``alpha / 255`` in place.

    Each channel becomes ``floor(value * alpha / 255)``; alpha is left
    unchanged.
    """
    alpha = bgra[..., 3].astype(np.uint32)
    for channel in range(3):
        bgra[..., channel] = (bgra[..., channel].astype(np.uint32) * alpha) // 255
    return bgra


def bgra_to_rgba(pixels: bytes, width: int, height: int) -> np.ndarray:
    """Return canonical *pixels* as an ``(height, width, 4)`` RGBA array.

    Color channels stay premultiplied; only the channel order changes.
    """
    bgra = np.frombuffer(pixels, dtype=np.uint8).reshape(height, width, BYTES_PER_PIXEL)
    return bgra[..., [2, 1, 0, 3]]
