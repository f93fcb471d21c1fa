"""JPEG decoding into the canonical BGRA pixel layout (Pillow / libjpeg).

JPEG has no transparency, so every pixel is written fully opaque and no
premultiplication pass is run.  Grayscale sources replicate their single
channel into blue, green and red.
"""

from __future__ import annotations

import io
import logging

import numpy as np
from PIL import Image, UnidentifiedImageError

from svg2pdf_images.dispatch import NOT_THIS_FORMAT, DecodeOutcome
from svg2pdf_images.errors import ImageMemoryError, ImageParseError
from svg2pdf_images.pixels import (
    DecodeOptions,
    PixelBuffer,
    check_dimensions,
    rgb_to_bgra,
)

_log = logging.getLogger("jpeg")

JPEG_SOI = b"\xff\xd8"
"""Start-of-image marker every JPEG stream begins with."""


def _row_to_bgra(row: np.ndarray, components: int) -> np.ndarray:
    """Convert one ``(width, components)`` scanline to ``(width, 4)`` BGRA."""
    if components == 1:
        return rgb_to_bgra(np.repeat(row, 3, axis=-1))
    return rgb_to_bgra(row[:, :3])


class JpegDecoder:
    """Decode JPEG bytes, or report that the bytes are not JPEG."""

    name = "jpeg"
    mime_types = ("image/jpeg", "image/jpg", "image/pjpeg")

    def __init__(self, options: DecodeOptions | None = None) -> None:
        self._options = options or DecodeOptions()

    def decode(self, data: bytes) -> DecodeOutcome:
        """Decode *data* scanline by scanline into a :class:`DecodedImage`.

        Returns:
            The decoded image, or ``NOT_THIS_FORMAT`` when *data* does not
            start with a start-of-image marker.

        Raises:
            ImageParseError: Corrupt stream or unsupported parameters.
            ImageMemoryError: The image exceeds the pixel limit or the
                output buffer cannot be allocated.
        """
        if not data.startswith(JPEG_SOI):
            return NOT_THIS_FORMAT

        try:
            with Image.open(io.BytesIO(data), formats=["JPEG"]) as img:
                width, height = img.size
                check_dimensions(width, height, self._options)
                img.load()
                components = len(img.getbands())
                raster = img.tobytes()
        except Image.DecompressionBombError as exc:
            raise ImageMemoryError(str(exc)) from exc
        except MemoryError as exc:
            raise ImageMemoryError("Out of memory decoding JPEG") from exc
        except (UnidentifiedImageError, OSError, SyntaxError, ValueError) as exc:
            raise ImageParseError(f"Corrupt or unsupported JPEG: {exc}") from exc

        _log.debug("  JPEG %dx%d, %d component(s)", width, height, components)
        if components not in (1, 3):
            _log.warning(
                "JPEG has %d components; using the first three as RGB",
                components,
            )

        buffer = PixelBuffer(width, height, self._options)
        row_stride = width * components
        for y in range(height):
            row = np.frombuffer(
                raster, dtype=np.uint8, count=row_stride, offset=y * row_stride,
            ).reshape(width, components)
            buffer.write_row(y, _row_to_bgra(row, components))
        return buffer.finish()
