"""Shared test fixtures and helpers for svg2pdf-images tests."""

from __future__ import annotations

import base64
import io
import struct
import zlib

from PIL import Image

from svg2pdf_images.dispatch import DecodeOutcome, NOT_THIS_FORMAT
from svg2pdf_images.pixels import DecodedImage

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"

_CHANNELS = {0: 1, 2: 3, 3: 1, 4: 2, 6: 4}

_ADAM7 = (
    (0, 0, 8, 8),
    (4, 0, 8, 8),
    (0, 4, 4, 8),
    (2, 0, 4, 4),
    (0, 2, 2, 4),
    (1, 0, 2, 2),
    (0, 1, 1, 2),
)


# ---------------------------------------------------------------------------
# PNG encoding
# ---------------------------------------------------------------------------


def png_chunk(ctype: bytes, body: bytes) -> bytes:
    """Build one PNG chunk with a correct CRC."""
    crc = zlib.crc32(ctype + body) & 0xFFFFFFFF
    return struct.pack(">I", len(body)) + ctype + body + struct.pack(">I", crc)


def _flatten(row: list) -> list[int]:
    out: list[int] = []
    for px in row:
        if isinstance(px, int):
            out.append(px)
        else:
            out.extend(px)
    return out


def _pack_row(samples: list[int], depth: int) -> bytes:
    if depth == 8:
        return bytes(samples)
    if depth == 16:
        return b"".join(struct.pack(">H", s) for s in samples)
    out = bytearray()
    acc = 0
    nbits = 0
    for s in samples:
        acc = (acc << depth) | s
        nbits += depth
        if nbits == 8:
            out.append(acc)
            acc = 0
            nbits = 0
    if nbits:
        out.append(acc << (8 - nbits))
    return bytes(out)


def _paeth(a: int, b: int, c: int) -> int:
    p = a + b - c
    pa, pb, pc = abs(p - a), abs(p - b), abs(p - c)
    if pa <= pb and pa <= pc:
        return a
    return b if pb <= pc else c


def _filter_row(filter_type: int, row: bytes, prev: bytes, bpp: int) -> bytes:
    out = bytearray(len(row))
    for i in range(len(row)):
        a = row[i - bpp] if i >= bpp else 0
        b = prev[i]
        c = prev[i - bpp] if i >= bpp else 0
        pred = (0, a, b, (a + b) // 2, _paeth(a, b, c))[filter_type]
        out[i] = (row[i] - pred) & 0xFF
    return bytes([filter_type]) + bytes(out)


def make_png(
    pixels: list[list],
    color_type: int,
    bit_depth: int = 8,
    *,
    palette: list[tuple[int, int, int]] | None = None,
    trns: bytes | None = None,
    interlace: bool = False,
    filter_type: int = 0,
    extra_chunks: tuple[tuple[bytes, bytes], ...] = (),
) -> bytes:
    """Encode *pixels* as a PNG stream.

    Args:
        pixels: Rows of pixels, top first.  Each pixel is an int for
            single-channel color types or a tuple of samples.
        color_type: PNG color type (0, 2, 3, 4 or 6).
        bit_depth: Bits per sample.
        palette: ``PLTE`` entries for color type 3.
        trns: Raw ``tRNS`` chunk body.
        interlace: Write Adam7 interlaced data.
        filter_type: Scanline filter applied to every row (0-4).
        extra_chunks: ``(type, body)`` chunks inserted before ``IDAT``.
    """
    height = len(pixels)
    width = len(pixels[0])
    bpp = max(1, _CHANNELS[color_type] * bit_depth // 8)
    passes = _ADAM7 if interlace else ((0, 0, 1, 1),)

    raw = bytearray()
    for x0, y0, dx, dy in passes:
        rows = [_flatten(pixels[y][x0::dx]) for y in range(y0, height, dy)]
        if not rows or not rows[0]:
            continue
        packed = [_pack_row(r, bit_depth) for r in rows]
        prev = bytes(len(packed[0]))
        for p in packed:
            raw += _filter_row(filter_type, p, prev, bpp)
            prev = p

    ihdr = struct.pack(
        ">IIBBBBB", width, height, bit_depth, color_type, 0, 0, int(interlace),
    )
    out = PNG_SIGNATURE + png_chunk(b"IHDR", ihdr)
    if palette is not None:
        out += png_chunk(b"PLTE", bytes(c for rgb in palette for c in rgb))
    if trns is not None:
        out += png_chunk(b"tRNS", trns)
    for ctype, body in extra_chunks:
        out += png_chunk(ctype, body)
    out += png_chunk(b"IDAT", zlib.compress(bytes(raw)))
    out += png_chunk(b"IEND", b"")
    return out


def make_rgba_png(width: int = 2, height: int = 2, pixel=(200, 100, 50, 255)) -> bytes:
    """Solid-color 8-bit RGBA PNG."""
    return make_png([[pixel] * width for _ in range(height)], 6)


# ---------------------------------------------------------------------------
# JPEG / Pillow helpers
# ---------------------------------------------------------------------------


def make_jpeg(
    mode: str = "RGB",
    size: tuple[int, int] = (4, 3),
    color=(200, 100, 50),
    quality: int = 95,
) -> bytes:
    """Encode a solid-color JPEG with Pillow."""
    buf = io.BytesIO()
    Image.new(mode, size, color).save(buf, format="JPEG", quality=quality)
    return buf.getvalue()


def pillow_png(img: Image.Image) -> bytes:
    """Encode a Pillow image as PNG (Pillow picks the row filters)."""
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


def data_uri(data: bytes, mime_type: str = "image/png") -> str:
    """Build a ``data:<mime>;base64,`` reference."""
    return f"data:{mime_type};base64,{base64.b64encode(data).decode('ascii')}"


# ---------------------------------------------------------------------------
# Pixel access / instrumentation
# ---------------------------------------------------------------------------


def pixel_at(image: DecodedImage, x: int, y: int) -> tuple[int, int, int, int]:
    """Return the ``(b, g, r, a)`` bytes of one canonical pixel."""
    offset = (y * image.width + x) * 4
    return tuple(image.pixels[offset:offset + 4])


class CountingDecoder:
    """Wrap a decoder and count how often it is asked to decode."""

    def __init__(self, inner) -> None:
        self._inner = inner
        self.name = inner.name
        self.mime_types = inner.mime_types
        self.calls = 0

    def decode(self, data: bytes) -> DecodeOutcome:
        self.calls += 1
        return self._inner.decode(data)


class DecliningDecoder:
    """Decoder that never recognizes anything."""

    def __init__(self, name: str = "never", mime_types: tuple[str, ...] = ()) -> None:
        self.name = name
        self.mime_types = mime_types
        self.calls = 0

    def decode(self, data: bytes) -> DecodeOutcome:
        self.calls += 1
        return NOT_THIS_FORMAT
