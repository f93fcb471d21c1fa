"""PNG decoding into the canonical BGRA pixel layout.

Reads the chunk stream directly (CRC-checked), inflates the image data
with :mod:`zlib`, reverses the scanline filters and then normalizes every
supported color type / bit depth combination into premultiplied BGRA.

Normalization order (each step only applies when the source needs it):

1. palette -> RGB expansion
2. sub-8-bit grayscale -> 8-bit expansion
3. ``tRNS`` chunk -> alpha channel promotion
4. 16-bit -> 8-bit truncation (high byte kept)
5. sub-8-bit samples -> one sample per byte
6. grayscale (with or without alpha) -> RGB
7. Adam7 de-interlacing
8. channel reordering to blue, green, red
9. opaque alpha synthesis when the source has no alpha
10. alpha premultiplication

Steps 5 and 7 are positional rather than per-pixel: they happen while
scanlines are read (:func:`_read_samples`), so the per-pixel steps below
always see one sample per array element at full resolution.  The
``tRNS`` comparison in step 3 uses the original sample values, before
any depth change.
"""

from __future__ import annotations

import logging
import struct
import zlib
from dataclasses import dataclass
from enum import IntEnum

import numpy as np

from svg2pdf_images.dispatch import NOT_THIS_FORMAT, DecodeOutcome
from svg2pdf_images.errors import ImageMemoryError, ImageParseError
from svg2pdf_images.pixels import (
    DecodeOptions,
    PixelBuffer,
    check_dimensions,
    premultiply,
    rgb_to_bgra,
)

_log = logging.getLogger("png")

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"

_ADAM7 = (
    (0, 0, 8, 8),
    (4, 0, 8, 8),
    (0, 4, 4, 8),
    (2, 0, 4, 4),
    (0, 2, 2, 4),
    (1, 0, 2, 2),
    (0, 1, 1, 2),
)
"""Adam7 passes as ``(x0, y0, dx, dy)``."""


class ColorType(IntEnum):
    """PNG ``IHDR`` color types."""

    GRAY = 0
    RGB = 2
    PALETTE = 3
    GRAY_ALPHA = 4
    RGBA = 6


_CHANNELS = {
    ColorType.GRAY: 1,
    ColorType.RGB: 3,
    ColorType.PALETTE: 1,
    ColorType.GRAY_ALPHA: 2,
    ColorType.RGBA: 4,
}

_ALLOWED_DEPTHS = {
    ColorType.GRAY: (1, 2, 4, 8, 16),
    ColorType.RGB: (8, 16),
    ColorType.PALETTE: (1, 2, 4, 8),
    ColorType.GRAY_ALPHA: (8, 16),
    ColorType.RGBA: (8, 16),
}


# ---------------------------------------------------------------------------
# Chunk parsing
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PngHeader:
    """Parsed ``IHDR`` chunk."""

    width: int
    height: int
    bit_depth: int
    color_type: ColorType
    interlaced: bool

    @property
    def channels(self) -> int:
        return _CHANNELS[self.color_type]


@dataclass
class _PngChunks:
    """The chunks the decoder needs, collected from the stream."""

    header: PngHeader
    palette: np.ndarray | None
    transparency: bytes | None
    image_data: bytes


def _parse_header(body: bytes) -> PngHeader:
    if len(body) != 13:
        raise ImageParseError(f"IHDR chunk has {len(body)} bytes, expected 13")
    width, height, depth, color, compression, filter_method, interlace = (
        struct.unpack(">IIBBBBB", body)
    )
    try:
        color_type = ColorType(color)
    except ValueError:
        raise ImageParseError(f"Invalid PNG color type {color}") from None
    if depth not in _ALLOWED_DEPTHS[color_type]:
        raise ImageParseError(
            f"Invalid bit depth {depth} for color type {color_type.name}"
        )
    if compression != 0 or filter_method != 0:
        raise ImageParseError("Unknown PNG compression or filter method")
    if interlace not in (0, 1):
        raise ImageParseError(f"Unknown PNG interlace method {interlace}")
    if width == 0 or height == 0 or width >= 1 << 31 or height >= 1 << 31:
        raise ImageParseError(f"Invalid PNG dimensions {width}x{height}")
    return PngHeader(width, height, depth, color_type, interlace == 1)


def _read_chunks(data: bytes) -> _PngChunks:
    """Walk the chunk stream after the signature.

    Raises:
        ImageParseError: On truncation, CRC mismatch, bad chunk order or
            an unknown critical chunk.
    """
    header: PngHeader | None = None
    palette: np.ndarray | None = None
    transparency: bytes | None = None
    image_data = bytearray()
    seen_end = False

    pos = len(PNG_SIGNATURE)
    while pos < len(data):
        if pos + 8 > len(data):
            raise ImageParseError("Truncated PNG chunk header")
        length, ctype = struct.unpack_from(">I4s", data, pos)
        start = pos + 8
        end = start + length
        if end + 4 > len(data):
            raise ImageParseError(f"Truncated PNG chunk {ctype!r}")
        body = data[start:end]
        (crc,) = struct.unpack_from(">I", data, end)
        if zlib.crc32(ctype + body) & 0xFFFFFFFF != crc:
            raise ImageParseError(f"CRC mismatch in PNG chunk {ctype!r}")
        pos = end + 4

        if header is None and ctype != b"IHDR":
            raise ImageParseError(f"PNG chunk {ctype!r} before IHDR")

        if ctype == b"IHDR":
            if header is not None:
                raise ImageParseError("Duplicate IHDR chunk")
            header = _parse_header(body)
        elif ctype == b"PLTE":
            if length == 0 or length % 3 or length // 3 > 256:
                raise ImageParseError(f"Invalid PLTE chunk length {length}")
            palette = np.frombuffer(body, dtype=np.uint8).reshape(-1, 3)
        elif ctype == b"tRNS":
            transparency = body
        elif ctype == b"IDAT":
            image_data += body
        elif ctype == b"IEND":
            seen_end = True
            break
        elif not ctype[0] & 0x20:
            raise ImageParseError(f"Unknown critical PNG chunk {ctype!r}")
        else:
            _log.debug("  skipping ancillary chunk %r (%d bytes)", ctype, length)

    if header is None:
        raise ImageParseError("PNG stream has no IHDR chunk")
    if not image_data:
        raise ImageParseError("PNG stream has no IDAT chunk")
    if header.color_type is ColorType.PALETTE and palette is None:
        raise ImageParseError("Palette PNG without PLTE chunk")
    if not seen_end:
        _log.warning("PNG stream ends without IEND chunk")

    return _PngChunks(header, palette, transparency, bytes(image_data))


# ---------------------------------------------------------------------------
# Scanlines
# ---------------------------------------------------------------------------


def _passes(header: PngHeader) -> list[tuple[int, int, int, int, int, int]]:
    """Return ``(x0, y0, dx, dy, width, height)`` for each non-empty pass."""
    if not header.interlaced:
        return [(0, 0, 1, 1, header.width, header.height)]
    passes = []
    for x0, y0, dx, dy in _ADAM7:
        pw = (header.width - x0 + dx - 1) // dx
        ph = (header.height - y0 + dy - 1) // dy
        if pw > 0 and ph > 0:
            passes.append((x0, y0, dx, dy, pw, ph))
    return passes


def _row_bytes(header: PngHeader, width: int) -> int:
    return (width * header.channels * header.bit_depth + 7) // 8


def _paeth(a: int, b: int, c: int) -> int:
    p = a + b - c
    pa = abs(p - a)
    pb = abs(p - b)
    pc = abs(p - c)
    if pa <= pb and pa <= pc:
        return a
    if pb <= pc:
        return b
    return c


def _unfilter_row(
    filter_type: int,
    line: bytearray,
    prev: bytearray,
    bpp: int,
) -> None:
    """Reverse one scanline filter in place."""
    n = len(line)
    if filter_type == 0:
        return
    if filter_type == 1:
        for i in range(bpp, n):
            line[i] = (line[i] + line[i - bpp]) & 0xFF
    elif filter_type == 2:
        line[:] = (
            np.frombuffer(line, dtype=np.uint8) + np.frombuffer(prev, dtype=np.uint8)
        ).tobytes()
    elif filter_type == 3:
        for i in range(n):
            left = line[i - bpp] if i >= bpp else 0
            line[i] = (line[i] + ((left + prev[i]) >> 1)) & 0xFF
    elif filter_type == 4:
        for i in range(n):
            left = line[i - bpp] if i >= bpp else 0
            upper_left = prev[i - bpp] if i >= bpp else 0
            line[i] = (line[i] + _paeth(left, prev[i], upper_left)) & 0xFF
    else:
        raise ImageParseError(f"Unknown PNG filter type {filter_type}")


def _unpack_samples(
    rows: np.ndarray,
    width: int,
    header: PngHeader,
) -> np.ndarray:
    """Split raw scanline bytes into an ``(h, w, channels)`` uint16 array."""
    height = rows.shape[0]
    channels = header.channels
    depth = header.bit_depth
    if depth == 8:
        samples = rows[:, :width * channels].reshape(height, width, channels)
        return samples.astype(np.uint16)
    if depth == 16:
        pairs = rows[:, :width * channels * 2].reshape(height, width * channels, 2)
        samples = (pairs[..., 0].astype(np.uint16) << 8) | pairs[..., 1]
        return samples.reshape(height, width, channels)
    # 1, 2 or 4 bits per sample, single channel, leftmost pixel in the
    # high-order bits.
    bits = np.unpackbits(rows, axis=1)
    groups = bits.reshape(height, -1, depth)[:, :width, :]
    weights = 1 << np.arange(depth - 1, -1, -1)
    samples = (groups.astype(np.uint16) * weights.astype(np.uint16)).sum(
        axis=-1, dtype=np.uint16,
    )
    return samples.reshape(height, width, 1)


def _read_samples(header: PngHeader, image_data: bytes) -> np.ndarray:
    """Inflate, unfilter, unpack and de-interlace the image data.

    Returns:
        ``(height, width, channels)`` uint16 array of raw sample values
        at the source bit depth.
    """
    passes = _passes(header)
    bits_per_pixel = header.channels * header.bit_depth
    bpp = max(1, bits_per_pixel // 8)
    expected = sum(ph * (1 + _row_bytes(header, pw)) for *_, pw, ph in passes)

    try:
        raw = zlib.decompressobj().decompress(image_data, expected)
    except zlib.error as exc:
        raise ImageParseError(f"Corrupt PNG image data: {exc}") from exc
    if len(raw) < expected:
        raise ImageParseError(
            f"PNG image data truncated ({len(raw)} of {expected} bytes)"
        )

    samples = np.zeros(
        (header.height, header.width, header.channels), dtype=np.uint16,
    )
    offset = 0
    for x0, y0, dx, dy, pw, ph in passes:
        row_bytes = _row_bytes(header, pw)
        rows = np.empty((ph, row_bytes), dtype=np.uint8)
        prev = bytearray(row_bytes)
        for y in range(ph):
            filter_type = raw[offset]
            line = bytearray(raw[offset + 1:offset + 1 + row_bytes])
            offset += 1 + row_bytes
            _unfilter_row(filter_type, line, prev, bpp)
            rows[y] = np.frombuffer(line, dtype=np.uint8)
            prev = line
        samples[y0::dy, x0::dx] = _unpack_samples(rows, pw, header)
    return samples


# ---------------------------------------------------------------------------
# Normalization
# ---------------------------------------------------------------------------


def _transparency_alpha(
    samples: np.ndarray,
    header: PngHeader,
    trns: bytes,
    palette: np.ndarray | None,
    full: int,
) -> np.ndarray | None:
    """Build an alpha plane from a ``tRNS`` chunk, or ``None`` if unusable."""
    mask = (1 << header.bit_depth) - 1
    if header.color_type is ColorType.PALETTE:
        assert palette is not None
        count = min(len(trns), len(palette))
        if len(trns) > len(palette):
            _log.warning("tRNS chunk longer than palette; extra entries ignored")
        table = np.full(len(palette), 0xFF, dtype=np.uint16)
        table[:count] = np.frombuffer(trns[:count], dtype=np.uint8)
        return table[samples[..., 0]]
    if header.color_type is ColorType.GRAY and len(trns) >= 2:
        (key,) = struct.unpack_from(">H", trns)
        match = samples[..., 0] == (key & mask)
    elif header.color_type is ColorType.RGB and len(trns) >= 6:
        key = np.array(struct.unpack_from(">HHH", trns), dtype=np.uint16) & mask
        match = np.all(samples == key, axis=-1)
    else:
        _log.warning(
            "Ignoring invalid tRNS chunk for color type %s", header.color_type.name,
        )
        return None
    return np.where(match, 0, full).astype(np.uint16)


def _normalize(chunks: _PngChunks, samples: np.ndarray) -> np.ndarray:
    """Turn raw samples into premultiplied ``(h, w, 4)`` BGRA."""
    header = chunks.header
    color_type = header.color_type
    depth = header.bit_depth

    color = samples
    alpha: np.ndarray | None = None
    if color_type is ColorType.GRAY_ALPHA:
        color, alpha = samples[..., :1], samples[..., 1]
    elif color_type is ColorType.RGBA:
        color, alpha = samples[..., :3], samples[..., 3]

    # 1. palette -> RGB
    if color_type is ColorType.PALETTE:
        assert chunks.palette is not None
        if int(samples.max()) >= len(chunks.palette):
            raise ImageParseError("PNG palette index out of range")
        color = chunks.palette[samples[..., 0]].astype(np.uint16)
        depth = 8

    # 2. sub-8-bit gray -> 8-bit
    if color_type is ColorType.GRAY and depth < 8:
        color = color * 255 // ((1 << depth) - 1)
        depth = 8

    # 3. tRNS -> alpha
    if chunks.transparency is not None:
        if alpha is None:
            alpha = _transparency_alpha(
                samples, header, chunks.transparency, chunks.palette,
                (1 << depth) - 1,
            )
        else:
            _log.warning("Ignoring tRNS chunk on image with alpha channel")

    # 4. 16 -> 8 bit
    if depth == 16:
        color = color >> 8
        if alpha is not None:
            alpha = alpha >> 8

    # 6. gray -> RGB
    if color.shape[-1] == 1:
        color = np.repeat(color, 3, axis=-1)

    # 8-10. BGR order, alpha fill, premultiply
    bgra = rgb_to_bgra(
        color.astype(np.uint8),
        None if alpha is None else alpha.astype(np.uint8),
    )
    return premultiply(bgra)


# ---------------------------------------------------------------------------
# Decoder
# ---------------------------------------------------------------------------


class PngDecoder:
    """Decode PNG bytes, or report that the bytes are not PNG."""

    name = "png"
    mime_types = ("image/png", "image/x-png", "image/apng")

    def __init__(self, options: DecodeOptions | None = None) -> None:
        self._options = options or DecodeOptions()

    def decode(self, data: bytes) -> DecodeOutcome:
        """Decode *data* into a :class:`DecodedImage`.

        Returns:
            The decoded image, or ``NOT_THIS_FORMAT`` when *data* does not
            start with the PNG signature.

        Raises:
            ImageParseError: Corrupt or unsupported PNG data.
            ImageMemoryError: The image exceeds the pixel limit or the
                output buffer cannot be allocated.
        """
        if not data.startswith(PNG_SIGNATURE):
            return NOT_THIS_FORMAT

        chunks = _read_chunks(data)
        header = chunks.header
        _log.debug(
            "  PNG %dx%d, %d-bit %s%s",
            header.width, header.height, header.bit_depth,
            header.color_type.name, ", interlaced" if header.interlaced else "",
        )

        check_dimensions(header.width, header.height, self._options)
        try:
            bgra = _normalize(chunks, _read_samples(header, chunks.image_data))
        except MemoryError as exc:
            raise ImageMemoryError(
                f"Out of memory decoding {header.width}x{header.height} PNG"
            ) from exc

        # Allocated only once every row is ready, so no error exit leaves
        # a partly filled output buffer behind.
        buffer = PixelBuffer(header.width, header.height, self._options)
        for y in range(header.height):
            buffer.write_row(y, bgra[y])
        return buffer.finish()
