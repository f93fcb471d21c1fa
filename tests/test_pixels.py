"""Unit tests for the canonical pixel buffer and shared normalization."""

import numpy as np
import pytest

from svg2pdf_images.errors import ImageMemoryError, ImageParseError
from svg2pdf_images.pixels import (
    DecodedImage,
    DecodeOptions,
    PixelBuffer,
    bgra_to_rgba,
    check_dimensions,
    premultiply,
    rgb_to_bgra,
)


# ---------------------------------------------------------------------------
# PixelBuffer
# ---------------------------------------------------------------------------


class TestPixelBuffer:
    """Row writes are bounds-checked against the allocated buffer."""

    def test_fill_and_finish(self):
        buf = PixelBuffer(2, 2)
        buf.write_row(0, bytes(range(8)))
        buf.write_row(1, np.arange(8, 16, dtype=np.uint8))
        image = buf.finish()
        assert image == DecodedImage(bytes(range(16)), 2, 2)
        assert image.stride == 8

    def test_rows_any_order(self):
        buf = PixelBuffer(1, 2)
        buf.write_row(1, b"\x02" * 4)
        buf.write_row(0, b"\x01" * 4)
        assert buf.finish().pixels == b"\x01" * 4 + b"\x02" * 4

    @pytest.mark.parametrize("y", [-1, 2, 100])
    def test_row_index_out_of_range(self, y):
        buf = PixelBuffer(1, 2)
        with pytest.raises(ImageParseError, match="outside image"):
            buf.write_row(y, b"\x00" * 4)

    @pytest.mark.parametrize("length", [0, 3, 5, 8])
    def test_row_length_checked(self, length):
        buf = PixelBuffer(1, 2)
        with pytest.raises(ImageParseError, match="expected 4"):
            buf.write_row(0, b"\x00" * length)

    def test_incomplete_image(self):
        buf = PixelBuffer(1, 3)
        buf.write_row(0, b"\x00" * 4)
        with pytest.raises(ImageParseError, match="Only 1 of 3"):
            buf.finish()

    def test_rewritten_row_counts_once(self):
        buf = PixelBuffer(1, 2)
        buf.write_row(0, b"\x01" * 4)
        buf.write_row(0, b"\x02" * 4)
        with pytest.raises(ImageParseError, match="Only 1 of 2"):
            buf.finish()

    def test_rewritten_row_last_write_wins(self):
        buf = PixelBuffer(1, 2)
        buf.write_row(0, b"\x01" * 4)
        buf.write_row(1, b"\x03" * 4)
        buf.write_row(0, b"\x02" * 4)
        assert buf.finish().pixels == b"\x02" * 4 + b"\x03" * 4

    @pytest.mark.parametrize("width, height", [(0, 1), (1, 0), (-2, 5)])
    def test_invalid_dimensions(self, width, height):
        with pytest.raises(ImageParseError):
            PixelBuffer(width, height)

    def test_pixel_limit(self):
        with pytest.raises(ImageMemoryError, match="exceeds limit"):
            PixelBuffer(4, 4, DecodeOptions(max_pixels=15))

    def test_at_pixel_limit(self):
        check_dimensions(4, 4, DecodeOptions(max_pixels=16))


# ---------------------------------------------------------------------------
# Normalization helpers
# ---------------------------------------------------------------------------


class TestRgbToBgra:
    """Channel reordering and alpha synthesis."""

    def test_opaque(self):
        rgb = np.array([[10, 20, 30], [40, 50, 60]], dtype=np.uint8)
        assert rgb_to_bgra(rgb).tolist() == [[30, 20, 10, 255], [60, 50, 40, 255]]

    def test_with_alpha(self):
        rgb = np.array([[[1, 2, 3]]], dtype=np.uint8)
        alpha = np.array([[7]], dtype=np.uint8)
        assert rgb_to_bgra(rgb, alpha).tolist() == [[[3, 2, 1, 7]]]


class TestPremultiply:
    """floor(channel * alpha / 255), alpha untouched."""

    def test_values(self):
        bgra = np.array([[50, 100, 200, 128]], dtype=np.uint8)
        assert premultiply(bgra).tolist() == [[25, 50, 100, 128]]

    def test_opaque_unchanged(self):
        bgra = np.array([[1, 128, 255, 255]], dtype=np.uint8)
        assert premultiply(bgra).tolist() == [[1, 128, 255, 255]]

    def test_transparent_zeroed(self):
        bgra = np.array([[255, 255, 255, 0]], dtype=np.uint8)
        assert premultiply(bgra).tolist() == [[0, 0, 0, 0]]

    def test_floor(self):
        # 255 * 1 / 255 = 1; 254 * 1 / 255 = 0.996 -> 0
        bgra = np.array([[255, 254, 1, 1]], dtype=np.uint8)
        assert premultiply(bgra).tolist() == [[1, 0, 0, 1]]

    def test_never_exceeds_alpha(self):
        values = np.arange(256, dtype=np.uint8)
        c, a = np.meshgrid(values, values)
        bgra = np.stack([c, c, c, a], axis=-1)
        out = premultiply(bgra.copy())
        assert (out[..., :3] <= out[..., 3:4]).all()

    def test_in_place(self):
        bgra = np.array([[100, 100, 100, 0]], dtype=np.uint8)
        assert premultiply(bgra) is bgra
        assert bgra.tolist() == [[0, 0, 0, 0]]


def test_bgra_to_rgba():
    pixels = bytes([1, 2, 3, 4, 5, 6, 7, 8])
    rgba = bgra_to_rgba(pixels, 2, 1)
    assert rgba.shape == (1, 2, 4)
    assert rgba.tolist() == [[[3, 2, 1, 4], [7, 6, 5, 8]]]
