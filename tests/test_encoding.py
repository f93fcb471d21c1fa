"""Unit tests for lenient base64 decoding."""

import base64

import pytest

from svg2pdf_images.encoding import decode_base64


_SAMPLE = bytes(range(256)) * 3


# ---------------------------------------------------------------------------
# Valid input
# ---------------------------------------------------------------------------


class TestValidPayloads:
    """decode_base64() on well-formed payloads."""

    def test_matches_stdlib(self):
        encoded = base64.b64encode(_SAMPLE)
        assert decode_base64(encoded) == _SAMPLE

    def test_accepts_str(self):
        assert decode_base64("aGVsbG8=") == b"hello"

    @pytest.mark.parametrize("text, expected", [
        ("TQ==", b"M"),
        ("TWE=", b"Ma"),
        ("TWFu", b"Man"),
        ("TQ", b"M"),
        ("TWE", b"Ma"),
    ])
    def test_padding_optional(self, text, expected):
        assert decode_base64(text) == expected

    def test_whitespace_and_padding_anywhere(self):
        """Interleaved whitespace and '=' never change the result."""
        clean = base64.b64encode(_SAMPLE).decode("ascii")
        noisy = "".join(
            c + (" \n\t=\r"[i % 5] if i % 3 == 0 else "")
            for i, c in enumerate(clean)
        )
        assert decode_base64(noisy) == decode_base64(clean) == _SAMPLE

    def test_line_wrapped(self):
        encoded = base64.encodebytes(_SAMPLE)  # 76-column lines
        assert b"\n" in encoded
        assert decode_base64(encoded) == _SAMPLE

    def test_vertical_tab_and_form_feed_skipped(self):
        assert decode_base64("aGVs\vbG8\f=") == b"hello"

    def test_trailing_partial_bits_dropped(self):
        # Seven symbols carry 42 bits: five bytes, two bits left over.
        assert decode_base64("aGVsbG8") == b"hello"


# ---------------------------------------------------------------------------
# Invalid input
# ---------------------------------------------------------------------------


class TestInvalidPayloads:
    """Fail-fast behavior: one bad byte empties the result."""

    @pytest.mark.parametrize("bad", ["!", "-", "_", ".", "*", "\x00", "é"])
    def test_single_invalid_char_empties_output(self, bad):
        valid = base64.b64encode(_SAMPLE).decode("ascii")
        assert decode_base64(valid + bad) == b""
        assert decode_base64(bad + valid) == b""
        assert decode_base64(valid[:40] + bad + valid[40:]) == b""

    def test_non_ascii_bytes(self):
        assert decode_base64(b"aGVs\xffbG8=") == b""

    def test_empty(self):
        assert decode_base64("") == b""
        assert decode_base64(b"") == b""

    def test_only_skippable(self):
        assert decode_base64(" \n==\t ") == b""

    def test_single_symbol_yields_nothing(self):
        assert decode_base64("Q") == b""
