"""Lenient base64 decoding for inline ``data:`` payloads.

Unlike :func:`base64.b64decode`, whitespace and ``=`` are accepted
anywhere in the stream (line-wrapped and oddly padded payloads are common
in hand-written markup), but any other character outside the standard
alphabet rejects the whole payload.
"""

from __future__ import annotations

_ALPHABET = b"ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789+/"

_INVALID = 64
"""Marker in the reverse table for bytes that are not base64 symbols."""

_REVERSE_TABLE = bytes(
    _ALPHABET.index(c) if c in _ALPHABET else _INVALID for c in range(256)
)
"""Byte value -> 6-bit symbol value, or ``_INVALID``."""

_SKIPPED = frozenset(b" \t\n\v\f\r=")
"""Whitespace (C ``isspace`` set) and padding, ignored wherever they occur."""


def decode_base64(payload: str | bytes) -> bytes:
    """Decode *payload* with the standard base64 alphabet.

    Each symbol contributes 6 bits to an accumulator; a byte is emitted
    whenever 8 or more bits are buffered (most significant bits first).
    Trailing bits that do not make up a full byte are dropped.

    Returns:
        The decoded bytes, or ``b""`` when the payload is empty, holds
        only skippable characters, or contains any byte outside the
        alphabet.  An invalid byte discards everything decoded so far;
        callers treat an empty result as a decode failure.
    """
    if isinstance(payload, str):
        try:
            raw = payload.encode("ascii")
        except UnicodeEncodeError:
            return b""
    else:
        raw = payload

    out = bytearray()
    accumulator = 0
    bits = 0
    for c in raw:
        if c in _SKIPPED:
            continue
        value = _REVERSE_TABLE[c]
        if value == _INVALID:
            return b""
        accumulator = ((accumulator << 6) | value) & 0xFFFF
        bits += 6
        if bits >= 8:
            bits -= 8
            out.append((accumulator >> bits) & 0xFF)
    return bytes(out)
