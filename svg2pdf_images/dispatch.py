"""Format dispatch: try decoders in order until one accepts the data.

Each decoder returns one of three outcomes:

- a :class:`~svg2pdf_images.pixels.DecodedImage` -- dispatch stops;
- :data:`NOT_THIS_FORMAT` -- the signature did not match, try the next
  decoder;
- a raised :class:`~svg2pdf_images.errors.ImageError` -- dispatch stops
  and the error propagates; remaining decoders are never tried.

``NOT_THIS_FORMAT`` is a plain value, not an exception, and
:meth:`FormatDispatcher.decode` never returns it: when every decoder
declines, the caller gets an :class:`ImageParseError` instead.
"""

from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path
from typing import Protocol, Sequence, Union, runtime_checkable

from svg2pdf_images.errors import ImageNotFoundError, ImageParseError
from svg2pdf_images.pixels import DecodedImage, DecodeOptions

_log = logging.getLogger("dispatch")


class NotThisFormat(Enum):
    """Soft "signature did not match" signal returned by decoders."""

    TOKEN = "not-this-format"


NOT_THIS_FORMAT = NotThisFormat.TOKEN

DecodeOutcome = Union[DecodedImage, NotThisFormat]


@runtime_checkable
class ImageDecoder(Protocol):
    """Protocol for a single-format decoder."""

    @property
    def name(self) -> str:
        """Short format name for logging."""
        ...

    @property
    def mime_types(self) -> tuple[str, ...]:
        """Mime types that select this decoder first."""
        ...

    def decode(self, data: bytes) -> DecodeOutcome:
        """Decode *data* or return ``NOT_THIS_FORMAT``."""
        ...


def default_decoders(options: DecodeOptions | None = None) -> list[ImageDecoder]:
    """Return the built-in decoders in fallback order (PNG, then JPEG)."""
    from svg2pdf_images.jpeg_decoder import JpegDecoder
    from svg2pdf_images.png_decoder import PngDecoder

    return [PngDecoder(options), JpegDecoder(options)]


def _normalize_mime(mime_type: str | None) -> str | None:
    if not mime_type:
        return None
    return mime_type.split(";", 1)[0].strip().lower() or None


class FormatDispatcher:
    """Pick and run decoders for a payload.

    Usage::

        dispatcher = FormatDispatcher()
        image = dispatcher.decode(data, mime_type="image/jpeg")
        image = dispatcher.decode_file(Path("photo.png"))
    """

    def __init__(
        self,
        decoders: Sequence[ImageDecoder] | None = None,
        options: DecodeOptions | None = None,
    ) -> None:
        self._decoders = (
            list(decoders) if decoders is not None else default_decoders(options)
        )

    @property
    def decoders(self) -> list[ImageDecoder]:
        return list(self._decoders)

    def candidates(self, mime_type: str | None = None) -> list[ImageDecoder]:
        """Return decoders in the order they will be tried.

        A decoder whose :attr:`mime_types` names *mime_type* goes first;
        the rest follow in default order.
        """
        mime = _normalize_mime(mime_type)
        hinted = [d for d in self._decoders if mime in d.mime_types][:1]
        return hinted + [d for d in self._decoders if d not in hinted]

    def decode(self, data: bytes, mime_type: str | None = None) -> DecodedImage:
        """Decode an in-memory payload.

        Raises:
            ImageParseError: No decoder recognized the data, or the data
                is corrupt.
            ImageMemoryError: The output buffer could not be allocated.
        """
        data = bytes(data)
        for decoder in self.candidates(mime_type):
            outcome = decoder.decode(data)
            if outcome is NOT_THIS_FORMAT:
                _log.debug("  not %s, trying next decoder", decoder.name)
                continue
            _log.debug(
                "  decoded %s %dx%d", decoder.name, outcome.width, outcome.height,
            )
            return outcome
        raise ImageParseError("Unsupported or corrupt image")

    def decode_file(self, path: Path, mime_type: str | None = None) -> DecodedImage:
        """Read *path* and decode its contents.

        Raises:
            ImageNotFoundError: *path* does not exist or cannot be read.
        """
        try:
            with open(path, "rb") as fh:
                data = fh.read()
        except OSError as exc:
            raise ImageNotFoundError(f"Cannot open image {path}: {exc}") from exc
        return self.decode(data, mime_type)
