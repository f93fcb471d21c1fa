"""Status codes and exceptions surfaced by the image decoding core.

Every failure that leaves the core is an :class:`ImageError` carrying one
of the public :class:`Status` codes.  The internal "not this format"
signal used while trying decoders lives in :mod:`svg2pdf_images.dispatch`
and never appears here.
"""

from __future__ import annotations

from enum import Enum


class Status(Enum):
    """Status codes reported across the core's boundary."""

    SUCCESS = "success"
    FILE_NOT_FOUND = "file_not_found"
    NO_MEMORY = "no_memory"
    PARSE_ERROR = "parse_error"
    """Malformed, corrupt or unsupported image data, or invalid geometry."""


class ImageError(Exception):
    """Base class for hard image errors.  Never retried."""

    status: Status = Status.PARSE_ERROR


class ImageNotFoundError(ImageError):
    """The external resource could not be located or opened."""

    status = Status.FILE_NOT_FOUND


class ImageMemoryError(ImageError):
    """The output pixel buffer could not be allocated."""

    status = Status.NO_MEMORY


class ImageParseError(ImageError):
    """Corrupt, truncated or unsupported image data."""

    status = Status.PARSE_ERROR


class ImageConfigError(ImageParseError):
    """Invalid geometry found while binding element attributes."""
