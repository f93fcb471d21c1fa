"""Resolve an image reference to pixels.

A reference is either an inline ``data:<mime>;base64,<payload>`` URI or an
external reference.  Inline payloads are base64-decoded here; external
references are turned into a local file path by an injected
:class:`ExternalResolver` and read by the dispatcher.

A ``data:`` reference without a ``base64,`` marker is not rejected: it
falls through and is handed to the external resolver unchanged.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol, Union, runtime_checkable
from urllib.parse import urlparse
from urllib.request import url2pathname

from svg2pdf_images.dispatch import FormatDispatcher
from svg2pdf_images.encoding import decode_base64
from svg2pdf_images.errors import ImageNotFoundError, ImageParseError
from svg2pdf_images.pixels import DecodedImage, DecodeOptions

_log = logging.getLogger("resolver")

DATA_SCHEME = "data:"
BASE64_MARKER = "base64,"


# ---------------------------------------------------------------------------
# External references
# ---------------------------------------------------------------------------


@runtime_checkable
class ExternalResolver(Protocol):
    """Translate an external reference into a local file path.

    Implementations raise :class:`ImageNotFoundError` when the reference
    cannot be mapped to a local resource.
    """

    def resolve(self, reference: str) -> Path:
        ...


class LocalFileResolver:
    """Resolve ``file:`` URLs and plain paths on the local file system.

    Relative paths are taken relative to *base_dir* when given.  Other
    URL schemes (``http:``, ``https:`` ...) are not fetched.
    """

    def __init__(self, base_dir: Path | None = None) -> None:
        self._base_dir = base_dir

    def resolve(self, reference: str) -> Path:
        parsed = urlparse(reference)
        if parsed.scheme == "file":
            path = Path(url2pathname(parsed.path))
        elif parsed.scheme and len(parsed.scheme) > 1:
            raise ImageNotFoundError(
                f"Unsupported reference scheme {parsed.scheme!r}: {reference}"
            )
        else:
            # Empty scheme, or a Windows drive letter parsed as one.
            path = Path(reference)
        if not path.is_absolute() and self._base_dir is not None:
            path = self._base_dir / path
        if not path.is_file():
            raise ImageNotFoundError(f"Image not found: {path}")
        return path


# ---------------------------------------------------------------------------
# Reference classification
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class InlineResource:
    """Decoded payload of a ``data:`` reference."""

    data: bytes
    mime_type: str


@dataclass(frozen=True)
class ExternalResource:
    """Local file an external reference resolved to."""

    path: Path


ResolvedResource = Union[InlineResource, ExternalResource]


def split_data_uri(
    reference: str,
    default_mime_type: str = "image/png",
) -> tuple[str, str] | None:
    """Split a ``data:`` reference into ``(mime_type, payload)``.

    The mime type is the text between ``data:`` and the first ``;``,
    defaulting to *default_mime_type* when empty or absent.  The payload
    is everything after the ``base64,`` marker.

    Returns:
        ``None`` when *reference* is not a ``data:`` URI or has no
        ``base64,`` marker.
    """
    if not reference.startswith(DATA_SCHEME):
        return None
    marker = reference.find(BASE64_MARKER)
    if marker < 0:
        return None
    semi = reference.find(";", len(DATA_SCHEME))
    mime_type = reference[len(DATA_SCHEME):semi] if semi >= 0 else ""
    return mime_type or default_mime_type, reference[marker + len(BASE64_MARKER):]


class ImageResourceResolver:
    """Classify references and decode them through a :class:`FormatDispatcher`.

    Usage::

        resolver = ImageResourceResolver(LocalFileResolver(Path("assets")))
        image = resolver.load("data:image/png;base64,iVBORw0KGgo...")
    """

    def __init__(
        self,
        external: ExternalResolver | None = None,
        dispatcher: FormatDispatcher | None = None,
        options: DecodeOptions | None = None,
    ) -> None:
        self._options = options or DecodeOptions()
        self._external = external or LocalFileResolver()
        self._dispatcher = dispatcher or FormatDispatcher(options=self._options)

    def resolve(self, reference: str) -> ResolvedResource:
        """Turn *reference* into an inline payload or a local file.

        Raises:
            ImageParseError: The inline payload is not valid base64.
            ImageNotFoundError: The external reference cannot be resolved.
        """
        parts = split_data_uri(reference, self._options.default_mime_type)
        if parts is not None:
            mime_type, payload = parts
            data = decode_base64(payload)
            if not data:
                raise ImageParseError("Invalid or empty base64 image payload")
            _log.debug("  inline %s payload, %d bytes", mime_type, len(data))
            return InlineResource(data, mime_type)

        if reference.startswith(DATA_SCHEME):
            _log.debug("  data: reference without base64 marker, trying as path")
        path = self._external.resolve(reference)
        _log.debug("  external reference -> %s", path)
        return ExternalResource(path)

    def load(self, reference: str) -> DecodedImage:
        """Resolve *reference* and decode it to the canonical pixel layout."""
        resource = self.resolve(reference)
        if isinstance(resource, InlineResource):
            return self._dispatcher.decode(resource.data, resource.mime_type)
        return self._dispatcher.decode_file(resource.path)
