"""The ``<image>`` element: geometry, reference and a lazily decoded buffer.

State machine::

    UNBOUND --bind--> BOUND --first render--> DECODED
                        |                 \\-> FAILED
                        \\--negative size--> FAILED

- A bound node with zero width or height renders nothing and never
  decodes.
- The first render of a bound node with a non-zero area decodes the
  reference and caches the pixels; later renders reuse them.
- ``FAILED`` is terminal: every later render raises the same error
  without decoding again.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Mapping, Protocol

from svg2pdf_images.errors import ImageConfigError, ImageError
from svg2pdf_images.length import Length, Orientation, parse_length
from svg2pdf_images.pixels import DecodedImage
from svg2pdf_images.resolver import ImageResourceResolver

_log = logging.getLogger("node")

DEFAULT_PRESERVE_ASPECT_RATIO = "xMidYMid meet"
"""Stored from markup; placement is left to the render engine."""


def _without_frames(exc: ImageError) -> ImageError:
    """Detach tracebacks from *exc* and its causes.

    A cached error must not keep decoder frames (and their buffers) alive.
    """
    seen: set[int] = set()
    err: BaseException | None = exc
    while err is not None and id(err) not in seen:
        seen.add(id(err))
        err.with_traceback(None)
        err = err.__cause__ or err.__context__
    return exc


class NodeState(Enum):
    """Lifecycle states of an :class:`ImageNode`."""

    UNBOUND = "unbound"
    BOUND = "bound"
    DECODED = "decoded"
    FAILED = "failed"


class RenderEngine(Protocol):
    """Receiver of decoded images (e.g. a PDF page writer)."""

    def render_image(
        self,
        pixels: bytes,
        pixel_width: int,
        pixel_height: int,
        x: Length,
        y: Length,
        width: Length,
        height: Length,
    ) -> None:
        """Place premultiplied BGRA *pixels* at the given geometry."""
        ...


class ImageNode:
    """An image element and its decode cache.

    Usage::

        node = ImageNode()
        node.apply_attributes({"width": "100", "height": "50",
                               "xlink:href": "data:image/png;base64,..."})
        node.render(engine, resolver)
    """

    def __init__(self) -> None:
        self.x = Length.zero(Orientation.HORIZONTAL)
        self.y = Length.zero(Orientation.VERTICAL)
        self.width = Length.zero(Orientation.HORIZONTAL)
        self.height = Length.zero(Orientation.VERTICAL)
        self.preserve_aspect_ratio = DEFAULT_PRESERVE_ASPECT_RATIO
        self.href: str | None = None
        self.state = NodeState.UNBOUND
        self._image: DecodedImage | None = None
        self._error: ImageError | None = None

    # -- binding ---------------------------------------------------------------

    def bind(
        self,
        x: Length,
        y: Length,
        width: Length,
        height: Length,
        href: str,
        preserve_aspect_ratio: str = DEFAULT_PRESERVE_ASPECT_RATIO,
    ) -> None:
        """Bind geometry and reference.  Allowed once per node.

        Raises:
            ImageConfigError: *width* or *height* is negative.  The node
                moves to ``FAILED`` and will never decode.
            RuntimeError: The node is already bound.
        """
        if self.state is not NodeState.UNBOUND:
            raise RuntimeError(f"Image node already bound (state {self.state.value})")
        self.x, self.y = x, y
        self.width, self.height = width, height
        self.preserve_aspect_ratio = preserve_aspect_ratio
        self.href = href
        if width.value < 0 or height.value < 0:
            self._error = ImageConfigError(
                f"Negative image size {width.value}x{height.value}"
            )
            self.state = NodeState.FAILED
            raise self._error
        self.state = NodeState.BOUND

    def apply_attributes(self, attributes: Mapping[str, str]) -> None:
        """Bind from raw markup attributes.

        Reads ``x``, ``y``, ``width``, ``height`` (default ``"0"``),
        ``preserveAspectRatio`` and ``xlink:href`` (``href`` as fallback).

        Raises:
            ImageConfigError: A length is malformed or the size is negative.
        """
        try:
            x = parse_length(attributes.get("x", "0"), Orientation.HORIZONTAL)
            y = parse_length(attributes.get("y", "0"), Orientation.VERTICAL)
            width = parse_length(attributes.get("width", "0"), Orientation.HORIZONTAL)
            height = parse_length(attributes.get("height", "0"), Orientation.VERTICAL)
        except ImageConfigError as exc:
            self._error = exc
            self.state = NodeState.FAILED
            raise
        href = attributes.get("xlink:href", attributes.get("href", ""))
        self.bind(
            x, y, width, height, href,
            attributes.get("preserveAspectRatio", DEFAULT_PRESERVE_ASPECT_RATIO),
        )

    def copy(self) -> ImageNode:
        """Return a node with the same geometry and reference.

        The copy starts undecoded; pixel buffers are never shared.
        """
        other = ImageNode()
        if self.state is NodeState.UNBOUND:
            return other
        other.x, other.y = self.x, self.y
        other.width, other.height = self.width, self.height
        other.preserve_aspect_ratio = self.preserve_aspect_ratio
        other.href = self.href
        if isinstance(self._error, ImageConfigError):
            other._error = self._error
            other.state = NodeState.FAILED
        else:
            other.state = NodeState.BOUND
        return other

    # -- rendering -------------------------------------------------------------

    @property
    def image(self) -> DecodedImage | None:
        """Cached decode result, present only after a successful decode."""
        return self._image

    @property
    def is_empty(self) -> bool:
        """True when the node covers no area and renders nothing."""
        return self.width.value == 0 or self.height.value == 0

    def render(self, engine: RenderEngine, resolver: ImageResourceResolver) -> None:
        """Decode on first use and hand the pixels to *engine*.

        Raises:
            ImageError: Decoding failed now or on an earlier render.
        """
        if self.state is NodeState.FAILED:
            assert self._error is not None
            raise self._error.with_traceback(None)
        if self.state is NodeState.UNBOUND or self.is_empty:
            return

        if self._image is None:
            try:
                self._image = resolver.load(self.href or "")
            except ImageError as exc:
                _log.debug("  image decode failed: %s", exc)
                self._error = _without_frames(exc)
                self.state = NodeState.FAILED
                raise self._error
            self.state = NodeState.DECODED

        image = self._image
        engine.render_image(
            image.pixels, image.width, image.height,
            self.x, self.y, self.width, self.height,
        )
