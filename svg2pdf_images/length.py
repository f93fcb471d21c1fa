"""Geometry values for image elements: a number, a unit and an axis."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

from svg2pdf_images.errors import ImageConfigError


class LengthUnit(Enum):
    """Units accepted in length attributes."""

    PX = "px"
    PT = "pt"
    PC = "pc"
    IN = "in"
    CM = "cm"
    MM = "mm"
    EM = "em"
    EX = "ex"
    PERCENT = "%"


class Orientation(Enum):
    """Axis a length is measured along (matters for percentages)."""

    HORIZONTAL = "horizontal"
    VERTICAL = "vertical"
    OTHER = "other"


@dataclass(frozen=True)
class Length:
    """A length as written in markup.  Interpreting it is the renderer's job."""

    value: float
    unit: LengthUnit = LengthUnit.PX
    orientation: Orientation = Orientation.HORIZONTAL

    @classmethod
    def zero(cls, orientation: Orientation) -> Length:
        return cls(0.0, LengthUnit.PX, orientation)


_LENGTH_RE = re.compile(
    r"^\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)\s*"
    r"(px|pt|pc|in|cm|mm|em|ex|%)?\s*$"
)
"""``<number><unit>``; a missing unit means user units (px)."""


def parse_length(text: str, orientation: Orientation) -> Length:
    """Parse a length attribute value.

    Raises:
        ImageConfigError: *text* is not a number with an optional unit.
    """
    m = _LENGTH_RE.match(text)
    if not m:
        raise ImageConfigError(f"Invalid length {text!r}")
    unit = LengthUnit(m.group(2)) if m.group(2) else LengthUnit.PX
    return Length(float(m.group(1)), unit, orientation)
