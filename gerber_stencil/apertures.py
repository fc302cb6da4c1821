"""
Coordinate and aperture model shared by the interpreter and the rasterizer.

Apertures and macro primitives are closed sets of frozen dataclasses. Code that
consumes them dispatches on the concrete class.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence, Tuple, Union

MM_PER_INCH = 25.4


class Units(Enum):
    MM = "MM"
    IN = "IN"

    def to_mm(self, value: float) -> float:
        return value * MM_PER_INCH if self is Units.IN else value

    def from_mm(self, value_mm: float) -> float:
        return value_mm / MM_PER_INCH if self is Units.IN else value_mm


@dataclass(frozen=True)
class CoordinateFormat:
    """Digit counts of one axis as declared by the format spec."""
    integer: int = 0
    decimal: int = 0

    @property
    def divisor(self) -> float:
        return 10.0 ** self.decimal


# ----------------------------
# Apertures
# ----------------------------

@dataclass(frozen=True)
class CircleAperture:
    diameter: float


@dataclass(frozen=True)
class RectangleAperture:
    width: float
    height: float


@dataclass(frozen=True)
class ObroundAperture:
    # Rendered as a sharp rectangle.
    width: float
    height: float


@dataclass(frozen=True)
class MacroAperture:
    name: str
    modifiers: Tuple[float, ...] = ()


Aperture = Union[CircleAperture, RectangleAperture, ObroundAperture, MacroAperture]


def make_aperture(kind: str, modifiers: Sequence[float]) -> Optional[Aperture]:
    """Build an aperture from its definition letter (or macro name) and modifiers.

    Returns None when a standard shape lacks the modifiers it needs.
    """
    if kind == "C":
        if len(modifiers) < 1:
            return None
        return CircleAperture(diameter=modifiers[0])
    if kind in ("R", "O"):
        if len(modifiers) < 2:
            return None
        cls = RectangleAperture if kind == "R" else ObroundAperture
        return cls(width=modifiers[0], height=modifiers[1])
    return MacroAperture(name=kind, modifiers=tuple(modifiers))


# ----------------------------
# Macro primitives
# ----------------------------

@dataclass(frozen=True)
class MacroCircle:
    """Primitive 1: exposure, diameter, centre x, centre y."""
    CODE = 1

    exposure: bool
    diameter: float
    center_x: float
    center_y: float


@dataclass(frozen=True)
class MacroCenterLine:
    """Primitive 21: exposure, width, height, centre x, centre y, rotation."""
    CODE = 21

    exposure: bool
    width: float
    height: float
    center_x: float
    center_y: float
    rotation: float = 0.0

    @property
    def normalized_rotation(self) -> float:
        return self.rotation % 360.0

    @property
    def is_quarter_turn(self) -> bool:
        rot = self.normalized_rotation
        return abs(rot - 90.0) < 1.0 or abs(rot - 270.0) < 1.0

    @property
    def is_axis_aligned(self) -> bool:
        rot = self.normalized_rotation
        return self.is_quarter_turn or rot < 1.0 or abs(rot - 180.0) < 1.0 or rot > 359.0

    @property
    def oriented_size(self) -> Tuple[float, float]:
        if self.is_quarter_turn:
            return self.height, self.width
        return self.width, self.height


MacroPrimitive = Union[MacroCircle, MacroCenterLine]


class PrimitiveError(ValueError):
    pass


def make_primitive(code: int, modifiers: Sequence[float]) -> MacroPrimitive:
    if code == MacroCircle.CODE:
        if len(modifiers) < 4:
            raise PrimitiveError(f"circle primitive needs 4 modifiers, got {len(modifiers)}")
        return MacroCircle(
            exposure=modifiers[0] != 0,
            diameter=modifiers[1],
            center_x=modifiers[2],
            center_y=modifiers[3],
        )
    if code == MacroCenterLine.CODE:
        if len(modifiers) < 6:
            raise PrimitiveError(f"center line primitive needs 6 modifiers, got {len(modifiers)}")
        return MacroCenterLine(
            exposure=modifiers[0] != 0,
            width=modifiers[1],
            height=modifiers[2],
            center_x=modifiers[3],
            center_y=modifiers[4],
            rotation=modifiers[5],
        )
    raise PrimitiveError(f"unsupported macro primitive code {code}")


@dataclass(frozen=True)
class Macro:
    name: str
    primitives: Tuple[MacroPrimitive, ...] = ()
