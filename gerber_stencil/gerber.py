"""
Gerber (RS-274X) interpreter.

Reads the drawing text line by line and produces an ordered list of geometry
commands together with the aperture/macro tables, coordinate format and units
that were in force. Interpretation is best effort: anything that cannot be
understood is recorded as an Anomaly and skipped.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional, Tuple, Union

from .apertures import (
    Aperture,
    CoordinateFormat,
    Macro,
    MacroPrimitive,
    PrimitiveError,
    Units,
    make_aperture,
    make_primitive,
)

logger = logging.getLogger(__name__)

RE_FS = re.compile(r"%FS[LTD]?[AI]?X(\d)(\d)Y(\d)(\d)\*")
RE_MO = re.compile(r"%MO(MM|IN)\*")
RE_AD = re.compile(r"%ADD(\d+)([A-Za-z_.$][\w.$]*)(?:,([^*]*))?\*%")
RE_AM = re.compile(r"%AM([^*]+)\*(.*)$")
RE_SELECT = re.compile(r"(?:G54)?D(\d+)$")
RE_COORD = re.compile(r"([XYD])([+-]?[\d.]+)")
RE_GCODE = re.compile(r"G\d+$")

OP_DRAW = 1
OP_MOVE = 2
OP_FLASH = 3
MIN_APERTURE_CODE = 10


class GerberReadError(OSError):
    pass


# ----------------------------
# Commands and state
# ----------------------------

@dataclass(frozen=True)
class SelectAperture:
    code: int


@dataclass(frozen=True)
class MoveTo:
    x: Optional[float] = None
    y: Optional[float] = None


@dataclass(frozen=True)
class DrawTo:
    x: Optional[float] = None
    y: Optional[float] = None


@dataclass(frozen=True)
class FlashAt:
    x: Optional[float] = None
    y: Optional[float] = None


GeometryCommand = Union[SelectAperture, MoveTo, DrawTo, FlashAt]

_OPERATIONS = {OP_DRAW: DrawTo, OP_MOVE: MoveTo, OP_FLASH: FlashAt}


@dataclass
class InterpreterState:
    apertures: Dict[int, Aperture] = field(default_factory=dict)
    macros: Dict[str, Macro] = field(default_factory=dict)
    current_aperture: Optional[int] = None
    format_x: CoordinateFormat = CoordinateFormat()
    format_y: CoordinateFormat = CoordinateFormat()
    units: Units = Units.MM


@dataclass(frozen=True)
class Anomaly:
    """A directive or statement that was skipped."""
    line_number: int
    text: str
    reason: str


@dataclass
class Drawing:
    commands: List[GeometryCommand] = field(default_factory=list)
    state: InterpreterState = field(default_factory=InterpreterState)
    anomalies: List[Anomaly] = field(default_factory=list)


def parse_coordinate(value: str, fmt: CoordinateFormat) -> float:
    """Convert an axis value to drawing units.

    Values with a decimal point are taken literally, otherwise the integer is
    scaled by the number of decimal digits of the axis format.
    """
    if "." in value:
        return float(value)
    return float(value) / fmt.divisor


def _closes_macro(text: str) -> bool:
    # Either a bare '%' line or a final block followed by '%'.
    return text == "%" or text.endswith("*%")


# ----------------------------
# Interpreter
# ----------------------------

class _Interpreter:

    def __init__(self):
        self.drawing = Drawing()

    @property
    def state(self) -> InterpreterState:
        return self.drawing.state

    def ignore(self, line_number: int, text: str, reason: str) -> None:
        self.drawing.anomalies.append(Anomaly(line_number, text, reason))
        logger.debug("line %d: ignored %r (%s)", line_number, text, reason)

    def run(self, lines: Iterable[str]) -> Drawing:
        numbered: Iterator[Tuple[int, str]] = enumerate(lines, start=1)
        for line_number, raw in numbered:
            line = raw.strip()
            if not line:
                continue
            if line.startswith("%"):
                self.directive(line_number, line, numbered)
            else:
                for part in line.split("*"):
                    part = part.strip()
                    if part:
                        self.statement(line_number, part)
        return self.drawing

    # Directives -------------------------------------------------------

    def directive(self, line_number: int, line: str, numbered: Iterator[Tuple[int, str]]) -> None:
        if line.startswith("%FS"):
            m = RE_FS.match(line)
            if not m:
                self.ignore(line_number, line, "malformed format spec")
                return
            xi, xd, yi, yd = (int(g) for g in m.groups())
            self.state.format_x = CoordinateFormat(xi, xd)
            self.state.format_y = CoordinateFormat(yi, yd)
        elif line.startswith("%MO"):
            m = RE_MO.match(line)
            if not m:
                self.ignore(line_number, line, "malformed units mode")
                return
            self.state.units = Units(m.group(1))
        elif line.startswith("%AD"):
            self.aperture_definition(line_number, line)
        elif line.startswith("%AM"):
            self.aperture_macro(line_number, line, numbered)
        else:
            self.ignore(line_number, line, "unsupported directive")

    def aperture_definition(self, line_number: int, line: str) -> None:
        m = RE_AD.match(line)
        if not m:
            self.ignore(line_number, line, "malformed aperture definition")
            return
        code = int(m.group(1))
        kind = m.group(2)
        try:
            modifiers = [float(p) for p in m.group(3).split("X")] if m.group(3) else []
        except ValueError:
            self.ignore(line_number, line, "non-numeric aperture modifier")
            return
        aperture = make_aperture(kind, modifiers)
        if aperture is None:
            self.ignore(line_number, line, f"aperture {kind} is missing modifiers")
            return
        self.state.apertures[code] = aperture

    def aperture_macro(self, line_number: int, line: str, numbered: Iterator[Tuple[int, str]]) -> None:
        m = RE_AM.match(line)
        if not m:
            self.ignore(line_number, line, "malformed aperture macro")
            return
        name = m.group(1).strip()
        body = [(line_number, m.group(2).strip())]

        # The macro body runs until a block closes with '%', possibly several
        # lines on. A '%' inside a comment primitive does not end it.
        closed = _closes_macro(body[0][1])
        while not closed:
            try:
                next_number, raw = next(numbered)
            except StopIteration:
                self.ignore(line_number, line, f"macro {name} is not terminated")
                break
            text = raw.strip()
            body.append((next_number, text))
            closed = _closes_macro(text)

        primitives: List[MacroPrimitive] = []
        for block_line, text in body:
            if text.endswith("%"):
                text = text[:-1]
            for block in text.split("*"):
                block = block.strip()
                if block:
                    primitive = self.macro_primitive(block_line, block)
                    if primitive is not None:
                        primitives.append(primitive)
        self.state.macros[name] = Macro(name=name, primitives=tuple(primitives))

    def macro_primitive(self, line_number: int, block: str) -> Optional[MacroPrimitive]:
        # Primitive 0 is a comment.
        if block == "0" or block.startswith("0 "):
            return None
        parts = [p.strip() for p in block.split(",")]
        try:
            code = int(parts[0])
        except ValueError:
            self.ignore(line_number, block, "macro primitive code is not an integer")
            return None
        if code == 0:
            return None
        try:
            modifiers = [float(p) for p in parts[1:]]
        except ValueError:
            self.ignore(line_number, block, "non-numeric macro modifier")
            return None
        try:
            return make_primitive(code, modifiers)
        except PrimitiveError as e:
            self.ignore(line_number, block, str(e))
            return None

    # Statements -------------------------------------------------------

    def statement(self, line_number: int, part: str) -> None:
        if part.startswith("G04") or part in ("M00", "M01", "M02"):
            return
        if part == "G70":
            self.state.units = Units.IN
            return
        if part == "G71":
            self.state.units = Units.MM
            return
        if RE_GCODE.match(part):
            return

        m = RE_SELECT.match(part)
        if m and int(m.group(1)) >= MIN_APERTURE_CODE:
            code = int(m.group(1))
            self.state.current_aperture = code
            self.drawing.commands.append(SelectAperture(code))
            return

        fields = RE_COORD.findall(part)
        if not fields:
            self.ignore(line_number, part, "unrecognized statement")
            return

        x = y = None
        op = OP_MOVE
        try:
            for axis, value in fields:
                if axis == "X":
                    x = parse_coordinate(value, self.state.format_x)
                elif axis == "Y":
                    y = parse_coordinate(value, self.state.format_y)
                else:
                    op = int(float(value))
        except ValueError:
            self.ignore(line_number, part, "malformed coordinate")
            return
        self.drawing.commands.append(_OPERATIONS.get(op, MoveTo)(x=x, y=y))


def parse_gerber_lines(lines: Iterable[str]) -> Drawing:
    drawing = _Interpreter().run(lines)
    logger.info(
        "Parsed %d commands, %d apertures, %d macros (%d ignored)",
        len(drawing.commands),
        len(drawing.state.apertures),
        len(drawing.state.macros),
        len(drawing.anomalies),
    )
    return drawing


def parse_gerber_file(path: Union[str, Path]) -> Drawing:
    try:
        text = Path(path).read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        raise GerberReadError(f"Cannot read Gerber file {path}: {e}") from e
    return parse_gerber_lines(text.splitlines())
