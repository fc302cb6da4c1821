"""Test the Gerber interpreter.

Tests for gerber_stencil.gerber:
    - Coordinate scaling (decimal point vs. format digits)
    - Format spec, units, aperture definitions and macros
    - Aperture selection and D01/D02/D03 statements
    - Best-effort handling: malformed input becomes Anomaly records

Run:
    pytest tests/test_gerber.py -v
"""

import pytest

from samples import MACRO_PADS, SINGLE_FLASH
from gerber_stencil.apertures import (
    CircleAperture,
    CoordinateFormat,
    MacroAperture,
    MacroCenterLine,
    MacroCircle,
    ObroundAperture,
    RectangleAperture,
    Units,
)
from gerber_stencil.gerber import (
    DrawTo,
    FlashAt,
    GerberReadError,
    MoveTo,
    SelectAperture,
    parse_coordinate,
    parse_gerber_file,
    parse_gerber_lines,
)


def parse(text):
    return parse_gerber_lines(text.splitlines())


@pytest.mark.parametrize("value,expected", [("1.5", 1.5), ("-0.25", -0.25), ("12.", 12.0), ("+3.125", 3.125)])
def test_decimal_point_taken_literally(value, expected):
    assert parse_coordinate(value, CoordinateFormat(2, 4)) == pytest.approx(expected)


@pytest.mark.parametrize("value,expected", [("1234", 0.1234), ("100000", 10.0), ("-5000", -0.5), ("0", 0.0)])
def test_integer_scaled_by_decimal_digits(value, expected):
    assert parse_coordinate(value, CoordinateFormat(2, 4)) == pytest.approx(expected)


def test_single_flash_drawing(single_flash):
    state = single_flash.state
    assert state.format_x == CoordinateFormat(2, 4)
    assert state.format_y == CoordinateFormat(2, 4)
    assert state.units is Units.MM
    assert state.apertures == {10: CircleAperture(diameter=0.5)}
    assert state.current_aperture == 10
    assert single_flash.commands == [SelectAperture(10), FlashAt(x=pytest.approx(10.0), y=pytest.approx(10.0))]
    assert single_flash.anomalies == []


def test_independent_axis_formats():
    drawing = parse("%FSLAX23Y35*%\nX1000Y1000D02*\n")
    assert drawing.state.format_x == CoordinateFormat(2, 3)
    assert drawing.state.format_y == CoordinateFormat(3, 5)
    assert drawing.commands == [MoveTo(x=pytest.approx(1.0), y=pytest.approx(0.01))]


def test_inch_units():
    assert parse("%MOIN*%").state.units is Units.IN
    assert parse("G70*").state.units is Units.IN
    assert parse("%MOIN*%\nG71*").state.units is Units.MM


def test_standard_apertures():
    drawing = parse(
        "%ADD10C,0.5*%\n"
        "%ADD11R,1.2X0.6*%\n"
        "%ADD12O,0.8X0.4*%\n"
        "%ADD13C,0.3X0.1*%\n"
    )
    assert drawing.state.apertures == {
        10: CircleAperture(0.5),
        11: RectangleAperture(1.2, 0.6),
        12: ObroundAperture(0.8, 0.4),
        13: CircleAperture(0.3),
    }


def test_aperture_missing_modifiers_is_ignored():
    drawing = parse("%ADD10R,1.0*%\n%ADD11C*%\n")
    assert drawing.state.apertures == {}
    assert len(drawing.anomalies) == 2


def test_macros_multi_line_and_single_line():
    drawing = parse(MACRO_PADS)
    macros = drawing.state.macros
    assert set(macros) == {"OFFSETPAD", "BAR"}
    assert macros["OFFSETPAD"].primitives == (MacroCircle(True, 0.5, 1.0, 0.0),)
    assert macros["BAR"].primitives == (MacroCenterLine(True, 1.0, 0.2, 0.0, 0.0, 90.0),)
    assert drawing.state.apertures[11] == MacroAperture("OFFSETPAD")
    assert drawing.anomalies == []


def test_macro_consumes_lines_until_terminator():
    drawing = parse(
        "%AMTWO*\n"
        "1,1,0.5,0,0*\n"
        "21,0,0.1,0.1,0,0,0*%\n"
        "%ADD10TWO*%\n"
        "D10*\n"
        "X0Y0D03*\n"
    )
    assert len(drawing.state.macros["TWO"].primitives) == 2
    assert drawing.commands == [SelectAperture(10), FlashAt(0.0, 0.0)]


def test_macro_comment_may_contain_percent():
    drawing = parse(
        "%AMPAD*\n"
        "0 paste 50% reduction*\n"
        "1,1,0.5,0,0*\n"
        "%\n"
        "%ADD10PAD*%\n"
        "D10*\n"
        "X0Y0D03*\n"
    )
    assert drawing.state.macros["PAD"].primitives == (MacroCircle(True, 0.5, 0.0, 0.0),)
    assert drawing.state.apertures[10] == MacroAperture("PAD")
    assert drawing.commands == [SelectAperture(10), FlashAt(0.0, 0.0)]
    assert drawing.anomalies == []


def test_macro_bad_primitives_are_ignored():
    drawing = parse(
        "%AMBAD*\n"
        "1,1,$1,0,0*\n"
        "4,1,3,0,0,1,0,1,1,0*\n"
        "21,1,1.0*\n"
        "1,1,0.5,0,0*\n"
        "%\n"
    )
    assert drawing.state.macros["BAD"].primitives == (MacroCircle(True, 0.5, 0.0, 0.0),)
    assert len(drawing.anomalies) == 3


def test_unterminated_macro_keeps_primitives():
    drawing = parse("%AMOPEN*\n1,1,0.5,0,0*\n")
    assert len(drawing.state.macros["OPEN"].primitives) == 1
    assert len(drawing.anomalies) == 1


def test_operations_and_omitted_axes():
    drawing = parse(
        "%FSLAX24Y24*%\n"
        "D10*\n"
        "X10000Y20000D02*\n"
        "X30000D01*\n"
        "Y5000D01*\n"
        "D03*\n"
        "X1.5Y2.5*\n"
    )
    assert drawing.commands == [
        SelectAperture(10),
        MoveTo(1.0, 2.0),
        DrawTo(3.0, None),
        DrawTo(None, 0.5),
        FlashAt(None, None),
        MoveTo(1.5, 2.5),
    ]


def test_legacy_select_and_multiple_statements_per_line():
    drawing = parse("G54D11*G01X0Y0D02*X10000Y0D01*")
    assert drawing.commands == [SelectAperture(11), MoveTo(0.0, 0.0), DrawTo(10000.0, 0.0)]


def test_select_requires_code_of_at_least_ten():
    drawing = parse("D09*")
    assert drawing.commands == [MoveTo(None, None)]


def test_comments_and_gcodes_are_not_anomalies():
    drawing = parse("G04 drawn by hand*\nG75*\nG01*\nM02*\n")
    assert drawing.commands == []
    assert drawing.anomalies == []


def test_malformed_input_is_skipped_not_fatal():
    drawing = parse(
        "%FSLAX24Y24*%\n"
        "%LPD*%\n"
        "%FSbogus*%\n"
        "%ADD10C,abc*%\n"
        "%ADD11C,0.5*%\n"
        "hello*\n"
        "X1.2.3Y0D01*\n"
        "D11*\n"
        "X10000Y10000D03*\n"
    )
    assert drawing.commands == [SelectAperture(11), FlashAt(1.0, 1.0)]
    reasons = [a.reason for a in drawing.anomalies]
    assert reasons == [
        "unsupported directive",
        "malformed format spec",
        "non-numeric aperture modifier",
        "unrecognized statement",
        "malformed coordinate",
    ]
    assert [a.line_number for a in drawing.anomalies] == [2, 3, 4, 6, 7]


def test_parse_file(gerber_file):
    drawing = parse_gerber_file(gerber_file)
    assert drawing.commands == parse(SINGLE_FLASH).commands


def test_parse_missing_file(tmp_path):
    with pytest.raises(GerberReadError):
        parse_gerber_file(tmp_path / "missing.gbr")
