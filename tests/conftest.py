import pytest

from gerber_stencil.gerber import parse_gerber_lines
from samples import SINGLE_FLASH, TRACE


@pytest.fixture
def single_flash():
    return parse_gerber_lines(SINGLE_FLASH.splitlines())


@pytest.fixture
def trace():
    return parse_gerber_lines(TRACE.splitlines())


@pytest.fixture
def gerber_file(tmp_path):
    path = tmp_path / "board.GTP"
    path.write_text(SINGLE_FLASH, encoding="utf-8")
    return path
