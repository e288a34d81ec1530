"""Shared fixtures for objparse tests."""

from __future__ import annotations

import pytest

from objparse.diagnostics import CollectingSink, DiagnosticLog
from objparse.lexer import OBJ_DIALECT, Lexer
from objparse.source import CharSource

TRIANGLE_OBJ = """\
v 0 0 0
v 1 0 0
v 0 1 0
f 1 2 3
"""

CUBE_MTL = """\
# two materials
newmtl red
Kd 1 0 0
Ka 0.1 0.1 0.1

newmtl blue
Kd 0 0 1
"""

CUBE_OBJ = """\
mtllib cube.mtl
o cube
v -1 -1 1
v 1 -1 1
v 1 1 1
v -1 1 1
v -1 -1 -1
v 1 -1 -1
v 1 1 -1
v -1 1 -1
vt 0 0
vt 1 0
vt 1 1
vt 0 1
vn 0 0 1
vn 0 0 -1
g front
usemtl red
f 1/1/1 2/2/1 3/3/1
f 1/1/1 3/3/1 4/4/1
g back
usemtl blue
s 1
f 6/1/2 5/2/2 8/3/2
f 6/1/2 8/3/2 7/4/2
"""


@pytest.fixture
def collecting_log() -> DiagnosticLog:
    return DiagnosticLog(CollectingSink())


@pytest.fixture
def triangle_obj() -> str:
    return TRIANGLE_OBJ


@pytest.fixture
def cube_mtl() -> str:
    return CUBE_MTL


@pytest.fixture
def cube_obj() -> str:
    return CUBE_OBJ


@pytest.fixture
def cube_files(tmp_path):
    """A cube model and its material library on disk; returns the .obj path."""
    (tmp_path / "cube.mtl").write_text(CUBE_MTL)
    model = tmp_path / "cube.obj"
    model.write_text(CUBE_OBJ)
    return model


@pytest.fixture
def lex(collecting_log):
    """Build a lexer over a string with the OBJ dialect (or another one)."""

    def _lex(text: str, dialect=OBJ_DIALECT, name: str = "test.obj") -> Lexer:
        return Lexer(CharSource.from_text(text, name), dialect, collecting_log)

    return _lex
