"""Material (.mtl) loading and the material lookup table."""

from __future__ import annotations

import threading
from enum import Enum, auto
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Protocol

from objparse.diagnostics import (
    MATERIAL_REDEFINED,
    NO_CURRENT_MATERIAL,
    DiagnosticLog,
)
from objparse.lexer import MTL_DIALECT, Lexer
from objparse.mesh import DEFAULT_DIFFUSE, Color
from objparse.mtl_rules import MTL_GRAMMAR
from objparse.options import ParserOptions
from objparse.parser import ShiftReduceParser
from objparse.reduction import ReductionEngine
from objparse.source import CharSource
from objparse.tokens import Nonterminal, NonterminalKind


class MaterialResolver(Protocol):
    def resolve(self, name: str) -> Any | None:
        """Identifier of material ``name``, or ``None`` if it is unknown."""
        ...


class MaterialLibrary:
    """Name → material table shared between parser runs.

    Ids are assigned in definition order and stay stable when a material is redefined.
    All access goes through one lock so runs on separate threads may share a library.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._ids: dict[str, int] = {}
        self._colors: dict[str, Color] = {}

    def define(self, name: str, color: Color = DEFAULT_DIFFUSE) -> int:
        with self._lock:
            material_id = self._ids.setdefault(name, len(self._ids))
            self._colors[name] = color
            return material_id

    def update(self, materials: Mapping[str, Color]) -> None:
        for name, color in materials.items():
            self.define(name, color)

    def resolve(self, name: str) -> int | None:
        with self._lock:
            return self._ids.get(name)

    def color(self, name: str) -> Color | None:
        with self._lock:
            return self._colors.get(name)

    def colors(self) -> dict[str, Color]:
        with self._lock:
            return dict(self._colors)

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._ids

    def __len__(self) -> int:
        with self._lock:
            return len(self._ids)


class AssemblerState(Enum):
    IDLE = auto()
    RUNNING = auto()
    DONE = auto()


class MaterialAssembler:
    """Collects ``newmtl``/``Kd`` records into a name → diffuse color table."""

    def __init__(self, log: DiagnosticLog) -> None:
        self.log = log
        self.materials: dict[str, Color] = {}
        self.current: str | None = None
        self.state = AssemblerState.IDLE

    def start(self) -> None:
        if self.state is not AssemblerState.IDLE:
            raise RuntimeError(f"Assembler already started (state: {self.state.name})")
        self.state = AssemblerState.RUNNING

    def finish(self) -> None:
        if self.state is not AssemblerState.RUNNING:
            raise RuntimeError(f"Assembler is not running (state: {self.state.name})")
        self.state = AssemblerState.DONE

    def commit(self, record: Nonterminal) -> bool:
        if self.state is not AssemblerState.RUNNING:
            raise RuntimeError(f"Cannot commit a record while {self.state.name}")
        if record.kind is NonterminalKind.NEW_MATERIAL:
            name = str(record.value)
            if name in self.materials:
                self.log.report(
                    MATERIAL_REDEFINED,
                    f"Material '{name}' is defined more than once; the last definition wins.",
                    record.span,
                )
            self.materials[name] = DEFAULT_DIFFUSE
            self.current = name
            return True

        if record.kind is NonterminalKind.DIFFUSE_COLOR:
            if self.current is None:
                self.log.report(
                    NO_CURRENT_MATERIAL,
                    "Diffuse color given before any 'newmtl' statement.",
                    record.span,
                )
                return False
            assert isinstance(record.value, Color)
            self.materials[self.current] = record.value
            return True

        raise ValueError(f"Unexpected {record.describe()} record in a material file")


def parse_mtl(source: CharSource, log: DiagnosticLog | None = None) -> dict[str, Color]:
    """Parse material definitions from an open character source."""
    if log is None:
        log = DiagnosticLog()
    assembler = MaterialAssembler(log)
    assembler.start()
    ShiftReduceParser(
        Lexer(source, MTL_DIALECT, log),
        ReductionEngine(MTL_GRAMMAR, log),
        assembler,
        log,
    ).run()
    assembler.finish()
    return assembler.materials


def parse_mtl_text(
    text: str, name: str = "<string>", log: DiagnosticLog | None = None
) -> dict[str, Color]:
    with CharSource.from_text(text, name) as source:
        return parse_mtl(source, log)


def load_mtl(
    path: str | Path,
    log: DiagnosticLog | None = None,
    options: ParserOptions | None = None,
) -> dict[str, Color]:
    """Load a material file.

    Raises:
        SourceReadError: If the file cannot be opened or read.
    """
    if log is None:
        log = (options or ParserOptions()).diagnostic_log()
    with CharSource.from_path(path) as source:
        return parse_mtl(source, log)
