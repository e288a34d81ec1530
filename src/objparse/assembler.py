"""Model assembly: committing parsed OBJ records into finished mesh groups."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

from objparse.buffers import BufferAllocator, BufferUsage
from objparse.diagnostics import (
    ALLOCATION_FAILURE,
    INDEX_OUT_OF_RANGE,
    MATERIAL_LIBRARY_MISSING,
    READ_FAILURE,
    UNKNOWN_MATERIAL,
    DiagnosticLog,
)
from objparse.errors import AllocationError, SourceReadError
from objparse.lexer import OBJ_DIALECT, Lexer
from objparse.materials import AssemblerState, MaterialLibrary, MaterialResolver, load_mtl
from objparse.mesh import Color, MeshGroup, Model
from objparse.obj_rules import OBJ_GRAMMAR
from objparse.options import ParserOptions
from objparse.parser import ShiftReduceParser
from objparse.reduction import ReductionEngine
from objparse.resolver import IndexResolver, VertexKey
from objparse.source import CharSource
from objparse.tokens import Nonterminal, NonterminalKind


class ModelAssembler:
    """Receives committed OBJ records and builds ``MeshGroup`` objects.

    Raw position, texture and normal tables are global to the file; each group gets its own
    ``IndexResolver`` so its vertex array only holds the vertices its faces reference. A
    ``g``/``o`` record or a material switch after faces flushes the current group. Groups
    that never received a face are dropped.
    """

    def __init__(
        self,
        log: DiagnosticLog,
        *,
        options: ParserOptions | None = None,
        directory: Path | None = None,
        library: MaterialLibrary | None = None,
        resolver: MaterialResolver | None = None,
        allocator: BufferAllocator | None = None,
    ) -> None:
        self.log = log
        self.options = options or ParserOptions()
        self.directory = directory or Path.cwd()
        self.library = library if library is not None else MaterialLibrary()
        self.material_resolver: MaterialResolver = (
            resolver if resolver is not None else self.library
        )
        self.allocator = allocator

        self.positions: list[tuple[float, float, float]] = []
        self.texcoords: list[tuple[float, float]] = []
        self.normals: list[tuple[float, float, float]] = []
        self.materials: dict[str, Color] = {}
        self.groups: list[MeshGroup] = []
        self.state = AssemblerState.IDLE
        self.current = MeshGroup(self.options.default_group)
        self.index_resolver = self._new_resolver()

        self._handlers: dict[NonterminalKind, Callable[[Nonterminal], bool]] = {
            NonterminalKind.VERTEX: self._vertex,
            NonterminalKind.NORMAL: self._normal,
            NonterminalKind.TEXCOORD: self._texcoord,
            NonterminalKind.FACE: self._face,
            NonterminalKind.GROUP: self._group,
            NonterminalKind.OBJECT: self._group,
            NonterminalKind.MATERIAL_LIBRARY: self._mtllib,
            NonterminalKind.MATERIAL_USE: self._usemtl,
            NonterminalKind.SMOOTHING: self._smoothing,
        }

    def start(self) -> None:
        if self.state is not AssemblerState.IDLE:
            raise RuntimeError(f"Assembler already started (state: {self.state.name})")
        self.state = AssemblerState.RUNNING

    def finish(self) -> None:
        if self.state is not AssemblerState.RUNNING:
            raise RuntimeError(f"Assembler is not running (state: {self.state.name})")
        self._flush()
        self.state = AssemblerState.DONE

    def commit(self, record: Nonterminal) -> bool:
        if self.state is not AssemblerState.RUNNING:
            raise RuntimeError(f"Cannot commit a record while {self.state.name}")
        handler = self._handlers.get(record.kind)
        if handler is None:
            raise ValueError(f"Unexpected {record.describe()} record in a model file")
        return handler(record)

    def _new_resolver(self) -> IndexResolver:
        return IndexResolver(
            self.positions,
            self.texcoords,
            self.normals,
            flip_v=self.options.flip_texture_v,
        )

    def _open(self, name: str) -> None:
        previous = self.current
        self.current = MeshGroup(
            name,
            material=previous.material,
            material_id=previous.material_id,
            smooth=previous.smooth,
        )
        self.index_resolver = self._new_resolver()

    def _flush(self) -> None:
        group = self.current
        if not group.indices:
            return
        group.vertices = self.index_resolver.vertices
        if self.allocator is not None:
            self._upload(group)
        self.groups.append(group)

    def _upload(self, group: MeshGroup) -> None:
        assert self.allocator is not None
        try:
            vertex_data = group.vertex_bytes()
            group.vertex_buffer = self.allocator.allocate(len(vertex_data), BufferUsage.VERTEX)
            self.allocator.upload(group.vertex_buffer, vertex_data)
            index_data = group.index_bytes()
            group.index_buffer = self.allocator.allocate(len(index_data), BufferUsage.INDEX)
            self.allocator.upload(group.index_buffer, index_data)
        except AllocationError as e:
            self.log.report(ALLOCATION_FAILURE, f"Group '{group.name}': {e}")
            raise

    def _vertex(self, record: Nonterminal) -> bool:
        x, y, z = record.value
        self.positions.append((x, y, z))
        return True

    def _normal(self, record: Nonterminal) -> bool:
        x, y, z = record.value
        self.normals.append((x, y, z))
        return True

    def _texcoord(self, record: Nonterminal) -> bool:
        u, v = record.value
        self.texcoords.append((u, v))
        return True

    def _face(self, record: Nonterminal) -> bool:
        keys: tuple[VertexKey, ...] = record.value
        for key in keys:
            problem = self.index_resolver.check(key)
            if problem is not None:
                self.log.report(INDEX_OUT_OF_RANGE, f"Face {problem}.", record.span)
                return False

        corners = [self.index_resolver.resolve(key) for key in keys]
        for i in range(1, len(corners) - 1):
            self.current.indices.extend((corners[0], corners[i], corners[i + 1]))
        return True

    def _group(self, record: Nonterminal) -> bool:
        self._flush()
        self._open(str(record.value))
        return True

    def _mtllib(self, record: Nonterminal) -> bool:
        for filename in record.value:
            path = self.directory / filename
            try:
                loaded = load_mtl(path, self.log)
            except SourceReadError as e:
                self.log.report(
                    MATERIAL_LIBRARY_MISSING,
                    f"Material library '{filename}' could not be loaded: {e}",
                    record.span,
                )
                continue
            self.materials.update(loaded)
            self.library.update(loaded)
        return True

    def _usemtl(self, record: Nonterminal) -> bool:
        name = str(record.value)
        material_id = self.material_resolver.resolve(name)
        if material_id is None:
            self.log.report(
                UNKNOWN_MATERIAL,
                f"Unknown material '{name}'; the current material is unchanged.",
                record.span,
            )
            return True
        if name == self.current.material:
            return True
        if self.current.indices:
            self._flush()
            self._open(self.current.name)
        self.current.material = name
        self.current.material_id = material_id
        return True

    def _smoothing(self, record: Nonterminal) -> bool:
        self.current.smooth = bool(record.value)
        return True


def parse_obj(
    source: CharSource,
    *,
    options: ParserOptions | None = None,
    log: DiagnosticLog | None = None,
    directory: Path | None = None,
    library: MaterialLibrary | None = None,
    resolver: MaterialResolver | None = None,
    allocator: BufferAllocator | None = None,
) -> Model:
    """Parse a model from an open character source.

    Record-level problems are reported to ``log`` and parsing continues; inspect
    ``model.log`` afterwards.

    Raises:
        SourceReadError: If the source fails mid-read.
        AllocationError: If ``allocator`` rejects a group's buffers.
        DiagnosticError: If a warning is escalated by the warning policy.
    """
    options = options or ParserOptions()
    if log is None:
        log = options.diagnostic_log()

    assembler = ModelAssembler(
        log,
        options=options,
        directory=directory,
        library=library,
        resolver=resolver,
        allocator=allocator,
    )
    parser = ShiftReduceParser(
        Lexer(source, OBJ_DIALECT, log),
        ReductionEngine(OBJ_GRAMMAR, log, triangulate=options.triangulate),
        assembler,
        log,
    )

    assembler.start()
    try:
        parser.run()
    except SourceReadError as e:
        log.report(READ_FAILURE, str(e), file=source.name)
        raise
    assembler.finish()

    return Model(source.name, assembler.groups, dict(assembler.materials), log)


def parse_obj_text(text: str, name: str = "<string>", **kwargs) -> Model:
    with CharSource.from_text(text, name) as source:
        return parse_obj(source, **kwargs)


def load_obj(path: str | Path, **kwargs) -> Model:
    """Load a model file; material libraries are resolved relative to its directory."""
    path = Path(path)
    kwargs.setdefault("directory", path.parent)
    with CharSource.from_path(path) as source:
        return parse_obj(source, **kwargs)
