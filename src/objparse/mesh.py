"""Output data model: packed mesh groups and material colors."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, NamedTuple

import numpy as np

from objparse.diagnostics import DiagnosticLog

VERTEX_DTYPE = np.dtype(
    [
        ("position", np.float32, (3,)),
        ("normal", np.float32, (3,)),
        ("texcoord", np.float32, (2,)),
    ]
)


class Color(NamedTuple):
    r: float
    g: float
    b: float


DEFAULT_DIFFUSE = Color(0.8, 0.8, 0.8)


class Vertex(NamedTuple):
    position: tuple[float, float, float]
    normal: tuple[float, float, float] = (0.0, 0.0, 0.0)
    texcoord: tuple[float, float] = (0.0, 0.0)


@dataclass
class MeshGroup:
    """One named sub-mesh with its own packed vertex array and triangle indices."""

    name: str
    material: str | None = None
    material_id: Any = None
    smooth: bool = False
    vertices: list[Vertex] = field(default_factory=list)
    indices: list[int] = field(default_factory=list)
    vertex_buffer: Any = None
    index_buffer: Any = None

    @property
    def triangle_count(self) -> int:
        return len(self.indices) // 3

    def vertex_array(self) -> np.ndarray:
        """Interleaved vertices as a structured float32 array."""
        arr = np.zeros(len(self.vertices), dtype=VERTEX_DTYPE)
        if self.vertices:
            arr["position"] = [v.position for v in self.vertices]
            arr["normal"] = [v.normal for v in self.vertices]
            arr["texcoord"] = [v.texcoord for v in self.vertices]
        return arr

    @property
    def positions(self) -> np.ndarray:  # (N, 3) float32
        return self.vertex_array()["position"]

    @property
    def normals(self) -> np.ndarray:  # (N, 3) float32
        return self.vertex_array()["normal"]

    @property
    def texcoords(self) -> np.ndarray:  # (N, 2) float32
        return self.vertex_array()["texcoord"]

    def index_array(self) -> np.ndarray:
        return np.asarray(self.indices, dtype=np.uint32)

    def vertex_bytes(self) -> bytes:
        return self.vertex_array().tobytes()

    def index_bytes(self) -> bytes:
        return self.index_array().tobytes()

    def bounds(self) -> tuple[list[float], list[float]]:
        if not self.vertices:
            return [0.0, 0.0, 0.0], [0.0, 0.0, 0.0]
        positions = self.positions
        return positions.min(axis=0).tolist(), positions.max(axis=0).tolist()


@dataclass
class Model:
    """Result of one model parse: finished groups, known materials and the run's diagnostics."""

    name: str
    groups: list[MeshGroup] = field(default_factory=list)
    materials: dict[str, Color] = field(default_factory=dict)
    log: DiagnosticLog | None = None

    @property
    def ok(self) -> bool:
        return self.log is None or not self.log.has_errors

    @property
    def vertex_count(self) -> int:
        return sum(len(group.vertices) for group in self.groups)

    @property
    def triangle_count(self) -> int:
        return sum(group.triangle_count for group in self.groups)

    def group(self, name: str) -> MeshGroup | None:
        for group in self.groups:
            if group.name == name:
                return group
        return None
