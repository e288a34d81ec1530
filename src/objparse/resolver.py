"""Vertex welding: turning (vertex, texture, normal) references into one index space."""

from __future__ import annotations

from collections.abc import Sequence
from typing import NamedTuple

from objparse.mesh import Vertex


class VertexKey(NamedTuple):
    """1-based source indices of one face corner; ``None`` where the corner has none."""

    vertex: int
    normal: int | None = None
    texture: int | None = None


class IndexResolver:
    """Assigns dense output indices to distinct face-corner references.

    The raw tables are shared with the assembler and may keep growing while the resolver is
    alive. Texture V is inverted (``1 - v``) when the packed vertex is built, unless
    ``flip_v`` is off.
    """

    def __init__(
        self,
        positions: Sequence[tuple[float, float, float]],
        texcoords: Sequence[tuple[float, float]],
        normals: Sequence[tuple[float, float, float]],
        *,
        flip_v: bool = True,
    ) -> None:
        self._positions = positions
        self._texcoords = texcoords
        self._normals = normals
        self.flip_v = flip_v
        self.vertices: list[Vertex] = []
        self._lookup: dict[VertexKey, int] = {}

    def __len__(self) -> int:
        return len(self.vertices)

    def check(self, key: VertexKey) -> str | None:
        """Describe the first out-of-range reference in ``key``, or ``None`` if it is valid."""
        for label, index, table in (
            ("vertex", key.vertex, self._positions),
            ("texture coordinate", key.texture, self._texcoords),
            ("normal", key.normal, self._normals),
        ):
            if index is None:
                continue
            if not 1 <= index <= len(table):
                return f"{label} index {index} is out of range (defined so far: {len(table)})"
        return None

    def resolve(self, key: VertexKey) -> int:
        index = self._lookup.get(key)
        if index is not None:
            return index

        problem = self.check(key)
        if problem is not None:
            raise IndexError(problem)

        position = self._positions[key.vertex - 1]
        normal = self._normals[key.normal - 1] if key.normal is not None else (0.0, 0.0, 0.0)
        if key.texture is not None:
            u, v = self._texcoords[key.texture - 1]
            texcoord = (u, 1.0 - v if self.flip_v else v)
        else:
            texcoord = (0.0, 0.0)

        index = len(self.vertices)
        self.vertices.append(Vertex(tuple(position), tuple(normal), texcoord))
        self._lookup[key] = index
        return index
