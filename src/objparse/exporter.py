"""glTF/GLB assembly via pygltflib."""

from __future__ import annotations

from pathlib import Path

import numpy as np
import pygltflib

from objparse.buffers import BufferUsage
from objparse.errors import AllocationError, ExportError
from objparse.mesh import VERTEX_DTYPE, Color, MeshGroup, Model

_ALIGNMENT = 4


class GltfBufferAllocator:
    """Allocator that packs buffers into a single GLB binary chunk.

    Handles are buffer view indices. Vertex views are interleaved with ``VERTEX_DTYPE``'s
    stride.
    """

    def __init__(self) -> None:
        self.blob = bytearray()
        self.views: list[pygltflib.BufferView] = []

    def allocate(self, byte_size: int, usage: BufferUsage) -> int:
        if byte_size <= 0:
            raise AllocationError(f"Cannot allocate an empty {usage.value} buffer")
        self.blob.extend(b"\x00" * (-len(self.blob) % _ALIGNMENT))
        offset = len(self.blob)
        self.blob.extend(b"\x00" * byte_size)

        if usage is BufferUsage.VERTEX:
            view = pygltflib.BufferView(
                buffer=0,
                byteOffset=offset,
                byteLength=byte_size,
                byteStride=VERTEX_DTYPE.itemsize,
                target=pygltflib.ARRAY_BUFFER,
            )
        else:
            view = pygltflib.BufferView(
                buffer=0,
                byteOffset=offset,
                byteLength=byte_size,
                target=pygltflib.ELEMENT_ARRAY_BUFFER,
            )
        self.views.append(view)
        return len(self.views) - 1

    def upload(self, handle: int, data: bytes) -> None:
        view = self.views[handle]
        if len(data) > view.byteLength:
            raise AllocationError(
                f"Upload of {len(data)} bytes overflows buffer view {handle} "
                f"({view.byteLength} bytes)"
            )
        self.blob[view.byteOffset : view.byteOffset + len(data)] = data


def _upload_group(allocator: GltfBufferAllocator, group: MeshGroup) -> tuple[int, int]:
    vertex_data = group.vertex_bytes()
    vertex_view = allocator.allocate(len(vertex_data), BufferUsage.VERTEX)
    allocator.upload(vertex_view, vertex_data)
    index_data = group.index_bytes()
    index_view = allocator.allocate(len(index_data), BufferUsage.INDEX)
    allocator.upload(index_view, index_data)
    return vertex_view, index_view


def _build_material(name: str, color: Color | None) -> pygltflib.Material:
    """Build a glTF Material from a diffuse color; glTF defaults apply when it is unknown."""
    if color is None:
        return pygltflib.Material(name=name, pbrMetallicRoughness=pygltflib.PbrMetallicRoughness())
    base_color = [float(np.float32(c)) for c in color] + [1.0]
    return pygltflib.Material(
        name=name,
        pbrMetallicRoughness=pygltflib.PbrMetallicRoughness(
            baseColorFactor=base_color,
            metallicFactor=0.0,
            roughnessFactor=1.0,
        ),
        alphaMode="OPAQUE",
        doubleSided=False,
    )


def _vertex_accessor(
    view: int, field_name: str, group: MeshGroup, accessor_type: str
) -> pygltflib.Accessor:
    accessor = pygltflib.Accessor(
        bufferView=view,
        byteOffset=VERTEX_DTYPE.fields[field_name][1],
        componentType=pygltflib.FLOAT,
        count=len(group.vertices),
        type=accessor_type,
    )
    if field_name == "position":
        accessor.min, accessor.max = group.bounds()
    return accessor


def build_gltf(model: Model, allocator: GltfBufferAllocator | None = None) -> pygltflib.GLTF2:
    """Build a glTF2 document with one mesh and node per group.

    When ``allocator`` is given, the groups must already hold handles from it (as when
    the model was parsed with that allocator); otherwise buffers are packed here.
    """
    if not model.groups:
        raise ExportError(f"{model.name}: model has no faces to export")

    if allocator is None:
        allocator = GltfBufferAllocator()
        views = [_upload_group(allocator, group) for group in model.groups]
    else:
        views = []
        for group in model.groups:
            if group.vertex_buffer is None or group.index_buffer is None:
                raise ExportError(f"Group {group.name!r} has no buffers in the given allocator")
            views.append((group.vertex_buffer, group.index_buffer))

    gltf = pygltflib.GLTF2(
        scene=0,
        scenes=[pygltflib.Scene(nodes=[])],
        nodes=[],
        meshes=[],
        accessors=[],
        bufferViews=list(allocator.views),
        buffers=[],
        materials=[],
    )

    material_map: dict[str, int] = {}
    for group, (vertex_view, index_view) in zip(model.groups, views):
        if group.material is not None and group.material not in material_map:
            material_map[group.material] = len(gltf.materials)
            color = model.materials.get(group.material)
            gltf.materials.append(_build_material(group.material, color))

        attributes = pygltflib.Attributes()
        attributes.POSITION = len(gltf.accessors)
        gltf.accessors.append(_vertex_accessor(vertex_view, "position", group, pygltflib.VEC3))
        # Corners without a normal carry a zero vector, which glTF rejects.
        if np.any(group.normals):
            attributes.NORMAL = len(gltf.accessors)
            gltf.accessors.append(_vertex_accessor(vertex_view, "normal", group, pygltflib.VEC3))
        attributes.TEXCOORD_0 = len(gltf.accessors)
        gltf.accessors.append(_vertex_accessor(vertex_view, "texcoord", group, pygltflib.VEC2))

        index_accessor = len(gltf.accessors)
        gltf.accessors.append(
            pygltflib.Accessor(
                bufferView=index_view,
                byteOffset=0,
                componentType=pygltflib.UNSIGNED_INT,
                count=len(group.indices),
                type=pygltflib.SCALAR,
            )
        )

        primitive = pygltflib.Primitive(
            attributes=attributes,
            indices=index_accessor,
            material=material_map.get(group.material) if group.material is not None else None,
        )
        if group.smooth:
            primitive.extras = {"smooth": True}

        mesh_index = len(gltf.meshes)
        gltf.meshes.append(pygltflib.Mesh(name=group.name, primitives=[primitive]))
        gltf.scenes[0].nodes.append(len(gltf.nodes))
        gltf.nodes.append(pygltflib.Node(name=group.name, mesh=mesh_index))

    gltf.buffers = [pygltflib.Buffer(byteLength=len(allocator.blob))]
    gltf.set_binary_blob(bytes(allocator.blob))
    return gltf


def export_glb(
    model: Model, output_path: str | Path, allocator: GltfBufferAllocator | None = None
) -> None:
    """Write ``model`` as a binary glTF file.

    Raises:
        ExportError: If the model has no geometry or the file cannot be written.
    """
    gltf = build_gltf(model, allocator)
    try:
        Path(output_path).write_bytes(b"".join(gltf.save_to_bytes()))
    except OSError as e:
        raise ExportError(f"Cannot write {output_path}: {e}") from e
