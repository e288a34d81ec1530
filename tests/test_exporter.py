"""Tests for glTF/GLB export."""

import numpy as np
import pygltflib
import pytest

from objparse import load_obj, parse_obj_text
from objparse.buffers import BufferUsage
from objparse.errors import AllocationError, ExportError
from objparse.exporter import GltfBufferAllocator, build_gltf, export_glb
from objparse.mesh import VERTEX_DTYPE


def _load(path):
    return pygltflib.GLTF2().load(str(path))


class TestExporter:
    def test_glb_magic_bytes(self, triangle_obj, collecting_log, tmp_path):
        model = parse_obj_text(triangle_obj, "tri.obj", log=collecting_log)
        out = tmp_path / "tri.glb"
        export_glb(model, out)
        assert out.read_bytes()[:4] == b"glTF"

    def test_reloadable_by_pygltflib(self, cube_files, collecting_log, tmp_path):
        model = load_obj(cube_files, log=collecting_log)
        out = tmp_path / "cube.glb"
        export_glb(model, out)
        gltf = _load(out)
        assert [m.name for m in gltf.meshes] == ["front", "back"]
        assert len(gltf.scenes[0].nodes) == 2

    def test_materials_carry_diffuse(self, cube_files, collecting_log):
        gltf = build_gltf(load_obj(cube_files, log=collecting_log))
        colors = {m.name: m.pbrMetallicRoughness.baseColorFactor for m in gltf.materials}
        assert colors == {"red": [1.0, 0.0, 0.0, 1.0], "blue": [0.0, 0.0, 1.0, 1.0]}
        assert gltf.meshes[1].primitives[0].material == 1

    def test_smooth_group_marked(self, cube_files, collecting_log):
        gltf = build_gltf(load_obj(cube_files, log=collecting_log))
        assert gltf.meshes[0].primitives[0].extras in (None, {})
        assert gltf.meshes[1].primitives[0].extras == {"smooth": True}

    def test_normals_only_when_present(self, triangle_obj, cube_files, collecting_log):
        bare = build_gltf(parse_obj_text(triangle_obj, "tri.obj", log=collecting_log))
        assert bare.meshes[0].primitives[0].attributes.NORMAL is None
        cube = build_gltf(load_obj(cube_files, log=collecting_log))
        assert cube.meshes[0].primitives[0].attributes.NORMAL is not None

    def test_position_accessor_bounds(self, triangle_obj, collecting_log):
        gltf = build_gltf(parse_obj_text(triangle_obj, "tri.obj", log=collecting_log))
        position = gltf.accessors[gltf.meshes[0].primitives[0].attributes.POSITION]
        assert position.min == [0.0, 0.0, 0.0]
        assert position.max == [1.0, 1.0, 0.0]
        assert position.count == 3

    def test_binary_blob_holds_geometry(self, triangle_obj, collecting_log):
        gltf = build_gltf(parse_obj_text(triangle_obj, "tri.obj", log=collecting_log))
        blob = gltf.binary_blob()
        vertex_view = gltf.bufferViews[0]
        assert vertex_view.byteStride == VERTEX_DTYPE.itemsize
        vertices = np.frombuffer(
            blob[vertex_view.byteOffset : vertex_view.byteOffset + vertex_view.byteLength],
            dtype=VERTEX_DTYPE,
        )
        assert vertices["position"][2].tolist() == [0.0, 1.0, 0.0]

    def test_parse_with_gltf_allocator(self, cube_files, collecting_log, tmp_path):
        allocator = GltfBufferAllocator()
        model = load_obj(cube_files, log=collecting_log, allocator=allocator)
        assert [g.vertex_buffer for g in model.groups] == [0, 2]
        out = tmp_path / "cube.glb"
        export_glb(model, out, allocator)
        assert len(_load(out).bufferViews) == 4

    def test_allocator_without_handles(self, triangle_obj, collecting_log):
        model = parse_obj_text(triangle_obj, "tri.obj", log=collecting_log)
        with pytest.raises(ExportError, match="no buffers"):
            build_gltf(model, GltfBufferAllocator())

    def test_empty_model_rejected(self, collecting_log, tmp_path):
        model = parse_obj_text("v 0 0 0\n", "empty.obj", log=collecting_log)
        with pytest.raises(ExportError, match="no faces"):
            export_glb(model, tmp_path / "empty.glb")

    def test_unwritable_output(self, triangle_obj, collecting_log, tmp_path):
        model = parse_obj_text(triangle_obj, "tri.obj", log=collecting_log)
        with pytest.raises(ExportError, match="Cannot write"):
            export_glb(model, tmp_path / "missing" / "tri.glb")


class TestGltfBufferAllocator:
    def test_views_are_aligned(self):
        allocator = GltfBufferAllocator()
        allocator.allocate(6, BufferUsage.INDEX)
        second = allocator.allocate(32, BufferUsage.VERTEX)
        assert allocator.views[second].byteOffset == 8
        assert allocator.views[second].target == pygltflib.ARRAY_BUFFER

    def test_empty_allocation_rejected(self):
        with pytest.raises(AllocationError):
            GltfBufferAllocator().allocate(0, BufferUsage.VERTEX)

    def test_overflowing_upload_rejected(self):
        allocator = GltfBufferAllocator()
        handle = allocator.allocate(4, BufferUsage.INDEX)
        with pytest.raises(AllocationError, match="overflows"):
            allocator.upload(handle, b"\x00" * 8)
