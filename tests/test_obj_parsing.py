"""End-to-end tests for model parsing."""

import numpy as np
import pytest

from objparse import ParserOptions, load_obj, parse_obj_text
from objparse.assembler import AssemblerState, ModelAssembler
from objparse.buffers import BufferUsage, MemoryBufferAllocator
from objparse.diagnostics import (
    ALLOCATION_FAILURE,
    BAD_SMOOTHING,
    INDEX_OUT_OF_RANGE,
    MATERIAL_LIBRARY_MISSING,
    MISSING_NAME,
    MIXED_FACE_SHAPES,
    NEGATIVE_INDEX,
    OPERAND_COUNT,
    TYPE_MISMATCH,
    UNKNOWN_MATERIAL,
    UNKNOWN_TOKEN,
    UNSUPPORTED_STATEMENT,
    VALUE_OUT_OF_RANGE,
    Severity,
)
from objparse.errors import AllocationError, DiagnosticError, SourceReadError
from objparse.materials import MaterialLibrary
from objparse.mesh import VERTEX_DTYPE, Color
from objparse.warning_policy import WarningPolicy

QUAD_VERTICES = "v 0 0 0\nv 1 0 0\nv 1 1 0\nv 0 1 0\n"


def parse(text, log, **kwargs):
    return parse_obj_text(text, "test.obj", log=log, **kwargs)


class TestMinimalModels:
    def test_minimal_triangle(self, triangle_obj, collecting_log):
        model = parse(triangle_obj, collecting_log)
        assert model.ok
        assert len(model.groups) == 1
        group = model.groups[0]
        assert group.name == "default"
        assert len(group.vertices) == 3
        assert group.indices == [0, 1, 2]
        assert collecting_log.diagnostics == []

    def test_empty_file(self, collecting_log):
        model = parse("", collecting_log)
        assert model.groups == []
        assert model.ok

    def test_vertices_without_faces_are_not_flushed(self, collecting_log):
        model = parse(QUAD_VERTICES, collecting_log)
        assert model.groups == []

    def test_custom_default_group(self, triangle_obj, collecting_log):
        model = parse(triangle_obj, collecting_log, options=ParserOptions(default_group="body"))
        assert model.groups[0].name == "body"

    def test_four_component_vertex_drops_w(self, collecting_log):
        model = parse("v 1 2 3 0.5\nv 0 0 0\nv 0 1 0\nf 1 2 3\n", collecting_log)
        assert model.groups[0].vertices[0].position == (1.0, 2.0, 3.0)

    def test_single_component_texture(self, collecting_log):
        text = "v 0 0 0\nv 1 0 0\nv 0 1 0\nvt 0.5\nf 1/1 2/1 3/1\n"
        model = parse(text, collecting_log)
        assert model.groups[0].vertices[0].texcoord == (0.5, 1.0)


class TestWelding:
    def test_identical_corners_share_an_index(self, collecting_log):
        text = "v 0 0 0\nv 1 0 0\nv 0 1 0\nf 1 2 3\nf 3 2 1\n"
        group = parse(text, collecting_log).groups[0]
        assert len(group.vertices) == 3
        assert group.indices == [0, 1, 2, 2, 1, 0]

    def test_degenerate_face_grows_by_one(self, collecting_log):
        group = parse("v 0 0 0\nf 1 1 1\n", collecting_log).groups[0]
        assert len(group.vertices) == 1
        assert group.indices == [0, 0, 0]

    def test_attributes_split_vertices(self, collecting_log):
        text = "v 0 0 0\nv 1 0 0\nv 0 1 0\nvt 0 0\nvt 1 1\nf 1/1 2/1 3/1\nf 1/2 2/1 3/1\n"
        group = parse(text, collecting_log).groups[0]
        assert len(group.vertices) == 4
        assert group.indices == [0, 1, 2, 3, 1, 2]

    def test_texture_v_flipped_by_default(self, collecting_log):
        text = "v 0 0 0\nvt 0.25 0.1\nf 1/1 1/1 1/1\n"
        group = parse(text, collecting_log).groups[0]
        assert group.vertices[0].texcoord == pytest.approx((0.25, 0.9))

    def test_flip_disabled(self, collecting_log):
        text = "v 0 0 0\nvt 0.25 0.1\nf 1/1 1/1 1/1\n"
        options = ParserOptions(flip_texture_v=False)
        group = parse(text, collecting_log, options=options).groups[0]
        assert group.vertices[0].texcoord == (0.25, 0.1)

    def test_normals_attached(self, collecting_log):
        text = "v 0 0 0\nv 1 0 0\nv 0 1 0\nvn 0 0 1\nf 1//1 2//1 3//1\n"
        group = parse(text, collecting_log).groups[0]
        assert all(v.normal == (0.0, 0.0, 1.0) for v in group.vertices)


class TestFaceErrors:
    def test_mixed_face_shapes(self, collecting_log):
        text = "v 0 0 0\nv 1 0 0\nv 0 1 0\nvt 0 0\nvn 0 0 1\nf 1/1 2//1 3\n"
        model = parse(text, collecting_log)
        assert len(collecting_log.with_code(MIXED_FACE_SHAPES)) == 1
        assert collecting_log.error_count == 1
        assert model.groups == []

    def test_negative_index_unsupported(self, collecting_log):
        model = parse("v 0 0 0\nv 1 0 0\nv 0 1 0\nf -3 -2 -1\n", collecting_log)
        [diag] = collecting_log.with_code(NEGATIVE_INDEX)
        assert "Relative (negative) face indices are not yet supported." == diag.message
        assert diag.severity is Severity.ERROR
        assert model.groups == []

    def test_zero_index(self, collecting_log):
        parse("v 0 0 0\nf 0 1 1\n", collecting_log)
        assert len(collecting_log.with_code(INDEX_OUT_OF_RANGE)) == 1

    def test_out_of_range_appends_nothing(self, collecting_log):
        text = "v 0 0 0\nv 1 0 0\nv 0 1 0\nf 1 2 3\nf 1 2 9\n"
        group = parse(text, collecting_log).groups[0]
        assert group.indices == [0, 1, 2]
        assert len(group.vertices) == 3
        [diag] = collecting_log.with_code(INDEX_OUT_OF_RANGE)
        assert "vertex index 9" in diag.message

    def test_forward_reference_is_out_of_range(self, collecting_log):
        parse("f 1 2 3\nv 0 0 0\nv 1 0 0\nv 0 1 0\n", collecting_log)
        assert collecting_log.with_code(INDEX_OUT_OF_RANGE)

    def test_too_few_corners(self, collecting_log):
        parse(QUAD_VERTICES + "f 1 2\n", collecting_log)
        [diag] = collecting_log.with_code(OPERAND_COUNT)
        assert "Too few corners" in diag.message

    def test_quad_rejected_without_triangulation(self, collecting_log):
        model = parse(QUAD_VERTICES + "f 1 2 3 4\n", collecting_log)
        [diag] = collecting_log.with_code(OPERAND_COUNT)
        assert "Too many corners" in diag.message
        assert model.groups == []

    def test_decimal_corner(self, collecting_log):
        parse(QUAD_VERTICES + "f 1 2 3.5\n", collecting_log)
        assert len(collecting_log.with_code(TYPE_MISMATCH)) == 1

    def test_error_span_covers_record(self, collecting_log):
        parse(QUAD_VERTICES + "f 1/1 2 3\n", collecting_log)
        diag = collecting_log.diagnostics[0]
        assert diag.span.start == (5, 1)
        assert diag.span.end == (5, 9)

    def test_parsing_continues_after_error(self, collecting_log):
        model = parse(QUAD_VERTICES + "f 1 2\nf 1 2 3\n", collecting_log)
        assert model.groups[0].indices == [0, 1, 2]
        assert not model.ok


class TestRejectedTokens:
    def test_bad_corner_drops_whole_face(self, collecting_log):
        model = parse(QUAD_VERTICES + "f 1 2 3x 4\n", collecting_log)
        assert model.groups == []
        [diag] = collecting_log.diagnostics
        assert diag.code == UNKNOWN_TOKEN
        assert "'3x'" in diag.message

    def test_bad_corner_with_triangulation(self, collecting_log):
        options = ParserOptions(triangulate=True)
        model = parse(QUAD_VERTICES + "f 1 2 3 4x\n", collecting_log, options=options)
        assert model.groups == []
        assert collecting_log.error_count == 1

    def test_out_of_range_value_drops_whole_vertex(self, collecting_log):
        text = "v 1e40 2 3 4\n" + QUAD_VERTICES + "f 1 2 3\n"
        group = parse(text, collecting_log).groups[0]
        assert group.vertices[0].position == (0.0, 0.0, 0.0)
        assert group.vertices[1].position == (1.0, 0.0, 0.0)
        assert [d.code for d in collecting_log.diagnostics] == [VALUE_OUT_OF_RANGE]

    def test_malformed_normal_dropped(self, collecting_log):
        model = parse(QUAD_VERTICES + "vn 0 0 1e\nf 1//1 2//1 3//1\n", collecting_log)
        assert model.groups == []
        assert len(collecting_log.with_code(INDEX_OUT_OF_RANGE)) == 1

    def test_unknown_statement_reported_once(self, collecting_log):
        model = parse("bogus 1 2 3\n" + QUAD_VERTICES + "f 1 2 3\n", collecting_log)
        assert [d.code for d in collecting_log.diagnostics] == [UNKNOWN_TOKEN]
        assert model.groups[0].indices == [0, 1, 2]

    def test_following_record_survives(self, collecting_log):
        model = parse(QUAD_VERTICES + "f 1 2 -\nf 1 3 4\n", collecting_log)
        assert model.groups[0].vertices[2].position == (0.0, 1.0, 0.0)
        assert collecting_log.error_count == 1


class TestTriangulation:
    def test_quad_is_fanned(self, collecting_log):
        options = ParserOptions(triangulate=True)
        model = parse(QUAD_VERTICES + "f 1 2 3 4\n", collecting_log, options=options)
        assert model.groups[0].indices == [0, 1, 2, 0, 2, 3]
        assert model.triangle_count == 2

    def test_pentagon(self, collecting_log):
        options = ParserOptions(triangulate=True)
        text = QUAD_VERTICES + "v 0.5 1.5 0\nf 1 2 3 5 4\n"
        group = parse(text, collecting_log, options=options).groups[0]
        assert group.triangle_count == 3


class TestGroups:
    def test_group_boundaries(self, collecting_log):
        text = QUAD_VERTICES + "g a\nf 1 2 3\ng b\nf 1 3 4\n"
        model = parse(text, collecting_log)
        assert [g.name for g in model.groups] == ["a", "b"]
        assert model.groups[1].indices == [0, 1, 2]
        assert model.groups[1].vertices[1].position == (1.0, 1.0, 0.0)

    def test_multiple_group_names_joined(self, collecting_log):
        model = parse(QUAD_VERTICES + "g left arm\nf 1 2 3\n", collecting_log)
        assert model.groups[0].name == "left arm"

    def test_object_starts_group(self, collecting_log):
        model = parse(QUAD_VERTICES + "o thing\nf 1 2 3\n", collecting_log)
        assert model.group("thing") is not None

    def test_multiple_object_names_joined(self, collecting_log):
        model = parse(QUAD_VERTICES + "o My Object\nf 1 2 3\n", collecting_log)
        assert model.groups[0].name == "My Object"
        assert collecting_log.diagnostics == []

    def test_group_without_name(self, collecting_log):
        parse(QUAD_VERTICES + "g\nf 1 2 3\n", collecting_log)
        assert len(collecting_log.with_code(MISSING_NAME)) == 1

    def test_empty_groups_dropped(self, collecting_log):
        model = parse(QUAD_VERTICES + "g a\ng b\nf 1 2 3\n", collecting_log)
        assert [g.name for g in model.groups] == ["b"]

    @pytest.mark.parametrize(
        "value, expected", [("on", True), ("1", True), ("off", False), ("0", False)]
    )
    def test_smoothing(self, collecting_log, value, expected):
        model = parse(f"s {value}\n" + QUAD_VERTICES + "f 1 2 3\n", collecting_log)
        assert model.groups[0].smooth is expected

    def test_bad_smoothing(self, collecting_log):
        parse("s maybe\n", collecting_log)
        assert len(collecting_log.with_code(BAD_SMOOTHING)) == 1

    def test_unsupported_statement_noted_once(self, collecting_log):
        model = parse(QUAD_VERTICES + "l 1 2\nl 2 3\nf 1 2 3\n", collecting_log)
        assert len(collecting_log.with_code(UNSUPPORTED_STATEMENT)) == 1
        assert model.ok


class TestMaterials:
    def test_cube_with_library(self, cube_files, collecting_log):
        model = load_obj(cube_files, log=collecting_log)
        assert model.ok, collecting_log.diagnostics
        assert [g.name for g in model.groups] == ["front", "back"]
        assert model.groups[0].material == "red"
        assert model.groups[1].material == "blue"
        assert model.groups[1].smooth is True
        assert model.materials["red"] == Color(1.0, 0.0, 0.0)
        assert len(model.groups[0].vertices) == 4

    def test_unknown_material_keeps_current(self, collecting_log):
        model = parse("usemtl ghost\n" + QUAD_VERTICES + "f 1 2 3\n", collecting_log)
        assert model.groups[0].material is None
        assert len(collecting_log.with_code(UNKNOWN_MATERIAL)) == 1
        assert collecting_log.warning_count == 1

    def test_material_switch_splits_group(self, collecting_log):
        library = MaterialLibrary()
        library.define("a")
        library.define("b")
        text = QUAD_VERTICES + "g part\nusemtl a\nf 1 2 3\nusemtl b\nf 1 3 4\n"
        model = parse(text, collecting_log, library=library)
        assert [(g.name, g.material) for g in model.groups] == [("part", "a"), ("part", "b")]
        assert model.groups[1].material_id == 1

    def test_external_resolver(self, collecting_log):
        class Resolver:
            def resolve(self, name):
                return f"id:{name}" if name == "stone" else None

        text = "usemtl stone\n" + QUAD_VERTICES + "f 1 2 3\n"
        model = parse(text, collecting_log, resolver=Resolver())
        assert model.groups[0].material_id == "id:stone"

    def test_missing_library_warns(self, tmp_path, collecting_log):
        path = tmp_path / "m.obj"
        path.write_text("mtllib nowhere.mtl\n" + QUAD_VERTICES + "f 1 2 3\n")
        model = load_obj(path, log=collecting_log)
        assert len(collecting_log.with_code(MATERIAL_LIBRARY_MISSING)) == 1
        assert model.ok
        assert len(model.groups) == 1

    def test_warning_escalated(self, tmp_path):
        path = tmp_path / "m.obj"
        path.write_text("mtllib nowhere.mtl\n")
        options = ParserOptions(warn_as_error=frozenset({"W01"}))
        with pytest.raises(DiagnosticError, match=r"\[W01\]"):
            load_obj(path, options=options)

    def test_warning_suppressed(self, collecting_log):
        collecting_log.policy = WarningPolicy(suppress=frozenset({"W02"}))
        parse("usemtl ghost\n", collecting_log)
        assert collecting_log.diagnostics == []


class TestBuffers:
    def test_groups_uploaded(self, triangle_obj, collecting_log):
        allocator = MemoryBufferAllocator()
        model = parse(triangle_obj, collecting_log, allocator=allocator)
        group = model.groups[0]
        assert group.vertex_buffer.usage is BufferUsage.VERTEX
        assert group.index_buffer.byte_size == 12
        vertex_data = np.frombuffer(allocator.data(group.vertex_buffer), dtype=VERTEX_DTYPE)
        assert vertex_data["position"][1].tolist() == [1.0, 0.0, 0.0]
        indices = np.frombuffer(allocator.data(group.index_buffer), dtype=np.uint32)
        assert indices.tolist() == [0, 1, 2]

    def test_allocation_failure_is_fatal(self, triangle_obj, collecting_log):
        with pytest.raises(AllocationError):
            parse(triangle_obj, collecting_log, allocator=MemoryBufferAllocator(capacity=16))
        [diag] = collecting_log.with_code(ALLOCATION_FAILURE)
        assert diag.severity is Severity.FATAL

    def test_packed_arrays(self, triangle_obj, collecting_log):
        group = parse(triangle_obj, collecting_log).groups[0]
        assert group.positions.shape == (3, 3)
        assert group.positions.dtype == np.float32
        assert group.texcoords.shape == (3, 2)
        assert len(group.vertex_bytes()) == 3 * VERTEX_DTYPE.itemsize
        assert group.bounds() == ([0.0, 0.0, 0.0], [1.0, 1.0, 0.0])


class TestAssemblerLifecycle:
    def test_states(self, collecting_log):
        assembler = ModelAssembler(collecting_log)
        assert assembler.state is AssemblerState.IDLE
        assembler.start()
        assert assembler.state is AssemblerState.RUNNING
        assembler.finish()
        assert assembler.state is AssemblerState.DONE

    def test_cannot_finish_twice(self, collecting_log):
        assembler = ModelAssembler(collecting_log)
        assembler.start()
        assembler.finish()
        with pytest.raises(RuntimeError):
            assembler.finish()

    def test_missing_model_file(self, tmp_path):
        with pytest.raises(SourceReadError):
            load_obj(tmp_path / "missing.obj")
