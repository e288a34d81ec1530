"""objparse: incremental parser for Wavefront .obj models and .mtl material libraries."""

from objparse.assembler import load_obj, parse_obj, parse_obj_text
from objparse.diagnostics import CollectingSink, DiagnosticLog, Severity, TextSink
from objparse.errors import ObjParseError
from objparse.materials import MaterialLibrary, load_mtl, parse_mtl_text
from objparse.mesh import Color, MeshGroup, Model
from objparse.options import ParserOptions, load_options

__version__ = "0.1.0"

__all__ = [
    "CollectingSink",
    "Color",
    "DiagnosticLog",
    "MaterialLibrary",
    "MeshGroup",
    "Model",
    "ObjParseError",
    "ParserOptions",
    "Severity",
    "TextSink",
    "load_mtl",
    "load_obj",
    "load_options",
    "parse_mtl_text",
    "parse_obj",
    "parse_obj_text",
]
