"""Inspection summaries for parsed models."""

from __future__ import annotations

import numpy as np

from objparse.mesh import MeshGroup, Model

INSPECT_SCHEMA_VERSION = "1"
NO_MATERIAL = "none"


def inspect_model(model: Model) -> dict[str, object]:
    """Return a deterministic, JSON-serializable summary of ``model``."""
    groups = [_group_payload(group) for group in model.groups]
    counts = model.log.summary() if model.log is not None else {}
    return {
        "inspect_schema_version": INSPECT_SCHEMA_VERSION,
        "summary": {
            "file": model.name,
            "group_count": len(model.groups),
            "vertex_count": model.vertex_count,
            "triangle_count": model.triangle_count,
            "bounds": _model_bounds(model.groups),
        },
        "groups": groups,
        "materials": {
            name: [float(c) for c in color] for name, color in sorted(model.materials.items())
        },
        "diagnostics": counts,
    }


def render_text(payload: dict[str, object]) -> str:
    """Render human-readable text output for an inspect payload."""
    lines: list[str] = []

    lines.append(f"inspect_schema_version: {payload['inspect_schema_version']}")

    summary = payload["summary"]
    bounds = summary["bounds"]
    lines.append("summary:")
    lines.append(f"  file: {summary['file']}")
    lines.append(f"  group_count: {summary['group_count']}")
    lines.append(f"  vertex_count: {summary['vertex_count']}")
    lines.append(f"  triangle_count: {summary['triangle_count']}")
    lines.append(f"  bounds.min: {_fmt_vec(bounds['min'])}")
    lines.append(f"  bounds.max: {_fmt_vec(bounds['max'])}")

    lines.append("groups:")
    groups = payload.get("groups", [])
    if isinstance(groups, list) and groups:
        for group in groups:
            lines.append(f"  - name: {group['name']}")
            lines.append(f"    material: {group['material']}")
            lines.append(f"    smooth: {str(group['smooth']).lower()}")
            lines.append(f"    vertex_count: {group['vertex_count']}")
            lines.append(f"    index_count: {group['index_count']}")
            lines.append(f"    aabb.min: {_fmt_vec(group['aabb']['min'])}")
            lines.append(f"    aabb.max: {_fmt_vec(group['aabb']['max'])}")
    else:
        lines.append("  []")

    lines.append("materials:")
    materials = payload.get("materials", {})
    if isinstance(materials, dict) and materials:
        for name, color in materials.items():
            lines.append(f"  {name}: {_fmt_vec(color)}")
    else:
        lines.append("  {}")

    diagnostics = payload.get("diagnostics", {})
    if isinstance(diagnostics, dict) and diagnostics:
        lines.append("diagnostics:")
        for severity, count in diagnostics.items():
            lines.append(f"  {severity}: {count}")

    return "\n".join(lines) + "\n"


def _group_payload(group: MeshGroup) -> dict[str, object]:
    aabb_min, aabb_max = group.bounds()
    return {
        "name": group.name,
        "material": group.material or NO_MATERIAL,
        "smooth": group.smooth,
        "vertex_count": len(group.vertices),
        "index_count": len(group.indices),
        "aabb": {"min": aabb_min, "max": aabb_max},
    }


def _model_bounds(groups: list[MeshGroup]) -> dict[str, list[float]]:
    if not groups:
        zeros = [0.0, 0.0, 0.0]
        return {"min": zeros, "max": zeros}

    bounds = [group.bounds() for group in groups]
    min_bounds = np.minimum.reduce([np.asarray(lo) for lo, _ in bounds])
    max_bounds = np.maximum.reduce([np.asarray(hi) for _, hi in bounds])
    return {"min": _to_list(min_bounds), "max": _to_list(max_bounds)}


def _to_list(vec: np.ndarray) -> list[float]:
    return [float(v) for v in vec.tolist()]


def _fmt_vec(vec: object) -> str:
    if not isinstance(vec, list):
        return str(vec)
    return "[" + ", ".join(f"{float(v):.6g}" for v in vec) + "]"
