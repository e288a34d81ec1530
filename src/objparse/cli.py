"""Click CLI entry point for the objparse toolkit."""

from __future__ import annotations

import functools
import json
from collections.abc import Callable
from pathlib import Path
from typing import Any

import click

from objparse import __version__
from objparse.assembler import load_obj
from objparse.diagnostics import DiagnosticLog
from objparse.errors import ObjParseError
from objparse.exporter import export_glb
from objparse.inspection import inspect_model
from objparse.inspection import render_text as render_inspection_text
from objparse.materials import load_mtl
from objparse.options import ParserOptions, load_options
from objparse.warning_policy import parse_code_list

MATERIAL_SUFFIXES = (".mtl",)


def _build_options(
    config: Path | None,
    warn_as_error: str | None,
    suppress_warning: str | None,
    color: bool | None,
    triangulate: bool | None,
) -> ParserOptions:
    """Merge a config file (if any) with command-line overrides."""
    try:
        options = load_options(config) if config is not None else ParserOptions()
    except ObjParseError as e:
        raise click.ClickException(str(e)) from e

    overrides: dict[str, Any] = {}
    try:
        if warn_as_error is not None:
            overrides["warn_as_error"] = parse_code_list(warn_as_error)
        if suppress_warning is not None:
            overrides["suppress"] = parse_code_list(suppress_warning)
    except ValueError as e:
        raise click.ClickException(str(e)) from e
    if color is not None:
        overrides["color"] = color
    if triangulate is not None:
        overrides["triangulate"] = triangulate
    return options.model_copy(update=overrides)


def parser_options(func: Callable[..., Any]) -> Callable[..., Any]:
    """Attach the shared parsing options and pass a ``ParserOptions`` as ``options``."""

    @click.option(
        "--config",
        type=click.Path(exists=True, dir_okay=False, path_type=Path),
        default=None,
        help="YAML file with parser options.",
    )
    @click.option(
        "--warn-as-error",
        "warn_as_error",
        type=str,
        default=None,
        help="Comma-separated W-codes to treat as errors (e.g. W01,W02).",
    )
    @click.option(
        "--suppress-warning",
        "suppress_warning",
        type=str,
        default=None,
        help="Comma-separated W-codes to suppress (e.g. W03).",
    )
    @click.option(
        "--color/--no-color",
        default=None,
        help="Highlight diagnostics with ANSI colors.",
    )
    @click.option(
        "--triangulate/--no-triangulate",
        default=None,
        help="Fan-triangulate faces with more than three corners.",
    )
    @functools.wraps(func)
    def wrapper(
        *args: Any,
        config: Path | None,
        warn_as_error: str | None,
        suppress_warning: str | None,
        color: bool | None,
        triangulate: bool | None,
        **kwargs: Any,
    ) -> Any:
        options = _build_options(config, warn_as_error, suppress_warning, color, triangulate)
        return func(*args, options=options, **kwargs)

    return wrapper


def _is_material_file(path: Path) -> bool:
    return path.suffix.lower() in MATERIAL_SUFFIXES


def _summary_line(path: Path, log: DiagnosticLog) -> str:
    return f"{path}: {log.error_count} error(s), {log.warning_count} warning(s)"


@click.group()
@click.version_option(version=__version__, prog_name="objparse")
def main() -> None:
    """objparse: parse Wavefront .obj models and .mtl material libraries."""


@main.command()
@click.argument("input_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@parser_options
def check(input_file: Path, options: ParserOptions) -> None:
    """Parse a .obj or .mtl file and report diagnostics.

    Exits with code 1 if any error was reported.
    """
    log = options.diagnostic_log()
    try:
        if _is_material_file(input_file):
            load_mtl(input_file, log)
        else:
            load_obj(input_file, options=options, log=log)
    except ObjParseError as e:
        raise click.ClickException(str(e))

    click.echo(_summary_line(input_file, log))
    if log.has_errors:
        raise SystemExit(1)


@main.command()
@click.argument("input_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["text", "json"]),
    default="text",
    show_default=True,
    help="Inspection output format.",
)
@parser_options
def inspect(input_file: Path, options: ParserOptions, output_format: str = "text") -> None:
    """Summarize the groups, materials and diagnostics of a model."""
    try:
        model = load_obj(input_file, options=options)
    except ObjParseError as e:
        raise click.ClickException(str(e))

    payload = inspect_model(model)
    if output_format == "json":
        click.echo(json.dumps(payload, indent=2))
    else:
        click.echo(render_inspection_text(payload), nl=False)


@main.command()
@click.argument("input_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["text", "json"]),
    default="text",
    show_default=True,
    help="Output format.",
)
@parser_options
def materials(input_file: Path, options: ParserOptions, output_format: str = "text") -> None:
    """List the diffuse colors defined in a .mtl file."""
    try:
        table = load_mtl(input_file, options=options)
    except ObjParseError as e:
        raise click.ClickException(str(e))

    if output_format == "json":
        payload = {name: [float(c) for c in color] for name, color in table.items()}
        click.echo(json.dumps(payload, indent=2))
        return
    for name, color in table.items():
        click.echo(f"{name}: {color.r:.6g} {color.g:.6g} {color.b:.6g}")


@main.command()
@click.argument("input_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "-o",
    "--output",
    type=click.Path(path_type=Path),
    default=None,
    help="Output GLB file path. Defaults to input name with .glb extension.",
)
@parser_options
def convert(input_file: Path, options: ParserOptions, output: Path | None = None) -> None:
    """Convert a .obj model to GLB."""
    if output is None:
        output = input_file.with_suffix(".glb")

    try:
        model = load_obj(input_file, options=options)
        if not model.ok:
            raise click.ClickException(
                f"{input_file} has {model.log.error_count} error(s); not exporting"
            )
        export_glb(model, output)
    except ObjParseError as e:
        raise click.ClickException(str(e))
    click.echo(f"Converted: {output}")
