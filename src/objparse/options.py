"""Parser options and YAML loading for option files."""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from objparse.diagnostics import DiagnosticLog, DiagnosticSink, TextSink
from objparse.errors import ConfigError
from objparse.warning_policy import KNOWN_CODES, WarningPolicy


class ParserOptions(BaseModel):
    """Knobs shared by the model and material parsers."""

    model_config = ConfigDict(extra="forbid")

    flip_texture_v: bool = True
    triangulate: bool = False
    default_group: str = Field(default="default", min_length=1)
    warn_as_error: frozenset[str] = frozenset()
    suppress: frozenset[str] = frozenset()
    color: bool = False

    @field_validator("warn_as_error", "suppress")
    @classmethod
    def _known_codes(cls, v: frozenset[str]) -> frozenset[str]:
        unknown = sorted(v - KNOWN_CODES)
        if unknown:
            raise ValueError(f"Unknown warning code(s): {', '.join(unknown)}")
        return v

    def warning_policy(self) -> WarningPolicy:
        return WarningPolicy(warn_as_error=self.warn_as_error, suppress=self.suppress)

    def diagnostic_log(self, sink: DiagnosticSink | None = None) -> DiagnosticLog:
        """A fresh log honoring ``color`` and the warning policy."""
        if sink is None:
            sink = TextSink(color=self.color)
        return DiagnosticLog(sink, policy=self.warning_policy())


def _make_yaml() -> YAML:
    """Create a ruamel.yaml safe loader that errors on duplicate keys."""
    yml = YAML(typ="safe")
    yml.allow_duplicate_keys = False
    return yml


def load_options(source: str | Path) -> ParserOptions:
    """Load parser options from a YAML file path or raw YAML text.

    Raises:
        ConfigError: On unreadable files, YAML syntax errors, or schema violations.
    """
    if isinstance(source, Path):
        try:
            text = source.read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigError(f"Cannot read file: {e}") from e
    else:
        text = source

    try:
        data = _make_yaml().load(text)
    except YAMLError as e:
        raise ConfigError(f"Invalid YAML: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError("Top-level YAML value must be a mapping")

    try:
        return ParserOptions(**data)
    except ValidationError as e:
        raise ConfigError(f"Invalid options:\n{e}") from e
