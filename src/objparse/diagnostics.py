"""Diagnostic records, codes, rendering and sinks."""

from __future__ import annotations

import sys
from dataclasses import dataclass
from enum import Enum
from typing import Final, Protocol, TextIO

import click

from objparse.span import SourceSpan
from objparse.warning_policy import WarningPolicy, emit_warning


class Severity(Enum):
    NOTE = "note"
    WARNING = "warning"
    ERROR = "error"
    FATAL = "fatal"

    @property
    def accent(self) -> str:
        return _ACCENTS[self]


_ACCENTS: dict[Severity, str] = {
    Severity.NOTE: "cyan",
    Severity.WARNING: "yellow",
    Severity.ERROR: "red",
    Severity.FATAL: "red",
}


@dataclass(frozen=True)
class DiagnosticCode:
    code: str
    severity: Severity
    title: str


# Lexer
UNKNOWN_TOKEN: Final = DiagnosticCode("E01", Severity.ERROR, "unknown token")
MALFORMED_NUMBER: Final = DiagnosticCode("E02", Severity.ERROR, "malformed numeric literal")
VALUE_OUT_OF_RANGE: Final = DiagnosticCode("E03", Severity.ERROR, "value out of range")

# Parser
OPERAND_COUNT: Final = DiagnosticCode("E04", Severity.ERROR, "wrong operand count")
TYPE_MISMATCH: Final = DiagnosticCode("E05", Severity.ERROR, "operand type mismatch")
MIXED_FACE_SHAPES: Final = DiagnosticCode("E06", Severity.ERROR, "mixed face corner shapes")
NEGATIVE_INDEX: Final = DiagnosticCode("E07", Severity.ERROR, "relative index unsupported")
INDEX_OUT_OF_RANGE: Final = DiagnosticCode("E08", Severity.ERROR, "index out of range")
MISSING_NAME: Final = DiagnosticCode("E09", Severity.ERROR, "missing name")
STRAY_VALUE: Final = DiagnosticCode("E10", Severity.ERROR, "stray value")
NO_CURRENT_MATERIAL: Final = DiagnosticCode("E11", Severity.ERROR, "no current material")
BAD_SMOOTHING: Final = DiagnosticCode("E12", Severity.ERROR, "invalid smoothing value")
UNEXPECTED_SYMBOL: Final = DiagnosticCode("E13", Severity.ERROR, "unexpected symbol")

# Recoverable
MATERIAL_LIBRARY_MISSING: Final = DiagnosticCode(
    "W01", Severity.WARNING, "material library missing"
)
UNKNOWN_MATERIAL: Final = DiagnosticCode("W02", Severity.WARNING, "unknown material")
MATERIAL_REDEFINED: Final = DiagnosticCode("W03", Severity.WARNING, "material redefined")
LEFTOVER_SYMBOLS: Final = DiagnosticCode("W04", Severity.WARNING, "unparsed symbols at end of file")

UNSUPPORTED_STATEMENT: Final = DiagnosticCode("N01", Severity.NOTE, "unsupported statement")

READ_FAILURE: Final = DiagnosticCode("F01", Severity.FATAL, "read failure")
ALLOCATION_FAILURE: Final = DiagnosticCode("F02", Severity.FATAL, "allocation failure")


@dataclass(frozen=True)
class Diagnostic:
    code: DiagnosticCode
    message: str
    span: SourceSpan | None = None
    file: str | None = None

    @property
    def severity(self) -> Severity:
        return self.code.severity

    def render(self, *, color: bool = False) -> str:
        return render_diagnostic(self, color=color)


def render_diagnostic(diagnostic: Diagnostic, *, color: bool = False) -> str:
    """Render a diagnostic as a header line plus the covered source lines.

    ``<file>:<line>:<col>: <severity>: <message>`` followed by each covered line prefixed with
    its right-aligned number and ``" | "``, then a blank line. With ``color`` the header is bold
    and the offending range is drawn in the severity's accent color.
    """
    severity = diagnostic.severity
    label = f"{severity.value}: "
    if color:
        label = click.style(label, fg=severity.accent, bold=True)

    span = diagnostic.span
    if span is None:
        location = f"{diagnostic.file or '<unknown>'}: "
        return f"{_bold(location, color)}{label}{diagnostic.message}\n\n"

    location = f"{span.file}:{span.line_start}:{span.col_start}: "
    out = [f"{_bold(location, color)}{label}{diagnostic.message}\n"]

    width = len(str(span.line_end))
    for number in range(span.line_start, span.line_end + 1):
        text = span.line_text(number)
        if color:
            text = _highlight(text, number, span, severity.accent)
        out.append(f" {number:>{width}} | {text}\n")
    out.append("\n")
    return "".join(out)


def _bold(text: str, color: bool) -> str:
    return click.style(text, bold=True) if color else text


def _highlight(text: str, number: int, span: SourceSpan, accent: str) -> str:
    lo = span.col_start - 1 if number == span.line_start else 0
    hi = span.col_end if number == span.line_end else len(text)
    lo = max(0, min(lo, len(text)))
    hi = max(lo, min(hi, len(text)))
    if lo == hi:
        return text
    return text[:lo] + click.style(text[lo:hi], fg=accent) + text[hi:]


class DiagnosticSink(Protocol):
    def emit(self, diagnostic: Diagnostic) -> None: ...


class TextSink:
    """Writes rendered diagnostics to a stream (stderr by default)."""

    def __init__(self, stream: TextIO | None = None, *, color: bool = False) -> None:
        self._stream = stream
        self.color = color

    def emit(self, diagnostic: Diagnostic) -> None:
        stream = self._stream if self._stream is not None else sys.stderr
        click.echo(diagnostic.render(color=self.color), file=stream, nl=False, color=self.color)


class CollectingSink:
    """Keeps diagnostics in memory."""

    def __init__(self) -> None:
        self.diagnostics: list[Diagnostic] = []

    def emit(self, diagnostic: Diagnostic) -> None:
        self.diagnostics.append(diagnostic)


class WarningsSink:
    """Forwards warning-severity diagnostics through ``warnings.warn``.

    Other severities go to ``fallback`` when one is given.
    """

    def __init__(self, fallback: DiagnosticSink | None = None) -> None:
        self.fallback = fallback

    def emit(self, diagnostic: Diagnostic) -> None:
        if diagnostic.severity is Severity.WARNING:
            location = f"{diagnostic.span}: " if diagnostic.span is not None else ""
            emit_warning(diagnostic.code.code, f"{location}{diagnostic.message}")
        elif self.fallback is not None:
            self.fallback.emit(diagnostic)


class DiagnosticLog:
    """Accumulates the diagnostics of a run and forwards them to a sink.

    Warning codes pass through the ``WarningPolicy``: suppressed codes are dropped and
    escalated codes raise ``DiagnosticError``.
    """

    def __init__(
        self,
        sink: DiagnosticSink | None = None,
        *,
        policy: WarningPolicy | None = None,
    ) -> None:
        self.sink: DiagnosticSink = sink if sink is not None else TextSink()
        self.policy = policy
        self.diagnostics: list[Diagnostic] = []

    def report(
        self,
        code: DiagnosticCode,
        message: str,
        span: SourceSpan | None = None,
        *,
        file: str | None = None,
    ) -> Diagnostic | None:
        if code.severity is Severity.WARNING and self.policy is not None:
            if self.policy.is_suppressed(code.code):
                return None
            self.policy.check_escalation(code.code, message)

        diagnostic = Diagnostic(code, message, span, file)
        self.diagnostics.append(diagnostic)
        self.sink.emit(diagnostic)
        return diagnostic

    def count(self, severity: Severity) -> int:
        return sum(1 for d in self.diagnostics if d.severity is severity)

    @property
    def error_count(self) -> int:
        return self.count(Severity.ERROR) + self.count(Severity.FATAL)

    @property
    def warning_count(self) -> int:
        return self.count(Severity.WARNING)

    @property
    def has_errors(self) -> bool:
        return self.error_count > 0

    def with_code(self, code: DiagnosticCode) -> list[Diagnostic]:
        return [d for d in self.diagnostics if d.code == code]

    def summary(self) -> dict[str, int]:
        return {severity.value: self.count(severity) for severity in Severity}
