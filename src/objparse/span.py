"""Source locations used for diagnostics."""

from __future__ import annotations

from dataclasses import dataclass

Position = tuple[int, int]  # (line, col), both 1-based


@dataclass(frozen=True)
class SourceSpan:
    """An inclusive (line, col) range in a named source plus the literal lines it covers.

    ``lines`` holds one entry per covered line; an empty string marks a line whose text is
    irrelevant (or unknown). Spans are immutable; ``a + b`` returns a new span running from the
    earlier start to the later end.
    """

    file: str
    start: Position
    end: Position
    lines: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.end < self.start:
            raise ValueError(f"Span end {self.end} lies before its start {self.start}")
        expected = self.end[0] - self.start[0] + 1
        if len(self.lines) != expected:
            raise ValueError(
                f"Span covering lines {self.start[0]}-{self.end[0]} needs {expected} "
                f"line(s), got {len(self.lines)}"
            )

    @classmethod
    def at(cls, file: str, line: int, col: int, text: str = "") -> SourceSpan:
        """A single-position span."""
        return cls(file, (line, col), (line, col), (text,))

    @classmethod
    def on_line(
        cls, file: str, line: int, col_start: int, col_end: int, text: str = ""
    ) -> SourceSpan:
        """A span contained in one line."""
        return cls(file, (line, col_start), (line, col_end), (text,))

    @property
    def line_start(self) -> int:
        return self.start[0]

    @property
    def col_start(self) -> int:
        return self.start[1]

    @property
    def line_end(self) -> int:
        return self.end[0]

    @property
    def col_end(self) -> int:
        return self.end[1]

    def line_text(self, line: int) -> str:
        """Text of an absolute line number covered by this span."""
        if not self.line_start <= line <= self.line_end:
            raise IndexError(f"Line {line} is outside span lines {self.line_start}-{self.line_end}")
        return self.lines[line - self.line_start]

    def __add__(self, other: object) -> SourceSpan:
        if not isinstance(other, SourceSpan):
            return NotImplemented
        if other.file != self.file:
            raise ValueError(f"Cannot merge spans from {self.file!r} and {other.file!r}")
        if self.start > other.end:
            return other + self

        # Overlapping lines come from the later span; gaps become irrelevant lines.
        known = dict(zip(range(self.line_start, self.line_end + 1), self.lines))
        known.update(zip(range(other.line_start, other.line_end + 1), other.lines))

        start = min(self.start, other.start)
        end = max(self.end, other.end)
        lines = tuple(known.get(n, "") for n in range(start[0], end[0] + 1))
        return SourceSpan(self.file, start, end, lines)

    def __str__(self) -> str:
        return f"{self.file}:{self.line_start}:{self.col_start}"
