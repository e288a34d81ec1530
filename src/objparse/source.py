"""Forward-only character source with a single-character unget."""

from __future__ import annotations

import io
from pathlib import Path
from typing import TextIO

from objparse.errors import SourceReadError

EOF_CHAR = ""


class CharSource:
    """Reads a text stream one character at a time, tracking (line, col).

    The stream is pulled a line at a time so the text of the line being lexed is always
    available for diagnostics. Only the most recently read character can be ungot.
    """

    def __init__(self, stream: TextIO, name: str) -> None:
        self._stream = stream
        self.name = name
        self._buffer = ""
        self._index = 0
        self._line = 0
        self._can_unget = False
        self._exhausted = False

    @classmethod
    def from_path(cls, path: str | Path, *, encoding: str = "utf-8") -> CharSource:
        path = Path(path)
        try:
            stream = path.open("r", encoding=encoding, newline="")
        except OSError as e:
            raise SourceReadError(f"Cannot open {path}: {e}") from e
        return cls(stream, str(path))

    @classmethod
    def from_text(cls, text: str, name: str = "<string>") -> CharSource:
        return cls(io.StringIO(text, newline=""), name)

    @property
    def line(self) -> int:
        """Line of the most recently read character (1-based)."""
        return max(self._line, 1)

    @property
    def col(self) -> int:
        """Column of the most recently read character (1-based, 0 before the first)."""
        return self._index

    @property
    def exhausted(self) -> bool:
        return self._exhausted

    def line_text(self) -> str:
        """Text of the current line without its line terminator."""
        return self._buffer.rstrip("\r\n")

    def read(self) -> str:
        """Return the next character, or ``EOF_CHAR`` once the stream is exhausted."""
        if self._index >= len(self._buffer):
            if not self._next_line():
                self._can_unget = False
                return EOF_CHAR
        ch = self._buffer[self._index]
        self._index += 1
        self._can_unget = True
        return ch

    def unget(self) -> None:
        """Step back over the last character read. Ungetting EOF is a no-op."""
        if not self._can_unget:
            return
        self._index -= 1
        self._can_unget = False

    def close(self) -> None:
        self._stream.close()

    def _next_line(self) -> bool:
        if self._exhausted:
            return False
        try:
            raw = self._stream.readline()
        except (OSError, UnicodeDecodeError) as e:
            raise SourceReadError(f"Cannot read {self.name}: {e}") from e
        if not raw:
            self._exhausted = True
            # Keep the last line visible so the EOF token has context.
            self._index = len(self._buffer)
            return False
        self._buffer = raw
        self._index = 0
        self._line += 1
        return True

    def __enter__(self) -> CharSource:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()
