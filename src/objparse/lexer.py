"""Character-level lexer driven by an explicit state/transition table."""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from enum import Enum, auto
from functools import cached_property
from typing import Union

import numpy as np

from objparse.diagnostics import (
    MALFORMED_NUMBER,
    UNKNOWN_TOKEN,
    VALUE_OUT_OF_RANGE,
    DiagnosticLog,
)
from objparse.source import EOF_CHAR, CharSource
from objparse.span import SourceSpan
from objparse.tokens import Token, TokenKind

UINT32_MAX = int(np.iinfo(np.uint32).max)
INT32_MIN = int(np.iinfo(np.int32).min)
FLOAT32_MAX = float(np.finfo(np.float32).max)

WHITESPACE = frozenset(" \t\r\n\v\f")
DIGITS = frozenset("0123456789")
SIGNS = frozenset("+-")
EXPONENT_MARKS = frozenset("eE")


class LexerState(Enum):
    START = auto()
    COMMENT = auto()
    SKIP_LINE = auto()
    SIGN = auto()
    INTEGER = auto()
    POINT = auto()
    FRACTION = auto()
    EXPONENT_START = auto()
    EXPONENT_SIGN = auto()
    EXPONENT = auto()
    INDEX_SLASH = auto()
    INDEX_SECOND = auto()
    INDEX_SECOND_SLASH = auto()
    INDEX_THIRD = auto()
    NAME = auto()
    UNKNOWN = auto()
    MALFORMED = auto()


@dataclass(frozen=True)
class KeywordPrefix:
    """A partially (or fully) recognized keyword."""

    text: str


State = Union[LexerState, KeywordPrefix]


class Action(Enum):
    SHIFT = auto()  # consume the character into the lexeme
    SKIP = auto()  # consume and drop the character
    RETRY = auto()  # put the character back and switch state
    EMIT = auto()  # put the character back and finalize the token
    DISCARD = auto()  # put the character back, report and reject the lexeme
    END = auto()  # end of input


_MALFORMED_REASONS: dict[LexerState, str] = {
    LexerState.SIGN: "expected a digit after the sign",
    LexerState.POINT: "expected a digit after the decimal point",
    LexerState.EXPONENT_START: "encountered scientific 'e' without an exponent",
    LexerState.EXPONENT_SIGN: "encountered scientific 'e' without an exponent",
    LexerState.INDEX_SLASH: "incomplete composite index",
    LexerState.INDEX_SECOND_SLASH: "incomplete composite index",
}


@dataclass(frozen=True)
class Dialect:
    """Keyword table of one file format.

    ``arguments`` maps keywords whose operands are names to the token kind those names get;
    ``unsupported`` keywords are recognized but their line is skipped.
    """

    name: str
    keywords: Mapping[str, TokenKind]
    arguments: Mapping[TokenKind, TokenKind] = field(default_factory=dict)
    unsupported: frozenset[str] = frozenset()

    @cached_property
    def prefixes(self) -> frozenset[str]:
        words = set(self.keywords) | set(self.unsupported)
        return frozenset(word[:i] for word in words for i in range(1, len(word) + 1))

    def keyword_kind(self, text: str) -> TokenKind | None:
        if text in self.keywords:
            return self.keywords[text]
        if text in self.unsupported:
            return TokenKind.UNSUPPORTED
        return None


OBJ_DIALECT = Dialect(
    name="obj",
    keywords={
        "v": TokenKind.VERTEX,
        "vn": TokenKind.NORMAL,
        "vt": TokenKind.TEXTURE,
        "f": TokenKind.FACE,
        "g": TokenKind.GROUP,
        "o": TokenKind.OBJECT,
        "mtllib": TokenKind.MTLLIB,
        "usemtl": TokenKind.USEMTL,
        "s": TokenKind.SMOOTH,
    },
    arguments={
        TokenKind.GROUP: TokenKind.NAME,
        TokenKind.OBJECT: TokenKind.NAME,
        TokenKind.USEMTL: TokenKind.NAME,
        TokenKind.SMOOTH: TokenKind.NAME,
        TokenKind.MTLLIB: TokenKind.FILENAME,
    },
    unsupported=frozenset(
        {
            "l", "p", "vp", "cstype", "deg", "bmat", "step", "curv", "curv2", "surf",
            "parm", "trim", "hole", "scrv", "sp", "end", "con", "mg", "lod",
            "shadow_obj", "trace_obj", "ctech", "stech", "bevel", "c_interp", "d_interp",
        }
    ),
)

MTL_DIALECT = Dialect(
    name="mtl",
    keywords={
        "newmtl": TokenKind.NEWMTL,
        "Kd": TokenKind.DIFFUSE,
    },
    arguments={TokenKind.NEWMTL: TokenKind.NAME},
    unsupported=frozenset(
        {
            "Ka", "Ks", "Ke", "Ns", "Ni", "d", "Tr", "Tf", "illum", "sharpness",
            "map_Ka", "map_Kd", "map_Ks", "map_Ke", "map_Ns", "map_d", "map_bump",
            "bump", "disp", "decal", "refl", "norm", "Pr", "Pm", "Ps", "Pc", "Pcr",
            "aniso", "anisor", "map_Pr", "map_Pm",
        }
    ),
)


def _terminates(ch: str) -> bool:
    return ch == EOF_CHAR or ch == "#" or ch in WHITESPACE


class Lexer:
    """Turns a character source into tokens on demand.

    ``next()`` never returns ``None``: unknown or malformed input is reported to the
    diagnostic log, then returned as an ``INVALID`` token so the record around it is dropped
    as a whole. Once the source is exhausted every call returns the same EOF token. Tokens
    handed to ``push_back`` are returned LIFO before any new input is read.
    """

    def __init__(self, source: CharSource, dialect: Dialect, log: DiagnosticLog) -> None:
        self._source = source
        self.dialect = dialect
        self._log = log
        self._pushed: list[Token] = []
        self._eof: Token | None = None
        self._argument_kind: TokenKind | None = None
        self._skip_line = False

    @property
    def file(self) -> str:
        return self._source.name

    def next(self) -> Token:
        if self._pushed:
            return self._pushed.pop()
        if self._eof is not None:
            return self._eof
        return self._scan()

    def push_back(self, token: Token) -> None:
        self._pushed.append(token)

    def __iter__(self) -> Iterator[Token]:
        while True:
            token = self.next()
            yield token
            if token.kind is TokenKind.EOF:
                return

    def transition(self, state: State, ch: str) -> tuple[State, Action]:
        """The automaton: given a state and the next character, the new state and action."""
        if isinstance(state, KeywordPrefix):
            return self._keyword_transition(state, ch)

        if state is LexerState.START:
            if ch == EOF_CHAR:
                return LexerState.START, Action.END
            if ch in WHITESPACE:
                return LexerState.START, Action.SKIP
            if ch == "#":
                return LexerState.COMMENT, Action.SKIP
            if self._argument_kind is not None:
                return LexerState.NAME, Action.SHIFT
            if ch in DIGITS:
                return LexerState.INTEGER, Action.SHIFT
            if ch in SIGNS:
                return LexerState.SIGN, Action.SHIFT
            if ch == ".":
                return LexerState.POINT, Action.SHIFT
            if ch in self.dialect.prefixes:
                return KeywordPrefix(ch), Action.SHIFT
            return LexerState.UNKNOWN, Action.SHIFT

        if state in (LexerState.COMMENT, LexerState.SKIP_LINE):
            if ch == "\n":
                return LexerState.START, Action.SKIP
            if ch == EOF_CHAR:
                return LexerState.START, Action.RETRY
            return state, Action.SKIP

        if state in (LexerState.NAME, LexerState.UNKNOWN, LexerState.MALFORMED):
            if _terminates(ch):
                action = Action.EMIT if state is LexerState.NAME else Action.DISCARD
                return LexerState.START, action
            return state, Action.SHIFT

        return self._number_transition(state, ch)

    def _keyword_transition(self, state: KeywordPrefix, ch: str) -> tuple[State, Action]:
        if _terminates(ch):
            if self.dialect.keyword_kind(state.text) is not None:
                return LexerState.START, Action.EMIT
            return LexerState.UNKNOWN, Action.RETRY
        extended = state.text + ch
        if extended in self.dialect.prefixes:
            return KeywordPrefix(extended), Action.SHIFT
        return LexerState.UNKNOWN, Action.SHIFT

    def _number_transition(self, state: LexerState, ch: str) -> tuple[State, Action]:
        S = LexerState
        if state is S.SIGN:
            if ch in DIGITS:
                return S.INTEGER, Action.SHIFT
            if ch == ".":
                return S.POINT, Action.SHIFT
        elif state is S.INTEGER:
            if ch in DIGITS:
                return S.INTEGER, Action.SHIFT
            if ch == ".":
                return S.FRACTION, Action.SHIFT
            if ch in EXPONENT_MARKS:
                return S.EXPONENT_START, Action.SHIFT
            if ch == "/":
                return S.INDEX_SLASH, Action.SHIFT
            if _terminates(ch):
                return S.START, Action.EMIT
        elif state is S.POINT:
            if ch in DIGITS:
                return S.FRACTION, Action.SHIFT
        elif state is S.FRACTION:
            if ch in DIGITS:
                return S.FRACTION, Action.SHIFT
            if ch in EXPONENT_MARKS:
                return S.EXPONENT_START, Action.SHIFT
            if _terminates(ch):
                return S.START, Action.EMIT
        elif state is S.EXPONENT_START:
            if ch in SIGNS:
                return S.EXPONENT_SIGN, Action.SHIFT
            if ch in DIGITS:
                return S.EXPONENT, Action.SHIFT
            if not _terminates(ch):
                return S.MALFORMED, Action.SHIFT
        elif state is S.EXPONENT_SIGN:
            if ch in DIGITS:
                return S.EXPONENT, Action.SHIFT
            if not _terminates(ch):
                return S.MALFORMED, Action.SHIFT
        elif state is S.EXPONENT:
            if ch in DIGITS:
                return S.EXPONENT, Action.SHIFT
            if _terminates(ch):
                return S.START, Action.EMIT
        elif state is S.INDEX_SLASH:
            if ch in DIGITS or ch in SIGNS:
                return S.INDEX_SECOND, Action.SHIFT
            if ch == "/":
                return S.INDEX_SECOND_SLASH, Action.SHIFT
        elif state is S.INDEX_SECOND:
            if ch in DIGITS:
                return S.INDEX_SECOND, Action.SHIFT
            if ch == "/":
                return S.INDEX_SECOND_SLASH, Action.SHIFT
            if _terminates(ch):
                return S.START, Action.EMIT
        elif state is S.INDEX_SECOND_SLASH:
            if ch in DIGITS or ch in SIGNS:
                return S.INDEX_THIRD, Action.SHIFT
        elif state is S.INDEX_THIRD:
            if ch in DIGITS:
                return S.INDEX_THIRD, Action.SHIFT
            if _terminates(ch):
                return S.START, Action.EMIT
        else:
            raise ValueError(f"No transitions defined for lexer state {state!r}")

        if _terminates(ch):
            # Literal ended before it was complete
            return S.MALFORMED, Action.RETRY
        return S.UNKNOWN, Action.SHIFT

    def _scan(self) -> Token:
        state: State = LexerState.SKIP_LINE if self._skip_line else LexerState.START
        self._skip_line = False
        lexeme: list[str] = []
        start = end = (0, 0)
        reason: str | None = None

        while True:
            ch = self._source.read()
            new_state, action = self.transition(state, ch)
            if new_state is LexerState.MALFORMED and state is not LexerState.MALFORMED:
                reason = _MALFORMED_REASONS.get(state, "malformed numeric literal")

            if action is Action.SKIP:
                if ch == "\n":
                    self._argument_kind = None
            elif action is Action.SHIFT:
                position = (self._source.line, self._source.col)
                if not lexeme:
                    start = position
                lexeme.append(ch)
                end = position
            elif action is Action.RETRY:
                self._source.unget()
            elif action is Action.EMIT:
                self._source.unget()
                return self._finish(state, "".join(lexeme), self._span(start, end))
            elif action is Action.DISCARD:
                self._source.unget()
                return self._reject(state, "".join(lexeme), self._span(start, end), reason)
            elif action is Action.END:
                self._eof = Token(TokenKind.EOF, self._eof_span())
                return self._eof
            state = new_state

    def _span(self, start: tuple[int, int], end: tuple[int, int]) -> SourceSpan:
        return SourceSpan(self.file, start, end, (self._source.line_text(),))

    def _eof_span(self) -> SourceSpan:
        line = self._source.line
        col = max(self._source.col, 1)
        return SourceSpan.at(self.file, line, col, self._source.line_text())

    def _finish(self, state: State, text: str, span: SourceSpan) -> Token:
        if isinstance(state, KeywordPrefix):
            kind = self.dialect.keyword_kind(text)
            assert kind is not None
            if kind is TokenKind.UNSUPPORTED:
                self._skip_line = True
                return Token(kind, span, text)
            self._argument_kind = self.dialect.arguments.get(kind)
            return Token(kind, span)

        if state is LexerState.NAME:
            return Token(self._argument_kind or TokenKind.NAME, span, text)

        if state is LexerState.INTEGER:
            return self._finish_integer(text, span)

        if state in (LexerState.FRACTION, LexerState.EXPONENT):
            value = float(text)
            if abs(value) > FLOAT32_MAX:
                self._log.report(
                    VALUE_OUT_OF_RANGE,
                    "Value is out-of-range for a 32-bit floating-point "
                    f"(maximum: {FLOAT32_MAX:g}).",
                    span,
                )
                return Token(TokenKind.INVALID, span, text)
            return Token(TokenKind.DECIMAL, span, value)

        if state in (LexerState.INDEX_SECOND, LexerState.INDEX_THIRD):
            return self._finish_index(text, span)

        raise ValueError(f"Cannot finalize a token in lexer state {state!r}")

    def _finish_integer(self, text: str, span: SourceSpan) -> Token:
        value = int(text)
        if text.startswith("-"):
            if value < INT32_MIN:
                self._log.report(
                    VALUE_OUT_OF_RANGE,
                    f"Value is out-of-range for a 32-bit signed integer (minimum: {INT32_MIN}).",
                    span,
                )
                return Token(TokenKind.INVALID, span, text)
            return Token(TokenKind.SINT, span, value)
        if value > UINT32_MAX:
            self._log.report(
                VALUE_OUT_OF_RANGE,
                f"Value is out-of-range for a 32-bit unsigned integer (maximum: {UINT32_MAX}).",
                span,
            )
            return Token(TokenKind.INVALID, span, text)
        return Token(TokenKind.UINT, span, value)

    def _finish_index(self, text: str, span: SourceSpan) -> Token:
        parts = text.split("/")
        try:
            if len(parts) == 2:
                return Token(TokenKind.V_VT, span, (int(parts[0]), int(parts[1])))
            if parts[1] == "":
                return Token(TokenKind.V_VN, span, (int(parts[0]), int(parts[2])))
            return Token(TokenKind.V_VT_VN, span, (int(parts[0]), int(parts[1]), int(parts[2])))
        except ValueError:
            self._log.report(MALFORMED_NUMBER, f"Malformed composite index '{text}'.", span)
            return Token(TokenKind.INVALID, span, text)

    def _reject(self, state: State, text: str, span: SourceSpan, reason: str | None) -> Token:
        if state is LexerState.MALFORMED:
            self._log.report(MALFORMED_NUMBER, f"Malformed number '{text}': {reason}.", span)
        else:
            self._log.report(UNKNOWN_TOKEN, f"Unknown token '{text}'.", span)
        return Token(TokenKind.INVALID, span, text)
