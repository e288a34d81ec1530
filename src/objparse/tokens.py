"""Terminal and nonterminal symbols shared by the OBJ and MTL dialects."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Union

from objparse.span import SourceSpan

IndexTuple = tuple[int, ...]
Value = Union[int, float, str, IndexTuple, None]


class TokenKind(Enum):
    EOF = "end-of-file"

    # OBJ keywords
    VERTEX = "v"
    NORMAL = "vn"
    TEXTURE = "vt"
    FACE = "f"
    GROUP = "g"
    OBJECT = "o"
    MTLLIB = "mtllib"
    USEMTL = "usemtl"
    SMOOTH = "s"

    # MTL keywords
    NEWMTL = "newmtl"
    DIFFUSE = "Kd"

    # Recognized statement that is skipped (value holds the keyword)
    UNSUPPORTED = "unsupported statement"

    # Lexeme the lexer rejected and already reported (value holds the text)
    INVALID = "invalid token"

    # Literals
    UINT = "uint"
    SINT = "sint"
    DECIMAL = "decimal"
    V_VT = "v/vt"
    V_VN = "v//vn"
    V_VT_VN = "v/vt/vn"
    NAME = "name"
    FILENAME = "filename"

    @property
    def is_number(self) -> bool:
        return self in (TokenKind.UINT, TokenKind.SINT, TokenKind.DECIMAL)

    @property
    def is_index(self) -> bool:
        """Kinds that can appear as a face corner."""
        return self in (
            TokenKind.UINT,
            TokenKind.SINT,
            TokenKind.V_VT,
            TokenKind.V_VN,
            TokenKind.V_VT_VN,
        )

    @property
    def corner_shape(self) -> str | None:
        if self in (TokenKind.UINT, TokenKind.SINT):
            return "v"
        if self.is_index:
            return self.value
        return None


class NonterminalKind(Enum):
    VERTEX = "vertex"
    NORMAL = "normal"
    TEXCOORD = "texture coordinate"
    FACE = "face"
    GROUP = "group"
    OBJECT = "object"
    MATERIAL_LIBRARY = "material library"
    MATERIAL_USE = "material use"
    SMOOTHING = "smoothing"
    NEW_MATERIAL = "new material"
    DIFFUSE_COLOR = "diffuse color"


@dataclass(frozen=True)
class Token:
    kind: TokenKind
    span: SourceSpan
    value: Value = None

    @property
    def is_terminal(self) -> bool:
        return True

    def describe(self) -> str:
        if self.kind in (
            TokenKind.NAME,
            TokenKind.FILENAME,
            TokenKind.UNSUPPORTED,
            TokenKind.INVALID,
        ):
            return f"{self.kind.value} '{self.value}'"
        return f"'{self.kind.value}'" if self.value is None else self.kind.value


@dataclass(frozen=True)
class Nonterminal:
    """A derived record produced by a reduction, waiting to be committed."""

    kind: NonterminalKind
    span: SourceSpan
    value: object = None

    @property
    def is_terminal(self) -> bool:
        return False

    def describe(self) -> str:
        return self.kind.value


Symbol = Union[Token, Nonterminal]
