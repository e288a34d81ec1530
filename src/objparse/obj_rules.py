"""Reduction rules for the geometry (.obj) dialect."""

from __future__ import annotations

from objparse.diagnostics import (
    BAD_SMOOTHING,
    INDEX_OUT_OF_RANGE,
    MISSING_NAME,
    MIXED_FACE_SHAPES,
    NEGATIVE_INDEX,
    TYPE_MISMATCH,
)
from objparse.reduction import (
    NEED_MORE,
    Reduction,
    Rule,
    RuleContext,
    applied,
    check_count,
    failed,
    is_literal,
    is_name,
    numeric_values,
    operand_run,
    record_span,
    rejected,
)
from objparse.resolver import VertexKey
from objparse.stack import ParseStack
from objparse.tokens import Nonterminal, NonterminalKind, Token, TokenKind


def _head(stack: ParseStack) -> Token:
    head = stack.peek_from_bottom(0)
    assert isinstance(head, Token)
    return head


def _numeric_record(
    what: str, kind: NonterminalKind, low: int, high: int, width: int
) -> Rule:
    """Build a rule for ``keyword n1 n2 ...`` records padded with zeros to ``width`` values."""

    def rule(stack: ParseStack, ctx: RuleContext) -> Reduction:
        head = _head(stack)
        operands = operand_run(stack, is_literal)
        if operands is None:
            return NEED_MORE
        consumed = 1 + len(operands)
        if rejected(operands):
            return failed(what, consumed)
        if not check_count(ctx, what, "values", head, operands, low, high):
            return failed(what, consumed)
        values = numeric_values(ctx, what, operands)
        if values is None:
            return failed(what, consumed)
        values = (values + [0.0] * width)[:width]
        record = Nonterminal(kind, record_span(head, operands), tuple(values))
        return applied(what, consumed, record)

    rule.__name__ = f"{kind.name.lower()}_rule"
    return rule


# w of a 4-component vertex is accepted and dropped; the third vt component likewise.
vertex_rule = _numeric_record("vertex", NonterminalKind.VERTEX, 3, 4, 3)
normal_rule = _numeric_record("normal", NonterminalKind.NORMAL, 3, 3, 3)
texture_rule = _numeric_record("texture coordinate", NonterminalKind.TEXCOORD, 1, 3, 2)


def corner_key(token: Token) -> VertexKey:
    value = token.value
    if token.kind in (TokenKind.UINT, TokenKind.SINT):
        assert isinstance(value, int)
        return VertexKey(value)
    assert isinstance(value, tuple)
    if token.kind is TokenKind.V_VT:
        return VertexKey(value[0], texture=value[1])
    if token.kind is TokenKind.V_VN:
        return VertexKey(value[0], normal=value[1])
    return VertexKey(value[0], normal=value[2], texture=value[1])


def face_rule(stack: ParseStack, ctx: RuleContext) -> Reduction:
    head = _head(stack)
    corners = operand_run(stack, is_literal)
    if corners is None:
        return NEED_MORE
    consumed = 1 + len(corners)
    span = record_span(head, corners)
    if rejected(corners):
        return failed("face", consumed)

    for corner in corners:
        if corner.kind is TokenKind.DECIMAL:
            ctx.log.report(
                TYPE_MISMATCH,
                "Face corners must be integer indices, got a decimal value.",
                corner.span,
            )
            return failed("face", consumed)

    if not check_count(ctx, "face", "corners", head, corners, 3, None if ctx.triangulate else 3):
        return failed("face", consumed)

    shapes = sorted({corner.kind.corner_shape for corner in corners})
    if len(shapes) > 1:
        ctx.log.report(
            MIXED_FACE_SHAPES,
            f"Face corners mix index shapes ({', '.join(shapes)}); all corners must match.",
            span,
        )
        return failed("face", consumed)

    keys = [corner_key(corner) for corner in corners]
    for corner, key in zip(corners, keys):
        parts = [part for part in key if part is not None]
        if any(part < 0 for part in parts):
            ctx.log.report(
                NEGATIVE_INDEX,
                "Relative (negative) face indices are not yet supported.",
                corner.span,
            )
            return failed("face", consumed)
        if 0 in parts:
            ctx.log.report(
                INDEX_OUT_OF_RANGE,
                "Face indices start at 1; 0 is not a valid index.",
                corner.span,
            )
            return failed("face", consumed)

    return applied("face", consumed, Nonterminal(NonterminalKind.FACE, span, tuple(keys)))


def _names(stack: ParseStack, ctx: RuleContext, what: str) -> tuple[Token, list[Token] | None]:
    head = _head(stack)
    names = operand_run(stack, is_name)
    if names is not None and not names:
        ctx.log.report(
            MISSING_NAME, f"Expected a name after '{head.kind.value}' ({what}).", head.span
        )
    return head, names


def _joined_name_rule(what: str, kind: NonterminalKind) -> Rule:
    """Build a rule whose names are joined with single spaces into one."""

    def rule(stack: ParseStack, ctx: RuleContext) -> Reduction:
        head, names = _names(stack, ctx, what)
        if names is None:
            return NEED_MORE
        consumed = 1 + len(names)
        if not names or rejected(names):
            return failed(what, consumed)
        value = " ".join(str(name.value) for name in names)
        return applied(what, consumed, Nonterminal(kind, record_span(head, names), value))

    rule.__name__ = f"{kind.name.lower()}_rule"
    return rule


group_rule = _joined_name_rule("group", NonterminalKind.GROUP)
object_rule = _joined_name_rule("object", NonterminalKind.OBJECT)


def _single_name_rule(what: str, kind: NonterminalKind) -> Rule:
    def rule(stack: ParseStack, ctx: RuleContext) -> Reduction:
        head, names = _names(stack, ctx, what)
        if names is None:
            return NEED_MORE
        consumed = 1 + len(names)
        if not names or rejected(names):
            return failed(what, consumed)
        if not check_count(ctx, what, "names", head, names, 1, 1):
            return failed(what, consumed)
        return applied(what, consumed, Nonterminal(kind, record_span(head, names), names[0].value))

    rule.__name__ = f"{kind.name.lower()}_rule"
    return rule


usemtl_rule = _single_name_rule("material use", NonterminalKind.MATERIAL_USE)


def mtllib_rule(stack: ParseStack, ctx: RuleContext) -> Reduction:
    head, names = _names(stack, ctx, "material library")
    if names is None:
        return NEED_MORE
    if not names or rejected(names):
        return failed("material library", 1 + len(names))
    value = tuple(str(name.value) for name in names)
    return applied(
        "material library",
        1 + len(names),
        Nonterminal(NonterminalKind.MATERIAL_LIBRARY, record_span(head, names), value),
    )


def parse_smoothing(text: str) -> bool | None:
    lowered = text.lower()
    if lowered == "on":
        return True
    if lowered == "off":
        return False
    try:
        return int(text) != 0
    except ValueError:
        return None


def smooth_rule(stack: ParseStack, ctx: RuleContext) -> Reduction:
    head, names = _names(stack, ctx, "smoothing")
    if names is None:
        return NEED_MORE
    consumed = 1 + len(names)
    if not names or rejected(names):
        return failed("smoothing", consumed)
    if not check_count(ctx, "smoothing", "values", head, names, 1, 1):
        return failed("smoothing", consumed)
    enabled = parse_smoothing(str(names[0].value))
    if enabled is None:
        ctx.log.report(
            BAD_SMOOTHING,
            f"Smoothing group must be 'on', 'off' or an integer, got '{names[0].value}'.",
            names[0].span,
        )
        return failed("smoothing", consumed)
    span = record_span(head, names)
    return applied("smoothing", consumed, Nonterminal(NonterminalKind.SMOOTHING, span, enabled))


OBJ_GRAMMAR: dict[TokenKind, Rule] = {
    TokenKind.VERTEX: vertex_rule,
    TokenKind.NORMAL: normal_rule,
    TokenKind.TEXTURE: texture_rule,
    TokenKind.FACE: face_rule,
    TokenKind.GROUP: group_rule,
    TokenKind.OBJECT: object_rule,
    TokenKind.MTLLIB: mtllib_rule,
    TokenKind.USEMTL: usemtl_rule,
    TokenKind.SMOOTH: smooth_rule,
}
