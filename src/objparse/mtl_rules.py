"""Reduction rules for the material (.mtl) dialect."""

from __future__ import annotations

from objparse.diagnostics import MISSING_NAME
from objparse.mesh import Color
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
from objparse.stack import ParseStack
from objparse.tokens import Nonterminal, NonterminalKind, Token, TokenKind


def newmtl_rule(stack: ParseStack, ctx: RuleContext) -> Reduction:
    head = stack.peek_from_bottom(0)
    assert isinstance(head, Token)
    names = operand_run(stack, is_name)
    if names is None:
        return NEED_MORE
    consumed = 1 + len(names)
    if not names:
        ctx.log.report(MISSING_NAME, "Expected a material name after 'newmtl'.", head.span)
        return failed("newmtl", consumed)
    if rejected(names):
        return failed("newmtl", consumed)
    if not check_count(ctx, "newmtl", "names", head, names, 1, 1):
        return failed("newmtl", consumed)
    span = record_span(head, names)
    record = Nonterminal(NonterminalKind.NEW_MATERIAL, span, names[0].value)
    return applied("newmtl", consumed, record)


def diffuse_rule(stack: ParseStack, ctx: RuleContext) -> Reduction:
    head = stack.peek_from_bottom(0)
    assert isinstance(head, Token)
    operands = operand_run(stack, is_literal)
    if operands is None:
        return NEED_MORE
    consumed = 1 + len(operands)
    if rejected(operands):
        return failed("Kd", consumed)
    if not check_count(ctx, "diffuse color", "values", head, operands, 3, 3):
        return failed("Kd", consumed)
    values = numeric_values(ctx, "diffuse color", operands)
    if values is None:
        return failed("Kd", consumed)
    span = record_span(head, operands)
    return applied("Kd", consumed, Nonterminal(NonterminalKind.DIFFUSE_COLOR, span, Color(*values)))


MTL_GRAMMAR: dict[TokenKind, Rule] = {
    TokenKind.NEWMTL: newmtl_rule,
    TokenKind.DIFFUSE: diffuse_rule,
}
