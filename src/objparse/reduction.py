"""Reduction engine shared by the OBJ and MTL parsers.

A grammar maps the kind of the bottom-most symbol to a rule. A rule walks forward over the
stack counting the operands that qualify for its record and returns a ``Reduction``:

- ``NO_CHANGE``: it ran off the top of the stack and needs another token,
- ``APPLIED``: the record was recognized; ``consumed`` symbols are replaced by ``produced``,
- ``ERROR``: the record was malformed; ``consumed`` symbols are discarded.

The disqualifying symbol that ended the walk is never consumed, so it is examined again as
the start of the next record. ``INVALID`` tokens count as operands of every kind; a run
holding one fails as a whole without a further diagnostic, the lexer having reported it.
Derived records (``Nonterminal``) at the bottom are committed to the handler and removed.
"""

from __future__ import annotations

import functools
import operator
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Protocol

from objparse.diagnostics import (
    OPERAND_COUNT,
    TYPE_MISMATCH,
    STRAY_VALUE,
    UNEXPECTED_SYMBOL,
    UNSUPPORTED_STATEMENT,
    DiagnosticLog,
)
from objparse.span import SourceSpan
from objparse.stack import ParseStack
from objparse.tokens import Nonterminal, Symbol, Token, TokenKind


class Outcome(Enum):
    NO_CHANGE = auto()
    APPLIED = auto()
    ERROR = auto()


@dataclass(frozen=True)
class Reduction:
    outcome: Outcome
    consumed: int = 0
    produced: Symbol | None = None
    rule: str = ""


NEED_MORE = Reduction(Outcome.NO_CHANGE)


def applied(rule: str, consumed: int, produced: Symbol | None = None) -> Reduction:
    return Reduction(Outcome.APPLIED, consumed, produced, rule)


def failed(rule: str, consumed: int) -> Reduction:
    return Reduction(Outcome.ERROR, consumed, None, rule)


@dataclass
class RuleContext:
    log: DiagnosticLog
    triangulate: bool = False
    noted: set[str] = field(default_factory=set)


Rule = Callable[[ParseStack, RuleContext], Reduction]


class RecordHandler(Protocol):
    def commit(self, record: Nonterminal) -> bool:
        """Apply a derived record; return False if it was rejected."""
        ...


def is_literal(symbol: Symbol) -> bool:
    """Numbers and composite indices: the operands of geometry records."""
    if not isinstance(symbol, Token):
        return False
    kind = symbol.kind
    return kind.is_number or kind.is_index or kind is TokenKind.INVALID


def is_name(symbol: Symbol) -> bool:
    return isinstance(symbol, Token) and symbol.kind in (
        TokenKind.NAME,
        TokenKind.FILENAME,
        TokenKind.INVALID,
    )


def rejected(operands: list[Token]) -> bool:
    """True if the lexer rejected one of ``operands``."""
    return any(operand.kind is TokenKind.INVALID for operand in operands)


def operand_run(stack: ParseStack, qualifies: Callable[[Symbol], bool]) -> list[Token] | None:
    """Operands following the bottom symbol, or ``None`` if the run reaches the stack top."""
    operands: list[Token] = []
    position = 1
    while True:
        symbol = stack.peek_from_bottom(position)
        if symbol is None:
            return None
        if not qualifies(symbol):
            return operands
        assert isinstance(symbol, Token)
        operands.append(symbol)
        position += 1


def record_span(head: Symbol, operands: list[Token]) -> SourceSpan:
    return functools.reduce(operator.add, (op.span for op in operands), head.span)


def check_count(
    ctx: RuleContext,
    what: str,
    unit: str,
    head: Token,
    operands: list[Token],
    low: int,
    high: int | None,
) -> bool:
    """Report an operand-count error unless ``low <= len(operands) <= high``."""
    got = len(operands)
    if high is None:
        expected = f"at least {low}"
    elif low == high:
        expected = str(low)
    else:
        expected = f"{low} to {high}"
    if got < low:
        ctx.log.report(
            OPERAND_COUNT,
            f"Too few {unit} given for {what} (got {got}, expected {expected}).",
            record_span(head, operands),
        )
        return False
    if high is not None and got > high:
        ctx.log.report(
            OPERAND_COUNT,
            f"Too many {unit} given for {what} (got {got}, expected {expected}).",
            record_span(head, operands),
        )
        return False
    return True


def unsupported_rule(stack: ParseStack, ctx: RuleContext) -> Reduction:
    head = stack.peek_from_bottom(0)
    assert isinstance(head, Token)
    keyword = str(head.value)
    if keyword not in ctx.noted:
        ctx.noted.add(keyword)
        ctx.log.report(
            UNSUPPORTED_STATEMENT,
            f"'{keyword}' statements are not supported and will be ignored.",
            head.span,
        )
    return applied("unsupported", 1)


def stray_rule(stack: ParseStack, ctx: RuleContext) -> Reduction:
    """A literal run with no keyword in front of it."""
    head = stack.peek_from_bottom(0)
    assert isinstance(head, Token)
    rest = operand_run(stack, is_literal)
    if rest is None:
        return NEED_MORE
    ctx.log.report(
        STRAY_VALUE,
        f"Encountered stray {head.kind.value} value without a statement keyword.",
        record_span(head, rest),
    )
    return failed("stray", 1 + len(rest))


def invalid_rule(stack: ParseStack, ctx: RuleContext) -> Reduction:
    """A rejected token at the start of a record drops it and the literals after it."""
    rest = operand_run(stack, is_literal)
    if rest is None:
        return NEED_MORE
    return failed("invalid", 1 + len(rest))


def unexpected_rule(stack: ParseStack, ctx: RuleContext) -> Reduction:
    head = stack.peek_from_bottom(0)
    assert head is not None
    ctx.log.report(UNEXPECTED_SYMBOL, f"Unexpected {head.describe()}.", head.span)
    return failed("unexpected", 1)


class ReductionEngine:
    """Applies one reduction step at a time to a ``ParseStack``."""

    def __init__(
        self,
        grammar: Mapping[TokenKind, Rule],
        log: DiagnosticLog,
        *,
        triangulate: bool = False,
    ) -> None:
        self.grammar = grammar
        self.context = RuleContext(log=log, triangulate=triangulate)

    def reduce(self, stack: ParseStack, handler: RecordHandler) -> Reduction:
        bottom = stack.peek_from_bottom(0)
        if bottom is None:
            return NEED_MORE

        if isinstance(bottom, Nonterminal):
            stack.drop_bottom(1)
            rule = f"commit {bottom.kind.value}"
            return applied(rule, 1) if handler.commit(bottom) else failed(rule, 1)

        if bottom.kind is TokenKind.EOF:
            return NEED_MORE

        if bottom.kind is TokenKind.UNSUPPORTED:
            rule = unsupported_rule
        elif bottom.kind is TokenKind.INVALID:
            rule = invalid_rule
        elif bottom.kind in self.grammar:
            rule = self.grammar[bottom.kind]
        elif is_literal(bottom):
            rule = stray_rule
        else:
            rule = unexpected_rule

        reduction = rule(stack, self.context)
        self._apply(stack, reduction)
        return reduction

    def _apply(self, stack: ParseStack, reduction: Reduction) -> None:
        if reduction.outcome is Outcome.NO_CHANGE:
            return
        if reduction.consumed < 1:
            raise ValueError(f"Rule {reduction.rule!r} made no progress")
        if reduction.produced is not None:
            stack.replace_bottom(reduction.consumed, reduction.produced)
        else:
            stack.drop_bottom(reduction.consumed)


def numeric_values(ctx: RuleContext, what: str, operands: list[Token]) -> list[float] | None:
    """Coerce number operands to float, reporting the first composite index among them."""
    for operand in operands:
        if not operand.kind.is_number:
            ctx.log.report(
                TYPE_MISMATCH,
                f"Expected a number for {what}, got {operand.kind.value} index.",
                operand.span,
            )
            return None
    return [float(operand.value) for operand in operands]
