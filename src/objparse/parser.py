"""Shift/reduce driver loop shared by the OBJ and MTL parsers."""

from __future__ import annotations

from objparse.diagnostics import LEFTOVER_SYMBOLS, DiagnosticLog
from objparse.lexer import Lexer
from objparse.reduction import Outcome, RecordHandler, ReductionEngine
from objparse.stack import ParseStack
from objparse.tokens import Token, TokenKind


class ShiftReduceParser:
    """Feeds tokens from a ``Lexer`` through a ``ReductionEngine`` into a record handler.

    A token is shifted only when the engine reports ``NO_CHANGE``; any other outcome means the
    stack was mutated and the engine is asked again. The end-of-file token is shifted like any
    other so pending records can see that their operand run has ended. The run stops once the
    engine cannot make progress with end-of-file on the stack.
    """

    def __init__(
        self,
        lexer: Lexer,
        engine: ReductionEngine,
        handler: RecordHandler,
        log: DiagnosticLog,
    ) -> None:
        self.lexer = lexer
        self.engine = engine
        self.handler = handler
        self.log = log
        self.stack = ParseStack()
        self.steps = 0

    def run(self) -> None:
        saw_eof = False
        while True:
            reduction = self.engine.reduce(self.stack, self.handler)
            self.steps += 1
            if reduction.outcome is not Outcome.NO_CHANGE:
                continue
            if saw_eof:
                break
            token = self.lexer.next()
            self.stack.push(token)
            saw_eof = token.kind is TokenKind.EOF

        if self.stack.only_eof():
            return
        leftovers = [
            symbol
            for symbol in self.stack.truncate_from(0)
            if not (isinstance(symbol, Token) and symbol.kind is TokenKind.EOF)
        ]
        if leftovers:
            self.log.report(
                LEFTOVER_SYMBOLS,
                f"{len(leftovers)} symbol(s) left unparsed at end of file, "
                f"starting with {leftovers[0].describe()}.",
                leftovers[0].span,
            )
