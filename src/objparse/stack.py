"""Symbol stack for the shift/reduce parsers."""

from __future__ import annotations

from collections import deque
from collections.abc import Iterator

from objparse.tokens import Symbol, TokenKind


class ParseStack:
    """Double-ended symbol sequence.

    Tokens are shifted onto the top; reductions inspect and remove symbols from the bottom,
    which is always the oldest unprocessed symbol.
    """

    def __init__(self) -> None:
        self._symbols: deque[Symbol] = deque()

    def push(self, symbol: Symbol) -> None:
        self._symbols.append(symbol)

    def peek_from_bottom(self, position: int) -> Symbol | None:
        """Symbol ``position`` places above the bottom, or ``None`` past the top."""
        if 0 <= position < len(self._symbols):
            return self._symbols[position]
        return None

    def drop_bottom(self, count: int) -> None:
        """Remove the ``count`` bottom-most symbols."""
        if count > len(self._symbols):
            raise IndexError(f"Cannot drop {count} symbols from a stack of {len(self._symbols)}")
        for _ in range(count):
            self._symbols.popleft()

    def replace_bottom(self, count: int, symbol: Symbol) -> None:
        """Replace the ``count`` bottom-most symbols with a single derived symbol."""
        self.drop_bottom(count)
        self._symbols.appendleft(symbol)

    def truncate_from(self, position: int) -> list[Symbol]:
        """Remove and return every symbol from ``position`` up to the top."""
        if position < 0:
            raise IndexError(f"Negative stack position {position}")
        removed: list[Symbol] = []
        while len(self._symbols) > position:
            removed.append(self._symbols.pop())
        removed.reverse()
        return removed

    def only_eof(self) -> bool:
        return all(s.is_terminal and s.kind is TokenKind.EOF for s in self._symbols)

    def __len__(self) -> int:
        return len(self._symbols)

    def __iter__(self) -> Iterator[Symbol]:
        return iter(self._symbols)

    def __repr__(self) -> str:
        return "ParseStack([" + ", ".join(s.describe() for s in self._symbols) + "])"
