"""Warning policy controls for objparse diagnostics."""

from __future__ import annotations

import warnings
from dataclasses import dataclass

from objparse.errors import DiagnosticError

KNOWN_CODES: frozenset[str] = frozenset({"W01", "W02", "W03", "W04"})


class ObjParseWarning(UserWarning):
    """Warning with a machine-readable code."""

    def __init__(self, code: str, message: str) -> None:
        self.code = code
        super().__init__(f"[{code}] {message}")


@dataclass(frozen=True)
class WarningPolicy:
    """Controls how individual warning codes are handled."""

    warn_as_error: frozenset[str] = frozenset()
    suppress: frozenset[str] = frozenset()

    def is_suppressed(self, code: str) -> bool:
        return code in self.suppress

    def check_escalation(self, code: str, message: str) -> None:
        """Raise ``DiagnosticError`` if ``code`` is configured as an error."""
        if code in self.warn_as_error:
            raise DiagnosticError(f"[{code}] {message}")


def emit_warning(code: str, message: str) -> None:
    """Issue an ``ObjParseWarning`` carrying ``code``.

    The policy has already been applied by ``DiagnosticLog.report`` at this point.
    """
    warnings.warn(ObjParseWarning(code, message), stacklevel=3)


def parse_code_list(raw: str) -> frozenset[str]:
    """Parse a comma-separated string of W-codes and validate them.

    Raises ``ValueError`` for unknown codes.
    """
    codes: set[str] = set()
    for token in raw.split(","):
        token = token.strip()
        if not token:
            continue
        if token not in KNOWN_CODES:
            raise ValueError(f"Unknown warning code: {token!r} (known: {sorted(KNOWN_CODES)})")
        codes.add(token)
    return frozenset(codes)
