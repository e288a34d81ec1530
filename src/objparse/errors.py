"""Custom exception hierarchy for objparse."""


class ObjParseError(Exception):
    """Base exception for all objparse errors."""


class SourceReadError(ObjParseError):
    """Raised when the character source cannot be opened or read (fatal)."""


class AllocationError(ObjParseError):
    """Raised when a buffer allocator cannot satisfy a request (fatal)."""


class ConfigError(ObjParseError):
    """Raised when parser options or a config file are invalid."""


class DiagnosticError(ObjParseError):
    """Raised when a warning is escalated to an error by the warning policy."""


class ExportError(ObjParseError):
    """Raised when glTF/GLB export fails."""
