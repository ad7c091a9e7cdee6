"""Exception types for auditgate.

Only document-level failures are exceptions. Problems with an individual
allowlist entry are data (``ValidationError`` records in
``auditgate.allowlist.loader``) so one bad entry never aborts an evaluation.

    AuditGateError
      ├── FormatError          report or allowlist document has no known shape
      └── AllowlistLoadError   allowlist parsed but cannot be loaded (duplicate ids)

Both map to EXIT_LOAD_FAILURE in the CLI.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional, Sequence

if TYPE_CHECKING:
    from auditgate.allowlist.loader import ValidationError


class AuditGateError(Exception):
    """Base class for errors that abort a gate run."""


class FormatError(AuditGateError):
    """An input document does not match any supported schema.

    Attributes:
        code:   Short machine-readable classification, e.g. ``UnrecognizedSchema``,
                ``InvalidJSON``, ``InvalidEncoding``, ``InvalidSeverity``,
                ``InvalidRecord``.
        source: Which input failed (``report`` or ``allowlist``), or a path.
    """

    def __init__(self, message: str, code: str = "UnrecognizedSchema", source: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.source = source

    def __str__(self) -> str:
        if self.source:
            return f"{self.code}: {self.message} ({self.source})"
        return f"{self.code}: {self.message}"


class AllowlistLoadError(AuditGateError):
    """The allowlist cannot be loaded as a whole.

    Raised for duplicate entry ids: precedence between two entries for the same
    advisory is never resolved silently.
    """

    def __init__(self, message: str, errors: Sequence["ValidationError"] = ()):
        super().__init__(message)
        self.message = message
        self.errors: tuple["ValidationError", ...] = tuple(errors)

    def __str__(self) -> str:
        details = "; ".join(f"{err.entry_id}: {err.message}" for err in self.errors)
        return f"{self.message} ({details})" if details else self.message
