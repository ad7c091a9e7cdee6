"""auditgate allowlist: reviewed, time-bounded exceptions and the gate decision.

Public API:
    AllowlistEntry   single allowlist entry dataclass (with its validation errors)
    Allowlist        immutable, duplicate-free collection of entries
    EntryStatus      ACTIVE / EXPIRED / MALFORMED / MISSING
    ValidationError  one problem with one entry
    load_allowlist   read + validate an allowlist document
    evaluate         match findings against the allowlist and build the Verdict
"""
from auditgate.allowlist.loader import (
    Allowlist,
    AllowlistEntry,
    EntryStatus,
    ValidationError,
    load_allowlist,
    parse_allowlist,
)
from auditgate.allowlist.matcher import evaluate, find_entry

__all__ = [
    "Allowlist",
    "AllowlistEntry",
    "EntryStatus",
    "ValidationError",
    "evaluate",
    "find_entry",
    "load_allowlist",
    "parse_allowlist",
]
