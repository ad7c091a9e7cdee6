"""Verdict: the immutable result of one gate evaluation.

Built once by ``auditgate.allowlist.matcher.evaluate()`` and consumed by the
reporter. ``to_dict()`` is the machine-readable form; it is deterministic for
identical inputs so two runs over frozen inputs produce byte-identical JSON.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Mapping, Optional

from auditgate.models.severity import Severity
from auditgate.models.vulnerability import Vulnerability
from auditgate.utils.dates import format_utc


class Outcome(str, Enum):
    PASS = "pass"
    FAIL = "fail"


class CoverStatus(str, Enum):
    """Why a vulnerability at or above the threshold is (not) covered."""

    COVERED = "covered"
    UNCOVERED = "uncovered"    # no allowlist entry matched
    EXPIRED = "expired"        # matching entry's expiration has passed
    MALFORMED = "malformed"    # matching entry has an invalid field
    MISSING = "missing"        # matching entry lacks a required field


@dataclass(frozen=True)
class Violation:
    """A vulnerability at/above the threshold without active cover."""

    vulnerability: Vulnerability
    status: CoverStatus
    entry_id: Optional[str] = None
    entry_reason: Optional[str] = None
    detail: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "id": self.vulnerability.id,
            "package": self.vulnerability.package_name,
            "severity": self.vulnerability.severity.label,
            "status": self.status.value,
            "entry_id": self.entry_id,
            "entry_reason": self.entry_reason,
            "detail": self.detail,
            "title": self.vulnerability.title,
            "url": self.vulnerability.url,
        }


@dataclass(frozen=True)
class Coverage:
    """A vulnerability suppressed by an active allowlist entry."""

    vulnerability: Vulnerability
    entry_id: str
    reason: str
    expires: str

    def to_dict(self) -> dict:
        return {
            "id": self.vulnerability.id,
            "package": self.vulnerability.package_name,
            "severity": self.vulnerability.severity.label,
            "entry_id": self.entry_id,
            "reason": self.reason,
            "expires": self.expires,
        }


@dataclass(frozen=True)
class InvalidEntry:
    """An allowlist entry that provides no cover.

    ``blocking`` is True when the entry matched a vulnerability at/above the
    threshold: that vulnerability became a violation because of it. A
    non-blocking invalid entry is dead configuration and only a warning.
    """

    entry_id: str
    index: int
    status: CoverStatus
    field: str
    message: str
    blocking: bool = False

    def to_dict(self) -> dict:
        return {
            "entry_id": self.entry_id,
            "index": self.index,
            "status": self.status.value,
            "field": self.field,
            "message": self.message,
            "blocking": self.blocking,
        }


@dataclass(frozen=True)
class ExpiringEntry:
    entry_id: str
    expires_at: datetime
    days_left: int

    def to_dict(self) -> dict:
        return {
            "entry_id": self.entry_id,
            "expires_at": format_utc(self.expires_at),
            "days_left": self.days_left,
        }


@dataclass(frozen=True)
class Verdict:
    """Pass/fail result of evaluating one report against one allowlist snapshot."""

    outcome: Outcome
    evaluated_at: datetime
    threshold: Severity
    violations: tuple[Violation, ...] = ()
    covered: tuple[Coverage, ...] = ()
    invalid_entries: tuple[InvalidEntry, ...] = ()
    expiring_soon: tuple[ExpiringEntry, ...] = ()
    unused_entries: tuple[str, ...] = ()
    counts: Mapping[str, int] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "counts", MappingProxyType(dict(self.counts)))

    @property
    def passed(self) -> bool:
        return self.outcome is Outcome.PASS

    @property
    def blocking_entries(self) -> tuple[InvalidEntry, ...]:
        return tuple(entry for entry in self.invalid_entries if entry.blocking)

    def to_dict(self) -> dict:
        return {
            "outcome": self.outcome.value,
            "evaluated_at": format_utc(self.evaluated_at),
            "threshold": self.threshold.label,
            "counts": {label: self.counts.get(label, 0) for label in Severity.labels()},
            "violations": [v.to_dict() for v in self.violations],
            "covered": [c.to_dict() for c in self.covered],
            "invalid_entries": [e.to_dict() for e in self.invalid_entries],
            "expiring_soon": [e.to_dict() for e in self.expiring_soon],
            "unused_entries": list(self.unused_entries),
        }
