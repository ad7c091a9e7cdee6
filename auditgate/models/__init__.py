"""auditgate models package.

Defines the canonical data contracts shared by the gate pipeline:

  - severity.py       Severity ordered enum (info < low < moderate < high < critical)
  - vulnerability.py  PackageRef / DetailedRef reference nodes, Vulnerability,
                       VulnerabilitySet, ReportFormat
  - verdict.py        Outcome, CoverStatus, Violation, Coverage, InvalidEntry, Verdict

Every value here is immutable once constructed. The normalizer produces a
VulnerabilitySet, the matcher produces a Verdict, the reporter consumes it.
"""
from auditgate.models.severity import Severity
from auditgate.models.verdict import (
    Coverage,
    CoverStatus,
    ExpiringEntry,
    InvalidEntry,
    Outcome,
    Verdict,
    Violation,
)
from auditgate.models.vulnerability import (
    DetailedRef,
    PackageRef,
    ReferenceNode,
    ReportFormat,
    Vulnerability,
    VulnerabilitySet,
)

__all__ = [
    "Coverage",
    "CoverStatus",
    "DetailedRef",
    "ExpiringEntry",
    "InvalidEntry",
    "Outcome",
    "PackageRef",
    "ReferenceNode",
    "ReportFormat",
    "Severity",
    "Verdict",
    "Violation",
    "Vulnerability",
    "VulnerabilitySet",
]
