"""Canonical vulnerability model.

Both audit report schemas (legacy ``advisories`` and modern
``auditReportVersion: 2``) normalize into these types. Nothing downstream of
the normalizer knows which schema a report used.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Iterable, Iterator, Mapping, Optional, Union

from auditgate.models.severity import Severity


class ReportFormat(str, Enum):
    """Audit report schema a VulnerabilitySet was built from."""

    LEGACY = "legacy"
    MODERN = "modern"


# ─── Reference nodes ──────────────────────────────────────────────────────────


@dataclass(frozen=True)
class PackageRef:
    """A bare package name in ``via``: the finding comes through this dependency."""

    name: str

    def to_dict(self) -> dict:
        return {"kind": "package", "name": self.name}


@dataclass(frozen=True)
class DetailedRef:
    """A full advisory record in ``via``.

    ``source`` is the advisory id as a string (npm writes it as an integer).
    """

    source: str
    severity: Severity
    title: Optional[str] = None
    url: Optional[str] = None
    range: Optional[str] = None
    name: Optional[str] = None
    dependency: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "kind": "advisory",
            "source": self.source,
            "severity": self.severity.label,
            "title": self.title,
            "url": self.url,
            "range": self.range,
            "name": self.name,
            "dependency": self.dependency,
        }


ReferenceNode = Union[PackageRef, DetailedRef]


# ─── Vulnerability ────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Vulnerability:
    """One finding, keyed by a stable id.

    INVARIANT: ``id`` is non-empty and ``severity`` is a Severity member.
    ``via`` is empty only for a direct finding with no dependency chain.
    """

    id: str
    package_name: str
    severity: Severity
    is_direct: bool = False
    via: tuple[ReferenceNode, ...] = ()

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("Vulnerability.id must be non-empty")
        if not isinstance(self.severity, Severity):
            raise TypeError(f"Vulnerability.severity must be Severity, got {self.severity!r}")

    @property
    def advisory(self) -> Optional[DetailedRef]:
        """First detailed advisory in ``via``, if any (used for titles and URLs)."""
        for node in self.via:
            if isinstance(node, DetailedRef):
                return node
        return None

    @property
    def title(self) -> Optional[str]:
        advisory = self.advisory
        if advisory is not None:
            return advisory.title
        if self.via:
            return "via " + ", ".join(node.name for node in self.via if isinstance(node, PackageRef))
        return None

    @property
    def url(self) -> Optional[str]:
        advisory = self.advisory
        return advisory.url if advisory is not None else None

    def merged_with(self, other: "Vulnerability") -> "Vulnerability":
        """Combine two records for the same id.

        Highest severity wins, ``is_direct`` is OR-ed, and ``via`` nodes are
        concatenated without duplicates in first-seen order.
        """
        via = list(self.via)
        for node in other.via:
            if node not in via:
                via.append(node)
        return Vulnerability(
            id=self.id,
            package_name=self.package_name,
            severity=max(self.severity, other.severity),
            is_direct=self.is_direct or other.is_direct,
            via=tuple(via),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "package": self.package_name,
            "severity": self.severity.label,
            "is_direct": self.is_direct,
            "via": [node.to_dict() for node in self.via],
        }


# ─── VulnerabilitySet ─────────────────────────────────────────────────────────


@dataclass(frozen=True)
class VulnerabilitySet:
    """Immutable mapping of id → Vulnerability built from one report.

    Equality compares only the vulnerabilities: the schema a report was
    written in (``source_format``) is informational.
    """

    items: Mapping[str, Vulnerability] = field(default_factory=dict)
    source_format: Optional[ReportFormat] = field(default=None, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "items", MappingProxyType(dict(sorted(self.items.items()))))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, VulnerabilitySet):
            return NotImplemented
        return dict(self.items) == dict(other.items)

    def __hash__(self) -> int:
        return hash(tuple(self.items.items()))

    @classmethod
    def from_vulnerabilities(
        cls,
        vulnerabilities: Iterable[Vulnerability],
        source_format: Optional[ReportFormat] = None,
    ) -> "VulnerabilitySet":
        """Build a set, merging records that share an id (see Vulnerability.merged_with)."""
        items: dict[str, Vulnerability] = {}
        for vuln in vulnerabilities:
            existing = items.get(vuln.id)
            items[vuln.id] = vuln if existing is None else existing.merged_with(vuln)
        return cls(items=items, source_format=source_format)

    def __iter__(self) -> Iterator[Vulnerability]:
        return iter(self.items.values())

    def __len__(self) -> int:
        return len(self.items)

    def __contains__(self, vuln_id: object) -> bool:
        return vuln_id in self.items

    def get(self, vuln_id: str) -> Optional[Vulnerability]:
        return self.items.get(vuln_id)

    def counts(self) -> dict[str, int]:
        """Count of findings per severity label; every label is present."""
        counts = {label: 0 for label in Severity.labels()}
        for vuln in self:
            counts[vuln.severity.label] += 1
        return counts
