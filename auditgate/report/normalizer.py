"""Audit report normalizer for auditgate.

Turns raw ``npm audit --json`` output into a canonical VulnerabilitySet.

Two schemas are supported, resolved ONCE into a tagged union at parse time:

  LegacyReport : npm ≤ 6: ``{"advisories": {<id>: {...}}, "metadata": {...}}``
                  one record per advisory.
  ModernReport : npm ≥ 7: ``{"auditReportVersion": 2,
                  "vulnerabilities": {<package>: {...}}, "metadata": {...}}``
                  one record per package; ``via`` mixes advisory objects and
                  bare package names.

FAIL-CLOSED CONTRACT:
  - A severity is never inferred. A missing or unknown severity string anywhere
    raises FormatError(code="InvalidSeverity") and aborts the run; silently
    downgrading a severity would defeat the gate.
  - Records without the fields needed to identify them raise
    FormatError(code="InvalidRecord").

``metadata`` is not read: severity counts are recomputed from the normalized set.
"""

from __future__ import annotations

import json
import sys
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Union

from auditgate.constants import SUPPORTED_MODERN_REPORT_VERSIONS
from auditgate.errors import FormatError
from auditgate.models.severity import Severity
from auditgate.models.vulnerability import (
    DetailedRef,
    PackageRef,
    ReferenceNode,
    ReportFormat,
    Vulnerability,
    VulnerabilitySet,
)
from auditgate.utils.logger import get_logger

logger = get_logger(__name__)


# ─── Raw report variants ──────────────────────────────────────────────────────


@dataclass(frozen=True)
class LegacyReport:
    advisories: Mapping[str, Any]


@dataclass(frozen=True)
class ModernReport:
    version: int
    vulnerabilities: Mapping[str, Any]


RawReport = Union[LegacyReport, ModernReport]


# ─── Loading ──────────────────────────────────────────────────────────────────


def load_report(source: str) -> VulnerabilitySet:
    """Read a report from a file path (or ``-`` for stdin) and normalize it.

    Raises:
        FormatError: text is not UTF-8 JSON or does not match a supported schema.
        OSError:     the file cannot be read.
    """
    label = "<stdin>" if source == "-" else source
    try:
        if source == "-":
            text = sys.stdin.read()
        else:
            with open(source, encoding="utf-8") as fh:
                text = fh.read()
    except UnicodeDecodeError as exc:
        logger.error("Audit report is not valid UTF-8", source=label, error=str(exc))
        raise FormatError(
            f"audit report is not valid UTF-8: byte {exc.start} cannot be decoded",
            code="InvalidEncoding",
            source=label,
        ) from exc

    logger.debug("Audit report read", source=label, length=len(text))
    return normalize_report(parse_report_text(text, label))


def parse_report_text(text: str, source: str = "report") -> Any:
    """Parse report text as JSON, mapping syntax errors onto FormatError."""
    if not text.strip():
        raise FormatError("audit report is empty", code="InvalidJSON", source=source)
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        logger.error("Audit report is not valid JSON", source=source, error=str(exc))
        raise FormatError(
            f"audit report is not valid JSON: {exc.msg} at line {exc.lineno} column {exc.colno}",
            code="InvalidJSON",
            source=source,
        ) from exc
    except RecursionError as exc:
        raise FormatError(
            "audit report is nested too deeply to parse", code="InvalidJSON", source=source
        ) from exc


# ─── Format detection ─────────────────────────────────────────────────────────


def detect_format(raw: Any) -> ReportFormat:
    """Identify the report schema from its top-level keys.

    ``advisories`` mapping → LEGACY.
    ``vulnerabilities`` mapping plus ``auditReportVersion`` → MODERN.
    Anything else, including a document carrying both shapes, is
    FormatError(code="UnrecognizedSchema").
    """
    if not isinstance(raw, dict):
        raise FormatError(
            f"audit report must be a JSON object, got {_type_name(raw)}",
            code="UnrecognizedSchema",
            source="report",
        )

    is_legacy = isinstance(raw.get("advisories"), dict)
    is_modern = isinstance(raw.get("vulnerabilities"), dict) and "auditReportVersion" in raw

    if is_legacy and is_modern:
        raise FormatError(
            "audit report contains both 'advisories' and 'vulnerabilities'; "
            "cannot tell which schema applies",
            code="UnrecognizedSchema",
            source="report",
        )
    if is_legacy:
        return ReportFormat.LEGACY
    if is_modern:
        return ReportFormat.MODERN

    logger.error(
        "Unsupported audit report format",
        keys=sorted(str(k) for k in raw)[:20],
        has_advisories="advisories" in raw,
        has_vulnerabilities="vulnerabilities" in raw,
    )
    raise FormatError(
        "audit report has neither an 'advisories' map (legacy) nor "
        "'auditReportVersion' + 'vulnerabilities' (modern)",
        code="UnrecognizedSchema",
        source="report",
    )


def parse_report(raw: Any) -> RawReport:
    """Resolve a raw JSON document into LegacyReport or ModernReport."""
    report_format = detect_format(raw)

    if report_format is ReportFormat.LEGACY:
        return LegacyReport(advisories=raw["advisories"])

    version = raw["auditReportVersion"]
    if isinstance(version, bool) or version not in SUPPORTED_MODERN_REPORT_VERSIONS:
        raise FormatError(
            f"auditReportVersion {version!r} is not supported "
            f"(supported: {sorted(SUPPORTED_MODERN_REPORT_VERSIONS)})",
            code="UnsupportedVersion",
            source="report",
        )
    return ModernReport(version=version, vulnerabilities=raw["vulnerabilities"])


# ─── Normalization ────────────────────────────────────────────────────────────


def normalize_report(raw: Any) -> VulnerabilitySet:
    """Detect the schema of ``raw`` and normalize it to a VulnerabilitySet."""
    report = parse_report(raw)
    if isinstance(report, LegacyReport):
        result = normalize_legacy(report)
    else:
        result = normalize_modern(report)
    logger.info(
        "Audit report normalized",
        format=result.source_format.value if result.source_format else None,
        vulnerabilities=len(result),
    )
    return result


def normalize_legacy(report: LegacyReport) -> VulnerabilitySet:
    """One Vulnerability per advisory, keyed by the advisory id."""
    vulnerabilities: list[Vulnerability] = []

    for key, advisory in sorted(report.advisories.items(), key=lambda kv: str(kv[0])):
        where = f"advisories[{key!r}]"
        if not isinstance(advisory, dict):
            raise FormatError(
                f"{where} must be an object, got {_type_name(advisory)}",
                code="InvalidRecord",
                source="report",
            )

        advisory_id = _identifier(advisory.get("id", key))
        if advisory_id is None:
            raise FormatError(f"{where} has no usable id", code="InvalidRecord", source="report")

        module_name = advisory.get("module_name")
        if not isinstance(module_name, str) or not module_name:
            raise FormatError(
                f"{where} is missing 'module_name'", code="InvalidRecord", source="report"
            )

        severity = _severity(advisory.get("severity"), where)
        detail = DetailedRef(
            source=advisory_id,
            severity=severity,
            title=_optional_str(advisory.get("title")),
            url=_optional_str(advisory.get("url")),
            range=_optional_str(advisory.get("vulnerable_versions")),
            name=module_name,
            dependency=module_name,
        )
        vulnerabilities.append(
            Vulnerability(
                id=advisory_id,
                package_name=module_name,
                severity=severity,
                is_direct=_legacy_is_direct(advisory.get("findings")),
                via=(detail,),
            )
        )

    return VulnerabilitySet.from_vulnerabilities(vulnerabilities, source_format=ReportFormat.LEGACY)


def normalize_modern(report: ModernReport) -> VulnerabilitySet:
    """Normalize a v2 report.

    Per package entry:
      - every advisory object in ``via`` becomes a Vulnerability keyed by its
        ``source`` id, with that advisory as its only reference node;
      - if ``via`` also names other packages, the package itself becomes a
        Vulnerability keyed by its name, carrying those PackageRefs in order.
    """
    vulnerabilities: list[Vulnerability] = []

    for key, entry in sorted(report.vulnerabilities.items()):
        where = f"vulnerabilities[{key!r}]"
        if not isinstance(entry, dict):
            raise FormatError(
                f"{where} must be an object, got {_type_name(entry)}",
                code="InvalidRecord",
                source="report",
            )

        name = entry.get("name", key)
        if not isinstance(name, str) or not name:
            raise FormatError(f"{where} has no package name", code="InvalidRecord", source="report")

        package_severity = _severity(entry.get("severity"), where)
        is_direct = entry.get("isDirect") is True
        via_raw = entry.get("via", [])
        if not isinstance(via_raw, list):
            raise FormatError(f"{where}.via must be a list", code="InvalidRecord", source="report")

        nodes = [_reference_node(item, f"{where}.via[{i}]") for i, item in enumerate(via_raw)]
        package_refs = tuple(node for node in nodes if isinstance(node, PackageRef))

        for node in nodes:
            if isinstance(node, DetailedRef):
                vulnerabilities.append(
                    Vulnerability(
                        id=node.source,
                        package_name=name,
                        severity=node.severity,
                        is_direct=is_direct,
                        via=(node,),
                    )
                )

        if package_refs or not nodes:
            vulnerabilities.append(
                Vulnerability(
                    id=name,
                    package_name=name,
                    severity=package_severity,
                    is_direct=is_direct,
                    via=package_refs,
                )
            )

    return VulnerabilitySet.from_vulnerabilities(vulnerabilities, source_format=ReportFormat.MODERN)


# ─── Helpers ──────────────────────────────────────────────────────────────────


def _reference_node(item: Any, where: str) -> ReferenceNode:
    if isinstance(item, str):
        if not item:
            raise FormatError(f"{where} is an empty package name", code="InvalidRecord", source="report")
        return PackageRef(name=item)
    if isinstance(item, dict):
        source = _identifier(item.get("source"))
        if source is None:
            raise FormatError(f"{where} has no 'source' id", code="InvalidRecord", source="report")
        return DetailedRef(
            source=source,
            severity=_severity(item.get("severity"), where),
            title=_optional_str(item.get("title")),
            url=_optional_str(item.get("url")),
            range=_optional_str(item.get("range")),
            name=_optional_str(item.get("name")),
            dependency=_optional_str(item.get("dependency")),
        )
    raise FormatError(
        f"{where} must be a package name or an advisory object, got {_type_name(item)}",
        code="InvalidRecord",
        source="report",
    )


def _severity(value: Any, where: str) -> Severity:
    try:
        return Severity.from_label(value)
    except ValueError as exc:
        logger.error("Unrecognised severity in audit report", location=where, severity=repr(value))
        raise FormatError(
            f"{where} has invalid severity {value!r}: {exc}",
            code="InvalidSeverity",
            source="report",
        ) from exc


def _identifier(value: Any) -> Optional[str]:
    """Advisory ids arrive as ints or strings; bools and blanks are not ids."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return str(value)
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _optional_str(value: Any) -> Optional[str]:
    return value if isinstance(value, str) else None


def _legacy_is_direct(findings: Any) -> bool:
    """A legacy finding path without ``>`` means the package is a top-level dependency."""
    if not isinstance(findings, list):
        return False
    for finding in findings:
        if not isinstance(finding, dict):
            continue
        for path in finding.get("paths") or ():
            if isinstance(path, str) and ">" not in path:
                return True
    return False


def _type_name(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, list):
        return "array"
    return type(value).__name__
