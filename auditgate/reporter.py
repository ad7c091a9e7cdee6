"""Verdict rendering and exit codes for auditgate.

Two renderings of the same Verdict:

  render_text():  human summary for CI logs: severity counts, one line per
                  violation, one line per invalid allowlist entry, warnings,
                  and remediation hints on failure.
  render_json():  machine-readable, byte-identical for identical inputs.

Exit codes (constants.py):
  EXIT_PASS (0)          gate passed
  EXIT_VIOLATIONS (1)    security gate failed
  EXIT_LOAD_FAILURE (2)  inputs could not be loaded (the tool is broken, not the code)
"""

from __future__ import annotations

import json

from auditgate.constants import EXIT_PASS, EXIT_VIOLATIONS
from auditgate.errors import AllowlistLoadError, AuditGateError, FormatError
from auditgate.models.severity import Severity
from auditgate.models.verdict import CoverStatus, Verdict, Violation

_STATUS_TEXT = {
    CoverStatus.UNCOVERED: "not in allowlist",
    CoverStatus.EXPIRED: "allowlist entry expired",
    CoverStatus.MALFORMED: "allowlist entry malformed",
    CoverStatus.MISSING: "allowlist entry missing a required field",
}


def exit_code(verdict: Verdict) -> int:
    return EXIT_PASS if verdict.passed else EXIT_VIOLATIONS


def render_json(verdict: Verdict) -> str:
    return json.dumps(verdict.to_dict(), indent=2, sort_keys=True)


def render_text(verdict: Verdict) -> str:
    """Render the verdict as plain text lines (no trailing newline)."""
    lines: list[str] = []
    threshold = verdict.threshold.label

    if verdict.passed:
        lines.append(f"PASS: no uncovered vulnerabilities at or above '{threshold}'")
    else:
        lines.append(
            f"FAIL: {len(verdict.violations)} vulnerabilit"
            f"{'y' if len(verdict.violations) == 1 else 'ies'} at or above '{threshold}' "
            "without active allowlist cover"
        )

    counts = ", ".join(f"{label}={verdict.counts.get(label, 0)}" for label in Severity.labels())
    lines.append(f"Severity counts: {counts}")

    if verdict.violations:
        lines.append("")
        lines.append("Violations:")
        lines.extend(f"  - {_violation_line(v)}" for v in verdict.violations)

    if verdict.invalid_entries:
        lines.append("")
        lines.append("Invalid allowlist entries (provide no cover):")
        for entry in verdict.invalid_entries:
            impact = "BLOCKING" if entry.blocking else "warning"
            lines.append(
                f"  - {entry.entry_id} [{entry.status.value.capitalize()}] "
                f"field '{entry.field}': {entry.message} ({impact})"
            )

    if verdict.covered:
        lines.append("")
        lines.append(f"{len(verdict.covered)} allowlisted vulnerabilities:")
        for cover in verdict.covered:
            vuln = cover.vulnerability
            lines.append(
                f"  - {vuln.package_name} {vuln.id} ({vuln.severity.label}) "
                f"covered by {cover.entry_id} until {cover.expires}: {cover.reason}"
            )

    if verdict.expiring_soon:
        lines.append("")
        lines.append("Warning: allowlist entries expiring soon:")
        for soon in verdict.expiring_soon:
            lines.append(f"  - {soon.entry_id} expires in {soon.days_left} day(s)")

    if verdict.unused_entries:
        lines.append("")
        lines.append(
            "Note: allowlist entries matching no current finding: "
            + ", ".join(verdict.unused_entries)
        )

    if not verdict.passed:
        lines.append("")
        lines.append("To fix this:")
        lines.append("  1. Update dependencies to resolve the vulnerabilities, or")
        lines.append("  2. Add or renew allowlist entries with a reason and a future 'expires' date.")

    return "\n".join(lines)


def render_load_failure(exc: BaseException) -> str:
    """One explanatory message for a failure that prevented evaluation."""
    if isinstance(exc, AllowlistLoadError):
        lines = [f"ERROR: allowlist could not be loaded: {exc.message}"]
        lines.extend(f"  - {err.entry_id} field '{err.field}': {err.message}" for err in exc.errors)
        return "\n".join(lines)
    if isinstance(exc, FormatError):
        source = exc.source or "input"
        return f"ERROR: {source} could not be parsed [{exc.code}]: {exc.message}"
    if isinstance(exc, AuditGateError):
        return f"ERROR: {exc}"
    if isinstance(exc, OSError):
        target = exc.filename if exc.filename else "input"
        return f"ERROR: could not read {target}: {exc.strerror or exc}"
    return f"ERROR: {exc}"


def _violation_line(violation: Violation) -> str:
    vuln = violation.vulnerability
    line = f"{vuln.package_name} {vuln.id} ({vuln.severity.label}): {_STATUS_TEXT[violation.status]}"
    if violation.entry_id is not None:
        line += f" [entry {violation.entry_id}"
        if violation.entry_reason:
            line += f", reason: {violation.entry_reason}"
        if violation.detail:
            line += f"; {violation.detail}"
        line += "]"
    if vuln.title:
        line += f". {vuln.title}"
    return line
