"""Allowlist matching and the pass/fail decision for auditgate.

evaluate() is the ONLY function the pipeline calls. It is pure: no I/O and
no clock reads. ``now`` is captured once per run by the caller and passed in,
so repeated evaluations of frozen inputs give identical verdicts.

Matching (per vulnerability at or above the threshold):
  1. Look up an entry by the vulnerability id.
  2. Otherwise look up an entry by the package name (package-wide exception).
  3. Entries whose ``package`` names a different package are skipped.
  4. The first entry found decides. An invalid advisory-level entry does NOT
     fall through to a package-level entry.

Decision:
  - No entry                       → violation (UNCOVERED)
  - Entry MISSING/MALFORMED/EXPIRED → violation with that status; the entry
                                      is reported as a BLOCKING invalid entry
  - Entry ACTIVE                   → covered

  outcome = PASS  iff  no violations AND no blocking invalid entries.

Invalid entries that match nothing in the report are dead configuration:
reported as warnings, they never fail the run on their own.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Optional

from auditgate.allowlist.loader import Allowlist, AllowlistEntry, EntryStatus
from auditgate.constants import DEFAULT_EXPIRING_SOON_DAYS
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
from auditgate.models.vulnerability import Vulnerability, VulnerabilitySet
from auditgate.utils.dates import ensure_utc
from auditgate.utils.logger import get_logger

logger = get_logger(__name__)

_COVER_STATUS = {
    EntryStatus.EXPIRED: CoverStatus.EXPIRED,
    EntryStatus.MALFORMED: CoverStatus.MALFORMED,
    EntryStatus.MISSING: CoverStatus.MISSING,
}


def find_entry(vulnerability: Vulnerability, allowlist: Allowlist) -> Optional[AllowlistEntry]:
    """Entry for the vulnerability id, else for its package name, else None.

    An entry pinned to another package (``package`` field) is skipped.
    """
    for key in (vulnerability.id, vulnerability.package_name):
        entry = allowlist.get(key)
        if entry is not None and entry.applies_to(vulnerability.package_name):
            return entry
    return None


def evaluate(
    vulnerabilities: VulnerabilitySet,
    allowlist: Allowlist,
    now: datetime,
    threshold: Severity = Severity.HIGH,
    expiring_soon_days: int = DEFAULT_EXPIRING_SOON_DAYS,
) -> Verdict:
    """Compute the Verdict for one report against one allowlist snapshot.

    Args:
        vulnerabilities:    Normalized findings.
        allowlist:          Validated allowlist (may contain invalid entries).
        now:                Evaluation instant. Naive values are taken as UTC.
        threshold:          Minimum severity that can fail the run.
        expiring_soon_days: Window for "expiring soon" warnings on entries in use.

    Returns:
        Immutable Verdict.
    """
    now = ensure_utc(now)
    soon = now + timedelta(days=expiring_soon_days)

    violations: list[Violation] = []
    covered: list[Coverage] = []
    used: dict[str, AllowlistEntry] = {}
    blocking: set[int] = set()

    for vuln in vulnerabilities:
        if vuln.severity < threshold:
            continue

        entry = find_entry(vuln, allowlist)
        if entry is None:
            violations.append(Violation(vulnerability=vuln, status=CoverStatus.UNCOVERED))
            continue

        used[entry.key] = entry
        status = entry.status_at(now)
        if status is EntryStatus.ACTIVE:
            covered.append(
                Coverage(
                    vulnerability=vuln,
                    entry_id=entry.key,
                    reason=entry.reason or "",
                    expires=entry.expires or "",
                )
            )
            continue

        blocking.add(entry.index)
        error = entry.primary_error(now)
        violations.append(
            Violation(
                vulnerability=vuln,
                status=_COVER_STATUS[status],
                entry_id=entry.key,
                entry_reason=entry.reason,
                detail=f"{error.field}: {error.message}" if error else None,
            )
        )

    invalid_entries = _invalid_entries(allowlist, now, blocking)
    expiring_soon = tuple(
        ExpiringEntry(
            entry_id=entry.key,
            expires_at=entry.expires_at,
            days_left=(entry.expires_at - now).days,
        )
        for entry in sorted(used.values(), key=lambda e: e.index)
        if entry.status_at(now) is EntryStatus.ACTIVE
        and entry.expires_at is not None
        and entry.expires_at <= soon
    )
    unused_entries = tuple(
        entry.key
        for entry in allowlist
        if entry.key not in used and entry.status_at(now) is EntryStatus.ACTIVE
    )

    violations.sort(key=_violation_order)
    covered.sort(key=lambda c: (-c.vulnerability.severity, c.vulnerability.package_name, c.vulnerability.id))

    outcome = (
        Outcome.PASS
        if not violations and not any(e.blocking for e in invalid_entries)
        else Outcome.FAIL
    )

    verdict = Verdict(
        outcome=outcome,
        evaluated_at=now,
        threshold=threshold,
        violations=tuple(violations),
        covered=tuple(covered),
        invalid_entries=invalid_entries,
        expiring_soon=expiring_soon,
        unused_entries=unused_entries,
        counts=vulnerabilities.counts(),
    )

    logger.info(
        "Gate evaluated",
        outcome=outcome.value,
        threshold=threshold.label,
        vulnerabilities=len(vulnerabilities),
        violations=len(violations),
        covered=len(covered),
        invalid_entries=len(invalid_entries),
        blocking_entries=len(blocking),
    )
    return verdict


def _invalid_entries(
    allowlist: Allowlist, now: datetime, blocking: set[int]
) -> tuple[InvalidEntry, ...]:
    invalid: list[InvalidEntry] = []
    for entry in allowlist:
        error = entry.primary_error(now)
        if error is None:
            continue
        invalid.append(
            InvalidEntry(
                entry_id=entry.key,
                index=entry.index,
                status=_COVER_STATUS[error.status],
                field=error.field,
                message=error.message,
                blocking=entry.index in blocking,
            )
        )
    return tuple(invalid)


def _violation_order(violation: Violation) -> tuple:
    vuln = violation.vulnerability
    return (-vuln.severity, vuln.package_name, vuln.id)
