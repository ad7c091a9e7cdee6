"""Gate pipeline: report → VulnerabilitySet, allowlist → Allowlist, both → Verdict.

run_gate() is the composition used by the CLI. It performs the two blocking
reads, then hands immutable values to the pure matcher. The evaluation
instant ``now`` is captured once by the caller and threaded through; nothing
below this function reads the clock.
"""

from __future__ import annotations

from datetime import datetime

from auditgate.allowlist.loader import load_allowlist
from auditgate.allowlist.matcher import evaluate
from auditgate.constants import DEFAULT_EXPIRING_SOON_DAYS
from auditgate.models.severity import Severity
from auditgate.models.verdict import Verdict
from auditgate.report.normalizer import load_report
from auditgate.utils.logger import PerformanceLogger, get_logger

logger = get_logger(__name__)


def run_gate(
    report_source: str,
    allowlist_path: str,
    now: datetime,
    threshold: Severity = Severity.HIGH,
    expiring_soon_days: int = DEFAULT_EXPIRING_SOON_DAYS,
) -> Verdict:
    """Load both inputs and evaluate them.

    Raises:
        FormatError:        either document has an unrecognised shape.
        AllowlistLoadError: the allowlist has duplicate ids.
        OSError:            an input file cannot be read.
    """
    logger.info(
        "Gate run started",
        report=report_source,
        allowlist=allowlist_path,
        threshold=threshold.label,
    )
    vulnerabilities = load_report(report_source)
    allowlist = load_allowlist(allowlist_path)

    with PerformanceLogger("gate evaluation", logger):
        return evaluate(
            vulnerabilities,
            allowlist,
            now=now,
            threshold=threshold,
            expiring_soon_days=expiring_soon_days,
        )
