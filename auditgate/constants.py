"""Shared constants for auditgate.

Exit codes, defaults, and schema vocabulary used across modules are defined here.
No magic numbers in other modules; import from here.
"""

# ─── Process exit codes ───────────────────────────────────────────────────────

# Gate passed: no uncovered vulnerability at or above the threshold.
EXIT_PASS: int = 0

# Gate failed: at least one security violation (uncovered, expired cover,
# or cover from an invalid allowlist entry).
EXIT_VIOLATIONS: int = 1

# Tool could not evaluate at all: unreadable/unrecognised report, unparsable
# allowlist document, duplicate allowlist ids, or invalid configuration.
# Distinct from EXIT_VIOLATIONS so callers can tell "gate failed" from
# "gate misconfigured".
EXIT_LOAD_FAILURE: int = 2

# ─── Gate defaults ────────────────────────────────────────────────────────────

# Minimum severity that fails the run when uncovered (high and critical).
DEFAULT_THRESHOLD: str = "high"

# Allowlist document read when no path is configured.
DEFAULT_ALLOWLIST_PATH: str = ".audit-allowlist.json"

# Report source read when no path is configured ("-" = stdin).
DEFAULT_REPORT_SOURCE: str = "-"

# Active entries expiring within this many days are reported as warnings.
DEFAULT_EXPIRING_SOON_DAYS: int = 30

# ─── Report schema ────────────────────────────────────────────────────────────

# auditReportVersion values understood by the modern normalizer.
SUPPORTED_MODERN_REPORT_VERSIONS: frozenset[int] = frozenset({2})

# ─── Allowlist schema ─────────────────────────────────────────────────────────

# Every entry must carry these fields.
ALLOWLIST_REQUIRED_FIELDS: tuple[str, ...] = ("id", "reason", "expires")

# Optional string fields; `package` narrows an entry to one package name.
# Any key outside REQUIRED + OPTIONAL makes the entry malformed.
ALLOWLIST_OPTIONAL_FIELDS: tuple[str, ...] = ("package", "addedBy", "reference", "notes", "reviewedOn")
