"""Unit tests for auditgate/constants.py: exit codes and defaults."""

from __future__ import annotations

from auditgate.constants import (
    ALLOWLIST_OPTIONAL_FIELDS,
    ALLOWLIST_REQUIRED_FIELDS,
    DEFAULT_ALLOWLIST_PATH,
    DEFAULT_EXPIRING_SOON_DAYS,
    DEFAULT_THRESHOLD,
    EXIT_LOAD_FAILURE,
    EXIT_PASS,
    EXIT_VIOLATIONS,
    SUPPORTED_MODERN_REPORT_VERSIONS,
)
from auditgate.models.severity import Severity


class TestExitCodes:
    def test_values(self) -> None:
        assert (EXIT_PASS, EXIT_VIOLATIONS, EXIT_LOAD_FAILURE) == (0, 1, 2)

    def test_load_failure_distinct_from_violations(self) -> None:
        """CI must be able to tell 'insecure' apart from 'tool broken'."""
        assert EXIT_LOAD_FAILURE != EXIT_VIOLATIONS


class TestDefaults:
    def test_threshold_is_a_valid_severity(self) -> None:
        assert Severity.from_label(DEFAULT_THRESHOLD) is Severity.HIGH

    def test_allowlist_path(self) -> None:
        assert DEFAULT_ALLOWLIST_PATH == ".audit-allowlist.json"

    def test_expiring_soon_window(self) -> None:
        assert DEFAULT_EXPIRING_SOON_DAYS == 30

    def test_modern_report_version(self) -> None:
        assert SUPPORTED_MODERN_REPORT_VERSIONS == frozenset({2})

    def test_allowlist_fields(self) -> None:
        assert ALLOWLIST_REQUIRED_FIELDS == ("id", "reason", "expires")
        assert not set(ALLOWLIST_REQUIRED_FIELDS) & set(ALLOWLIST_OPTIONAL_FIELDS)
