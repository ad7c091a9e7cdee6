"""Tests for auditgate.reporter: text and JSON rendering, exit codes."""

from __future__ import annotations

import json
from datetime import datetime, timezone

from auditgate.allowlist.loader import Allowlist, EntryStatus, ValidationError, parse_allowlist
from auditgate.allowlist.matcher import evaluate
from auditgate.constants import EXIT_PASS, EXIT_VIOLATIONS
from auditgate.errors import AllowlistLoadError, FormatError
from auditgate.models.severity import Severity
from auditgate.models.vulnerability import DetailedRef, PackageRef, Vulnerability, VulnerabilitySet
from auditgate.reporter import exit_code, render_json, render_load_failure, render_text

NOW = datetime(2026, 6, 1, 12, 0, tzinfo=timezone.utc)


def _report():
    return VulnerabilitySet.from_vulnerabilities(
        [
            Vulnerability(
                id="1523",
                package_name="lodash",
                severity=Severity.CRITICAL,
                is_direct=True,
                via=(
                    DetailedRef(
                        source="1523",
                        severity=Severity.CRITICAL,
                        title="Prototype Pollution",
                        url="https://npmjs.com/advisories/1523",
                    ),
                ),
            ),
            Vulnerability(
                id="express",
                package_name="express",
                severity=Severity.HIGH,
                via=(PackageRef(name="qs"),),
            ),
            Vulnerability(id="42", package_name="debug", severity=Severity.LOW),
        ]
    )


# ─── exit_code ────────────────────────────────────────────────────────────────


class TestExitCode:
    def test_pass(self):
        verdict = evaluate(VulnerabilitySet(), Allowlist.empty(), NOW)
        assert exit_code(verdict) == EXIT_PASS == 0

    def test_fail(self):
        verdict = evaluate(_report(), Allowlist.empty(), NOW)
        assert exit_code(verdict) == EXIT_VIOLATIONS == 1


# ─── render_text ──────────────────────────────────────────────────────────────


class TestRenderText:
    def test_pass_summary(self):
        verdict = evaluate(VulnerabilitySet(), Allowlist.empty(), NOW)
        text = render_text(verdict)
        assert text.splitlines()[0] == "PASS: no uncovered vulnerabilities at or above 'high'"
        assert "Severity counts: critical=0, high=0, moderate=0, low=0, info=0" in text
        assert "To fix this:" not in text

    def test_fail_lists_every_violation(self):
        text = render_text(evaluate(_report(), Allowlist.empty(), NOW))
        assert text.startswith("FAIL: 2 vulnerabilities at or above 'high'")
        assert "lodash 1523 (critical): not in allowlist. Prototype Pollution" in text
        assert "express express (high): not in allowlist. via qs" in text
        assert "debug 42" not in text
        assert "To fix this:" in text

    def test_singular_wording(self):
        report = VulnerabilitySet.from_vulnerabilities(
            [Vulnerability(id="1", package_name="a", severity=Severity.HIGH)]
        )
        assert render_text(evaluate(report, Allowlist.empty(), NOW)).startswith("FAIL: 1 vulnerability ")

    def test_invalid_entry_lines(self):
        allowlist = parse_allowlist(
            [
                {"id": "1523", "reason": "tracked", "expires": "not-a-date"},
                {"id": "9999", "reason": "old"},
            ]
        )
        text = render_text(evaluate(_report(), allowlist, NOW))
        assert "Invalid allowlist entries (provide no cover):" in text
        assert "- 1523 [Malformed] field 'expires'" in text
        assert "(BLOCKING)" in text
        assert "- 9999 [Missing] field 'expires': missing required property 'expires' (warning)" in text
        assert "allowlist entry malformed [entry 1523, reason: tracked; expires:" in text

    def test_covered_and_expiring_soon(self):
        allowlist = parse_allowlist(
            [
                {"id": "1523", "reason": "tracked", "expires": "2026-06-11T12:00:00Z"},
                {"id": "express", "reason": "dev only", "expires": "2099-01-01"},
            ]
        )
        text = render_text(evaluate(_report(), allowlist, NOW))
        assert text.startswith("PASS")
        assert "2 allowlisted vulnerabilities:" in text
        assert "covered by 1523 until 2026-06-11T12:00:00Z: tracked" in text
        assert "- 1523 expires in 10 day(s)" in text

    def test_unused_note(self):
        allowlist = parse_allowlist([{"id": "left-pad", "reason": "x", "expires": "2099-01-01"}])
        text = render_text(evaluate(VulnerabilitySet(), allowlist, NOW))
        assert "Note: allowlist entries matching no current finding: left-pad" in text


# ─── render_json ──────────────────────────────────────────────────────────────


class TestRenderJson:
    def test_structure(self):
        allowlist = parse_allowlist([{"id": "express", "reason": "dev only", "expires": "2000-01-01"}])
        payload = json.loads(render_json(evaluate(_report(), allowlist, NOW)))
        assert payload["outcome"] == "fail"
        assert payload["evaluated_at"] == "2026-06-01T12:00:00Z"
        assert payload["threshold"] == "high"
        assert payload["counts"] == {"critical": 1, "high": 1, "moderate": 0, "low": 1, "info": 0}
        statuses = {v["id"]: v["status"] for v in payload["violations"]}
        assert statuses == {"1523": "uncovered", "express": "expired"}
        assert payload["invalid_entries"][0]["blocking"] is True

    def test_byte_identical_for_identical_inputs(self):
        allowlist = parse_allowlist([{"id": "1523", "reason": "tracked", "expires": "2099-01-01"}])
        first = render_json(evaluate(_report(), allowlist, NOW))
        second = render_json(evaluate(_report(), allowlist, NOW))
        assert first == second


# ─── render_load_failure ──────────────────────────────────────────────────────


class TestRenderLoadFailure:
    def test_format_error(self):
        exc = FormatError("audit report is empty", code="InvalidJSON", source="audit.json")
        assert render_load_failure(exc) == "ERROR: audit.json could not be parsed [InvalidJSON]: audit report is empty"

    def test_allowlist_load_error(self):
        exc = AllowlistLoadError(
            "allowlist contains duplicate entry ids",
            [ValidationError("1523", "id", "duplicate id '1523'", EntryStatus.MALFORMED)],
        )
        message = render_load_failure(exc)
        assert message.startswith("ERROR: allowlist could not be loaded")
        assert "1523 field 'id': duplicate id '1523'" in message

    def test_os_error(self):
        exc = FileNotFoundError(2, "No such file or directory", "audit.json")
        assert render_load_failure(exc) == "ERROR: could not read audit.json: No such file or directory"
