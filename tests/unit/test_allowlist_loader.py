"""Tests for the allowlist loader and entry validation.

Tests:
  - Well-formed entries (JSON list, {allowlist: [...]} mapping, YAML)
  - MISSING vs MALFORMED classification per field
  - Invalid entries are kept, never dropped
  - Duplicate ids reject the whole allowlist
  - status_at(): expiration is strict and evaluated against the given instant
  - Missing or empty file → empty allowlist
  - Undecodable or too deeply nested files raise FormatError
  - Optional `package` pins an entry to one package
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from auditgate.allowlist.loader import (
    Allowlist,
    AllowlistEntry,
    EntryStatus,
    load_allowlist,
    parse_allowlist,
    validate_entry,
)
from auditgate.errors import AllowlistLoadError, FormatError

NOW = datetime(2026, 6, 1, 12, 0, tzinfo=timezone.utc)


def _entry(**overrides):
    raw = {"id": "1523", "reason": "Not reachable from our code", "expires": "2099-01-01T00:00:00Z"}
    raw.update(overrides)
    return {k: v for k, v in raw.items() if v is not _ABSENT}


_ABSENT = object()


def _errors_by_field(entry: AllowlistEntry) -> dict:
    return {err.field: err.status for err in entry.errors}


# ─── validate_entry ───────────────────────────────────────────────────────────


class TestValidateEntry:
    def test_well_formed(self):
        entry = validate_entry(_entry(addedBy="alice", reference="JIRA-1", notes="n"), 0)
        assert entry.is_well_formed
        assert entry.id == "1523"
        assert entry.reason == "Not reachable from our code"
        assert entry.expires_at == datetime(2099, 1, 1, tzinfo=timezone.utc)
        assert entry.added_by == "alice"
        assert entry.reference == "JIRA-1"
        assert entry.schema_status is None

    def test_whitespace_trimmed(self):
        entry = validate_entry(_entry(id="  1523 ", reason=" ok "), 0)
        assert entry.id == "1523"
        assert entry.reason == "ok"

    @pytest.mark.parametrize("field", ["id", "reason", "expires"])
    def test_absent_required_field_is_missing(self, field):
        entry = validate_entry(_entry(**{field: _ABSENT}), 0)
        assert _errors_by_field(entry) == {field: EntryStatus.MISSING}
        assert entry.schema_status is EntryStatus.MISSING

    @pytest.mark.parametrize("field", ["id", "reason", "expires"])
    def test_null_required_field_is_missing(self, field):
        entry = validate_entry(_entry(**{field: None}), 0)
        assert _errors_by_field(entry) == {field: EntryStatus.MISSING}

    @pytest.mark.parametrize("field", ["id", "reason", "expires"])
    def test_empty_required_field_is_malformed(self, field):
        entry = validate_entry(_entry(**{field: "  "}), 0)
        assert _errors_by_field(entry) == {field: EntryStatus.MALFORMED}
        assert entry.schema_status is EntryStatus.MALFORMED

    def test_unparseable_expiry_is_malformed(self):
        entry = validate_entry(_entry(expires="next quarter"), 0)
        assert _errors_by_field(entry) == {"expires": EntryStatus.MALFORMED}
        assert entry.expires == "next quarter"
        assert entry.expires_at is None

    def test_non_string_expiry_is_malformed(self):
        entry = validate_entry(_entry(expires=20991231), 0)
        assert _errors_by_field(entry) == {"expires": EntryStatus.MALFORMED}

    def test_date_only_expiry(self):
        entry = validate_entry(_entry(expires="2030-01-31"), 0)
        assert entry.expires_at == datetime(2030, 1, 31, tzinfo=timezone.utc)

    def test_numeric_id_is_malformed_but_keeps_its_key(self):
        entry = validate_entry(_entry(id=1523), 0)
        assert _errors_by_field(entry) == {"id": EntryStatus.MALFORMED}
        assert entry.id == "1523"

    def test_unknown_property_is_malformed(self):
        entry = validate_entry(_entry(severity="high"), 0)
        assert _errors_by_field(entry) == {"severity": EntryStatus.MALFORMED}
        assert entry.errors[0].message == "unexpected property"

    def test_optional_field_wrong_type(self):
        entry = validate_entry(_entry(addedBy=42), 0)
        assert _errors_by_field(entry) == {"addedBy": EntryStatus.MALFORMED}

    def test_package_field_accepted(self):
        entry = validate_entry(_entry(package="lodash"), 0)
        assert entry.is_well_formed
        assert entry.package == "lodash"
        assert entry.applies_to("lodash")
        assert not entry.applies_to("qs")

    def test_entry_without_package_applies_to_any_package(self):
        entry = validate_entry(_entry(), 0)
        assert entry.package is None
        assert entry.applies_to("qs")

    @pytest.mark.parametrize("value", ["", "  ", 42])
    def test_invalid_package_is_malformed(self, value):
        entry = validate_entry(_entry(package=value), 0)
        assert _errors_by_field(entry) == {"package": EntryStatus.MALFORMED}

    def test_reviewed_on_must_be_a_date(self):
        assert validate_entry(_entry(reviewedOn="2026-01-01"), 0).is_well_formed
        entry = validate_entry(_entry(reviewedOn="yesterday"), 0)
        assert _errors_by_field(entry) == {"reviewedOn": EntryStatus.MALFORMED}

    def test_missing_wins_over_malformed(self):
        entry = validate_entry({"id": "1523", "reason": "", "extra": 1}, 0)
        assert entry.schema_status is EntryStatus.MISSING

    def test_non_object_entry(self):
        entry = validate_entry("1523", 3)
        assert entry.id is None
        assert entry.key == "#3"
        assert _errors_by_field(entry) == {"<entry>": EntryStatus.MALFORMED}

    def test_errors_reported_under_index_when_id_unusable(self):
        entry = validate_entry({"reason": "x", "expires": "2099-01-01"}, 4)
        assert entry.errors[0].entry_id == "#4"


# ─── status_at ────────────────────────────────────────────────────────────────


class TestStatusAt:
    def test_active_before_expiry(self):
        entry = validate_entry(_entry(expires="2026-06-01T12:00:01Z"), 0)
        assert entry.status_at(NOW) is EntryStatus.ACTIVE
        assert entry.primary_error(NOW) is None

    def test_expired_exactly_at_now(self):
        entry = validate_entry(_entry(expires="2026-06-01T12:00:00Z"), 0)
        assert entry.status_at(NOW) is EntryStatus.EXPIRED

    def test_expired_in_the_past(self):
        entry = validate_entry(_entry(expires="2026-01-01"), 0)
        assert entry.status_at(NOW) is EntryStatus.EXPIRED
        error = entry.primary_error(NOW)
        assert error.field == "expires"
        assert error.status is EntryStatus.EXPIRED
        assert "2026-01-01T00:00:00Z" in error.message

    def test_same_entry_different_instants(self):
        entry = validate_entry(_entry(expires="2026-07-01"), 0)
        assert entry.status_at(NOW) is EntryStatus.ACTIVE
        assert entry.status_at(NOW + timedelta(days=60)) is EntryStatus.EXPIRED

    def test_schema_problem_outranks_expiry(self):
        entry = validate_entry(_entry(reason=None, expires="2000-01-01"), 0)
        assert entry.status_at(NOW) is EntryStatus.MISSING
        assert entry.primary_error(NOW).field == "reason"


# ─── parse_allowlist ──────────────────────────────────────────────────────────


class TestParseAllowlist:
    def test_list_document(self):
        allowlist = parse_allowlist([_entry(), _entry(id="lodash")])
        assert len(allowlist) == 2
        assert allowlist.get("lodash").index == 1

    def test_mapping_document(self):
        allowlist = parse_allowlist({"allowlist": [_entry()]})
        assert allowlist.get("1523") is not None

    def test_none_is_empty(self):
        assert len(parse_allowlist(None)) == 0
        assert len(parse_allowlist({"allowlist": None})) == 0

    def test_invalid_entries_are_kept(self):
        allowlist = parse_allowlist([_entry(expires=_ABSENT), "junk"])
        assert len(allowlist) == 2
        assert allowlist.get("1523").schema_status is EntryStatus.MISSING

    def test_entries_without_id_not_reachable_by_lookup(self):
        allowlist = parse_allowlist([_entry(id=_ABSENT)])
        assert len(allowlist) == 1
        assert allowlist.get("#0") is None

    def test_mapping_without_allowlist_key(self):
        with pytest.raises(FormatError) as exc_info:
            parse_allowlist({"entries": []})
        assert exc_info.value.code == "UnrecognizedSchema"

    def test_scalar_document(self):
        with pytest.raises(FormatError):
            parse_allowlist("1523")

    def test_duplicate_ids_reject_load(self):
        with pytest.raises(AllowlistLoadError) as exc_info:
            parse_allowlist([_entry(), _entry(reason="other")])
        errors = exc_info.value.errors
        assert len(errors) == 1
        assert errors[0].entry_id == "1523"
        assert errors[0].field == "id"
        assert "#0" in errors[0].message and "#1" in errors[0].message

    def test_duplicate_detected_after_trimming(self):
        with pytest.raises(AllowlistLoadError):
            parse_allowlist([_entry(id="1523"), _entry(id=" 1523")])


# ─── load_allowlist ───────────────────────────────────────────────────────────


class TestLoadAllowlist:
    def test_missing_file_is_empty(self, tmp_path):
        allowlist = load_allowlist(str(tmp_path / "absent.json"))
        assert isinstance(allowlist, Allowlist)
        assert len(allowlist) == 0

    def test_empty_json_file_is_empty(self, write_file):
        assert len(load_allowlist(write_file(".audit-allowlist.json", ""))) == 0

    def test_json_file(self, write_file):
        path = write_file(".audit-allowlist.json", [_entry()])
        assert load_allowlist(path).get("1523").is_well_formed

    def test_invalid_json(self, write_file):
        path = write_file(".audit-allowlist.json", '[{"id": "1523",}]')
        with pytest.raises(FormatError) as exc_info:
            load_allowlist(path)
        assert exc_info.value.code == "InvalidJSON"
        assert exc_info.value.source == path

    def test_yaml_file(self, write_file):
        path = write_file(
            "allowlist.yaml",
            "allowlist:\n"
            "  - id: '1523'\n"
            "    reason: Dev-only dependency\n"
            "    expires: 2099-01-01\n",
        )
        entry = load_allowlist(path).get("1523")
        assert entry.is_well_formed
        assert entry.expires == "2099-01-01"
        assert entry.expires_at == datetime(2099, 1, 1, tzinfo=timezone.utc)

    def test_invalid_yaml(self, write_file):
        path = write_file("allowlist.yml", "allowlist: [unclosed\n")
        with pytest.raises(FormatError) as exc_info:
            load_allowlist(path)
        assert exc_info.value.code == "InvalidYAML"

    def test_file_not_utf8(self, tmp_path):
        path = tmp_path / ".audit-allowlist.json"
        path.write_bytes(b'[{"id": "\xff"}]')
        with pytest.raises(FormatError) as exc_info:
            load_allowlist(str(path))
        assert exc_info.value.code == "InvalidEncoding"
        assert exc_info.value.source == str(path)

    def test_deeply_nested_json(self, write_file):
        path = write_file(".audit-allowlist.json", "[" * 100_000 + "]" * 100_000)
        with pytest.raises(FormatError) as exc_info:
            load_allowlist(path)
        assert exc_info.value.code == "InvalidJSON"
        assert "nested too deeply" in str(exc_info.value)
