"""Allowlist loader and validator for auditgate.

Loads `.audit-allowlist.json` (or a YAML equivalent) into an immutable
Allowlist. Every entry is validated against a strict schema:

    {"id": str, "reason": str, "expires": ISO-8601 date-time,
     "package"?: str, "addedBy"?: str, "reference"?: str, "notes"?: str,
     "reviewedOn"?: date-time}

An entry with ``package`` only covers findings in that package.

FAIL-CLOSED RULES:
  - ``expires`` is MANDATORY. Missing → MISSING; empty or unparsable → MALFORMED.
    Neither ever means "valid forever".
  - Invalid entries are KEPT (with their ValidationErrors), never dropped, so
    the matcher can report them and treat them as providing no cover.
  - Expiration is a separate, time-dependent check: ``status_at(now)``.
  - Two entries with the same id reject the whole load (AllowlistLoadError).
    Precedence between duplicates is never resolved silently.

Document-level problems (unreadable JSON/YAML, wrong top-level shape) raise
FormatError. A missing allowlist file is an empty allowlist: nothing is
covered, so every finding at or above the threshold fails the run.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any, Iterator, Optional

import yaml

from auditgate.constants import ALLOWLIST_OPTIONAL_FIELDS, ALLOWLIST_REQUIRED_FIELDS
from auditgate.errors import AllowlistLoadError, FormatError
from auditgate.utils.dates import format_utc, parse_utc_datetime
from auditgate.utils.logger import get_logger

logger = get_logger(__name__)

_KNOWN_FIELDS = frozenset(ALLOWLIST_REQUIRED_FIELDS + ALLOWLIST_OPTIONAL_FIELDS)

_YAML_SUFFIXES = (".yaml", ".yml")


# ─── Status and validation records ────────────────────────────────────────────


class EntryStatus(str, Enum):
    """Classification of an allowlist entry at evaluation time.

    MISSING and MALFORMED mean the entry was never valid; EXPIRED means its
    protection lapsed. They call for different fixes, so they stay distinct.
    """

    ACTIVE = "active"
    EXPIRED = "expired"
    MALFORMED = "malformed"
    MISSING = "missing"


@dataclass(frozen=True)
class ValidationError:
    """One problem with one allowlist entry.

    Fields:
        entry_id: The entry's id, or ``#<index>`` when it has no usable id.
        field:    Offending field name (``<entry>`` when the entry is not an object).
        message:  Human-readable explanation.
        status:   MISSING, MALFORMED, or EXPIRED.
    """

    entry_id: str
    field: str
    message: str
    status: EntryStatus


# ─── AllowlistEntry ───────────────────────────────────────────────────────────


@dataclass(frozen=True)
class AllowlistEntry:
    """A single reviewed exception, as written in the allowlist document.

    ``id`` is None when the document did not supply a usable one; such an entry
    can never match a vulnerability. ``expires`` keeps the raw text for display,
    ``expires_at`` holds the parsed UTC instant (None if invalid).
    """

    index: int
    id: Optional[str] = None
    reason: Optional[str] = None
    package: Optional[str] = None
    expires: Optional[str] = None
    expires_at: Optional[datetime] = None
    added_by: Optional[str] = None
    reference: Optional[str] = None
    notes: Optional[str] = None
    reviewed_on: Optional[str] = None
    errors: tuple[ValidationError, ...] = ()

    @property
    def key(self) -> str:
        """Display identifier: the id, or ``#<index>`` for entries without one."""
        return self.id if self.id else f"#{self.index}"

    @property
    def is_well_formed(self) -> bool:
        return not self.errors

    def applies_to(self, package_name: str) -> bool:
        """False when the entry is pinned to a different package."""
        return self.package is None or self.package == package_name

    @property
    def schema_status(self) -> Optional[EntryStatus]:
        """MISSING if any required field is absent, else MALFORMED if any error, else None."""
        if not self.errors:
            return None
        if any(err.status is EntryStatus.MISSING for err in self.errors):
            return EntryStatus.MISSING
        return EntryStatus.MALFORMED

    def status_at(self, now: datetime) -> EntryStatus:
        """Full classification: schema check first, then expiration.

        An entry is ACTIVE only if it is well-formed AND ``expires_at`` is
        strictly after ``now``.
        """
        schema_status = self.schema_status
        if schema_status is not None:
            return schema_status
        if self.expires_at is None or self.expires_at <= now:
            return EntryStatus.EXPIRED
        return EntryStatus.ACTIVE

    def primary_error(self, now: datetime) -> Optional[ValidationError]:
        """The error explaining why this entry gives no cover at ``now`` (None if ACTIVE)."""
        status = self.status_at(now)
        if status is EntryStatus.ACTIVE:
            return None
        if status is EntryStatus.EXPIRED:
            return ValidationError(
                entry_id=self.key,
                field="expires",
                message=f"expired on {format_utc(self.expires_at) if self.expires_at else self.expires}",
                status=EntryStatus.EXPIRED,
            )
        for err in self.errors:
            if err.status is status:
                return err
        return self.errors[0]


# ─── Allowlist ────────────────────────────────────────────────────────────────


class Allowlist:
    """Immutable set of allowlist entries loaded from one document.

    Lookup by id is exact. Entries without a usable id are retained for
    reporting but are not reachable through ``get()``.
    """

    def __init__(self, entries: tuple[AllowlistEntry, ...] = ()) -> None:
        by_id: dict[str, AllowlistEntry] = {}
        duplicates: list[ValidationError] = []

        for entry in entries:
            if entry.id is None:
                continue
            first = by_id.get(entry.id)
            if first is not None:
                duplicates.append(
                    ValidationError(
                        entry_id=entry.id,
                        field="id",
                        message=(
                            f"duplicate id {entry.id!r} at entries #{first.index} and #{entry.index}"
                        ),
                        status=EntryStatus.MALFORMED,
                    )
                )
                continue
            by_id[entry.id] = entry

        if duplicates:
            logger.error(
                "Allowlist rejected: duplicate entry ids",
                duplicate_ids=sorted({err.entry_id for err in duplicates}),
            )
            raise AllowlistLoadError("allowlist contains duplicate entry ids", duplicates)

        self._entries = tuple(entries)
        self._by_id = by_id

    @classmethod
    def empty(cls) -> "Allowlist":
        return cls(())

    @property
    def entries(self) -> tuple[AllowlistEntry, ...]:
        return self._entries

    def get(self, key: str) -> Optional[AllowlistEntry]:
        return self._by_id.get(key)

    def __iter__(self) -> Iterator[AllowlistEntry]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"Allowlist(entries={len(self._entries)})"


# ─── Load from file ───────────────────────────────────────────────────────────


def load_allowlist(path: str) -> Allowlist:
    """Load and validate an allowlist document.

    Returns an empty Allowlist if the file does not exist (not an error, but
    nothing is covered).

    Raises:
        FormatError:        undecodable or unparsable document, or wrong top-level shape.
        AllowlistLoadError: duplicate entry ids.
        OSError:            the file exists but cannot be read.
    """
    if not os.path.exists(path):
        logger.info(
            "Allowlist file not found, all findings at or above the threshold will fail",
            path=path,
        )
        return Allowlist.empty()

    try:
        with open(path, encoding="utf-8") as fh:
            text = fh.read()
    except UnicodeDecodeError as exc:
        logger.error("Allowlist is not valid UTF-8", path=path, error=str(exc))
        raise FormatError(
            f"allowlist is not valid UTF-8: byte {exc.start} cannot be decoded",
            code="InvalidEncoding",
            source=path,
        ) from exc

    raw = parse_allowlist_text(text, path)
    allowlist = parse_allowlist(raw, source=path)
    logger.debug("Allowlist loaded", count=len(allowlist), path=path)
    return allowlist


def parse_allowlist_text(text: str, source: str = "allowlist") -> Any:
    """Decode allowlist text: YAML for ``.yaml``/``.yml`` sources, JSON otherwise."""
    if source.lower().endswith(_YAML_SUFFIXES):
        try:
            return yaml.safe_load(text)
        except yaml.YAMLError as exc:
            logger.error("Allowlist YAML parse error", path=source, error=str(exc))
            raise FormatError(
                f"allowlist is not valid YAML: {exc}", code="InvalidYAML", source=source
            ) from exc
        except RecursionError as exc:
            raise FormatError(
                "allowlist is nested too deeply to parse", code="InvalidYAML", source=source
            ) from exc

    if not text.strip():
        # An empty file is an empty allowlist, same as a missing one
        return None
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        logger.error("Allowlist JSON parse error", path=source, error=str(exc))
        raise FormatError(
            f"allowlist is not valid JSON: {exc.msg} at line {exc.lineno} column {exc.colno} "
            "(check for missing or trailing commas, unescaped quotes, mismatched brackets)",
            code="InvalidJSON",
            source=source,
        ) from exc
    except RecursionError as exc:
        raise FormatError(
            "allowlist is nested too deeply to parse", code="InvalidJSON", source=source
        ) from exc


def parse_allowlist(raw: Any, source: str = "allowlist") -> Allowlist:
    """Validate a decoded allowlist document.

    Handles two structures:
      1. Direct list: [{id: ..., reason: ..., expires: ...}, ...]
      2. Mapping with allowlist key: {allowlist: [...]}
    """
    if raw is None:
        return Allowlist.empty()

    if isinstance(raw, dict):
        if "allowlist" not in raw:
            raise FormatError(
                "allowlist document is a mapping without an 'allowlist' key",
                code="UnrecognizedSchema",
                source=source,
            )
        raw = raw["allowlist"]
        if raw is None:
            return Allowlist.empty()

    if not isinstance(raw, list):
        raise FormatError(
            f"allowlist must be an array of entries, got {type(raw).__name__}",
            code="UnrecognizedSchema",
            source=source,
        )

    entries = tuple(validate_entry(item, index) for index, item in enumerate(raw))
    for entry in entries:
        for err in entry.errors:
            logger.warning(
                "Invalid allowlist entry provides no cover",
                entry_id=err.entry_id,
                field=err.field,
                status=err.status.value,
                message=err.message,
            )
    return Allowlist(entries)


# ─── Entry validation ─────────────────────────────────────────────────────────


def validate_entry(item: Any, index: int) -> AllowlistEntry:
    """Validate one raw entry; never raises. Problems are recorded on the entry."""
    if not isinstance(item, dict):
        return AllowlistEntry(
            index=index,
            errors=(
                ValidationError(
                    entry_id=f"#{index}",
                    field="<entry>",
                    message=f"entry must be an object, got {type(item).__name__}",
                    status=EntryStatus.MALFORMED,
                ),
            ),
        )

    errors: list[ValidationError] = []

    # id first: every later error is reported under it
    entry_id, id_error = _required_string(item, "id")
    raw_id = item.get("id")
    if isinstance(raw_id, int) and not isinstance(raw_id, bool):
        # Numeric ids are still malformed, but keep them matchable so the
        # vulnerability they were meant for reports this entry as the cause.
        entry_id = str(raw_id)
    key = entry_id if entry_id is not None else f"#{index}"
    if id_error is not None:
        errors.append(ValidationError(key, "id", id_error[0], id_error[1]))

    reason, reason_error = _required_string(item, "reason")
    if reason_error is not None:
        errors.append(ValidationError(key, "reason", reason_error[0], reason_error[1]))

    expires_text, expires_at, expires_error = _expiration(item)
    if expires_error is not None:
        errors.append(ValidationError(key, "expires", expires_error[0], expires_error[1]))

    optional: dict[str, Optional[str]] = {}
    for name in ALLOWLIST_OPTIONAL_FIELDS:
        value = item.get(name)
        if value is None:
            optional[name] = None
        elif name == "reviewedOn":
            if parse_utc_datetime(value) is None:
                errors.append(
                    ValidationError(
                        key, name, f"{value!r} is not an ISO-8601 date-time", EntryStatus.MALFORMED
                    )
                )
            optional[name] = _display(value)
        elif name == "package":
            package, package_error = _required_string(item, name)
            if package_error is not None:
                errors.append(ValidationError(key, name, package_error[0], package_error[1]))
            optional[name] = package
        elif isinstance(value, str):
            optional[name] = value
        else:
            errors.append(
                ValidationError(
                    key, name, f"must be a string, got {type(value).__name__}", EntryStatus.MALFORMED
                )
            )
            optional[name] = None

    for name in sorted(str(k) for k in item if k not in _KNOWN_FIELDS):
        errors.append(ValidationError(key, name, "unexpected property", EntryStatus.MALFORMED))

    return AllowlistEntry(
        index=index,
        id=entry_id,
        reason=reason,
        package=optional["package"],
        expires=expires_text,
        expires_at=expires_at,
        added_by=optional["addedBy"],
        reference=optional["reference"],
        notes=optional["notes"],
        reviewed_on=optional["reviewedOn"],
        errors=tuple(errors),
    )


def _required_string(
    item: dict, name: str
) -> tuple[Optional[str], Optional[tuple[str, EntryStatus]]]:
    """Return (stripped value, None) or (None, (message, status))."""
    if name not in item or item[name] is None:
        return None, (f"missing required property '{name}'", EntryStatus.MISSING)
    value = item[name]
    if not isinstance(value, str):
        return None, (f"must be a string, got {type(value).__name__}", EntryStatus.MALFORMED)
    value = value.strip()
    if not value:
        return None, ("cannot be empty", EntryStatus.MALFORMED)
    return value, None


def _expiration(
    item: dict,
) -> tuple[Optional[str], Optional[datetime], Optional[tuple[str, EntryStatus]]]:
    """Validate ``expires``: presence, type, then ISO-8601 parse."""
    if "expires" not in item or item["expires"] is None:
        return None, None, ("missing required property 'expires'", EntryStatus.MISSING)

    value = item["expires"]
    if not isinstance(value, (str, date)):
        return None, None, (
            f"must be an ISO-8601 date-time string, got {type(value).__name__}",
            EntryStatus.MALFORMED,
        )
    text = _display(value)
    if not text.strip():
        return text, None, ("cannot be empty", EntryStatus.MALFORMED)

    parsed = parse_utc_datetime(value)
    if parsed is None:
        return text, None, (f"{text!r} is not an ISO-8601 date-time", EntryStatus.MALFORMED)
    return text, parsed, None


def _display(value: Any) -> str:
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return str(value)
