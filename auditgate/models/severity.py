"""Severity levels for audit findings.

Severity is an IntEnum so the threshold comparison is an explicit integer
order, never a string comparison.
"""

from __future__ import annotations

from enum import IntEnum


class Severity(IntEnum):
    """npm audit severity, totally ordered: INFO < LOW < MODERATE < HIGH < CRITICAL."""

    INFO = 0
    LOW = 1
    MODERATE = 2
    HIGH = 3
    CRITICAL = 4

    @property
    def label(self) -> str:
        """Lowercase label as written by npm (``"moderate"``, ``"critical"``...)."""
        return self.name.lower()

    @classmethod
    def from_label(cls, value: object) -> "Severity":
        """Map an npm severity label onto the enum.

        Surrounding whitespace and letter case are ignored. There is no default:
        an unknown label (or a non-string) raises ValueError so callers can fail
        the run instead of guessing a level.
        """
        if not isinstance(value, str):
            raise ValueError(f"severity must be a string, got {type(value).__name__}")
        try:
            return cls[value.strip().upper()]
        except KeyError:
            raise ValueError(f"unknown severity {value!r}") from None

    @classmethod
    def labels(cls) -> tuple[str, ...]:
        """All labels from most to least severe."""
        return tuple(level.label for level in sorted(cls, reverse=True))
