"""auditgate report package: audit report parsing and normalization.

Public API:
    detect_format     identify legacy vs modern report schema
    normalize_report  raw JSON document → VulnerabilitySet
    load_report       read a file (or stdin) and normalize it
"""
from auditgate.report.normalizer import (
    LegacyReport,
    ModernReport,
    detect_format,
    load_report,
    normalize_legacy,
    normalize_modern,
    normalize_report,
    parse_report,
)

__all__ = [
    "LegacyReport",
    "ModernReport",
    "detect_format",
    "load_report",
    "normalize_legacy",
    "normalize_modern",
    "normalize_report",
    "parse_report",
]
