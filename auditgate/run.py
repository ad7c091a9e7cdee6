"""Command-line entry point for auditgate.

Usage:
    npm audit --json | auditgate                      # report on stdin
    auditgate --report audit.json --allowlist .audit-allowlist.json
    python -m auditgate.run --format json             # machine-readable verdict

Exit codes:
    0  gate passed
    1  security violations (uncovered, expired, or invalidly covered findings)
    2  inputs or configuration could not be loaded

Precedence for every setting: command-line flag > environment > config file > default.
The verdict goes to stdout; logs and load errors go to stderr.
"""

from __future__ import annotations

import argparse
import sys
from datetime import datetime, timezone
from typing import Optional, Sequence

from auditgate.config import VALID_LOG_LEVELS, load_config
from auditgate.constants import EXIT_LOAD_FAILURE
from auditgate.errors import AuditGateError
from auditgate.models.severity import Severity
from auditgate.pipeline import run_gate
from auditgate.reporter import exit_code, render_json, render_load_failure, render_text
from auditgate.utils.dates import parse_utc_datetime
from auditgate.utils.logger import clear_run_id, configure_logging, get_logger, set_run_id
from auditgate.utils.ulid import generate_run_id

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="auditgate",
        description="Gate a build on an npm audit report and a time-bounded allowlist.",
    )
    parser.add_argument("--report", help="audit report JSON file, or '-' for stdin")
    parser.add_argument("--allowlist", help="allowlist file (JSON, or YAML by extension)")
    parser.add_argument(
        "--threshold",
        choices=list(reversed(Severity.labels())),
        help="lowest severity that fails the run (default: high)",
    )
    parser.add_argument("--format", choices=("text", "json"), default="text", dest="output_format")
    parser.add_argument(
        "--expiring-soon-days", type=_non_negative_int, help="warning window for expiring entries"
    )
    parser.add_argument("--now", help="evaluation instant (ISO-8601); defaults to the current time")
    parser.add_argument("--config", help="config file path")
    parser.add_argument("--log-level", type=str.upper, choices=sorted(VALID_LOG_LEVELS))
    return parser


def _non_negative_int(value: str) -> int:
    try:
        days = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid integer: {value!r}") from None
    if days < 0:
        raise argparse.ArgumentTypeError(f"must be a non-negative integer, got {days}")
    return days


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the gate and return the process exit code."""
    args = build_parser().parse_args(argv)

    try:
        config = load_config(args.config)
    except SystemExit as exc:
        return int(exc.code) if isinstance(exc.code, int) else EXIT_LOAD_FAILURE

    log_level = (args.log_level or config.logging.level).upper()
    configure_logging(log_level=log_level, json_output=config.logging.json)

    # Captured exactly once per run
    if args.now:
        now = parse_utc_datetime(args.now)
        if now is None:
            print(f"ERROR: --now {args.now!r} is not an ISO-8601 date-time", file=sys.stderr)
            return EXIT_LOAD_FAILURE
    else:
        now = datetime.now(timezone.utc)

    threshold = Severity.from_label(args.threshold or config.gate.threshold)
    expiring_soon_days = (
        args.expiring_soon_days
        if args.expiring_soon_days is not None
        else config.gate.expiring_soon_days
    )
    report_source = args.report or config.inputs.report
    allowlist_path = args.allowlist or config.inputs.allowlist

    run_id = generate_run_id()
    set_run_id(run_id)
    try:
        verdict = run_gate(
            report_source,
            allowlist_path,
            now=now,
            threshold=threshold,
            expiring_soon_days=expiring_soon_days,
        )
    except (AuditGateError, OSError) as exc:
        logger.error("Gate run aborted, inputs could not be loaded", error=str(exc), error_type=type(exc).__name__)
        print(render_load_failure(exc), file=sys.stderr)
        return EXIT_LOAD_FAILURE
    finally:
        clear_run_id()

    if args.output_format == "json":
        print(render_json(verdict))
    else:
        print(render_text(verdict))

    return exit_code(verdict)


def cli() -> None:
    """Console-script wrapper (pyproject.toml [project.scripts])."""
    sys.exit(main())


if __name__ == "__main__":
    cli()
