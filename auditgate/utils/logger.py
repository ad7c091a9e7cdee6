"""Structured logging utilities for auditgate.

This module provides structured logging using structlog.
Every event emitted during a gate run carries the run_id for correlation.
Logs are written to stderr so stdout stays reserved for the verdict report.
"""

import logging
import sys
import time
from contextvars import ContextVar
from typing import Any, Optional, TextIO

import structlog
from structlog.types import EventDict, Processor

# Context variable for run tracking
run_id_var: ContextVar[Optional[str]] = ContextVar("run_id", default=None)


def add_run_id(logger: logging.Logger, method_name: str, event_dict: EventDict) -> EventDict:
    """Add run_id to log context if available."""
    run_id = run_id_var.get()
    if run_id:
        event_dict["run_id"] = run_id
    return event_dict


def add_timestamp(logger: logging.Logger, method_name: str, event_dict: EventDict) -> EventDict:
    """Add epoch timestamp to log entries."""
    event_dict["timestamp"] = time.time()
    return event_dict


def configure_logging(
    log_level: str = "INFO",
    json_output: bool = True,
    stream: Optional[TextIO] = None,
) -> None:
    """Configure structured logging for the gate.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_output: If True, output JSON format. If False, use console format.
        stream: Destination file object. Defaults to sys.stderr.
    """
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        add_run_id,
        add_timestamp,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if json_output:
        # JSON output for CI log collectors
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.extend([
            structlog.dev.ConsoleRenderer(colors=False),
        ])

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, log_level.upper())
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=stream or sys.stderr),
        cache_logger_on_first_use=False,
    )


def get_logger(name: str = "auditgate") -> structlog.stdlib.BoundLogger:
    """Get a configured logger instance.

    Args:
        name: Logger name (typically module name)

    Returns:
        Configured structlog logger
    """
    return structlog.get_logger(name)


class PerformanceLogger:
    """Context manager for tracking operation performance."""

    def __init__(
        self,
        operation: str,
        logger: Optional[structlog.stdlib.BoundLogger] = None,
        warn_after_ms: float = 1000.0,
    ):
        """Initialize performance logger.

        Args:
            operation: Name of the operation being timed
            logger: Logger instance to use (creates new if None)
            warn_after_ms: Durations above this are logged at WARNING
        """
        self.operation = operation
        self.logger = logger or get_logger()
        self.warn_after_ms = warn_after_ms
        self.start_time: float = 0
        self.end_time: float = 0

    def __enter__(self) -> "PerformanceLogger":
        """Start timing."""
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Stop timing and log performance."""
        self.end_time = time.perf_counter()
        duration_ms = (self.end_time - self.start_time) * 1000

        if exc_type is not None:
            self.logger.error(
                f"{self.operation} failed",
                operation=self.operation,
                duration_ms=duration_ms,
                error=str(exc_val),
            )
        else:
            log_method = (
                self.logger.warning if duration_ms > self.warn_after_ms else self.logger.debug
            )
            log_method(
                f"{self.operation} completed",
                operation=self.operation,
                duration_ms=duration_ms,
            )


def set_run_id(run_id: str) -> None:
    """Set run ID in context for all subsequent logs.

    Args:
        run_id: Unique identifier for the gate run
    """
    run_id_var.set(run_id)


def clear_run_id() -> None:
    """Clear run ID from context."""
    run_id_var.set(None)


# Initialize logging with sensible defaults
# This will be reconfigured by run.py from config and CLI flags
configure_logging(log_level="WARNING")
