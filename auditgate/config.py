"""Config loading for auditgate.

Reads `.auditgate/config.yaml` (or `~/.auditgate/config.yaml`).
Raises SystemExit(EXIT_LOAD_FAILURE) on parse errors, a missing `version`
field, or invalid values. If no config file is found, returns default values
(safe to run without config).

Config search order:
  1. `config_path` argument (the --config flag, or an explicit override in tests)
  2. AUDITGATE_CONFIG environment variable (if set)
  3. `.auditgate/config.yaml` (working directory, checked into the repository)
  4. `~/.auditgate/config.yaml` (home directory, CI runner image defaults)

Example::

    version: 1
    gate:
      threshold: high
      expiring_soon_days: 30
    inputs:
      report: audit.json
      allowlist: .audit-allowlist.json
    logging:
      level: INFO
      json: true

Environment variable overrides (applied after the file):
  AUDITGATE_THRESHOLD: overrides gate.threshold
  AUDITGATE_LOG_LEVEL: overrides logging.level
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from typing import NoReturn, Optional

import yaml

from auditgate.constants import (
    DEFAULT_ALLOWLIST_PATH,
    DEFAULT_EXPIRING_SOON_DAYS,
    DEFAULT_REPORT_SOURCE,
    DEFAULT_THRESHOLD,
    EXIT_LOAD_FAILURE,
)
from auditgate.models.severity import Severity
from auditgate.utils.logger import get_logger

logger = get_logger(__name__)

# ─── Version constants ────────────────────────────────────────────────────────

SUPPORTED_CONFIG_VERSION = 1

SUPPORTED_VERSIONS: frozenset[int] = frozenset({1})

# ─── Validation sets ─────────────────────────────────────────────────────────

VALID_LOG_LEVELS: frozenset[str] = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})

DEFAULT_CONFIG_PATHS = [
    ".auditgate/config.yaml",
    os.path.expanduser("~/.auditgate/config.yaml"),
]


# ─── Dataclasses ─────────────────────────────────────────────────────────────


@dataclass
class GateConfig:
    """Decision settings."""

    threshold: str = DEFAULT_THRESHOLD  # lowest severity that fails the run
    expiring_soon_days: int = DEFAULT_EXPIRING_SOON_DAYS

    @property
    def threshold_severity(self) -> Severity:
        return Severity.from_label(self.threshold)


@dataclass
class InputsConfig:
    """Where the two input documents are read from."""

    report: str = DEFAULT_REPORT_SOURCE  # "-" = stdin
    allowlist: str = DEFAULT_ALLOWLIST_PATH


@dataclass
class LoggingConfig:
    level: str = "WARNING"
    json: bool = True


@dataclass
class Config:
    """Root configuration object populated from .auditgate/config.yaml.

    All fields have safe defaults, so auditgate can run without any config file.
    """

    version: int = SUPPORTED_CONFIG_VERSION
    gate: GateConfig = field(default_factory=GateConfig)
    inputs: InputsConfig = field(default_factory=InputsConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    path: Optional[str] = None  # Path to the loaded config file

    @classmethod
    def defaults(cls) -> "Config":
        """Return a fully-default Config (no file required)."""
        return cls()

    @classmethod
    def from_dict(cls, raw: dict, path: Optional[str] = None) -> "Config":
        """Construct Config from a parsed YAML dict.

        Merges user-supplied values onto defaults; unknown keys are silently ignored.

        Raises:
            SystemExit(2): On an invalid threshold, window, or log level.
        """
        # ── Gate ──────────────────────────────────────────────────────────────
        gate_raw = _section(raw, "gate")
        threshold = _validate_threshold(str(gate_raw.get("threshold", DEFAULT_THRESHOLD)), "gate.threshold")
        expiring_soon_days = gate_raw.get("expiring_soon_days", DEFAULT_EXPIRING_SOON_DAYS)
        if (
            not isinstance(expiring_soon_days, int)
            or isinstance(expiring_soon_days, bool)
            or expiring_soon_days < 0
        ):
            _fail(
                f"CONFIG ERROR: gate.expiring_soon_days must be a non-negative integer, "
                f"got {expiring_soon_days!r}."
            )
        gate = GateConfig(threshold=threshold, expiring_soon_days=expiring_soon_days)

        # ── Inputs ────────────────────────────────────────────────────────────
        inputs_raw = _section(raw, "inputs")
        inputs = InputsConfig(
            report=str(inputs_raw.get("report", DEFAULT_REPORT_SOURCE)),
            allowlist=str(inputs_raw.get("allowlist", DEFAULT_ALLOWLIST_PATH)),
        )

        # ── Logging ───────────────────────────────────────────────────────────
        logging_raw = _section(raw, "logging")
        logging_config = LoggingConfig(
            level=_validate_log_level(str(logging_raw.get("level", "WARNING")), "logging.level"),
            json=bool(logging_raw.get("json", True)),
        )

        return cls(
            version=raw.get("version", SUPPORTED_CONFIG_VERSION),
            gate=gate,
            inputs=inputs,
            logging=logging_config,
            path=path,
        )


# ─── Config loading ───────────────────────────────────────────────────────────


def load_config(config_path: Optional[str] = None) -> Config:
    """Load and validate auditgate configuration.

    If no file is found at any search path, returns default Config (not an error).
    If a file is found but invalid, writes the error to stderr and raises
    SystemExit(EXIT_LOAD_FAILURE).

    Environment overrides are applied whether or not a file was found.
    """
    search_paths: list[str] = []
    if config_path:
        search_paths.append(config_path)
    env_config = os.environ.get("AUDITGATE_CONFIG")
    if env_config:
        search_paths.append(env_config)
    search_paths.extend(DEFAULT_CONFIG_PATHS)

    found_path: Optional[str] = None
    for candidate in search_paths:
        expanded = os.path.expanduser(candidate)
        if os.path.isfile(expanded):
            found_path = expanded
            break

    # ── No config file found ─────────────────────────────────────────────────
    if found_path is None:
        logger.debug("No config file found, using defaults", searched=search_paths)
        config = Config.defaults()
        _apply_env_overrides(config)
        return config

    # ── Parse config file ─────────────────────────────────────────────────────
    logger.debug("Loading config", path=found_path)

    try:
        with open(found_path) as fh:
            raw = yaml.safe_load(fh)
    except yaml.YAMLError as exc:
        _fail(
            f"CONFIG ERROR: Failed to parse {found_path}: {exc}\n"
            "auditgate refuses to run with an invalid config. "
            "Check the YAML syntax and try again."
        )
    except OSError as exc:
        _fail(f"CONFIG ERROR: Could not read {found_path}: {exc}")

    if not isinstance(raw, dict):
        if raw is None:
            _fail(
                f"CONFIG ERROR: {found_path} is missing the required 'version' field.\n"
                "Add 'version: 1' to the top of your config file."
            )
        _fail(
            f"CONFIG ERROR: {found_path} is not a valid YAML mapping.\n"
            "The config file must be a YAML dictionary at the top level."
        )

    # ── Version validation ────────────────────────────────────────────────────
    version = raw.get("version")
    if version is None:
        _fail(
            f"CONFIG ERROR: {found_path} is missing the required 'version' field.\n"
            "Add 'version: 1' to the top of your config file."
        )
    if version not in SUPPORTED_VERSIONS:
        _fail(
            f"CONFIG ERROR: Unsupported config version: {version}. "
            f"Supported versions: {sorted(SUPPORTED_VERSIONS)}."
        )

    config = Config.from_dict(raw, path=found_path)
    _apply_env_overrides(config)

    logger.debug(
        "Config loaded",
        path=found_path,
        version=config.version,
        threshold=config.gate.threshold,
    )
    return config


def _apply_env_overrides(config: Config) -> None:
    """Apply environment variable overrides to a Config object in-place.

    Handles:
      AUDITGATE_THRESHOLD: overrides config.gate.threshold
      AUDITGATE_LOG_LEVEL: overrides config.logging.level

    Raises:
        SystemExit(2): If an override value is invalid.
    """
    env_threshold = os.environ.get("AUDITGATE_THRESHOLD")
    if env_threshold is not None:
        config.gate.threshold = _validate_threshold(env_threshold, "AUDITGATE_THRESHOLD")

    env_level = os.environ.get("AUDITGATE_LOG_LEVEL")
    if env_level is not None:
        config.logging.level = _validate_log_level(env_level, "AUDITGATE_LOG_LEVEL")


def _validate_threshold(value: str, origin: str) -> str:
    try:
        return Severity.from_label(value).label
    except ValueError:
        _fail(
            f"CONFIG ERROR: Invalid {origin}: '{value}'. "
            f"Supported values: {list(reversed(Severity.labels()))}."
        )


def _validate_log_level(value: str, origin: str) -> str:
    level = value.strip().upper()
    if level not in VALID_LOG_LEVELS:
        _fail(
            f"CONFIG ERROR: Invalid {origin}: '{value}'. "
            f"Supported values: {sorted(VALID_LOG_LEVELS)}."
        )
    return level


def _section(raw: dict, name: str) -> dict:
    value = raw.get(name)
    if value is None:
        return {}
    if not isinstance(value, dict):
        _fail(f"CONFIG ERROR: '{name}' must be a mapping, got {type(value).__name__}.")
    return value


def _fail(message: str) -> NoReturn:
    print(message, file=sys.stderr)
    raise SystemExit(EXIT_LOAD_FAILURE)
