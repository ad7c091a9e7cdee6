"""Root test configuration for auditgate.

Every test runs from a fresh working directory with the AUDITGATE_* environment
variables cleared, so a developer's own `.auditgate/config.yaml` or shell
settings never leak into results. The home-directory config path is dropped
from the search list for the same reason.

The evaluation instant is pinned (see NOW) so expiry checks are reproducible.
"""

import json
import os
import sys
from datetime import datetime, timezone
from typing import Any

import pytest

from auditgate.utils.logger import clear_run_id, configure_logging

NOW = datetime(2026, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    """Run each test from an empty directory with no auditgate env overrides."""
    for name in ("AUDITGATE_CONFIG", "AUDITGATE_THRESHOLD", "AUDITGATE_LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr("auditgate.config.DEFAULT_CONFIG_PATHS", [".auditgate/config.yaml"])
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def write_file(tmp_path):
    """Write a document under tmp_path and return its path.

    Strings are written verbatim; anything else is serialized as JSON.
    """

    def _write(name: str, content: Any) -> str:
        path = os.path.join(str(tmp_path), name)
        with open(path, "w", encoding="utf-8") as fh:
            if isinstance(content, str):
                fh.write(content)
            else:
                json.dump(content, fh)
        return path

    return _write


@pytest.fixture(autouse=True)
def reset_logging():
    """Point structlog back at the real stderr after each test.

    run.main() reconfigures logging onto whatever sys.stderr is at the time,
    which under capsys is a capture buffer closed at teardown.
    """
    yield
    clear_run_id()
    configure_logging(log_level="WARNING", stream=sys.__stderr__)
