"""Run identifier generation for auditgate.

Provides a single `generate_run_id()` function that returns a 26-character ULID
(Universally Unique Lexicographically Sortable Identifier) used as:
  - the run_id bound into every structured log event of one gate run
  - the correlation key when several gate runs share one CI log

ULIDs sort by creation time, so CI log lines from successive runs stay ordered.

Uses the `python-ulid` library (see pyproject.toml). Do NOT hand-roll ULID generation.
"""

from __future__ import annotations

from ulid import ULID


def generate_run_id() -> str:
    """Generate a new ULID as a 26-character uppercase string.

    Returns:
        str: A 26-character ULID string (Crockford Base32, ``[0-9A-HJKMNP-TV-Z]``).

    Example::

        run_id = generate_run_id()
        # "01KJ0JRVHYA7KX32VPN5ZSCTMV"
        assert len(run_id) == 26
    """
    return str(ULID())
