"""auditgate: dependency-vulnerability gate for CI pipelines.

Adjudicates an npm audit report against a reviewed, time-bounded allowlist
and returns a pass/fail verdict. Missing or invalid allowlist metadata always
resolves to the least permissive reading: no cover.

Layout:
    report/       audit report schemas → canonical VulnerabilitySet
    allowlist/    allowlist validation and the matcher / decision engine
    models/       Severity, Vulnerability, Verdict
    reporter.py   text / JSON rendering and exit codes
    pipeline.py   load + normalize + evaluate
    run.py        command-line entry point
"""

__version__ = "0.1.0"
