"""Report redaction for sharing analysis output outside the repo.

Source paths are cut down to the CI-config-relative suffix. Free text in
findings loses secret names, credentialed URLs, URLs on hosts outside the
allow list and token-like key/value fragments. Job ids are left intact.
"""

from __future__ import annotations

import re
from pathlib import PurePath

from pipelinex.analyzer.models import AnalysisReport, Finding

CI_PATH_MARKERS = (".github/", ".gitlab-ci", ".circleci/", ".buildkite/")

ALLOWED_HOSTS = frozenset({"github.com", "gitlab.com", "bitbucket.org"})

SECRET_REF_RE = re.compile(r"secrets\.([A-Za-z_][A-Za-z0-9_]*)")
CREDENTIAL_URL_RE = re.compile(r"https?://[^\s/]+@\S+")
URL_RE = re.compile(r"https?://([A-Za-z0-9.-]+\.[A-Za-z]{2,})(?::\d+)?(?:/\S*)?")
TOKEN_RE = re.compile(r"(?i)(token|key|secret|password)[ \t]*[:=][ \t]*(?!\$\{\{)\S+")


def redact_path(path: str) -> str:
    """Keep only the CI-config-relative suffix of a path, else its file name."""
    for marker in CI_PATH_MARKERS:
        idx = path.rfind(marker)
        if idx != -1:
            return path[idx:]
    return PurePath(path).name or "***"


def _redact_url(match: re.Match[str]) -> str:
    if match.group(1).lower() in ALLOWED_HOSTS:
        return match.group(0)
    return "https://internal/***"


def redact_text(text: str) -> str:
    result = SECRET_REF_RE.sub("secrets.***", text)
    result = CREDENTIAL_URL_RE.sub("https://***@***/***", result)
    result = URL_RE.sub(_redact_url, result)
    return TOKEN_RE.sub(r"\1=***", result)


def _redact_finding(finding: Finding) -> Finding:
    return finding.model_copy(update={
        "description": redact_text(finding.description),
        "recommendation": redact_text(finding.recommendation),
        "fix_command": (
            redact_text(finding.fix_command) if finding.fix_command is not None else None
        ),
    })


def redact_report(report: AnalysisReport) -> AnalysisReport:
    """Return a sanitised copy of `report`; the input is left untouched."""
    return report.model_copy(update={
        "source_file": redact_path(report.source_file) if report.source_file else "",
        "findings": [_redact_finding(f) for f in report.findings],
    })
