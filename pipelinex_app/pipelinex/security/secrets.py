"""Detect hardcoded credentials in job env blocks and commands."""

from __future__ import annotations

import re
from typing import NamedTuple

from pipelinex.analyzer.models import Finding, FindingCategory, Severity
from pipelinex.graph.dag import PipelineDag


class SecretPattern(NamedTuple):
    rule_id: str
    description: str
    pattern: re.Pattern[str]
    severity: Severity


SECRET_PATTERNS: tuple[SecretPattern, ...] = (
    SecretPattern(
        "PLX-SEC-001",
        "Hardcoded API key or secret",
        re.compile(
            r"(?i)(api[_-]?key|secret[_-]?key|access[_-]?key|auth[_-]?token|password)"
            r"\s*[:=]\s*['\"]?[A-Za-z0-9+/=_\-]{8,}"
        ),
        Severity.critical,
    ),
    SecretPattern("PLX-SEC-002", "AWS access key id", re.compile(r"AKIA[0-9A-Z]{16}"), Severity.critical),
    SecretPattern(
        "PLX-SEC-003", "GitHub personal access token",
        re.compile(r"ghp_[A-Za-z0-9]{36}"), Severity.critical,
    ),
    SecretPattern(
        "PLX-SEC-004", "Docker login with inline password",
        re.compile(r"docker\s+login.*\s-p\s+\S+"), Severity.critical,
    ),
    SecretPattern(
        "PLX-SEC-005", "Private key block",
        re.compile(r"-----BEGIN\s+(RSA\s+)?PRIVATE\s+KEY-----"), Severity.critical,
    ),
    SecretPattern(
        "PLX-SEC-006", "Slack webhook URL",
        re.compile(r"https://hooks\.slack\.com/services/T[A-Z0-9]+/B[A-Z0-9]+/[A-Za-z0-9]+"),
        Severity.high,
    ),
)

_SECRET_REF_RE = re.compile(r"\$\{\{\s*secrets\.[^}]*\}\}")


def _matches(text: str) -> list[SecretPattern]:
    if _SECRET_REF_RE.search(text):
        text = _SECRET_REF_RE.sub("", text)
    return [p for p in SECRET_PATTERNS if p.pattern.search(text)]


def detect_secrets(dag: PipelineDag) -> list[Finding]:
    findings: list[Finding] = []
    for job in dag.jobs():
        for key, value in job.env.items():
            if value.lstrip().startswith("${{"):
                continue
            for pattern in _matches(f"{key}={value}"):
                findings.append(
                    Finding(
                        severity=pattern.severity,
                        category=FindingCategory.security,
                        title=f"Secret exposure: {pattern.description}",
                        description=(
                            f"Job '{job.id}' env var '{key}' holds what looks like a "
                            f"hardcoded secret [{pattern.rule_id}]."
                        ),
                        affected_jobs=[job.id],
                        recommendation=(
                            f"Store the value in the CI secret store and reference it as "
                            f"${{{{ secrets.{key.upper()} }}}}."
                        ),
                        confidence=0.85,
                    )
                )
        for step in job.steps:
            if not step.run:
                continue
            for pattern in _matches(step.run):
                findings.append(
                    Finding(
                        severity=pattern.severity,
                        category=FindingCategory.security,
                        title=f"Secret exposure: {pattern.description}",
                        description=(
                            f"Job '{job.id}', step '{step.name}' contains a potential "
                            f"hardcoded secret [{pattern.rule_id}]."
                        ),
                        affected_jobs=[job.id],
                        recommendation="Move the credential into the CI platform's secret store.",
                        confidence=0.8,
                    )
                )
    return findings
