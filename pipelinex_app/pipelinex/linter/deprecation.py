"""Deprecated actions, keywords and floating runner images."""

from __future__ import annotations

from typing import Any, NamedTuple

from pipelinex.graph.dag import PipelineDag
from pipelinex.linter.models import LintFinding, LintSeverity


class DeprecatedAction(NamedTuple):
    pattern: str
    message: str
    suggestion: str
    severity: LintSeverity


GITHUB_DEPRECATIONS: list[DeprecatedAction] = [
    DeprecatedAction(
        "actions/checkout@v2", "actions/checkout@v2 is deprecated",
        "Upgrade to actions/checkout@v4", LintSeverity.warning,
    ),
    DeprecatedAction(
        "actions/checkout@v3", "actions/checkout@v3 is outdated",
        "Upgrade to actions/checkout@v4", LintSeverity.info,
    ),
    DeprecatedAction(
        "actions/setup-node@v2", "actions/setup-node@v2 is deprecated",
        "Upgrade to actions/setup-node@v4", LintSeverity.warning,
    ),
    DeprecatedAction(
        "actions/setup-node@v3", "actions/setup-node@v3 is outdated",
        "Upgrade to actions/setup-node@v4", LintSeverity.info,
    ),
    DeprecatedAction(
        "actions/setup-python@v2", "actions/setup-python@v2 is deprecated",
        "Upgrade to actions/setup-python@v5", LintSeverity.warning,
    ),
    DeprecatedAction(
        "actions/upload-artifact@v2", "actions/upload-artifact@v2 is deprecated and uses Node 12",
        "Upgrade to actions/upload-artifact@v4", LintSeverity.warning,
    ),
    DeprecatedAction(
        "actions/upload-artifact@v3", "actions/upload-artifact@v3 is outdated",
        "Upgrade to actions/upload-artifact@v4", LintSeverity.info,
    ),
    DeprecatedAction(
        "actions/download-artifact@v2", "actions/download-artifact@v2 is deprecated",
        "Upgrade to actions/download-artifact@v4", LintSeverity.warning,
    ),
    DeprecatedAction(
        "actions/download-artifact@v3", "actions/download-artifact@v3 is outdated",
        "Upgrade to actions/download-artifact@v4", LintSeverity.info,
    ),
    DeprecatedAction(
        "actions/cache@v2", "actions/cache@v2 is deprecated",
        "Upgrade to actions/cache@v4", LintSeverity.warning,
    ),
]

GITLAB_DEPRECATED_KEYWORDS = ("only", "except")


def check_deprecated_actions(dag: PipelineDag) -> list[LintFinding]:
    """Flag steps pinned to deprecated or outdated action majors."""
    if dag.provider != "github-actions":
        return []

    findings: list[LintFinding] = []
    for job in dag.jobs():
        for step in job.steps:
            if not step.uses:
                continue
            for rule in GITHUB_DEPRECATIONS:
                if rule.pattern in step.uses:
                    findings.append(LintFinding(
                        severity=rule.severity,
                        rule_id="PLX-LINT-DEPR",
                        message=f"{rule.message} (job '{job.id}', step '{step.name}')",
                        suggestion=rule.suggestion,
                        location=f"jobs.{job.id}.steps",
                    ))
    return findings


def check_floating_runners(dag: PipelineDag) -> list[LintFinding]:
    """Flag GitHub runner labels that track `-latest`."""
    if dag.provider != "github-actions":
        return []

    findings: list[LintFinding] = []
    for job in dag.jobs():
        if job.runs_on.endswith("-latest"):
            pinned = job.runs_on.replace("-latest", "-24.04")
            findings.append(LintFinding(
                severity=LintSeverity.info,
                rule_id="PLX-LINT-RUNNER",
                message=(
                    f"Job '{job.id}' uses '{job.runs_on}' which auto-updates "
                    "and may cause unexpected breaks"
                ),
                suggestion=f"Consider pinning to a specific version (e.g., '{pinned}')",
                location=f"jobs.{job.id}.runs-on",
            ))
    return findings


def check_gitlab_keywords(parsed: dict[str, Any]) -> list[LintFinding]:
    """Flag GitLab jobs still using `only`/`except` instead of `rules`."""
    findings: list[LintFinding] = []
    for job_id, config in parsed.items():
        if not isinstance(config, dict):
            continue
        for keyword in GITLAB_DEPRECATED_KEYWORDS:
            if keyword in config:
                findings.append(LintFinding(
                    severity=LintSeverity.warning,
                    rule_id="PLX-LINT-DEPR",
                    message=f"The '{keyword}' keyword is deprecated in GitLab CI (job '{job_id}')",
                    suggestion="Use 'rules:' syntax instead",
                    location=f"{job_id}.{keyword}",
                ))
    return findings
