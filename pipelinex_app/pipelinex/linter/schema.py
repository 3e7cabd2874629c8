"""Structural checks over the parsed configuration."""

from __future__ import annotations

from io import StringIO
from typing import Any

from ruamel.yaml import YAML, YAMLError

from pipelinex.linter.models import LintFinding, LintSeverity

GITLAB_TOP_LEVEL_KEYS = {
    "stages", "variables", "image", "services", "before_script",
    "after_script", "default", "include", "workflow", "pages",
}


def check_yaml_syntax(content: str) -> tuple[Any, list[LintFinding]]:
    """Parse YAML, returning the document or a PLX-LINT-YAML error."""
    yaml = YAML(typ="safe")
    try:
        parsed = yaml.load(StringIO(content))
    except YAMLError as e:
        location = None
        mark = getattr(e, "problem_mark", None)
        if mark is not None:
            location = f"line {mark.line + 1}"  # 0-indexed to 1-indexed
        return None, [LintFinding(
            severity=LintSeverity.error,
            rule_id="PLX-LINT-YAML",
            message=f"Invalid YAML: {e}",
            location=location,
        )]
    return parsed, []


def check_github_schema(parsed: Any) -> list[LintFinding]:
    findings: list[LintFinding] = []
    doc = parsed if isinstance(parsed, dict) else {}

    if "on" not in doc and True not in doc:
        findings.append(LintFinding(
            severity=LintSeverity.error,
            rule_id="PLX-LINT-SCHEMA-001",
            message="Missing required 'on' trigger block",
            suggestion="Add 'on:' with push/pull_request triggers",
            location="top-level",
        ))

    if "jobs" not in doc:
        findings.append(LintFinding(
            severity=LintSeverity.error,
            rule_id="PLX-LINT-SCHEMA-002",
            message="Missing required 'jobs' block",
            suggestion="Add 'jobs:' block with at least one job",
            location="top-level",
        ))

    jobs = doc.get("jobs")
    if isinstance(jobs, dict):
        for job_id, config in jobs.items():
            config = config if isinstance(config, dict) else {}
            if "runs-on" not in config and "uses" not in config:
                findings.append(LintFinding(
                    severity=LintSeverity.error,
                    rule_id="PLX-LINT-SCHEMA-003",
                    message=f"Job '{job_id}' missing 'runs-on' or 'uses' (reusable workflow)",
                    suggestion="Add 'runs-on: ubuntu-latest' or equivalent",
                    location=f"jobs.{job_id}",
                ))
    return findings


def check_gitlab_schema(parsed: Any) -> list[LintFinding]:
    if not isinstance(parsed, dict) or "stages" in parsed:
        return []

    findings: list[LintFinding] = []
    for key, value in parsed.items():
        if key in GITLAB_TOP_LEVEL_KEYS or not isinstance(value, dict):
            continue
        stage = value.get("stage")
        if isinstance(stage, str):
            findings.append(LintFinding(
                severity=LintSeverity.warning,
                rule_id="PLX-LINT-SCHEMA-010",
                message=f"Job '{key}' references stage '{stage}' but no 'stages:' block is defined",
                suggestion="Add a 'stages:' block listing all stages",
                location=f"{key}.stage",
            ))
    return findings
