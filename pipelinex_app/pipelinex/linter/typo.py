"""Misspelled configuration keys, matched with difflib."""

from __future__ import annotations

import difflib

from pipelinex.linter.models import LintFinding, LintSeverity

GITHUB_ACTIONS_KEYS = [
    "name", "on", "jobs", "runs-on", "steps", "uses", "with", "env", "needs",
    "if", "strategy", "matrix", "services", "container", "outputs",
    "permissions", "concurrency", "defaults", "timeout-minutes",
    "continue-on-error", "runs", "secrets", "inputs", "paths", "paths-ignore",
    "branches", "branches-ignore", "tags", "tags-ignore", "types", "schedule",
    "cron", "workflow_dispatch", "workflow_call", "push", "pull_request",
    "pull_request_target", "release", "id", "run", "shell",
    "working-directory", "fail-fast", "max-parallel", "include", "exclude",
    "upload-artifact", "download-artifact", "cache", "fetch-depth",
    "node-version", "python-version", "java-version", "go-version", "group",
    "cancel-in-progress", "path", "key", "restore-keys", "retention-days",
]

GITLAB_CI_KEYS = [
    "stages", "variables", "image", "services", "before_script",
    "after_script", "script", "stage", "only", "except", "rules", "when",
    "allow_failure", "needs", "dependencies", "artifacts", "cache",
    "coverage", "retry", "timeout", "parallel", "trigger", "include",
    "extends", "tags", "resource_group", "environment", "release", "pages",
    "interruptible", "paths", "expire_in", "reports", "untracked", "key",
    "policy",
]

KNOWN_KEYS = {
    "github-actions": GITHUB_ACTIONS_KEYS,
    "gitlab-ci": GITLAB_CI_KEYS,
}

TYPO_CUTOFF = 0.8


def _line_key(line: str) -> str | None:
    trimmed = line.strip()
    if not trimmed or trimmed.startswith(("#", "-")) or ":" not in trimmed:
        return None
    key = trimmed.split(":", 1)[0].strip().strip("'\"")
    if len(key) < 2 or key.isdigit() or any(c.isspace() for c in key):
        return None
    # env var names
    if all(c.isupper() or c == "_" for c in key):
        return None
    return key


def check_typos(content: str, provider: str) -> list[LintFinding]:
    """Suggest the closest known key for unknown keys that look misspelled."""
    known_keys = KNOWN_KEYS.get(provider)
    if not known_keys:
        return []

    known = set(known_keys)
    findings: list[LintFinding] = []
    for line_num, line in enumerate(content.splitlines(), start=1):
        key = _line_key(line)
        if key is None or key in known:
            continue
        matches = difflib.get_close_matches(key, known_keys, n=1, cutoff=TYPO_CUTOFF)
        if not matches:
            continue
        suggestion = matches[0]
        findings.append(LintFinding(
            severity=LintSeverity.warning,
            rule_id="PLX-LINT-TYPO",
            message=f"Possible typo: '{key}', did you mean '{suggestion}'?",
            suggestion=f"Replace '{key}' with '{suggestion}'",
            location=f"line {line_num}",
        ))
    return findings
