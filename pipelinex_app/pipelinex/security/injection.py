"""Detect untrusted GitHub event data interpolated into shell commands."""

from __future__ import annotations

import re

from pipelinex.analyzer.models import Finding, FindingCategory, Severity
from pipelinex.graph.dag import PipelineDag

DANGEROUS_CONTEXTS = (
    "github.event.issue.title",
    "github.event.issue.body",
    "github.event.pull_request.title",
    "github.event.pull_request.body",
    "github.event.pull_request.head.ref",
    "github.event.comment.body",
    "github.event.review.body",
    "github.event.review_comment.body",
    "github.event.head_commit.message",
    "github.event.head_commit.author.name",
    "github.event.head_commit.author.email",
    "github.head_ref",
    "github.event.workflow_run.head_branch",
    "github.event.discussion.title",
    "github.event.discussion.body",
)

_PATTERNS = {
    ctx: re.compile(r"\$\{\{\s*" + re.escape(ctx) + r"\s*\}\}") for ctx in DANGEROUS_CONTEXTS
}


def detect_injection(dag: PipelineDag) -> list[Finding]:
    """One Critical finding per (step, context) pair found in a `run` command."""
    if dag.provider != "github-actions":
        return []

    findings: list[Finding] = []
    for job in dag.jobs():
        for step in job.steps:
            if not step.run:
                continue
            for ctx, pattern in _PATTERNS.items():
                if not pattern.search(step.run):
                    continue
                findings.append(
                    Finding(
                        severity=Severity.critical,
                        category=FindingCategory.security,
                        title=f"Script injection via {ctx} in '{job.id}'",
                        description=(
                            f"Step '{step.name}' in job '{job.id}' interpolates "
                            f"`${{{{ {ctx} }}}}` directly into a shell command. Anyone "
                            "who controls that value can run arbitrary commands on the runner."
                        ),
                        affected_jobs=[job.id],
                        recommendation=(
                            "Pass the value through an environment variable and quote it "
                            "in the script instead of interpolating the expression."
                        ),
                        fix_command=(
                            f"env:\n  UNTRUSTED_INPUT: ${{{{ {ctx} }}}}\n"
                            'run: echo "$UNTRUSTED_INPUT"'
                        ),
                        confidence=0.95,
                    )
                )
    return findings
