"""Prompt assembly for finding explanations."""

from __future__ import annotations

from pipelinex.analyzer.models import Finding

EXPLAIN_SYSTEM_PROMPT = """\
You are PipelineX, a CI/CD performance reviewer. You explain pipeline \
findings to developers in clear, actionable language. Never invent job \
names or numbers that are not in the finding.
"""


def build_explain_user_prompt(
    finding: Finding,
    provider: str,
    job_count: int,
    step_count: int,
) -> str:
    """Ask for a three-line WHY_IT_MATTERS / IMPACT / FIX answer."""
    savings = (
        f"{finding.estimated_savings_secs:.0f} seconds per run"
        if finding.estimated_savings_secs is not None
        else "unknown"
    )
    return (
        "Explain this CI/CD pipeline finding to a developer.\n"
        "Respond in exactly 3 lines:\n"
        "WHY_IT_MATTERS: <why this matters in plain English>\n"
        "IMPACT: <concrete cost/time impact>\n"
        "FIX: <the simplest fix in one sentence>\n\n"
        f"Finding: {finding.title}\n"
        f"Severity: {finding.severity.value}\n"
        f"Description: {finding.description}\n"
        f"Estimated savings: {savings}\n"
        f"Pipeline context: {job_count} jobs, {step_count} steps, provider: {provider}\n"
        f"Affected jobs: {', '.join(finding.affected_jobs)}"
    )
