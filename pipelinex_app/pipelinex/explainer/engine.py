"""Explain findings in plain language, via an LLM when one is configured."""

from __future__ import annotations

import logging

from pipelinex.analyzer.models import Finding, Severity
from pipelinex.explainer.models import Explanation, PipelineContext
from pipelinex.llm.base import LLMBackend
from pipelinex.llm.prompts import EXPLAIN_SYSTEM_PROMPT, build_explain_user_prompt

logger = logging.getLogger(__name__)

SEVERITY_IMPACT = {
    Severity.critical: "This is a critical issue that significantly impacts your CI/CD performance.",
    Severity.high: "This is a high-priority issue that noticeably slows down your pipeline.",
    Severity.medium: "This is a moderate issue that contributes to unnecessary pipeline time.",
    Severity.low: "This is a minor optimization opportunity.",
    Severity.info: "This is an informational observation about your pipeline.",
}


def _savings_text(finding: Finding, context: PipelineContext) -> str:
    if finding.estimated_savings_secs is None:
        return "Impact varies depending on your pipeline configuration."
    secs = finding.estimated_savings_secs
    monthly = secs * context.runs_per_month
    if monthly > 3600:
        return (
            f"Fixing this saves ~{secs:.0f}s per run, or ~{monthly / 3600:.1f} hours/month "
            f"at {context.runs_per_month} runs/month."
        )
    return (
        f"Fixing this saves ~{secs:.0f}s per run, or ~{monthly / 60:.0f} minutes/month "
        f"at {context.runs_per_month} runs/month."
    )


def explain_template(finding: Finding, context: PipelineContext) -> Explanation:
    """Deterministic explanation built from the finding itself."""
    why = (
        f"{SEVERITY_IMPACT[finding.severity]} In your {context.provider} pipeline with "
        f"{context.job_count} jobs and {context.step_count} steps, "
        f"{finding.description[:1].lower()}{finding.description[1:]}"
    )
    return Explanation(
        finding_title=finding.title,
        why_it_matters=why,
        estimated_impact=_savings_text(finding, context),
        simplest_fix=finding.recommendation,
    )


def parse_llm_explanation(text: str, finding: Finding) -> Explanation:
    """Pull the WHY_IT_MATTERS / IMPACT / FIX lines out of a completion."""
    lines = [line.strip() for line in text.splitlines() if line.strip()]

    def _field(label: str) -> str | None:
        for line in lines:
            if label in line:
                return line.split(label, 1)[1].strip()
        return None

    why = _field("WHY_IT_MATTERS:") or (lines[0] if lines else "")
    impact = _field("IMPACT:")
    if impact is None:
        impact = (
            f"~{finding.estimated_savings_secs:.0f}s savings per run"
            if finding.estimated_savings_secs is not None
            else ""
        )
    return Explanation(
        finding_title=finding.title,
        why_it_matters=why,
        estimated_impact=impact,
        simplest_fix=_field("FIX:") or finding.recommendation,
        source="llm",
    )


class ExplainEngine:
    """Explains findings, falling back to templates when the LLM fails."""

    def __init__(self, llm_backend: LLMBackend | None = None) -> None:
        self._llm = llm_backend

    async def explain(self, finding: Finding, context: PipelineContext) -> Explanation:
        if self._llm is None:
            return explain_template(finding, context)

        try:
            user_prompt = build_explain_user_prompt(
                finding, context.provider, context.job_count, context.step_count,
            )
            response = await self._llm.generate(EXPLAIN_SYSTEM_PROMPT, user_prompt)
        except Exception:
            logger.exception("LLM explanation failed for '%s', using template", finding.title)
            return explain_template(finding, context)

        if not response.content.strip():
            logger.warning("LLM returned an empty explanation for '%s'", finding.title)
            return explain_template(finding, context)
        if response.truncated:
            logger.warning("LLM explanation for '%s' hit the token limit", finding.title)
        return parse_llm_explanation(response.content, finding)

    async def explain_all(
        self,
        findings: list[Finding],
        context: PipelineContext,
    ) -> list[Explanation]:
        """Explain findings one at a time, in report order."""
        return [await self.explain(f, context) for f in findings]


def format_explanations(explanations: list[Explanation]) -> str:
    out: list[str] = []
    for i, exp in enumerate(explanations, start=1):
        out.append(f"{i}. {exp.finding_title}")
        out.append(f"   {exp.why_it_matters}")
        out.append(f"   Impact: {exp.estimated_impact}")
        out.append(f"   Fix: {exp.simplest_fix}")
        out.append("")
    return "\n".join(out)
