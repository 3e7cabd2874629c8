"""Turn runner sizing recommendations into findings."""

from __future__ import annotations

import logging

from pipelinex.analyzer.models import Finding, FindingCategory, Severity
from pipelinex.config import AnalyzerSettings
from pipelinex.graph.dag import PipelineDag
from pipelinex.sizing.models import SizingRules
from pipelinex.sizing.profiler import profile_pipeline
from pipelinex.sizing.rules import default_sizing_rules, load_sizing_rules

logger = logging.getLogger(__name__)


def _rules_for(settings: AnalyzerSettings) -> SizingRules:
    if settings.runner_sizing_rules:
        return load_sizing_rules(settings.runner_sizing_rules)
    return default_sizing_rules()


def detect_runner_right_sizing(
    dag: PipelineDag,
    settings: AnalyzerSettings | None = None,
) -> list[Finding]:
    """One finding per job whose recommended class differs from its runner."""
    settings = settings or AnalyzerSettings()
    report = profile_pipeline(
        dag, _rules_for(settings), settings.default_step_duration_secs,
    )
    findings: list[Finding] = []

    for rec in report.jobs:
        if not rec.should_resize:
            continue

        current = rec.current_class.value
        recommended = rec.recommended_class.value
        if rec.recommended_class > rec.current_class:
            severity = Severity.medium
            title = f"Job '{rec.job_id}' appears under-provisioned ({current} -> {recommended})"
            advice = (
                f"Increase runner size for '{rec.job_id}' to '{recommended}' and compare "
                "p90 duration before and after over at least 30 runs."
            )
            savings = max(rec.duration_secs * 0.18, 30.0)
        else:
            severity = Severity.low
            title = f"Job '{rec.job_id}' may be over-provisioned ({current} -> {recommended})"
            advice = (
                f"Consider downsizing the runner for '{rec.job_id}' to '{recommended}' "
                "to reduce cost while checking for p90 regressions."
            )
            savings = max(rec.duration_secs * 0.03, 10.0)

        findings.append(
            Finding(
                severity=severity,
                category=FindingCategory.runner_sizing,
                title=title,
                description=(
                    f"Inferred resource profile for '{rec.job_id}' indicates "
                    f"cpu={rec.cpu_pressure}, memory={rec.memory_pressure}, "
                    f"io={rec.io_pressure} using command-level heuristics. "
                    f"Signals: {'; '.join(rec.rationale)}."
                ),
                affected_jobs=[rec.job_id],
                recommendation=advice,
                estimated_savings_secs=savings,
                confidence=rec.confidence,
            )
        )

    logger.debug("Runner sizer produced %d findings", len(findings))
    return findings
