"""Analysis engine: runs every analyzer over a DAG and builds the report."""

from __future__ import annotations

import logging
from collections.abc import Callable

from pipelinex.analyzer.cache_detector import detect_missing_caches
from pipelinex.analyzer.critical_path import analyze_critical_path, find_critical_path
from pipelinex.analyzer.health_score import compute_health_score
from pipelinex.analyzer.models import AnalysisReport, Finding, Severity
from pipelinex.analyzer.parallel_finder import find_parallelization_opportunities
from pipelinex.analyzer.runner_sizer import detect_runner_right_sizing
from pipelinex.analyzer.waste_detector import detect_waste
from pipelinex.config import AnalyzerSettings
from pipelinex.graph.dag import PipelineDag
from pipelinex.graph.models import JobNode
from pipelinex.security.scan import scan as security_scan

logger = logging.getLogger(__name__)

Analyzer = Callable[[PipelineDag, AnalyzerSettings, list[JobNode]], list[Finding]]


def _analyzers(settings: AnalyzerSettings, total_duration: float) -> list[tuple[str, Analyzer]]:
    """Analysis passes in the order their findings are concatenated."""
    analyzers: list[tuple[str, Analyzer]] = [
        (
            "critical-path",
            lambda dag, s, path: analyze_critical_path(dag, path, total_duration, s),
        ),
        ("cache", lambda dag, s, path: detect_missing_caches(dag, s)),
        ("parallel", lambda dag, s, path: find_parallelization_opportunities(dag, s, path)),
        ("waste", lambda dag, s, path: detect_waste(dag, s)),
        ("runner-sizing", lambda dag, s, path: detect_runner_right_sizing(dag, s)),
    ]
    if settings.include_security:
        analyzers.append(("security", lambda dag, s, path: security_scan(dag)))
    return analyzers


def sort_findings(findings: list[Finding]) -> None:
    """Sort by descending severity priority, keeping analyzer order on ties."""
    findings.sort(key=lambda f: -f.severity.priority)


def optimized_duration(
    total_duration: float, findings: list[Finding], floor: float = 0.2,
) -> float:
    """Total minus all savings, never below `floor` of the total."""
    savings = sum(
        f.estimated_savings_secs for f in findings if f.estimated_savings_secs is not None
    )
    return max(total_duration - savings, total_duration * floor)


def _build_summary(dag: PipelineDag, findings: list[Finding]) -> str:
    if not findings:
        return f"Analyzed {dag.job_count} job(s) in '{dag.name}', no issues found."

    counts: dict[str, int] = {}
    for f in findings:
        counts[f.severity.value] = counts.get(f.severity.value, 0) + 1

    labels = [f"{counts[sev.value]} {sev.value}" for sev in Severity if sev.value in counts]
    return (
        f"Analyzed {dag.job_count} job(s) in '{dag.name}', "
        f"found {len(findings)} issue(s): {', '.join(labels)}."
    )


def analyze(dag: PipelineDag, settings: AnalyzerSettings | None = None) -> AnalysisReport:
    """Analyze a pipeline DAG and return a ranked report.

    1. Find the critical path (a cyclic graph fails the whole analysis).
    2. Run each analyzer; a failing analyzer contributes nothing.
    3. Stable-sort findings by severity, compute the optimized duration
       and roll the report up into a health score.
    """
    settings = settings or AnalyzerSettings()

    # Phase 1: critical path
    path, total_duration = find_critical_path(dag, settings.default_step_duration_secs)
    findings: list[Finding] = []

    # Phase 2: analyzers, isolated from each other
    for name, analyzer in _analyzers(settings, total_duration):
        try:
            produced = analyzer(dag, settings, path)
        except Exception:
            logger.exception("Analyzer '%s' failed on '%s', skipping", name, dag.name)
            continue
        logger.debug("Analyzer '%s' produced %d findings", name, len(produced))
        findings.extend(produced)

    # Phase 3: rank and summarise
    sort_findings(findings)

    logger.info(
        "Analysis of '%s' produced %d findings (critical path %.0fs)",
        dag.name,
        len(findings),
        total_duration,
    )

    report = AnalysisReport(
        pipeline_name=dag.name,
        source_file=dag.source_file,
        provider=dag.provider,
        job_count=dag.job_count,
        step_count=dag.step_count,
        max_parallelism=dag.max_parallelism,
        critical_path=[j.id for j in path],
        critical_path_duration_secs=total_duration,
        total_estimated_duration_secs=total_duration,
        optimized_duration_secs=optimized_duration(
            total_duration, findings, settings.irreducible_floor,
        ),
        findings=findings,
        summary=_build_summary(dag, findings),
    )
    return report.model_copy(
        update={"health_score": compute_health_score(report, settings.assumed_success_rate)},
    )
