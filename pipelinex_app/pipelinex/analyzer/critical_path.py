"""Critical path search and bottleneck findings."""

from __future__ import annotations

import logging

from pipelinex.analyzer.models import Finding, FindingCategory, Severity
from pipelinex.config import AnalyzerSettings
from pipelinex.graph.dag import PipelineDag
from pipelinex.graph.models import JobNode

logger = logging.getLogger(__name__)

_SHARD_SNIPPET = "strategy:\n  matrix:\n    shard: [1, 2, 3, 4]"


def find_critical_path(
    dag: PipelineDag,
    default_step_secs: float = 0.0,
) -> tuple[list[JobNode], float]:
    """Return the longest-duration chain of dependent jobs and its duration.

    Each job's finish time is its own duration plus the largest finish time
    among its dependencies. Ties go to the earliest-declared predecessor, and
    the chain ends at the earliest-declared job with the maximum finish time.
    Raises CyclicDagError for cyclic input.
    """
    order = dag.topological_order()
    if not order:
        return [], 0.0

    finish: dict[str, float] = {}
    back: dict[str, str | None] = {}

    for job in order:
        best_pred: str | None = None
        best_finish = 0.0
        for pred in dag.predecessors(job.id):
            if best_pred is None or finish[pred.id] > best_finish:
                best_pred = pred.id
                best_finish = finish[pred.id]
        finish[job.id] = best_finish + job.duration_secs(default_step_secs)
        back[job.id] = best_pred

    end: JobNode | None = None
    for job in dag.jobs():
        if end is None or finish[job.id] > finish[end.id]:
            end = job
    assert end is not None

    path: list[JobNode] = []
    current: str | None = end.id
    while current is not None:
        node = dag.get_job(current)
        assert node is not None
        path.append(node)
        current = back[current]
    path.reverse()

    return path, finish[end.id]


def analyze_critical_path(
    dag: PipelineDag,
    critical_path: list[JobNode],
    total_duration: float,
    settings: AnalyzerSettings | None = None,
) -> list[Finding]:
    """Produce findings about bottlenecks and parallelism on the critical path."""
    settings = settings or AnalyzerSettings()
    default_secs = settings.default_step_duration_secs
    findings: list[Finding] = []

    if not critical_path:
        return findings

    bottleneck = max(critical_path, key=lambda j: j.duration_secs(default_secs))
    bottleneck_secs = bottleneck.duration_secs(default_secs)
    pct = bottleneck_secs / total_duration * 100.0 if total_duration > 0 else 0.0

    if pct > settings.bottleneck_share_pct:
        findings.append(
            Finding(
                severity=Severity.high,
                category=FindingCategory.critical_path,
                title=f"'{bottleneck.id}' dominates the critical path ({pct:.1f}%)",
                description=(
                    f"Job '{bottleneck.id}' takes {bottleneck_secs:.0f}s "
                    f"({pct:.1f}% of the {total_duration:.0f}s critical path). "
                    "This is the single biggest opportunity to reduce pipeline time."
                ),
                affected_jobs=[bottleneck.id],
                recommendation=(
                    f"Consider sharding '{bottleneck.id}' into parallel sub-jobs, "
                    "enabling caching, or optimizing the slowest steps within this job."
                ),
                fix_command=_SHARD_SNIPPET,
                estimated_savings_secs=bottleneck_secs * settings.bottleneck_savings_share,
                confidence=0.85,
            )
        )

    total_job_time = sum(j.duration_secs(default_secs) for j in dag.jobs())
    parallelism = dag.max_parallelism
    theoretical_min = total_job_time / parallelism if parallelism else 0.0

    if (
        parallelism > 1
        and total_duration > 0
        and total_duration > theoretical_min * settings.efficiency_factor
    ):
        findings.append(
            Finding(
                severity=Severity.medium,
                category=FindingCategory.critical_path,
                title=(
                    f"Parallelism efficiency is "
                    f"{theoretical_min / total_duration * 100.0:.0f}%"
                ),
                description=(
                    f"With {parallelism} parallel slots and {total_job_time:.0f}s of "
                    f"total job time, the theoretical minimum is {theoretical_min:.0f}s, "
                    f"but the actual critical path is {total_duration:.0f}s."
                ),
                affected_jobs=[j.id for j in critical_path],
                recommendation=(
                    "Review job dependencies. Some may be unnecessary, "
                    "allowing more parallelism."
                ),
                estimated_savings_secs=(
                    (total_duration - theoretical_min) * settings.efficiency_savings_share
                ),
                confidence=0.7,
            )
        )

    if (
        len(critical_path) >= settings.serial_chain_min_jobs
        and len(critical_path) == dag.job_count
        and parallelism == 1
    ):
        findings.append(
            Finding(
                severity=Severity.medium,
                category=FindingCategory.serial_bottleneck,
                title=f"All {dag.job_count} jobs run in a single serial chain",
                description=(
                    "Every job waits for the one before it, so the pipeline has no "
                    "parallel alternative and its duration is the sum of all jobs: "
                    f"{' -> '.join(j.id for j in critical_path)}."
                ),
                affected_jobs=[j.id for j in critical_path],
                recommendation=(
                    "Check which `needs` edges carry real artifacts or outputs and "
                    "run independent jobs side by side."
                ),
                confidence=0.6,
            )
        )

    logger.debug("Critical path analysis produced %d findings", len(findings))
    return findings
