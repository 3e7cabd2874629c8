"""Find job dependencies that serialise work without passing data."""

from __future__ import annotations

import logging
import math
import re
from enum import Enum

from pipelinex.analyzer.critical_path import find_critical_path
from pipelinex.analyzer.models import Finding, FindingCategory, Severity
from pipelinex.config import AnalyzerSettings
from pipelinex.graph.dag import PipelineDag
from pipelinex.graph.models import JobNode

logger = logging.getLogger(__name__)


class JobType(str, Enum):
    lint = "lint"
    test = "test"
    build = "build"
    deploy = "deploy"
    other = "other"


# (upstream, downstream) kinds that rarely need to be serialised
_INDEPENDENT_PAIRS = {
    (JobType.lint, JobType.test),
    (JobType.lint, JobType.build),
    (JobType.test, JobType.build),
}

_PUBLISH_MARKERS = ("upload-artifact", "persist_to_workspace", "artifact upload")
_CONSUME_MARKERS = ("download-artifact", "attach_workspace", "artifact download")


def classify_job(job: JobNode) -> JobType:
    """Guess what a job does from its id, name and commands."""
    job_id = job.id.lower()
    name = job.name.lower()
    steps = " ".join((s.run or "").lower() for s in job.steps)

    def named(*words: str) -> bool:
        return any(w in job_id or w in name for w in words)

    if named("lint", "format", "style") or any(
        w in steps for w in ("eslint", "clippy", "prettier", "ruff", "flake8")
    ):
        return JobType.lint
    if named("test") or any(w in steps for w in ("pytest", "jest", "npm test", "go test")):
        return JobType.test
    if named("build", "compile") or any(
        w in steps for w in ("npm run build", "cargo build", "go build")
    ):
        return JobType.build
    if named("deploy", "release") or any(w in steps for w in ("deploy", "kubectl")):
        return JobType.deploy
    return JobType.other


def _publishes(job: JobNode) -> bool:
    if job.outputs or job.artifact_paths:
        return True
    return any(
        marker in (s.uses or "").lower() or marker in (s.run or "").lower()
        for s in job.steps
        for marker in _PUBLISH_MARKERS
    )


def _references(upstream: JobNode, downstream: JobNode) -> bool:
    """True when downstream reads something upstream publishes."""
    if upstream.id in downstream.consumes_artifacts_from:
        return True

    outputs_re = re.compile(rf"needs\.{re.escape(upstream.id)}\.outputs")
    texts = [downstream.condition or "", *downstream.env.values()]
    for step in downstream.steps:
        texts.extend([step.run or "", *step.with_args.values()])
    if any(outputs_re.search(t) for t in texts):
        return True

    if not _publishes(upstream):
        return False
    return any(
        marker in (s.uses or "").lower() or marker in (s.run or "").lower()
        for s in downstream.steps
        for marker in _CONSUME_MARKERS
    )


def _severity_for(ratio: float) -> Severity:
    if ratio >= 0.25:
        return Severity.high
    if ratio >= 0.10:
        return Severity.medium
    return Severity.low


def find_parallelization_opportunities(
    dag: PipelineDag,
    settings: AnalyzerSettings | None = None,
    critical_path: list[JobNode] | None = None,
) -> list[Finding]:
    """Flag removable dependency edges and unsharded long test jobs."""
    settings = settings or AnalyzerSettings()
    default_secs = settings.default_step_duration_secs
    findings: list[Finding] = []

    if critical_path is None:
        critical_path, _ = find_critical_path(dag, default_secs)
    path_ids = [j.id for j in critical_path]
    path_edges = set(zip(path_ids, path_ids[1:]))
    path_secs = sum(j.duration_secs(default_secs) for j in critical_path)

    for upstream, downstream in dag.edges():
        kinds = (classify_job(upstream), classify_job(downstream))
        if kinds not in _INDEPENDENT_PAIRS or _references(upstream, downstream):
            continue

        # an edge on the critical path is the longest chain itself
        if (upstream.id, downstream.id) in path_edges:
            continue

        shorter = min(
            upstream.duration_secs(default_secs),
            downstream.duration_secs(default_secs),
        )
        ratio = shorter / path_secs if path_secs > 0 else 0.0

        findings.append(
            Finding(
                severity=_severity_for(ratio),
                category=FindingCategory.serial_bottleneck,
                title=f"'{downstream.id}' depends on '{upstream.id}' unnecessarily",
                description=(
                    f"Job '{downstream.id}' waits for '{upstream.id}' ({kinds[0].value} -> "
                    f"{kinds[1].value}) but does not read any artifact or output it "
                    f"publishes. Dropping the edge frees up to {shorter:.0f}s of scheduling."
                ),
                affected_jobs=[downstream.id, upstream.id],
                recommendation=(
                    f"Remove '{upstream.id}' from the dependencies of '{downstream.id}' "
                    "so both jobs can run concurrently."
                ),
                estimated_savings_secs=shorter,
                confidence=0.8,
                auto_fixable=True,
            )
        )

    for job in dag.jobs():
        duration = job.duration_secs(default_secs)
        if (
            job.matrix is not None
            or duration <= settings.shard_threshold_secs
            or classify_job(job) is not JobType.test
        ):
            continue
        shards = math.ceil(duration / settings.shard_target_secs)
        shards = min(max(shards, 2), settings.max_shards)
        findings.append(
            Finding(
                severity=Severity.high,
                category=FindingCategory.serial_bottleneck,
                title=f"'{job.id}' could be sharded into {shards} parallel jobs",
                description=(
                    f"Test job '{job.id}' takes ~{duration:.0f}s and runs serially. "
                    f"Splitting it into {shards} parallel shards would cut its wall time."
                ),
                affected_jobs=[job.id],
                recommendation=f"Add a matrix strategy to shard tests into {shards} parallel jobs.",
                fix_command=(
                    "strategy:\n  matrix:\n    shard: ["
                    + ", ".join(str(i) for i in range(1, shards + 1))
                    + "]"
                ),
                estimated_savings_secs=duration - duration / shards,
                confidence=0.85,
                auto_fixable=True,
            )
        )

    logger.debug("Parallel finder produced %d findings", len(findings))
    return findings
