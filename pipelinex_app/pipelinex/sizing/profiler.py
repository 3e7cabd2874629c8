"""Infer per-job resource pressure and a runner size class."""

from __future__ import annotations

from pipelinex.graph.dag import PipelineDag
from pipelinex.graph.models import JobNode
from pipelinex.sizing.models import (
    JobRunnerRecommendation,
    RunnerSizeClass,
    RunnerSizingReport,
    SizingRules,
)
from pipelinex.sizing.rules import default_sizing_rules


def classify_current_runner(runs_on: str) -> RunnerSizeClass:
    """Map a declared runner label to a size class (medium when unknown)."""
    lower = runs_on.lower()
    if "xlarge" in lower:
        return RunnerSizeClass.xlarge
    if "large" in lower:
        return RunnerSizeClass.large
    if "small" in lower:
        return RunnerSizeClass.small
    return RunnerSizeClass.medium


def classify_recommended_runner(
    cpu: int, memory: int, io: int, rules: SizingRules,
) -> RunnerSizeClass:
    t = rules.classes
    peak = max(cpu, memory, io)
    if peak >= t.xlarge_max or (cpu >= t.xlarge_cpu and memory >= t.xlarge_memory):
        return RunnerSizeClass.xlarge
    if peak >= t.large_max or (cpu >= t.large_cpu and memory >= t.large_memory):
        return RunnerSizeClass.large
    if peak <= t.small_max:
        return RunnerSizeClass.small
    return RunnerSizeClass.medium


def estimate_confidence(cpu: int, memory: int, io: int, reasons: int) -> float:
    score = cpu + memory + io
    if reasons >= 3 and score >= 8:
        return 0.88
    if reasons >= 2 and score >= 5:
        return 0.78
    if reasons >= 1:
        return 0.68
    return 0.55


def profile_job(
    job: JobNode,
    rules: SizingRules | None = None,
    default_step_secs: float = 0.0,
) -> JobRunnerRecommendation:
    """Score cpu/memory/io pressure for one job from its commands and duration."""
    rules = rules or default_sizing_rules()
    cpu = memory = io = 0
    rationale: list[str] = []

    for step in job.steps:
        for signal in rules.signals:
            source = step.run if signal.match_on == "run" else step.uses
            if not source:
                continue
            text = source.lower()
            if any(keyword in text for keyword in signal.keywords):
                cpu += signal.cpu
                memory += signal.memory
                io += signal.io
                rationale.append(signal.reason)

    if job.matrix and job.matrix.total_combinations >= rules.matrix.min_combinations:
        cpu += rules.matrix.cpu
        memory += rules.matrix.memory
        rationale.append(
            f"large matrix strategy ({job.matrix.total_combinations}) adds execution pressure"
        )

    duration = job.duration_secs(default_step_secs)
    if duration >= rules.duration.long_secs:
        cpu += rules.duration.long_cpu
        memory += rules.duration.long_memory
        rationale.append(
            f"long-running job ({duration / 60:.0f}m) suggests resource pressure"
        )
    elif duration <= rules.duration.short_secs:
        rationale.append("short-running job likely over-provisioned on larger runners")

    recommended = classify_recommended_runner(cpu, memory, io, rules)
    confidence = estimate_confidence(cpu, memory, io, len(rationale))

    reasons = list(dict.fromkeys(rationale))
    if not reasons:
        reasons = ["insufficient explicit profiling signals; defaulting to medium"]

    cap = rules.max_pressure
    return JobRunnerRecommendation(
        job_id=job.id,
        current_runner=job.runs_on,
        current_class=classify_current_runner(job.runs_on),
        recommended_class=recommended,
        cpu_pressure=min(cpu, cap),
        memory_pressure=min(memory, cap),
        io_pressure=min(io, cap),
        duration_secs=duration,
        rationale=reasons,
        confidence=confidence,
    )


def profile_pipeline(
    dag: PipelineDag,
    rules: SizingRules | None = None,
    default_step_secs: float = 0.0,
) -> RunnerSizingReport:
    """Profile every job, sorted by job id."""
    jobs = sorted(
        (profile_job(job, rules, default_step_secs) for job in dag.jobs()),
        key=lambda r: r.job_id,
    )
    upsizing = sum(1 for j in jobs if j.recommended_class > j.current_class)
    downsizing = sum(1 for j in jobs if j.recommended_class < j.current_class)
    return RunnerSizingReport(
        pipeline_name=dag.name,
        provider=dag.provider,
        total_jobs=len(jobs),
        upsizing_jobs=upsizing,
        downsizing_jobs=downsizing,
        unchanged_jobs=len(jobs) - upsizing - downsizing,
        jobs=jobs,
    )
