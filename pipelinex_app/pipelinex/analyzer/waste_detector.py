"""Deterministic rules for wasted pipeline work."""

from __future__ import annotations

import logging
import re
from collections.abc import Callable

from pipelinex.analyzer.models import Finding, FindingCategory, Severity
from pipelinex.config import AnalyzerSettings
from pipelinex.graph.dag import PipelineDag
from pipelinex.graph.models import JobNode, StepInfo

logger = logging.getLogger(__name__)

_INSTALL_RE = re.compile(
    r"(npm\s+(ci|install)|yarn\s+install|pnpm\s+install|pip3?\s+install|"
    r"poetry\s+install|bundle\s+install|composer\s+install)"
)
_BUILD_RE = re.compile(
    r"(npm\s+run\s+build|yarn\s+build|pnpm\s+build|cargo\s+build|go\s+build|"
    r"mvn\s+(package|install)|\./gradlew\s+(build|assemble)|docker\s+build)"
)
_NPM_INSTALL_RE = re.compile(r"\bnpm\s+(install|i)\s*($|&&|;|\n)", re.MULTILINE)
_FULL_REINSTALL_RE = re.compile(
    r"(rm\s+-rf\s+\S*node_modules|pip3?\s+install\s+.*--force-reinstall|"
    r"cargo\s+clean|npm\s+cache\s+clean)"
)
_ALWAYS_RE = re.compile(r"\balways\(\)")


def _step_secs(step: StepInfo, settings: AnalyzerSettings) -> float:
    if step.estimated_duration_secs is not None:
        return step.estimated_duration_secs
    return settings.default_step_duration_secs


def _normalize(cmd: str) -> str:
    return " ".join(cmd.lower().split())


def check_missing_path_filters(dag: PipelineDag, settings: AnalyzerSettings) -> list[Finding]:
    """Workflows that run for every change, including docs-only ones."""
    if dag.provider != "github-actions" or dag.job_count <= 1 or not dag.triggers:
        return []
    if any(t.paths is not None or t.paths_ignore is not None for t in dag.triggers):
        return []
    return [
        Finding(
            severity=Severity.medium,
            category=FindingCategory.missing_path_filter,
            title="No path-based filtering on triggers",
            description=(
                "This workflow runs the full pipeline on every push or pull request, "
                "even for documentation-only changes."
            ),
            affected_jobs=dag.job_ids(),
            recommendation="Add a `paths-ignore` filter to skip the pipeline for non-code changes.",
            fix_command=(
                "on:\n  push:\n    paths-ignore:\n      - 'docs/**'\n      - '*.md'"
            ),
            confidence=0.85,
            auto_fixable=True,
        )
    ]


def check_full_git_clone(dag: PipelineDag, settings: AnalyzerSettings) -> list[Finding]:
    """Checkout steps that fetch full history without asking for it."""
    findings: list[Finding] = []
    for job in dag.jobs():
        for step in job.steps:
            if not (step.uses or "").startswith("actions/checkout"):
                continue
            if "fetch-depth" in step.with_args:
                continue
            findings.append(
                Finding(
                    severity=Severity.medium,
                    category=FindingCategory.shallow_clone,
                    title=f"Consider shallow clone in job '{job.id}'",
                    description=(
                        f"Job '{job.id}' uses actions/checkout without `fetch-depth`. "
                        "Full history clones of large repositories are slow."
                    ),
                    affected_jobs=[job.id],
                    recommendation=(
                        "Add `fetch-depth: 1` to the checkout step unless the job "
                        "needs git history."
                    ),
                    fix_command="- uses: actions/checkout@v4\n  with:\n    fetch-depth: 1",
                    estimated_savings_secs=(
                        _step_secs(step, settings) * settings.shallow_clone_savings_ratio
                    ),
                    confidence=0.8,
                    auto_fixable=True,
                )
            )
            break
    return findings


def check_redundant_installs(dag: PipelineDag, settings: AnalyzerSettings) -> list[Finding]:
    """Several jobs each install dependencies from scratch."""
    install_jobs: list[str] = []
    install_secs: list[float] = []
    for job in dag.jobs():
        steps = [s for s in job.steps if s.run and _INSTALL_RE.search(s.run.lower())]
        if steps:
            install_jobs.append(job.id)
            install_secs.append(sum(_step_secs(s, settings) for s in steps))

    if len(install_jobs) <= settings.redundant_install_jobs:
        return []
    # every install after the cheapest one is repeated work
    savings = sum(install_secs) - min(install_secs)
    return [
        Finding(
            severity=Severity.medium,
            category=FindingCategory.artifact_reuse,
            title=f"{len(install_jobs)} jobs independently install dependencies",
            description=(
                f"Jobs [{', '.join(install_jobs)}] each install dependencies from scratch."
            ),
            affected_jobs=install_jobs,
            recommendation=(
                "Install once in a setup job and share the result as an artifact, "
                "or make every job restore the same cache key."
            ),
            estimated_savings_secs=savings,
            confidence=0.75,
        )
    ]


def check_duplicated_build_steps(dag: PipelineDag, settings: AnalyzerSettings) -> list[Finding]:
    """The same build command run in more than one job."""
    seen: dict[str, list[tuple[JobNode, StepInfo]]] = {}
    for job in dag.jobs():
        for step in job.steps:
            if step.run and _BUILD_RE.search(step.run.lower()):
                key = _normalize(step.run)
                occurrences = seen.setdefault(key, [])
                if all(j.id != job.id for j, _ in occurrences):
                    occurrences.append((job, step))

    findings: list[Finding] = []
    for command, occurrences in seen.items():
        if len(occurrences) < 2:
            continue
        jobs = [j.id for j, _ in occurrences]
        savings = sum(_step_secs(s, settings) for _, s in occurrences[1:])
        findings.append(
            Finding(
                severity=Severity.medium,
                category=FindingCategory.redundant_steps,
                title=f"'{command[:60]}' is repeated in {len(jobs)} jobs",
                description=(
                    f"Jobs [{', '.join(jobs)}] each run the same build command. "
                    "The output is rebuilt instead of reused."
                ),
                affected_jobs=jobs,
                recommendation=(
                    f"Build once in '{jobs[0]}', publish the output as an artifact "
                    "and download it in the other jobs."
                ),
                estimated_savings_secs=savings,
                confidence=0.7,
            )
        )
    return findings


def check_inefficient_commands(dag: PipelineDag, settings: AnalyzerSettings) -> list[Finding]:
    """Full reinstalls where an incremental or lockfile-based command exists."""
    findings: list[Finding] = []
    for job in dag.jobs():
        for step in job.steps:
            if not step.run:
                continue
            cmd = step.run.lower()
            secs = _step_secs(step, settings)
            if _NPM_INSTALL_RE.search(cmd):
                findings.append(
                    Finding(
                        severity=Severity.low,
                        category=FindingCategory.inefficient_command,
                        title=f"'npm install' used in CI job '{job.id}'",
                        description=(
                            f"Job '{job.id}' runs `npm install`, which resolves the "
                            "dependency tree and may rewrite the lockfile."
                        ),
                        affected_jobs=[job.id],
                        recommendation="Use `npm ci` for faster, reproducible installs.",
                        fix_command="npm ci",
                        estimated_savings_secs=secs * settings.npm_ci_savings_ratio,
                        confidence=0.8,
                        auto_fixable=True,
                    )
                )
            match = _FULL_REINSTALL_RE.search(cmd)
            if match:
                findings.append(
                    Finding(
                        severity=Severity.medium,
                        category=FindingCategory.inefficient_command,
                        title=f"Forced full rebuild in job '{job.id}'",
                        description=(
                            f"Job '{job.id}' runs `{match.group(0)}`, discarding "
                            "incremental state before rebuilding everything."
                        ),
                        affected_jobs=[job.id],
                        recommendation=(
                            "Drop the clean/reinstall step and rely on the package "
                            "manager's incremental install."
                        ),
                        estimated_savings_secs=secs * settings.reinstall_savings_ratio,
                        confidence=0.7,
                    )
                )
    return findings


def check_always_running_jobs(dag: PipelineDag, settings: AnalyzerSettings) -> list[Finding]:
    """Long jobs forced to run even when their dependencies failed."""
    findings: list[Finding] = []
    for job in dag.jobs():
        if not job.condition or not _ALWAYS_RE.search(job.condition):
            continue
        duration = job.duration_secs(settings.default_step_duration_secs)
        if duration < settings.long_job_threshold_secs:
            continue
        findings.append(
            Finding(
                severity=Severity.low,
                category=FindingCategory.redundant_steps,
                title=f"Long job '{job.id}' runs even after failures",
                description=(
                    f"Job '{job.id}' takes ~{duration:.0f}s and is guarded by "
                    f"`{job.condition}`, so it still runs when upstream jobs fail and "
                    "its result is usually discarded."
                ),
                affected_jobs=[job.id],
                recommendation="Use `success()` or a narrower condition such as `!cancelled()`.",
                estimated_savings_secs=duration * settings.always_run_waste_fraction,
                confidence=0.55,
            )
        )
    return findings


def check_missing_concurrency(dag: PipelineDag, settings: AnalyzerSettings) -> list[Finding]:
    """Push-triggered workflows with no cancel-in-progress group."""
    if dag.provider != "github-actions" or dag.concurrency:
        return []
    if not any(t.event == "push" for t in dag.triggers):
        return []
    return [
        Finding(
            severity=Severity.low,
            category=FindingCategory.concurrency_control,
            title="No concurrency control configured",
            description=(
                "This workflow triggers on push but has no concurrency settings. "
                "Rapid pushes queue runs for commits that are already superseded."
            ),
            affected_jobs=dag.job_ids(),
            recommendation="Cancel in-progress runs for the same ref.",
            fix_command=(
                "concurrency:\n"
                "  group: ${{ github.workflow }}-${{ github.ref }}\n"
                "  cancel-in-progress: true"
            ),
            confidence=0.7,
            auto_fixable=True,
        )
    ]


def check_matrix_bloat(dag: PipelineDag, settings: AnalyzerSettings) -> list[Finding]:
    """Matrices with more combinations than a typical change needs."""
    findings: list[Finding] = []
    for job in dag.jobs():
        if job.matrix is None:
            continue
        total = job.matrix.total_combinations
        if total <= settings.matrix_bloat_threshold:
            continue
        duration = job.duration_secs(settings.default_step_duration_secs)
        findings.append(
            Finding(
                severity=Severity.medium,
                category=FindingCategory.matrix_optimization,
                title=f"Large matrix strategy in '{job.id}' ({total} combinations)",
                description=(
                    f"Job '{job.id}' runs {total} matrix combinations. Full coverage "
                    "on every change is rarely needed."
                ),
                affected_jobs=[job.id],
                recommendation=(
                    "Run the full matrix on the default branch and a reduced "
                    "`include:` set on pull requests."
                ),
                estimated_savings_secs=(
                    duration * max(total - settings.matrix_keep_combinations, 0) / total
                ),
                confidence=0.75,
            )
        )
    return findings


WASTE_RULES: tuple[Callable[[PipelineDag, AnalyzerSettings], list[Finding]], ...] = (
    check_missing_path_filters,
    check_full_git_clone,
    check_redundant_installs,
    check_duplicated_build_steps,
    check_inefficient_commands,
    check_always_running_jobs,
    check_missing_concurrency,
    check_matrix_bloat,
)


def detect_waste(
    dag: PipelineDag,
    settings: AnalyzerSettings | None = None,
) -> list[Finding]:
    """Run all waste rules and concatenate their findings in rule order."""
    settings = settings or AnalyzerSettings()
    findings: list[Finding] = []
    for rule in WASTE_RULES:
        findings.extend(rule(dag, settings))
    logger.debug("Waste detector produced %d findings", len(findings))
    return findings
