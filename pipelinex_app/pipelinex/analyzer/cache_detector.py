"""Detect dependency installs and builds that run without a cache."""

from __future__ import annotations

import logging
import re
from typing import NamedTuple

from pipelinex.analyzer.models import Finding, FindingCategory, Severity
from pipelinex.config import AnalyzerSettings
from pipelinex.graph.dag import PipelineDag
from pipelinex.graph.models import JobNode, StepInfo

logger = logging.getLogger(__name__)


class Ecosystem(NamedTuple):
    name: str
    pattern: re.Pattern[str]
    cache_paths: str
    key_file: str


ECOSYSTEMS: tuple[Ecosystem, ...] = (
    Ecosystem(
        "npm",
        re.compile(r"(npm\s+(ci|install)|yarn\s+install|pnpm\s+install)"),
        "~/.npm, node_modules",
        "package-lock.json",
    ),
    Ecosystem("pip", re.compile(r"\bpip3?\s+install"), "~/.cache/pip", "requirements.txt"),
    Ecosystem("poetry", re.compile(r"\bpoetry\s+install"), "~/.cache/pypoetry", "poetry.lock"),
    Ecosystem(
        "cargo",
        re.compile(r"\bcargo\s+(build|test|clippy)"),
        "~/.cargo/registry, target/",
        "Cargo.lock",
    ),
    Ecosystem(
        "gradle/maven",
        re.compile(r"(\./gradlew|\bgradle\s|\bmvn\s|\./mvnw)"),
        "~/.gradle/caches, ~/.m2/repository",
        "**/*.gradle*, pom.xml",
    ),
    Ecosystem(
        "go",
        re.compile(r"\bgo\s+(build|test|mod\s+download)"),
        "~/go/pkg/mod, ~/.cache/go-build",
        "go.sum",
    ),
    Ecosystem("bundler", re.compile(r"\bbundle\s+install"), "vendor/bundle", "Gemfile.lock"),
    Ecosystem("composer", re.compile(r"\bcomposer\s+install"), "vendor/", "composer.lock"),
)

_DOCKER_BUILD_RE = re.compile(r"\bdocker\s+(build|buildx\s+build)\b")

# Steps (by `uses`) that restore a cache for the rest of the job.
CACHE_STEP_PREFIXES = (
    "actions/cache",
    "swatinem/rust-cache",
    "restore_cache",
    "gradle/gradle-build-action",
    "gradle/actions/setup-gradle",
)


def _is_cache_step(step: StepInfo) -> bool:
    uses = (step.uses or "").lower()
    if not uses:
        return False
    if uses.startswith(CACHE_STEP_PREFIXES):
        return True
    # setup-node / setup-python / setup-java with built-in caching
    if "/setup-" in uses and step.with_args.get("cache"):
        return True
    # Buildkite cache plugins
    return "cache" in uses and "#" in uses


def _step_ecosystems(step: StepInfo) -> list[Ecosystem]:
    if not step.run:
        return []
    cmd = step.run.lower()
    return [eco for eco in ECOSYSTEMS if eco.pattern.search(cmd)]


def _uncached_ecosystems(job: JobNode) -> tuple[list[Ecosystem], list[StepInfo]]:
    """Ecosystems whose install step has no cache before or alongside it."""
    if job.caches:
        return [], []

    found: list[Ecosystem] = []
    steps: list[StepInfo] = []
    cache_seen = False
    for step in job.steps:
        if _is_cache_step(step):
            cache_seen = True
            continue
        if cache_seen:
            continue
        matched = _step_ecosystems(step)
        if matched:
            steps.append(step)
            for eco in matched:
                if eco not in found:
                    found.append(eco)
    return found, steps


def _cache_snippet(provider: str, eco: Ecosystem) -> str | None:
    if provider == "github-actions":
        return (
            "- uses: actions/cache@v4\n"
            "  with:\n"
            f"    path: {eco.cache_paths.split(',')[0].strip()}\n"
            f"    key: ${{{{ runner.os }}}}-{eco.name.split('/')[0]}-"
            f"${{{{ hashFiles('{eco.key_file.split(',')[0].strip()}') }}}}"
        )
    if provider == "gitlab-ci":
        return (
            "cache:\n"
            "  key:\n"
            f"    files: [{eco.key_file.split(',')[0].strip()}]\n"
            f"  paths: [{eco.cache_paths.split(',')[-1].strip()}]"
        )
    return None


def _sum_durations(steps: list[StepInfo], default_secs: float) -> tuple[float, bool]:
    total = 0.0
    timed = False
    for step in steps:
        if step.estimated_duration_secs is not None:
            total += step.estimated_duration_secs
            timed = True
        else:
            total += default_secs
    return total, timed or default_secs > 0


def detect_missing_caches(
    dag: PipelineDag,
    settings: AnalyzerSettings | None = None,
) -> list[Finding]:
    """Emit one finding per job whose installs or builds lack a cache."""
    settings = settings or AnalyzerSettings()
    default_secs = settings.default_step_duration_secs
    findings: list[Finding] = []

    for job in dag.jobs():
        ecosystems, steps = _uncached_ecosystems(job)
        if ecosystems:
            matched_secs, timed = _sum_durations(steps, default_secs)
            names = ", ".join(e.name for e in ecosystems)
            severity = (
                Severity.medium
                if not timed or matched_secs >= settings.cache_severity_threshold_secs
                else Severity.low
            )
            first_cmd = (steps[0].run or "").strip().splitlines()[0]
            findings.append(
                Finding(
                    severity=severity,
                    category=FindingCategory.missing_cache,
                    title=f"No dependency caching for {names} in '{job.id}'",
                    description=(
                        f"Job '{job.id}' runs '{first_cmd}' without a cache restored "
                        "beforehand, so dependencies are downloaded and built from "
                        "scratch on every run."
                    ),
                    affected_jobs=[job.id],
                    recommendation="; ".join(
                        f"Cache {e.cache_paths} keyed on the hash of {e.key_file}"
                        for e in ecosystems
                    ) + ".",
                    fix_command=_cache_snippet(dag.provider, ecosystems[0]),
                    estimated_savings_secs=(
                        matched_secs * settings.cache_savings_ratio if timed else None
                    ),
                    confidence=0.9,
                    auto_fixable=dag.provider in ("github-actions", "gitlab-ci"),
                )
            )

        docker_steps = [
            s for s in job.steps
            if s.run
            and _DOCKER_BUILD_RE.search(s.run.lower())
            and "--cache-from" not in s.run.lower()
        ]
        uses_buildx_action = any(
            (s.uses or "").startswith("docker/build-push-action") for s in job.steps
        )
        if docker_steps and not uses_buildx_action:
            docker_secs, timed = _sum_durations(docker_steps, default_secs)
            findings.append(
                Finding(
                    severity=Severity.medium,
                    category=FindingCategory.docker_optimization,
                    title=f"Docker build in '{job.id}' has no layer caching",
                    description=(
                        f"Job '{job.id}' runs docker build without --cache-from, so "
                        "every build starts from an empty layer cache."
                    ),
                    affected_jobs=[job.id],
                    recommendation=(
                        "Use docker/build-push-action with cache-from/cache-to, "
                        "or pass --cache-from pointing at a previously pushed image."
                    ),
                    fix_command=(
                        "docker build --cache-from type=registry,ref=<image>:buildcache "
                        "--cache-to type=registry,ref=<image>:buildcache,mode=max ."
                    ),
                    estimated_savings_secs=(
                        docker_secs * settings.cache_savings_ratio if timed else None
                    ),
                    confidence=0.85,
                )
            )

    logger.debug("Cache detector produced %d findings", len(findings))
    return findings
