"""Roll a finished report up into a single 0-100 health score."""

from __future__ import annotations

from pipelinex.analyzer.models import (
    AnalysisReport,
    FindingCategory,
    HealthGrade,
    HealthScore,
    Severity,
)

WEIGHTS = {
    "duration": 0.25,
    "success_rate": 0.30,
    "parallelization": 0.20,
    "caching": 0.15,
    "issues": 0.10,
}

# Pipelines at or under ten minutes score full marks when no estimate exists.
TARGET_DURATION_SECS = 600.0

_GRADES = (
    (90, HealthGrade.excellent),
    (75, HealthGrade.good),
    (60, HealthGrade.fair),
    (40, HealthGrade.poor),
)


def grade_for(score: float) -> HealthGrade:
    for floor, grade in _GRADES:
        if int(score) >= floor:
            return grade
    return HealthGrade.critical


def _duration_score(report: AnalysisReport) -> float:
    duration = max(report.total_estimated_duration_secs, 1.0)
    target = report.optimized_duration_secs
    if target <= 0:
        target = TARGET_DURATION_SECS
    return min(target / duration * 100.0, 100.0)


def _recommendations(
    counts: dict[Severity, int],
    duration: float,
    success_rate: float,
    parallelization: float,
    caching: float,
    issues: float,
) -> list[str]:
    out: list[str] = []
    if counts[Severity.critical]:
        out.append(
            f"Fix {counts[Severity.critical]} critical issue(s) immediately; they have the "
            "largest impact on pipeline health."
        )
    if success_rate < 90:
        out.append("Improve the success rate by addressing flaky tests and unstable steps.")
    if counts[Severity.high] and not counts[Severity.critical]:
        out.append(f"Address {counts[Severity.high]} high-priority issue(s) to improve performance.")
    if duration < 60:
        out.append(
            "Pipeline duration is suboptimal; apply the recommended optimizations to cut "
            "build time."
        )
    if caching < 50:
        out.append("Add dependency caching to avoid downloading packages on every run.")
    if parallelization < 50:
        out.append("Increase parallelization by removing unnecessary job dependencies.")
    if issues < 80 and not out:
        out.append("Review and fix the remaining issues to optimize the pipeline further.")
    if not out:
        out.append("Pipeline is well-optimized.")
    return out


def compute_health_score(report: AnalysisReport, success_rate: float = 0.95) -> HealthScore:
    """Weighted sum of duration, success rate, parallelism, caching and issue scores.

    `success_rate` is the fraction of runs that pass; without run history the
    analyzer's assumed rate is used.
    """
    counts = report.count_by_severity()

    duration = _duration_score(report)
    success = success_rate * 100.0
    parallelization = min(report.max_parallelism / max(report.job_count, 1) * 100.0, 100.0)
    caching = (
        0.0
        if any(f.category == FindingCategory.missing_cache for f in report.findings)
        else 100.0
    )
    issues = max(
        100.0
        - 15.0 * counts[Severity.critical]
        - 8.0 * counts[Severity.high]
        - 3.0 * counts[Severity.medium],
        0.0,
    )

    total = min(
        duration * WEIGHTS["duration"]
        + success * WEIGHTS["success_rate"]
        + parallelization * WEIGHTS["parallelization"]
        + caching * WEIGHTS["caching"]
        + issues * WEIGHTS["issues"],
        100.0,
    )
    return HealthScore(
        total_score=total,
        grade=grade_for(total),
        duration_score=duration,
        success_rate_score=success,
        parallelization_score=parallelization,
        caching_score=caching,
        issue_score=issues,
        recommendations=_recommendations(
            counts, duration, success, parallelization, caching, issues,
        ),
    )
