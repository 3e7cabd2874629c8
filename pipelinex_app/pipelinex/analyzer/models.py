"""Data models for analysis findings and reports."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Severity(str, Enum):
    critical = "critical"
    high = "high"
    medium = "medium"
    low = "low"
    info = "info"

    @property
    def priority(self) -> int:
        return _PRIORITY[self]

    @property
    def symbol(self) -> str:
        """Short ASCII marker shown before the severity name."""
        return _SYMBOLS[self]


_SYMBOLS = {
    Severity.critical: "!!",
    Severity.high: "!",
    Severity.medium: "~",
    Severity.low: "-",
    Severity.info: "i",
}


_PRIORITY = {
    Severity.critical: 5,
    Severity.high: 4,
    Severity.medium: 3,
    Severity.low: 2,
    Severity.info: 1,
}


class FindingCategory(str, Enum):
    critical_path = "critical_path"
    missing_cache = "missing_cache"
    docker_optimization = "docker_optimization"
    serial_bottleneck = "serial_bottleneck"
    missing_path_filter = "missing_path_filter"
    shallow_clone = "shallow_clone"
    redundant_steps = "redundant_steps"
    inefficient_command = "inefficient_command"
    matrix_optimization = "matrix_optimization"
    concurrency_control = "concurrency_control"
    artifact_reuse = "artifact_reuse"
    runner_sizing = "runner_sizing"
    security = "security"

    @property
    def label(self) -> str:
        return _LABELS[self]


_LABELS = {
    FindingCategory.critical_path: "Critical Path Bottleneck",
    FindingCategory.missing_cache: "Missing Dependency Cache",
    FindingCategory.docker_optimization: "Docker Build Optimization",
    FindingCategory.serial_bottleneck: "Serial Bottleneck",
    FindingCategory.missing_path_filter: "Missing Path Filter",
    FindingCategory.shallow_clone: "Full Git Clone",
    FindingCategory.redundant_steps: "Redundant Steps",
    FindingCategory.inefficient_command: "Inefficient Command",
    FindingCategory.matrix_optimization: "Matrix Strategy Optimization",
    FindingCategory.concurrency_control: "Missing Concurrency Control",
    FindingCategory.artifact_reuse: "Missing Artifact Reuse",
    FindingCategory.runner_sizing: "Runner Right-Sizing",
    FindingCategory.security: "Security",
}


def format_duration(secs: float) -> str:
    """Render seconds as `M:SS`, or `Ns` under a minute."""
    total = int(max(secs, 0.0) + 0.5)
    minutes, seconds = divmod(total, 60)
    if minutes > 0:
        return f"{minutes}:{seconds:02d}"
    return f"{seconds}s"


class Finding(BaseModel):
    """A single optimisation or risk finding."""

    model_config = ConfigDict(frozen=True)

    severity: Severity
    category: FindingCategory
    title: str
    description: str
    affected_jobs: list[str] = Field(default_factory=list)
    recommendation: str = ""
    fix_command: str | None = None
    estimated_savings_secs: float | None = Field(default=None, ge=0)
    confidence: float = Field(default=0.5, ge=0, le=1)
    auto_fixable: bool = False

    @field_validator("affected_jobs")
    @classmethod
    def _unique_jobs(cls, value: list[str]) -> list[str]:
        return list(dict.fromkeys(value))

    def savings_display(self) -> str:
        if self.estimated_savings_secs is None:
            return "unknown"
        return format_duration(self.estimated_savings_secs)


class HealthGrade(str, Enum):
    excellent = "excellent"
    good = "good"
    fair = "fair"
    poor = "poor"
    critical = "critical"


class HealthScore(BaseModel):
    """Weighted 0-100 rating of a pipeline, with its component scores."""

    model_config = ConfigDict(frozen=True)

    total_score: float = Field(ge=0, le=100)
    grade: HealthGrade
    duration_score: float
    success_rate_score: float
    parallelization_score: float
    caching_score: float
    issue_score: float
    recommendations: list[str] = Field(default_factory=list)


class AnalysisReport(BaseModel):
    """Complete result of analysing one pipeline."""

    model_config = ConfigDict(frozen=True)

    pipeline_name: str
    source_file: str = ""
    provider: str = ""
    job_count: int = 0
    step_count: int = 0
    max_parallelism: int = 0
    critical_path: list[str] = Field(default_factory=list)
    critical_path_duration_secs: float = 0.0
    total_estimated_duration_secs: float = 0.0
    optimized_duration_secs: float = 0.0
    findings: list[Finding] = Field(default_factory=list)
    summary: str = ""
    health_score: HealthScore | None = None

    def potential_improvement_pct(self) -> float:
        if self.total_estimated_duration_secs == 0:
            return 0.0
        return (
            (self.total_estimated_duration_secs - self.optimized_duration_secs)
            / self.total_estimated_duration_secs
            * 100.0
        )

    def total_savings_secs(self) -> float:
        return sum(
            f.estimated_savings_secs
            for f in self.findings
            if f.estimated_savings_secs is not None
        )

    def count_by_severity(self) -> dict[Severity, int]:
        counts = {sev: 0 for sev in Severity}
        for f in self.findings:
            counts[f.severity] += 1
        return counts
