"""Data models for runner right-sizing."""

from __future__ import annotations

from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field


class RunnerSizeClass(str, Enum):
    small = "small"
    medium = "medium"
    large = "large"
    xlarge = "xlarge"

    @property
    def rank(self) -> int:
        return _RANKS[self]

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, RunnerSizeClass):
            return NotImplemented
        return self.rank < other.rank

    def __gt__(self, other: object) -> bool:
        if not isinstance(other, RunnerSizeClass):
            return NotImplemented
        return self.rank > other.rank

    def __le__(self, other: object) -> bool:
        if not isinstance(other, RunnerSizeClass):
            return NotImplemented
        return self.rank <= other.rank

    def __ge__(self, other: object) -> bool:
        if not isinstance(other, RunnerSizeClass):
            return NotImplemented
        return self.rank >= other.rank


_RANKS = {
    RunnerSizeClass.small: 0,
    RunnerSizeClass.medium: 1,
    RunnerSizeClass.large: 2,
    RunnerSizeClass.xlarge: 3,
}


class KeywordSignal(BaseModel):
    """Pressure added when a step's text contains any of the keywords."""

    name: str
    keywords: list[str]
    match_on: Literal["run", "uses"] = "run"
    cpu: int = 0
    memory: int = 0
    io: int = 0
    reason: str


class MatrixSignal(BaseModel):
    min_combinations: int = 6
    cpu: int = 2
    memory: int = 1


class DurationSignal(BaseModel):
    long_secs: float = 900.0
    long_cpu: int = 2
    long_memory: int = 1
    short_secs: float = 90.0


class ClassThresholds(BaseModel):
    xlarge_max: int = 8
    xlarge_cpu: int = 7
    xlarge_memory: int = 6
    large_max: int = 5
    large_cpu: int = 4
    large_memory: int = 4
    small_max: int = 2


class SizingRules(BaseModel):
    """Feature-to-score table used by the profiler."""

    signals: list[KeywordSignal] = Field(default_factory=list)
    matrix: MatrixSignal = Field(default_factory=MatrixSignal)
    duration: DurationSignal = Field(default_factory=DurationSignal)
    classes: ClassThresholds = Field(default_factory=ClassThresholds)
    max_pressure: int = 10


class JobRunnerRecommendation(BaseModel):
    job_id: str
    current_runner: str
    current_class: RunnerSizeClass
    recommended_class: RunnerSizeClass
    cpu_pressure: int = Field(ge=0)
    memory_pressure: int = Field(ge=0)
    io_pressure: int = Field(ge=0)
    duration_secs: float = 0.0
    rationale: list[str] = Field(default_factory=list)
    confidence: float = Field(ge=0, le=1)

    @property
    def should_resize(self) -> bool:
        return self.current_class != self.recommended_class


class RunnerSizingReport(BaseModel):
    pipeline_name: str
    provider: str
    total_jobs: int = 0
    upsizing_jobs: int = 0
    downsizing_jobs: int = 0
    unchanged_jobs: int = 0
    jobs: list[JobRunnerRecommendation] = Field(default_factory=list)
