"""Data models for pipeline jobs, steps and triggers."""

from __future__ import annotations

from pydantic import BaseModel, Field


class StepInfo(BaseModel):
    """A single step inside a job."""

    name: str = "Unnamed step"
    uses: str | None = None
    run: str | None = None
    estimated_duration_secs: float | None = Field(default=None, ge=0)
    with_args: dict[str, str] = Field(default_factory=dict)

    @property
    def text(self) -> str:
        """Lower-cased `uses` and `run` text, for keyword matching."""
        return f"{self.uses or ''}\n{self.run or ''}".lower()


class CacheConfig(BaseModel):
    """A cache declared at job level (or inherited from a global default)."""

    path: str
    key_pattern: str = ""
    restore_keys: list[str] = Field(default_factory=list)


class MatrixStrategy(BaseModel):
    """A job's matrix expansion, include/exclude entries not counted."""

    variables: dict[str, list[str]] = Field(default_factory=dict)
    total_combinations: int = 1


class WorkflowTrigger(BaseModel):
    event: str
    branches: list[str] | None = None
    paths: list[str] | None = None
    paths_ignore: list[str] | None = None


class JobNode(BaseModel):
    """A job in the pipeline DAG."""

    id: str
    name: str = ""
    steps: list[StepInfo] = Field(default_factory=list)
    needs: list[str] = Field(default_factory=list)
    runs_on: str = "ubuntu-latest"
    caches: list[CacheConfig] = Field(default_factory=list)
    matrix: MatrixStrategy | None = None
    condition: str | None = None
    env: dict[str, str] = Field(default_factory=dict)
    outputs: list[str] = Field(default_factory=list)
    artifact_paths: list[str] = Field(default_factory=list)
    consumes_artifacts_from: list[str] = Field(default_factory=list)
    # scope -> read|write|none; "all" holds the read-all / write-all shorthand
    permissions: dict[str, str] | None = None

    def model_post_init(self, __context: object) -> None:
        if not self.name:
            self.name = self.id

    def duration_secs(self, default_step_secs: float = 0.0) -> float:
        """Sum of step durations; steps without an estimate count as the default."""
        return sum(
            s.estimated_duration_secs
            if s.estimated_duration_secs is not None
            else default_step_secs
            for s in self.steps
        )

    @property
    def has_timing_data(self) -> bool:
        return any(s.estimated_duration_secs is not None for s in self.steps)
