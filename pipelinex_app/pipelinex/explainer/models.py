"""Explanation data models."""

from __future__ import annotations

from pydantic import BaseModel

from pipelinex.graph.dag import PipelineDag


class PipelineContext(BaseModel):
    """Pipeline facts quoted in explanations."""

    pipeline_name: str = ""
    provider: str = ""
    job_count: int = 0
    step_count: int = 0
    runs_per_month: int = 500

    @classmethod
    def from_dag(cls, dag: PipelineDag, runs_per_month: int = 500) -> PipelineContext:
        return cls(
            pipeline_name=dag.name,
            provider=dag.provider,
            job_count=dag.job_count,
            step_count=dag.step_count,
            runs_per_month=runs_per_month,
        )


class Explanation(BaseModel):
    """Plain-language explanation of one finding."""

    finding_title: str
    why_it_matters: str
    estimated_impact: str
    simplest_fix: str
    source: str = "template"
