"""Explanation API endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from pipelinex.analyzer.engine import analyze
from pipelinex.api.analyze import PipelineRequest, parse_request
from pipelinex.config import AnalyzerSettings
from pipelinex.deps import get_explain_engine, get_settings
from pipelinex.explainer.engine import ExplainEngine
from pipelinex.explainer.models import Explanation, PipelineContext

router = APIRouter(prefix="/api", tags=["explain"])


class ExplainRequest(PipelineRequest):
    runs_per_month: int = Field(500, ge=0)


class ExplainResponse(BaseModel):
    pipeline_name: str
    explanations: list[Explanation] = Field(default_factory=list)


@router.post("/explain", response_model=ExplainResponse)
async def explain_pipeline(
    body: ExplainRequest,
    settings: AnalyzerSettings = Depends(get_settings),
    engine: ExplainEngine = Depends(get_explain_engine),
) -> ExplainResponse:
    """Analyze a pipeline and explain each finding in plain language."""
    dag = parse_request(body)
    report = analyze(dag, settings)
    context = PipelineContext.from_dag(dag, body.runs_per_month)
    explanations = await engine.explain_all(report.findings, context)
    return ExplainResponse(pipeline_name=report.pipeline_name, explanations=explanations)
