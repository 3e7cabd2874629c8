"""Analysis API endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from pipelinex.analyzer.engine import analyze
from pipelinex.analyzer.models import AnalysisReport
from pipelinex.config import AnalyzerSettings
from pipelinex.db.database import Database
from pipelinex.deps import get_database, get_settings, get_signing_key
from pipelinex.graph.dag import CyclicDagError, PipelineDag
from pipelinex.parser import PipelineParseError, parse_content
from pipelinex.redact import redact_report
from pipelinex.signing import canonical_payload, sign_report
from pipelinex.sizing.models import RunnerSizingReport
from pipelinex.sizing.profiler import profile_pipeline
from pipelinex.sizing.rules import default_sizing_rules, load_sizing_rules

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["analyze"])


class PipelineRequest(BaseModel):
    content: str = Field(..., min_length=1, description="Raw CI configuration text")
    source_file: str = Field("", description="Path used for provider detection and reporting")
    provider: str | None = Field(None, description="Force a provider instead of detecting it")


class AnalyzeRequest(PipelineRequest):
    save: bool = True
    redact: bool = False
    sign: bool = Field(False, description="Sign the stored report with the configured key")


class AnalyzeResponse(BaseModel):
    analysis_id: str | None = None
    signature: str | None = None
    public_key: str | None = None
    report: AnalysisReport


def parse_request(body: PipelineRequest) -> PipelineDag:
    """Parse request content, mapping parser failures to HTTP errors."""
    try:
        return parse_content(body.content, body.source_file, body.provider)
    except CyclicDagError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except PipelineParseError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/analyze", response_model=AnalyzeResponse)
async def analyze_pipeline(
    body: AnalyzeRequest,
    settings: AnalyzerSettings = Depends(get_settings),
    db: Database = Depends(get_database),
    signing_key: str | None = Depends(get_signing_key),
) -> AnalyzeResponse:
    """Analyze a pipeline config and optionally store (and sign) the report."""
    if body.sign and not body.save:
        raise HTTPException(status_code=400, detail="sign requires save")
    if body.sign and signing_key is None:
        raise HTTPException(status_code=400, detail="No signing_key is configured")

    dag = parse_request(body)
    report = analyze(dag, settings)
    if body.redact:
        report = redact_report(report)

    if not body.save:
        return AnalyzeResponse(report=report)

    signed = None
    if body.sign:
        signed = sign_report(canonical_payload(report), signing_key)
    analysis_id = await db.save_analysis(
        report,
        signature=signed.signature if signed else None,
        public_key=signed.public_key if signed else None,
    )
    logger.info(
        "Stored %s analysis %s for '%s'",
        "signed" if signed else "unsigned",
        analysis_id,
        report.pipeline_name,
    )
    return AnalyzeResponse(
        analysis_id=analysis_id,
        signature=signed.signature if signed else None,
        public_key=signed.public_key if signed else None,
        report=report,
    )


@router.post("/right-size", response_model=RunnerSizingReport)
async def right_size(
    body: PipelineRequest,
    settings: AnalyzerSettings = Depends(get_settings),
) -> RunnerSizingReport:
    """Profile every job's resource pressure and recommend runner classes."""
    dag = parse_request(body)
    rules = (
        load_sizing_rules(settings.runner_sizing_rules)
        if settings.runner_sizing_rules
        else default_sizing_rules()
    )
    return profile_pipeline(dag, rules, settings.default_step_duration_secs)
