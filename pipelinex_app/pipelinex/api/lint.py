"""Lint API endpoint."""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from pipelinex.api.analyze import PipelineRequest
from pipelinex.graph.dag import CyclicDagError, PipelineDag
from pipelinex.linter import LintFinding, lint
from pipelinex.parser import PipelineParseError, detect_provider, parse_content

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["lint"])


class LintResponse(BaseModel):
    source_file: str = ""
    provider: str = ""
    findings: list[LintFinding] = Field(default_factory=list)
    errors: int = 0
    warnings: int = 0
    infos: int = 0
    exit_code: int = 0


@router.post("/lint", response_model=LintResponse)
async def lint_pipeline(body: PipelineRequest) -> LintResponse:
    """Lint a pipeline config; unparseable YAML is reported as a lint error."""
    try:
        dag = parse_content(body.content, body.source_file, body.provider)
    except CyclicDagError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except PipelineParseError as e:
        logger.debug("Parse failed, linting raw text only: %s", e)
        provider = body.provider or detect_provider(body.source_file, body.content) or ""
        dag = PipelineDag(body.source_file or "pipeline", body.source_file, provider)

    report = lint(body.content, dag)
    return LintResponse(
        source_file=report.source_file,
        provider=report.provider,
        findings=report.findings,
        errors=report.errors,
        warnings=report.warnings,
        infos=report.infos,
        exit_code=report.exit_code(),
    )
