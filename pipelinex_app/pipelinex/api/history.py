"""History API endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from pipelinex.analyzer.models import AnalysisReport
from pipelinex.db.database import Database
from pipelinex.db.models import AnalysisSummaryRecord
from pipelinex.deps import get_database

router = APIRouter(prefix="/api", tags=["history"])


class HistoryListResponse(BaseModel):
    items: list[AnalysisSummaryRecord]
    total: int


class HistoryDetailResponse(BaseModel):
    id: str
    created_at: str = ""
    signature: str | None = None
    public_key: str | None = None
    report: AnalysisReport


@router.get("/history", response_model=HistoryListResponse)
async def list_history(
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Database = Depends(get_database),
) -> HistoryListResponse:
    """List stored analyses, newest first."""
    items, total = await db.list_analyses(limit, offset)
    return HistoryListResponse(items=items, total=total)


@router.get("/history/{analysis_id}", response_model=HistoryDetailResponse)
async def get_history_item(
    analysis_id: str,
    db: Database = Depends(get_database),
) -> HistoryDetailResponse:
    record = await db.get_analysis(analysis_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Analysis not found")
    return HistoryDetailResponse(
        id=record.id,
        created_at=record.created_at,
        signature=record.signature,
        public_key=record.public_key,
        report=AnalysisReport.model_validate_json(record.report_json),
    )
