"""Database record models."""

from __future__ import annotations

from pydantic import BaseModel


class AnalysisSummaryRecord(BaseModel):
    id: str
    pipeline_name: str
    source_file: str = ""
    provider: str = ""
    critical_path_duration_secs: float = 0.0
    optimized_duration_secs: float = 0.0
    finding_count: int = 0
    created_at: str = ""


class AnalysisRecord(AnalysisSummaryRecord):
    report_json: str = "{}"
    signature: str | None = None
    public_key: str | None = None
