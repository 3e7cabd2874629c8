"""Cost estimation API endpoint."""

from __future__ import annotations

from fastapi import APIRouter
from pydantic import BaseModel, Field

from pipelinex.cost import CostEstimate, estimate_costs

router = APIRouter(prefix="/api", tags=["cost"])


class CostRequest(BaseModel):
    duration_secs: float = Field(..., ge=0)
    optimized_secs: float = Field(0.0, ge=0)
    runs_per_month: int = Field(500, ge=0)
    runner_type: str = "ubuntu-latest"
    developer_hourly_rate: float = Field(150.0, ge=0)
    team_size: int = Field(10, ge=1)


@router.post("/cost", response_model=CostEstimate)
async def estimate_cost(body: CostRequest) -> CostEstimate:
    return estimate_costs(
        body.duration_secs,
        body.optimized_secs,
        body.runs_per_month,
        body.runner_type,
        body.developer_hourly_rate,
        body.team_size,
    )
