"""Pipeline cost estimation from run durations and team parameters."""

from __future__ import annotations

from pydantic import BaseModel


class RunnerPricing(BaseModel):
    """Hosted runner rates in USD per minute."""

    linux_per_min: float = 0.008
    macos_per_min: float = 0.08
    windows_per_min: float = 0.016

    def rate_for(self, runner_type: str) -> float:
        """Per-minute rate for a runner label, Linux when unrecognised."""
        runner = runner_type.lower()
        if "macos" in runner:
            return self.macos_per_min
        if "windows" in runner:
            return self.windows_per_min
        return self.linux_per_min


class CostEstimate(BaseModel):
    compute_cost_per_run: float
    monthly_compute_cost: float
    monthly_developer_hours_lost: float
    monthly_opportunity_cost: float
    waste_ratio: float
    developer_hours_lost_per_member: float = 0.0
    monthly_savings_potential: float = 0.0


def estimate_costs(
    duration_secs: float,
    optimized_secs: float,
    runs_per_month: int,
    runner_type: str = "ubuntu-latest",
    developer_hourly_rate: float = 150.0,
    team_size: int = 10,
    pricing: RunnerPricing | None = None,
) -> CostEstimate:
    """Estimate compute spend and developer wait time for a pipeline.

    Raises ValueError for negative durations, rates or run counts and for a
    team size below one.
    """
    if min(duration_secs, optimized_secs, runs_per_month, developer_hourly_rate) < 0:
        raise ValueError("Durations, run count and hourly rate must be non-negative")
    if team_size < 1:
        raise ValueError(f"Team size must be at least 1, got {team_size}")

    pricing = pricing or RunnerPricing()
    rate_per_min = pricing.rate_for(runner_type)

    compute_cost_per_run = duration_secs / 60.0 * rate_per_min
    monthly_compute_cost = compute_cost_per_run * runs_per_month

    monthly_developer_hours_lost = duration_secs * runs_per_month / 3600.0
    monthly_opportunity_cost = monthly_developer_hours_lost * developer_hourly_rate

    savings_secs = max(duration_secs - optimized_secs, 0.0)
    waste_ratio = savings_secs / duration_secs if duration_secs > 0 else 0.0

    return CostEstimate(
        compute_cost_per_run=compute_cost_per_run,
        monthly_compute_cost=monthly_compute_cost,
        monthly_developer_hours_lost=monthly_developer_hours_lost,
        monthly_opportunity_cost=monthly_opportunity_cost,
        waste_ratio=waste_ratio,
        developer_hours_lost_per_member=monthly_developer_hours_lost / team_size,
        monthly_savings_potential=(monthly_compute_cost + monthly_opportunity_cost) * waste_ratio,
    )
