"""Options loading and analyzer thresholds."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class AnalyzerSettings(BaseModel):
    """Tunable thresholds for the heuristic analyzers."""

    # Steps with no duration estimate contribute this many seconds.
    default_step_duration_secs: float = Field(default=0.0, ge=0)

    # Critical path
    bottleneck_share_pct: float = 30.0
    bottleneck_savings_share: float = 0.5
    efficiency_factor: float = 1.5
    efficiency_savings_share: float = 0.3
    serial_chain_min_jobs: int = 3

    # Report
    irreducible_floor: float = Field(default=0.2, ge=0, le=1)

    # Cache detector
    cache_severity_threshold_secs: float = 60.0
    cache_savings_ratio: float = Field(default=0.7, ge=0, le=1)

    # Parallel finder
    shard_threshold_secs: float = 300.0
    shard_target_secs: float = 120.0
    max_shards: int = 8

    # Waste detector
    redundant_install_jobs: int = 2
    matrix_bloat_threshold: int = 6
    matrix_keep_combinations: int = 4
    shallow_clone_savings_ratio: float = Field(default=0.5, ge=0, le=1)
    npm_ci_savings_ratio: float = Field(default=0.3, ge=0, le=1)
    reinstall_savings_ratio: float = Field(default=0.5, ge=0, le=1)
    long_job_threshold_secs: float = 600.0
    always_run_waste_fraction: float = Field(default=0.1, ge=0, le=1)

    # Health score
    assumed_success_rate: float = Field(default=0.95, ge=0, le=1)

    # Optional passes
    include_security: bool = False
    runner_sizing_rules: str | None = None


def load_options() -> dict[str, Any]:
    """Load options from the JSON options file or env fallback."""
    opts_path = os.environ.get("PIPELINEX_OPTIONS_PATH", "/data/options.json")
    if Path(opts_path).exists():
        return json.loads(Path(opts_path).read_text())
    return {
        "llm_api_url": os.environ.get("PIPELINEX_LLM_API_URL", ""),
        "llm_api_key": os.environ.get("PIPELINEX_LLM_API_KEY", ""),
        "llm_model": os.environ.get("PIPELINEX_LLM_MODEL", "gpt-4o-mini"),
        "db_path": os.environ.get("PIPELINEX_DB_PATH", ""),
        "signing_key": os.environ.get("PIPELINEX_SIGNING_KEY", ""),
        "analyzer": {},
    }


def load_settings(options: dict[str, Any] | None = None) -> AnalyzerSettings:
    """Build AnalyzerSettings from the `analyzer` section of the options."""
    if options is None:
        options = load_options()
    section = options.get("analyzer") or {}
    settings = AnalyzerSettings(**section)
    logger.debug("Analyzer settings: %s", settings.model_dump())
    return settings
