"""Tests for runner sizing findings."""

from __future__ import annotations

from pathlib import Path

import pytest

from pipelinex.analyzer.models import FindingCategory, Severity
from pipelinex.analyzer.runner_sizer import detect_runner_right_sizing
from pipelinex.config import AnalyzerSettings
from pipelinex.graph.dag import PipelineDag
from pipelinex.graph.models import JobNode, StepInfo


def _run(cmd: str, secs: float) -> StepInfo:
    return StepInfo(name=cmd, run=cmd, estimated_duration_secs=secs)


def _dag(*jobs: JobNode) -> PipelineDag:
    dag = PipelineDag("ci", "ci.yml")
    for job in jobs:
        dag.add_job(job)
    return dag


class TestRunnerSizing:
    def test_heavy_job_is_upsized(self) -> None:
        job = JobNode(
            id="build",
            steps=[_run("cargo build --release", 500), _run("docker build .", 500)],
        )
        findings = detect_runner_right_sizing(_dag(job))
        assert len(findings) == 1
        finding = findings[0]
        assert finding.category == FindingCategory.runner_sizing
        assert finding.severity == Severity.medium
        assert "medium -> xlarge" in finding.title
        assert finding.estimated_savings_secs == pytest.approx(180.0)
        assert finding.confidence == 0.88
        assert "compute-heavy build/test workload detected" in finding.description

    def test_upsize_savings_floor(self) -> None:
        job = JobNode(id="rust", steps=[_run("cargo build", 60), _run("cargo test", 60)])
        findings = detect_runner_right_sizing(_dag(job))
        assert findings[0].severity == Severity.medium
        assert "medium -> large" in findings[0].title
        assert findings[0].estimated_savings_secs == 30.0

    def test_idle_large_runner_is_downsized(self) -> None:
        job = JobNode(id="notify", runs_on="ubuntu-latest-xlarge", steps=[_run("echo done", 30)])
        findings = detect_runner_right_sizing(_dag(job))
        assert len(findings) == 1
        finding = findings[0]
        assert finding.severity == Severity.low
        assert "xlarge -> small" in finding.title
        assert finding.estimated_savings_secs == 10.0
        assert finding.confidence == 0.68

    def test_matching_runner_has_no_finding(self) -> None:
        job = JobNode(
            id="deps",
            steps=[_run("npm ci", 100), _run("pip install -r requirements.txt", 100)],
        )
        assert detect_runner_right_sizing(_dag(job)) == []

    def test_custom_rules_file(self, tmp_path: Path) -> None:
        rules = tmp_path / "rules.yaml"
        rules.write_text("signals: []\nclasses:\n  small_max: -1\n")
        job = JobNode(id="notify", steps=[_run("echo done", 30)])
        settings = AnalyzerSettings(runner_sizing_rules=str(rules))
        assert detect_runner_right_sizing(_dag(job), settings) == []
