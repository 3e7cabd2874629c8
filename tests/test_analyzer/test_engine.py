"""Tests for the analysis engine."""

from __future__ import annotations

import logging

import pytest

from pipelinex.analyzer import engine
from pipelinex.analyzer.engine import analyze, optimized_duration, sort_findings
from pipelinex.analyzer.models import Finding, FindingCategory, Severity
from pipelinex.config import AnalyzerSettings
from pipelinex.graph.dag import CyclicDagError, PipelineDag
from pipelinex.graph.models import JobNode, StepInfo
from pipelinex.parser import parse_content


def _finding(severity: Severity, title: str, savings: float | None = None) -> Finding:
    return Finding(
        severity=severity,
        category=FindingCategory.redundant_steps,
        title=title,
        description=title,
        estimated_savings_secs=savings,
    )


def _job(job_id: str, secs: float, cmd: str = "echo work") -> JobNode:
    return JobNode(id=job_id, steps=[StepInfo(name=cmd, run=cmd, estimated_duration_secs=secs)])


def _assert_report_invariants(report) -> None:
    priorities = [f.severity.priority for f in report.findings]
    assert priorities == sorted(priorities, reverse=True)
    total = report.total_estimated_duration_secs
    assert total * 0.2 <= report.optimized_duration_secs <= total


class TestSortFindings:
    def test_descending_and_stable(self) -> None:
        findings = [
            _finding(Severity.low, "low-1"),
            _finding(Severity.high, "high-1"),
            _finding(Severity.low, "low-2"),
            _finding(Severity.critical, "crit"),
            _finding(Severity.high, "high-2"),
        ]
        sort_findings(findings)
        assert [f.title for f in findings] == ["crit", "high-1", "high-2", "low-1", "low-2"]


class TestOptimizedDuration:
    def test_subtracts_known_savings(self) -> None:
        findings = [_finding(Severity.low, "a", 30), _finding(Severity.low, "b")]
        assert optimized_duration(100.0, findings) == 70.0

    def test_floor(self) -> None:
        findings = [_finding(Severity.low, "a", 90), _finding(Severity.low, "b", 90)]
        assert optimized_duration(100.0, findings) == 20.0

    def test_no_findings(self) -> None:
        assert optimized_duration(100.0, []) == 100.0


class TestAnalyze:
    def test_two_job_chain(self) -> None:
        dag = PipelineDag("ci", "ci.yml")
        dag.add_job(_job("a", 100))
        dag.add_job(_job("b", 50))
        dag.add_dependency("a", "b")

        report = analyze(dag)

        assert report.pipeline_name == "ci"
        assert report.source_file == "ci.yml"
        assert report.critical_path == ["a", "b"]
        assert report.critical_path_duration_secs == 150.0
        assert report.total_estimated_duration_secs == 150.0
        assert report.max_parallelism == 1
        assert report.job_count == 2
        assert report.step_count == 2
        _assert_report_invariants(report)

    def test_empty_pipeline(self) -> None:
        report = analyze(PipelineDag("empty"))
        assert report.critical_path == []
        assert report.findings == []
        assert report.optimized_duration_secs == 0.0
        assert report.summary == "Analyzed 0 job(s) in 'empty', no issues found."

    def test_cycle_fails_analysis(self) -> None:
        dag = PipelineDag("loop")
        dag.add_job(_job("a", 10))
        dag.add_job(_job("b", 10))
        dag.add_dependency("a", "b")
        dag.add_dependency("b", "a")
        with pytest.raises(CyclicDagError):
            analyze(dag)

    def test_summary_counts(self) -> None:
        dag = PipelineDag("ci")
        dag.add_job(_job("only", 100, "npm install"))
        report = analyze(dag)
        assert report.findings
        assert report.summary.startswith(f"Analyzed 1 job(s) in 'ci', found {len(report.findings)} issue(s):")

    def test_failing_analyzer_is_isolated(
        self, monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture,
    ) -> None:
        def boom(dag, settings=None):
            raise RuntimeError("boom")

        monkeypatch.setattr(engine, "detect_missing_caches", boom)
        dag = PipelineDag("ci")
        dag.add_job(_job("only", 100, "npm install"))

        with caplog.at_level(logging.ERROR, logger="pipelinex.analyzer.engine"):
            report = analyze(dag)

        categories = {f.category for f in report.findings}
        assert FindingCategory.missing_cache not in categories
        assert FindingCategory.inefficient_command in categories
        assert "Analyzer 'cache' failed" in caplog.text

    def test_security_is_opt_in(self) -> None:
        dag = PipelineDag("ci")
        dag.add_job(_job("greet", 5, 'echo "${{ github.event.issue.title }}"'))

        without = analyze(dag)
        assert all(f.category != FindingCategory.security for f in without.findings)

        report = analyze(dag, AnalyzerSettings(include_security=True))
        assert report.findings[0].severity == Severity.critical
        assert report.findings[0].category == FindingCategory.security

    def test_floor_is_configurable(self) -> None:
        dag = PipelineDag("ci")
        dag.add_job(_job("only", 100))
        report = analyze(dag, AnalyzerSettings(irreducible_floor=0.9))
        assert report.optimized_duration_secs == pytest.approx(90.0)

    def test_github_fixture(self, github_workflow: str) -> None:
        dag = parse_content(github_workflow, ".github/workflows/ci.yml")
        report = analyze(dag)
        assert report.provider == "github-actions"
        assert report.job_count == 4
        assert report.critical_path[0] == "lint"
        assert report.critical_path[-1] == "deploy"
        assert report.findings
        _assert_report_invariants(report)

    def test_failing_critical_path_analysis_is_isolated(
        self, monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture,
    ) -> None:
        def boom(dag, path, total, settings=None):
            raise RuntimeError("boom")

        dag = PipelineDag("ci")
        dag.add_job(_job("only", 100, "npm install"))
        assert any(f.category == FindingCategory.critical_path for f in analyze(dag).findings)

        monkeypatch.setattr(engine, "analyze_critical_path", boom)
        with caplog.at_level(logging.ERROR, logger="pipelinex.analyzer.engine"):
            report = analyze(dag)

        categories = {f.category for f in report.findings}
        assert FindingCategory.critical_path not in categories
        assert FindingCategory.missing_cache in categories
        assert report.critical_path == ["only"]
        assert report.critical_path_duration_secs == 100.0
        assert "Analyzer 'critical-path' failed" in caplog.text

    def test_health_score_is_attached(self) -> None:
        dag = PipelineDag("ci")
        dag.add_job(_job("only", 100, "npm install"))
        report = analyze(dag)
        assert report.health_score is not None
        # the uncached npm install zeroes the caching component
        assert report.health_score.caching_score == 0.0
        assert report.health_score.success_rate_score == pytest.approx(95.0)
        assert 0.0 <= report.health_score.total_score <= 100.0

    def test_success_rate_is_configurable(self) -> None:
        report = analyze(PipelineDag("empty"), AnalyzerSettings(assumed_success_rate=0.5))
        assert report.health_score is not None
        assert report.health_score.success_rate_score == pytest.approx(50.0)
