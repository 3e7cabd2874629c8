"""Tests for the parallelisation finder."""

from __future__ import annotations

from pipelinex.analyzer.models import FindingCategory, Severity
from pipelinex.analyzer.parallel_finder import (
    JobType,
    classify_job,
    find_parallelization_opportunities,
)
from pipelinex.graph.dag import PipelineDag
from pipelinex.graph.models import JobNode, MatrixStrategy, StepInfo


def _job(job_id: str, secs: float, *steps: StepInfo, **fields) -> JobNode:
    return JobNode(
        id=job_id,
        steps=[StepInfo(name="work", run="echo work", estimated_duration_secs=secs), *steps],
        **fields,
    )


def _dag(*jobs: JobNode, edges: list[tuple[str, str]] | None = None) -> PipelineDag:
    dag = PipelineDag("ci", "ci.yml")
    for job in jobs:
        dag.add_job(job)
    for dep, dependent in edges or []:
        dag.add_dependency(dep, dependent)
    return dag


def _edge_findings(findings):
    return [f for f in findings if "unnecessarily" in f.title]


class TestClassifyJob:
    def test_by_id(self) -> None:
        assert classify_job(JobNode(id="lint")) is JobType.lint
        assert classify_job(JobNode(id="unit-tests")) is JobType.test
        assert classify_job(JobNode(id="compile")) is JobType.build
        assert classify_job(JobNode(id="release")) is JobType.deploy

    def test_by_commands(self) -> None:
        job = JobNode(id="check", steps=[StepInfo(run="ruff check .")])
        assert classify_job(job) is JobType.lint
        job = JobNode(id="verify", steps=[StepInfo(run="pytest -q")])
        assert classify_job(job) is JobType.test

    def test_unknown(self) -> None:
        assert classify_job(JobNode(id="misc", steps=[StepInfo(run="echo hi")])) is JobType.other


class TestDependencyEdges:
    def test_unneeded_edge_off_critical_path(self) -> None:
        dag = _dag(
            _job("lint", 200), _job("test", 200), _job("build", 400),
            edges=[("lint", "test"), ("lint", "build")],
        )
        findings = _edge_findings(find_parallelization_opportunities(dag))
        assert len(findings) == 1
        finding = findings[0]
        assert finding.category == FindingCategory.serial_bottleneck
        assert finding.affected_jobs == ["test", "lint"]
        # 200s of the 600s lint -> build path
        assert finding.severity == Severity.high
        assert finding.estimated_savings_secs == 200.0
        assert finding.auto_fixable is True

    def test_critical_path_edge_is_not_flagged(self) -> None:
        dag = _dag(_job("lint", 60), _job("test", 120), edges=[("lint", "test")])
        assert _edge_findings(find_parallelization_opportunities(dag)) == []

    def test_medium_share(self) -> None:
        dag = _dag(
            _job("lint", 40), _job("test", 40), _job("build", 300),
            edges=[("lint", "test"), ("lint", "build")],
        )
        findings = _edge_findings(find_parallelization_opportunities(dag))
        assert findings[0].severity == Severity.medium
        assert findings[0].estimated_savings_secs == 40.0

    def test_small_share_is_low(self) -> None:
        dag = _dag(
            _job("lint", 10), _job("test", 10), _job("build", 300),
            edges=[("lint", "test"), ("lint", "build")],
        )
        findings = _edge_findings(find_parallelization_opportunities(dag))
        assert len(findings) == 1
        assert findings[0].severity == Severity.low
        assert findings[0].estimated_savings_secs == 10.0

    def test_deploy_edges_are_kept(self) -> None:
        dag = _dag(
            _job("build", 60), _job("deploy", 30), _job("publish", 600),
            edges=[("build", "deploy"), ("build", "publish")],
        )
        assert _edge_findings(find_parallelization_opportunities(dag)) == []

    def test_artifact_handoff_is_respected(self) -> None:
        dag = _dag(
            _job("test", 60, StepInfo(uses="actions/upload-artifact@v4")),
            _job("build", 60, StepInfo(uses="actions/download-artifact@v4")),
            _job("publish", 600),
            edges=[("test", "build"), ("test", "publish")],
        )
        assert _edge_findings(find_parallelization_opportunities(dag)) == []

    def test_output_reference_is_respected(self) -> None:
        dag = _dag(
            _job("lint", 60, outputs=["version"]),
            _job("test", 60, StepInfo(run="echo ${{ needs.lint.outputs.version }}")),
            _job("publish", 600),
            edges=[("lint", "test"), ("lint", "publish")],
        )
        assert _edge_findings(find_parallelization_opportunities(dag)) == []

    def test_declared_artifact_consumer_is_respected(self) -> None:
        dag = _dag(
            _job("lint", 60),
            _job("test", 60, consumes_artifacts_from=["lint"]),
            _job("publish", 600),
            edges=[("lint", "test"), ("lint", "publish")],
        )
        assert _edge_findings(find_parallelization_opportunities(dag)) == []


class TestSharding:
    def test_long_test_job_is_sharded(self) -> None:
        findings = find_parallelization_opportunities(_dag(_job("test", 600)))
        assert len(findings) == 1
        finding = findings[0]
        assert finding.severity == Severity.high
        assert "5 parallel jobs" in finding.title
        assert finding.estimated_savings_secs == 480.0
        assert finding.fix_command == "strategy:\n  matrix:\n    shard: [1, 2, 3, 4, 5]"

    def test_shards_are_capped(self) -> None:
        findings = find_parallelization_opportunities(_dag(_job("test", 2000)))
        assert "8 parallel jobs" in findings[0].title

    def test_short_test_job(self) -> None:
        assert find_parallelization_opportunities(_dag(_job("test", 200))) == []

    def test_matrix_job_is_already_split(self) -> None:
        job = _job("test", 900, matrix=MatrixStrategy(variables={"py": ["3.11", "3.12"]}, total_combinations=2))
        assert find_parallelization_opportunities(_dag(job)) == []

    def test_only_test_jobs(self) -> None:
        assert find_parallelization_opportunities(_dag(_job("package", 900))) == []
