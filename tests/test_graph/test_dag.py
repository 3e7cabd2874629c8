"""Tests for the pipeline DAG."""

from __future__ import annotations

import pytest

from pipelinex.graph.dag import CyclicDagError, DagError, PipelineDag
from pipelinex.graph.models import JobNode, StepInfo


def _job(job_id: str, *durations: float | None) -> JobNode:
    return JobNode(
        id=job_id,
        steps=[StepInfo(name=f"s{i}", run="echo", estimated_duration_secs=d)
               for i, d in enumerate(durations)],
    )


def _dag(*jobs: JobNode, edges: list[tuple[str, str]] | None = None) -> PipelineDag:
    dag = PipelineDag("ci", "ci.yml")
    for job in jobs:
        dag.add_job(job)
    for dep, dependent in edges or []:
        dag.add_dependency(dep, dependent)
    return dag


class TestJobNode:
    def test_name_defaults_to_id(self) -> None:
        assert JobNode(id="build").name == "build"

    def test_duration_sums_known_steps(self) -> None:
        assert _job("a", 10, 20.5).duration_secs() == 30.5

    def test_missing_durations_use_default(self) -> None:
        job = _job("a", 10, None, None)
        assert job.duration_secs() == 10
        assert job.duration_secs(default_step_secs=5) == 20

    def test_has_timing_data(self) -> None:
        assert _job("a", None, 3).has_timing_data is True
        assert _job("a", None).has_timing_data is False
        assert _job("a").has_timing_data is False

    def test_negative_duration_rejected(self) -> None:
        with pytest.raises(ValueError):
            StepInfo(estimated_duration_secs=-1)


class TestConstruction:
    def test_duplicate_job_rejected(self) -> None:
        dag = _dag(_job("a"))
        with pytest.raises(DagError, match="Duplicate"):
            dag.add_job(_job("a"))

    def test_unknown_dependency_rejected(self) -> None:
        dag = _dag(_job("a"))
        with pytest.raises(DagError, match="Unknown job 'missing'"):
            dag.add_dependency("missing", "a")

    def test_self_dependency_rejected(self) -> None:
        dag = _dag(_job("a"))
        with pytest.raises(DagError):
            dag.add_dependency("a", "a")

    def test_counts(self) -> None:
        dag = _dag(_job("a", 1, 2), _job("b", 3))
        assert dag.job_count == 2
        assert len(dag) == 2
        assert dag.step_count == 3
        assert "a" in dag and "zzz" not in dag

    def test_jobs_keep_declaration_order(self) -> None:
        dag = _dag(_job("zeta"), _job("alpha"), _job("mid"))
        assert dag.job_ids() == ["zeta", "alpha", "mid"]
        assert [j.id for j in dag] == ["zeta", "alpha", "mid"]


class TestQueries:
    def test_predecessors_and_successors(self) -> None:
        dag = _dag(
            _job("a"), _job("b"), _job("c"),
            edges=[("b", "c"), ("a", "c")],
        )
        assert [j.id for j in dag.predecessors("c")] == ["a", "b"]
        assert [j.id for j in dag.successors("a")] == ["c"]
        assert dag.has_dependency("a", "c")
        assert not dag.has_dependency("c", "a")

    def test_roots_and_leaves(self) -> None:
        dag = _dag(_job("a"), _job("b"), _job("c"), edges=[("a", "b")])
        assert [j.id for j in dag.root_jobs()] == ["a", "c"]
        assert [j.id for j in dag.leaf_jobs()] == ["b", "c"]

    def test_edges_are_sorted_pairs(self) -> None:
        dag = _dag(_job("a"), _job("b"), _job("c"), edges=[("b", "c"), ("a", "b")])
        assert [(u.id, v.id) for u, v in dag.edges()] == [("a", "b"), ("b", "c")]


class TestOrdering:
    def test_topological_order_prefers_declaration_order(self) -> None:
        dag = _dag(_job("x"), _job("y"), _job("z"), edges=[("z", "x")])
        assert [j.id for j in dag.topological_order()] == ["y", "z", "x"]

    def test_cycle_detected(self) -> None:
        dag = _dag(_job("a"), _job("b"), edges=[("a", "b"), ("b", "a")])
        with pytest.raises(CyclicDagError) as exc:
            dag.topological_order()
        assert set(exc.value.job_ids) == {"a", "b"}

    def test_validate_raises_on_cycle(self) -> None:
        dag = _dag(_job("a"), _job("b"), _job("c"), edges=[("a", "b"), ("b", "c"), ("c", "a")])
        with pytest.raises(CyclicDagError):
            dag.validate()

    def test_validate_passes_on_dag(self) -> None:
        _dag(_job("a"), _job("b"), edges=[("a", "b")]).validate()


class TestParallelism:
    def test_empty_dag(self) -> None:
        dag = PipelineDag("empty")
        assert dag.max_parallelism == 0
        assert dag.depth_levels() == []

    def test_independent_jobs(self) -> None:
        dag = _dag(_job("a"), _job("b"), _job("c"))
        assert dag.max_parallelism == 3

    def test_diamond(self) -> None:
        dag = _dag(
            _job("a"), _job("b"), _job("c"), _job("d"),
            edges=[("a", "b"), ("a", "c"), ("b", "d"), ("c", "d")],
        )
        levels = dag.depth_levels()
        assert [[j.id for j in level] for level in levels] == [["a"], ["b", "c"], ["d"]]
        assert dag.max_parallelism == 2

    def test_depth_uses_longest_distance(self) -> None:
        dag = _dag(
            _job("a"), _job("b"), _job("c"),
            edges=[("a", "b"), ("b", "c"), ("a", "c")],
        )
        assert [[j.id for j in level] for level in dag.depth_levels()] == [["a"], ["b"], ["c"]]
        assert dag.max_parallelism == 1


class TestSerialisation:
    def test_to_dict(self) -> None:
        dag = _dag(_job("a", 5), _job("b"), edges=[("a", "b")])
        dag.concurrency = "ci-${{ github.ref }}"
        data = dag.to_dict()
        assert data["name"] == "ci"
        assert data["provider"] == "github-actions"
        assert data["edges"] == [["a", "b"]]
        assert data["concurrency"] == "ci-${{ github.ref }}"
        assert [j["id"] for j in data["jobs"]] == ["a", "b"]
