"""Tests for the GitLab CI parser."""

from __future__ import annotations

import pytest

from pipelinex.analyzer.critical_path import find_critical_path
from pipelinex.graph.dag import CyclicDagError
from pipelinex.parser import PipelineParseError
from pipelinex.parser.gitlab import parse


class TestParseGitLab:
    def test_jobs_skip_reserved_and_hidden(self, gitlab_config: str) -> None:
        dag = parse(gitlab_config, ".gitlab-ci.yml")
        assert dag.name == ".gitlab-ci.yml"
        assert dag.provider == "gitlab-ci"
        assert dag.job_ids() == ["build", "unit", "lint", "deploy"]
        assert dag.env == {"PIP_CACHE_DIR": ".pip-cache"}
        assert [t.event for t in dag.triggers] == ["push"]

    def test_default_name(self, gitlab_config: str) -> None:
        assert parse(gitlab_config).name == "GitLab CI"

    def test_stage_ordering_and_needs(self, gitlab_config: str) -> None:
        dag = parse(gitlab_config)
        assert [j.id for j in dag.predecessors("unit")] == ["build"]
        assert [j.id for j in dag.predecessors("lint")] == ["build"]
        # `needs` replaces the implicit dependency on the whole test stage
        assert [j.id for j in dag.predecessors("deploy")] == ["build"]
        assert dag.max_parallelism == 3

    def test_global_defaults(self, gitlab_config: str) -> None:
        dag = parse(gitlab_config)
        build = dag.get_job("build")
        assert build is not None
        assert build.runs_on == "python:3.12"
        assert [s.run for s in build.steps] == ["pip install -r requirements.txt", "python -m build"]
        assert build.artifact_paths == ["dist/"]

        lint = dag.get_job("lint")
        assert lint is not None
        assert lint.runs_on == "python:3.12-slim"
        assert lint.caches[0].path == ".pip-cache"
        assert lint.caches[0].key_pattern == "requirements.txt"

    def test_parallel_and_rules(self, gitlab_config: str) -> None:
        dag = parse(gitlab_config)
        unit = dag.get_job("unit")
        assert unit is not None and unit.matrix is not None
        assert unit.matrix.total_combinations == 3

        deploy = dag.get_job("deploy")
        assert deploy is not None
        assert deploy.condition == '$CI_COMMIT_BRANCH == "main"'
        assert deploy.consumes_artifacts_from == ["build"]

    def test_critical_path(self, gitlab_config: str) -> None:
        path, duration = find_critical_path(parse(gitlab_config))
        assert [j.id for j in path] == ["build", "unit"]
        assert duration == 150 + 420

    def test_parallel_matrix(self) -> None:
        content = (
            "test:\n  script: [make test]\n  parallel:\n    matrix:\n"
            "      - PY: ['3.11', '3.12']\n        DB: [pg, mysql]\n"
            "      - PY: ['3.13']\n"
        )
        job = parse(content).get_job("test")
        assert job is not None and job.matrix is not None
        assert job.matrix.total_combinations == 5

    def test_unknown_need_is_ignored(self) -> None:
        dag = parse("a:\n  script: [make]\n  needs: [ghost]\n")
        assert dag.job_ids() == ["a"]
        assert dag.predecessors("a") == []

    def test_cycle(self) -> None:
        content = "a:\n  script: [x]\n  needs: [b]\nb:\n  script: [y]\n  needs: [a]\n"
        with pytest.raises(CyclicDagError):
            parse(content)

    def test_not_a_mapping(self) -> None:
        with pytest.raises(PipelineParseError):
            parse("- just\n- a list\n")
