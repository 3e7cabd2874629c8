"""Tests for the command-line interface."""

from __future__ import annotations

import json
import shutil
from pathlib import Path

import click
import pytest
from click.testing import CliRunner

from pipelinex.analyzer.health_score import compute_health_score
from pipelinex.analyzer.models import AnalysisReport, Finding, FindingCategory, Severity
from pipelinex.cli import cli, render_report
from pipelinex.signing import ALGORITHM


@pytest.fixture
def runner(monkeypatch: pytest.MonkeyPatch) -> CliRunner:
    monkeypatch.delenv("PIPELINEX_LLM_API_URL", raising=False)
    return CliRunner()


@pytest.fixture
def repo(tmp_path: Path, fixtures_dir: Path) -> Path:
    """A checkout with one GitHub workflow and one GitLab config."""
    workflows = tmp_path / ".github" / "workflows"
    workflows.mkdir(parents=True)
    shutil.copy(fixtures_dir / "github_ci.yml", workflows / "ci.yml")
    shutil.copy(fixtures_dir / "gitlab-ci.yml", tmp_path / ".gitlab-ci.yml")
    return tmp_path


class TestAnalyze:
    def test_text_output(self, runner: CliRunner, github_workflow_path: Path) -> None:
        result = runner.invoke(cli, ["analyze", str(github_workflow_path)])
        assert result.exit_code == 0, result.output
        assert "Pipeline: CI (github-actions" in result.output
        assert "Critical path (" in result.output
        assert "lint -> test -> build -> deploy" in result.output

    def test_json_output(self, runner: CliRunner, github_workflow_path: Path) -> None:
        result = runner.invoke(cli, ["analyze", "--format", "json", str(github_workflow_path)])
        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["pipeline_name"] == "CI"
        assert data["job_count"] == 4
        assert data["critical_path"] == ["lint", "test", "build", "deploy"]

    def test_directory_expands_to_every_config(self, runner: CliRunner, repo: Path) -> None:
        result = runner.invoke(cli, ["analyze", "--format", "json", str(repo)])
        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert isinstance(data, list)
        assert sorted(r["provider"] for r in data) == ["github-actions", "gitlab-ci"]

    def test_redact(self, runner: CliRunner, repo: Path) -> None:
        path = repo / ".github" / "workflows" / "ci.yml"
        result = runner.invoke(cli, ["analyze", "--format", "json", "--redact", str(path)])
        assert result.exit_code == 0, result.output
        assert json.loads(result.output)["source_file"] == ".github/workflows/ci.yml"

    def test_empty_directory(self, runner: CliRunner, tmp_path: Path) -> None:
        result = runner.invoke(cli, ["analyze", str(tmp_path)])
        assert result.exit_code == 1
        assert "No CI configuration files found" in result.output

    def test_cycle_is_reported(self, runner: CliRunner, tmp_path: Path) -> None:
        path = tmp_path / "cycle.yml"
        path.write_text(
            "on: push\njobs:\n"
            "  a:\n    runs-on: ubuntu-latest\n    needs: b\n    steps: []\n"
            "  b:\n    runs-on: ubuntu-latest\n    needs: a\n    steps: []\n"
        )
        result = runner.invoke(cli, ["analyze", str(path)])
        assert result.exit_code == 1
        assert "cycle.yml" in result.output


class TestRenderReport:
    def _report(self) -> AnalysisReport:
        return AnalysisReport(
            pipeline_name="CI",
            provider="github-actions",
            findings=[
                Finding(
                    severity=Severity.high,
                    category=FindingCategory.missing_cache,
                    title="No cache",
                    description="d",
                ),
                Finding(
                    severity=Severity.low,
                    category=FindingCategory.shallow_clone,
                    title="Full clone",
                    description="d",
                ),
            ],
            health_score=compute_health_score(AnalysisReport(pipeline_name="CI")),
        )

    def test_severity_tag_names_the_level_once(self) -> None:
        text = click.unstyle(render_report(self._report()))
        assert "1. ! HIGH [Missing Dependency Cache] No cache" in text
        assert "2. - LOW [Full Git Clone] Full clone" in text
        assert "HIGH HIGH" not in text
        assert "LOW LOW" not in text

    def test_symbols_are_distinct(self) -> None:
        symbols = [sev.symbol for sev in Severity]
        assert len(set(symbols)) == len(symbols)
        assert all(sym != sev.value.upper() for sym, sev in zip(symbols, Severity))

    def test_health_line(self) -> None:
        text = click.unstyle(render_report(self._report()))
        health = next(line for line in text.splitlines() if line.startswith("Health: "))
        assert health.endswith("/100 (good)")


class TestLint:
    def test_infos_exit_one(self, runner: CliRunner, github_workflow_path: Path) -> None:
        result = runner.invoke(cli, ["lint", str(github_workflow_path)])
        assert result.exit_code == 1
        assert "0 error(s), 0 warning(s), 5 info" in result.output

    def test_clean_config_exits_zero(self, runner: CliRunner, repo: Path) -> None:
        result = runner.invoke(cli, ["lint", str(repo / ".gitlab-ci.yml")])
        assert result.exit_code == 0, result.output

    def test_syntax_error_exits_two(self, runner: CliRunner, repo: Path) -> None:
        path = repo / ".github" / "workflows" / "broken.yml"
        path.write_text("jobs: [\n")
        result = runner.invoke(cli, ["lint", "--format", "json", str(path)])
        assert result.exit_code == 2
        data = json.loads(result.output)
        assert [f["rule_id"] for f in data["findings"]] == ["PLX-LINT-YAML"]


class TestCost:
    def test_cost_report(self, runner: CliRunner, github_workflow_path: Path) -> None:
        result = runner.invoke(cli, ["cost", "--runs-per-month", "100", str(github_workflow_path)])
        assert result.exit_code == 0, result.output
        assert "Runner: ubuntu-latest" in result.output
        assert "Monthly compute cost:" in result.output
        assert "Waste ratio:" in result.output

    def test_runner_override(self, runner: CliRunner, github_workflow_path: Path) -> None:
        result = runner.invoke(cli, ["cost", "--runner", "macos-14", str(github_workflow_path)])
        assert result.exit_code == 0, result.output
        assert "Runner: macos-14" in result.output


class TestRightSize:
    def test_text(self, runner: CliRunner, github_workflow_path: Path) -> None:
        result = runner.invoke(cli, ["right-size", str(github_workflow_path)])
        assert result.exit_code == 0, result.output
        assert "Runner sizing: CI" in result.output

    def test_json(self, runner: CliRunner, github_workflow_path: Path) -> None:
        result = runner.invoke(cli, ["right-size", "--format", "json", str(github_workflow_path)])
        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["total_jobs"] == 4
        assert [j["job_id"] for j in data["jobs"]] == ["lint", "test", "build", "deploy"]


class TestSigning:
    def test_keygen_to_stdout(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["keygen"])
        assert result.exit_code == 0
        assert "Private key: " in result.output
        assert "Public key:  " in result.output

    def test_sign_and_verify(
        self, runner: CliRunner, tmp_path: Path, github_workflow_path: Path,
    ) -> None:
        private_file = tmp_path / "pipelinex.key"
        public_file = tmp_path / "pipelinex.pub"
        signed_file = tmp_path / "report.signed.json"

        result = runner.invoke(cli, [
            "keygen", "--private-key-file", str(private_file),
            "--public-key-file", str(public_file),
        ])
        assert result.exit_code == 0, result.output
        assert private_file.stat().st_mode & 0o777 == 0o600

        result = runner.invoke(cli, [
            "sign", str(github_workflow_path), "--key", str(private_file),
            "-o", str(signed_file),
        ])
        assert result.exit_code == 0, result.output
        envelope = json.loads(signed_file.read_text())
        assert envelope["algorithm"] == ALGORITHM
        assert json.loads(envelope["payload"])["pipeline_name"] == "CI"

        result = runner.invoke(cli, ["verify", str(signed_file), "--public-key", str(public_file)])
        assert result.exit_code == 0, result.output
        assert "Signature valid" in result.output

        envelope["payload"] = envelope["payload"].replace('"CI"', '"CD"', 1)
        signed_file.write_text(json.dumps(envelope))
        result = runner.invoke(cli, ["verify", str(signed_file), "--public-key", str(public_file)])
        assert result.exit_code == 1
        assert "Signature INVALID" in result.output

    def test_sign_with_bad_key(
        self, runner: CliRunner, tmp_path: Path, github_workflow_path: Path,
    ) -> None:
        key = tmp_path / "bad.key"
        key.write_text("abcd\n")
        result = runner.invoke(cli, ["sign", str(github_workflow_path), "--key", str(key)])
        assert result.exit_code == 1
        assert "32 bytes" in result.output


class TestExplain:
    def test_template_explanations(self, runner: CliRunner, github_workflow_path: Path) -> None:
        result = runner.invoke(cli, ["explain", str(github_workflow_path)])
        assert result.exit_code == 0, result.output
        assert result.output.startswith("1. ")
        assert "   Impact: " in result.output
        assert "   Fix: " in result.output
