"""Shared test fixtures and configuration."""

import os
import sys
from pathlib import Path

# Add pipelinex_app/ to Python path so `from pipelinex.xxx` imports work
sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "pipelinex_app"))

import pytest

os.environ["PIPELINEX_DEV_MODE"] = "true"
os.environ.setdefault("PIPELINEX_OPTIONS_PATH", str(Path(__file__).parent / "fixtures" / "missing.json"))

FIXTURES_DIR = Path(__file__).parent / "fixtures"


@pytest.fixture
def fixtures_dir() -> Path:
    return FIXTURES_DIR


@pytest.fixture
def github_workflow_path(fixtures_dir: Path) -> Path:
    return fixtures_dir / "github_ci.yml"


@pytest.fixture
def github_workflow(github_workflow_path: Path) -> str:
    return github_workflow_path.read_text()


@pytest.fixture
def gitlab_config(fixtures_dir: Path) -> str:
    return (fixtures_dir / "gitlab-ci.yml").read_text()


@pytest.fixture
def circleci_config(fixtures_dir: Path) -> str:
    return (fixtures_dir / "circleci.yml").read_text()


@pytest.fixture
def buildkite_pipeline(fixtures_dir: Path) -> str:
    return (fixtures_dir / "buildkite.yml").read_text()
