"""Locate CI configuration files and work out which provider wrote them."""

from __future__ import annotations

from pathlib import Path

GITHUB = "github-actions"
GITLAB = "gitlab-ci"
CIRCLECI = "circleci"
BUILDKITE = "buildkite"


def detect_provider(path: str | Path, content: str = "") -> str | None:
    """Guess the provider from the file path, then from the content."""
    p = Path(path)
    posix = p.as_posix().lower()
    name = p.name.lower()

    if "/.github/workflows/" in f"/{posix}" and name.endswith((".yml", ".yaml")):
        return GITHUB
    if name.startswith(".gitlab-ci") or name == "gitlab-ci.yml":
        return GITLAB
    if "/.circleci/" in f"/{posix}":
        return CIRCLECI
    if "/.buildkite/" in f"/{posix}" or name in ("buildkite.yml", "buildkite.yaml"):
        return BUILDKITE

    if not content:
        return None
    if "runs-on:" in content and "jobs:" in content:
        return GITHUB
    if "workflows:" in content and "jobs:" in content and "version:" in content:
        return CIRCLECI
    if "stages:" in content or "script:" in content:
        return GITLAB
    if content.lstrip().startswith("steps:") or "\nsteps:" in content:
        return BUILDKITE
    return None


def discover_pipeline_files(root: str | Path) -> list[Path]:
    """All CI config files under a repository root, in a stable order."""
    base = Path(root)
    found: list[Path] = []

    workflows = base / ".github" / "workflows"
    if workflows.is_dir():
        found.extend(sorted(p for p in workflows.iterdir() if p.suffix in (".yml", ".yaml")))

    for candidate in (
        base / ".gitlab-ci.yml",
        base / ".circleci" / "config.yml",
        base / ".buildkite" / "pipeline.yml",
        base / ".buildkite" / "pipeline.yaml",
        base / "buildkite.yml",
    ):
        if candidate.is_file():
            found.append(candidate)
    return found
