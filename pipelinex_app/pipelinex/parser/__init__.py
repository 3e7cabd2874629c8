"""CI configuration parsers producing PipelineDag instances."""

from __future__ import annotations

from pathlib import Path

from pipelinex.graph.dag import PipelineDag
from pipelinex.parser import buildkite, circleci, github, gitlab
from pipelinex.parser.common import PipelineParseError
from pipelinex.parser.discovery import detect_provider, discover_pipeline_files

PARSERS = {
    github.PROVIDER: github.parse,
    gitlab.PROVIDER: gitlab.parse,
    circleci.PROVIDER: circleci.parse,
    buildkite.PROVIDER: buildkite.parse,
}


def parse_content(
    content: str,
    source_file: str = "",
    provider: str | None = None,
) -> PipelineDag:
    """Parse config text with the named provider, or detect it."""
    provider = provider or detect_provider(source_file, content)
    if provider not in PARSERS:
        raise PipelineParseError(
            f"Cannot determine CI provider for {source_file or '<string>'}"
            if provider is None
            else f"Unsupported CI provider '{provider}'"
        )
    return PARSERS[provider](content, source_file)


def parse_file(path: str | Path, provider: str | None = None) -> PipelineDag:
    p = Path(path)
    try:
        content = p.read_text()
    except OSError as e:
        raise PipelineParseError(f"Failed to read pipeline file {p}: {e}") from e
    return parse_content(content, str(p), provider)


__all__ = [
    "PARSERS",
    "PipelineParseError",
    "detect_provider",
    "discover_pipeline_files",
    "parse_content",
    "parse_file",
]
