"""Lint checks for CI configuration files."""

from pipelinex.linter.models import LintFinding, LintReport, LintSeverity
from pipelinex.linter.pipeline import lint

__all__ = [
    "LintFinding",
    "LintReport",
    "LintSeverity",
    "lint",
]
