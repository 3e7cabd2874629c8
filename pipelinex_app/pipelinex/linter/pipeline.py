"""Lint pipeline: runs every check over the raw text and its DAG."""

from __future__ import annotations

import logging

from pipelinex.graph.dag import PipelineDag
from pipelinex.linter.deprecation import (
    check_deprecated_actions,
    check_floating_runners,
    check_gitlab_keywords,
)
from pipelinex.linter.models import LintReport
from pipelinex.linter.schema import check_github_schema, check_gitlab_schema, check_yaml_syntax
from pipelinex.linter.typo import check_typos

logger = logging.getLogger(__name__)


def lint(content: str, dag: PipelineDag) -> LintReport:
    """Lint a CI config.

    Order: 1. YAML syntax → 2. Provider schema → 3. Deprecations → 4. Typos.
    If syntax fails the schema and keyword checks are skipped, the DAG
    checks still run.
    """
    report = LintReport(source_file=dag.source_file, provider=dag.provider)

    parsed, syntax_issues = check_yaml_syntax(content)
    report.findings.extend(syntax_issues)

    if not syntax_issues:
        if dag.provider == "github-actions":
            report.findings.extend(check_github_schema(parsed))
        elif dag.provider == "gitlab-ci":
            report.findings.extend(check_gitlab_schema(parsed))
            if isinstance(parsed, dict):
                report.findings.extend(check_gitlab_keywords(parsed))

    report.findings.extend(check_deprecated_actions(dag))
    report.findings.extend(check_floating_runners(dag))
    report.findings.extend(check_typos(content, dag.provider))

    logger.info(
        "Lint %s: %d error(s), %d warning(s), %d info",
        dag.source_file or dag.name, report.errors, report.warnings, report.infos,
    )
    return report
