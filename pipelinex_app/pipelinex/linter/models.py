"""Lint data models."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field


class LintSeverity(str, Enum):
    """Severity level for lint findings."""

    error = "error"
    warning = "warning"
    info = "info"


class LintFinding(BaseModel):
    """A single lint finding."""

    severity: LintSeverity
    rule_id: str
    message: str
    suggestion: str | None = None
    location: str | None = None


class LintReport(BaseModel):
    """Aggregated result from the lint pipeline."""

    source_file: str = ""
    provider: str = ""
    findings: list[LintFinding] = Field(default_factory=list)

    def _count(self, severity: LintSeverity) -> int:
        return sum(1 for f in self.findings if f.severity == severity)

    @property
    def errors(self) -> int:
        return self._count(LintSeverity.error)

    @property
    def warnings(self) -> int:
        return self._count(LintSeverity.warning)

    @property
    def infos(self) -> int:
        return self._count(LintSeverity.info)

    def exit_code(self) -> int:
        """Process exit code: 0 when clean, 2 on any error, else 1."""
        if not self.findings:
            return 0
        if self.errors:
            return 2
        return 1
