"""Flag third-party actions that are not pinned to a commit SHA."""

from __future__ import annotations

import re
from enum import Enum

from pipelinex.analyzer.models import Finding, FindingCategory, Severity
from pipelinex.graph.dag import PipelineDag
from pipelinex.security.permissions import is_third_party

_SHA_RE = re.compile(r"@[0-9a-f]{40}$")
_TAG_RE = re.compile(r"@v?\d+(\.\d+)*$")
_BRANCH_RE = re.compile(r"@(main|master|develop|dev|release.*)$")

# Actions with a published compromise; any use is flagged.
KNOWN_RISKY_ACTIONS = {
    "tj-actions/changed-files": "Previously compromised (CVE-2023-51664).",
    "reviewdog/action-setup": "Previously targeted in a supply chain attack.",
}


class Pinning(str, Enum):
    sha = "SHA-pinned"
    tag = "tag-pinned"
    branch = "branch-pinned"
    unpinned = "unpinned"
    unknown = "pinned to an unknown ref"

    @property
    def severity(self) -> Severity:
        if self is Pinning.sha:
            return Severity.info
        if self is Pinning.tag:
            return Severity.low
        return Severity.high


def classify_pinning(uses: str) -> Pinning:
    if _SHA_RE.search(uses):
        return Pinning.sha
    if _TAG_RE.search(uses):
        return Pinning.tag
    if _BRANCH_RE.search(uses):
        return Pinning.branch
    if "@" not in uses:
        return Pinning.unpinned
    return Pinning.unknown


def action_name(uses: str) -> str:
    return uses.split("@", 1)[0]


def assess_supply_chain(dag: PipelineDag) -> list[Finding]:
    """One finding per third-party `uses` not pinned to a full SHA, plus known-bad actions."""
    if dag.provider != "github-actions":
        return []

    findings: list[Finding] = []
    for job in dag.jobs():
        for step in job.steps:
            if not step.uses:
                continue
            uses = step.uses
            name = action_name(uses)

            for risky, warning in KNOWN_RISKY_ACTIONS.items():
                if name.lower() == risky:
                    findings.append(
                        Finding(
                            severity=Severity.critical,
                            category=FindingCategory.security,
                            title=f"Known supply chain risk: {risky}",
                            description=(
                                f"Job '{job.id}' uses '{uses}'. {warning} [PLX-SEC-012]"
                            ),
                            affected_jobs=[job.id],
                            recommendation=(
                                f"Pin '{risky}' to a verified full commit SHA or replace it."
                            ),
                            confidence=0.95,
                        )
                    )

            pinning = classify_pinning(uses)
            if not is_third_party(uses) or pinning is Pinning.sha:
                continue
            findings.append(
                Finding(
                    severity=pinning.severity,
                    category=FindingCategory.security,
                    title=f"Third-party action {name} is {pinning.value}",
                    description=(
                        f"Job '{job.id}' uses '{uses}', which is {pinning.value} "
                        "[PLX-SEC-011]. Tags and branches can be moved by the action's "
                        "maintainer to point at different code."
                    ),
                    affected_jobs=[job.id],
                    recommendation=(
                        f"Pin to a full commit SHA: `{name}@<sha>  # <tag>`."
                    ),
                    confidence=0.9,
                )
            )
    return findings
