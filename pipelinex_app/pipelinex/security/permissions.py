"""Audit the GITHUB_TOKEN permissions a workflow grants."""

from __future__ import annotations

from pipelinex.analyzer.models import Finding, FindingCategory, Severity
from pipelinex.graph.dag import PipelineDag
from pipelinex.graph.models import JobNode

FIRST_PARTY_PREFIXES = ("actions/", "github/", "./", "docker://")

# write scope -> `uses` fragments that need it
_WRITE_NEEDS = {
    "contents": ("create-release", "upload-release-asset", "github-push-action", "release-please"),
    "packages": ("docker/build-push-action", "publish-packages"),
    "security-events": ("codeql-action/upload-sarif", "codeql-action/analyze"),
    "pull-requests": ("create-pull-request", "pull-request-comment", "labeler"),
}


def is_third_party(uses: str) -> bool:
    return not uses.startswith(FIRST_PARTY_PREFIXES)


def _needed_write_scopes(jobs: list[JobNode]) -> set[str]:
    needed: set[str] = set()
    for job in jobs:
        for step in job.steps:
            uses = (step.uses or "").lower()
            for scope, fragments in _WRITE_NEEDS.items():
                if any(fragment in uses for fragment in fragments):
                    needed.add(scope)
    return needed


def _suggested_block(needed: set[str]) -> str:
    lines = ["permissions:", f"  contents: {'write' if 'contents' in needed else 'read'}"]
    lines.extend(f"  {scope}: write" for scope in sorted(needed - {"contents"}))
    return "\n".join(lines)


def _over_broad(
    permissions: dict[str, str],
    scope_owner: str,
    jobs: list[JobNode],
    needed: set[str],
) -> list[Finding]:
    affected = [j.id for j in jobs]
    owner = scope_owner[:1].upper() + scope_owner[1:]
    if permissions.get("all") == "write":
        return [
            Finding(
                severity=Severity.high,
                category=FindingCategory.security,
                title=f"write-all permissions granted to {scope_owner}",
                description=(
                    f"{owner} grants the GITHUB_TOKEN write access to "
                    "every scope [PLX-SEC-008]. Any compromised step can push code, "
                    "publish packages or edit releases."
                ),
                affected_jobs=affected,
                recommendation="Replace write-all with the individual scopes the jobs need.",
                fix_command=_suggested_block(needed),
                confidence=0.9,
                auto_fixable=True,
            )
        ]

    unused = sorted(
        scope for scope, level in permissions.items()
        if level == "write" and scope in _WRITE_NEEDS and scope not in needed
    )
    if not unused:
        return []
    return [
        Finding(
            severity=Severity.low,
            category=FindingCategory.security,
            title=f"Unused write permissions for {scope_owner}: {', '.join(unused)}",
            description=(
                f"{owner} grants write access to {', '.join(unused)} "
                "but no step uses an action that needs it [PLX-SEC-009]."
            ),
            affected_jobs=affected,
            recommendation=f"Downgrade {', '.join(unused)} to read.",
            confidence=0.6,
        )
    ]


def audit_permissions(dag: PipelineDag) -> list[Finding]:
    """Flag missing, write-all and unneeded write token permissions."""
    jobs = dag.jobs()
    if dag.provider != "github-actions" or not jobs:
        return []

    needed = _needed_write_scopes(jobs)
    findings: list[Finding] = []

    if dag.permissions is None and all(j.permissions is None for j in jobs):
        findings.append(
            Finding(
                severity=Severity.medium,
                category=FindingCategory.security,
                title="Missing explicit permissions block",
                description=(
                    "The workflow does not declare `permissions`, so the GITHUB_TOKEN "
                    "gets the repository default, which may be read/write on every "
                    "scope [PLX-SEC-007]."
                ),
                affected_jobs=dag.job_ids(),
                recommendation="Declare the minimum token permissions at workflow level.",
                fix_command=_suggested_block(needed),
                confidence=0.7,
                auto_fixable=True,
            )
        )
        if any(is_third_party(s.uses) for j in jobs for s in j.steps if s.uses):
            findings.append(
                Finding(
                    severity=Severity.medium,
                    category=FindingCategory.security,
                    title="GITHUB_TOKEN exposed to third-party actions",
                    description=(
                        "Third-party actions run with the default token permissions "
                        "[PLX-SEC-010]."
                    ),
                    affected_jobs=dag.job_ids(),
                    recommendation=(
                        "Restrict token permissions and pin third-party actions to full "
                        "commit SHAs."
                    ),
                    confidence=0.65,
                )
            )
        return findings

    if dag.permissions is not None:
        findings.extend(_over_broad(dag.permissions, "the workflow", jobs, needed))
    for job in jobs:
        if job.permissions is not None:
            findings.extend(
                _over_broad(job.permissions, f"job '{job.id}'", [job], _needed_write_scopes([job]))
            )
    return findings
