"""Run every security check against a DAG."""

from __future__ import annotations

import logging

from pipelinex.analyzer.models import Finding
from pipelinex.graph.dag import PipelineDag
from pipelinex.security.injection import detect_injection
from pipelinex.security.permissions import audit_permissions
from pipelinex.security.secrets import detect_secrets
from pipelinex.security.supply_chain import assess_supply_chain

logger = logging.getLogger(__name__)


def scan(dag: PipelineDag) -> list[Finding]:
    """Secrets, token permissions, script injection, then action pinning."""
    findings = (
        detect_secrets(dag)
        + audit_permissions(dag)
        + detect_injection(dag)
        + assess_supply_chain(dag)
    )
    logger.info("Security scan of '%s' found %d issue(s)", dag.name, len(findings))
    return findings
