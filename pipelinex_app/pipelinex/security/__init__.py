"""Security scanning for pipeline definitions."""

from pipelinex.security.injection import DANGEROUS_CONTEXTS, detect_injection
from pipelinex.security.permissions import audit_permissions
from pipelinex.security.scan import scan
from pipelinex.security.secrets import detect_secrets
from pipelinex.security.supply_chain import assess_supply_chain, classify_pinning

__all__ = [
    "DANGEROUS_CONTEXTS",
    "assess_supply_chain",
    "audit_permissions",
    "classify_pinning",
    "detect_injection",
    "detect_secrets",
    "scan",
]
