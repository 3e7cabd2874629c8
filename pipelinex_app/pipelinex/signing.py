"""Ed25519 signing of serialised analysis reports."""

from __future__ import annotations

import json

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)
from pydantic import BaseModel

from pipelinex.analyzer.models import AnalysisReport

ALGORITHM = "Ed25519"
KEY_BYTES = 32
SIGNATURE_BYTES = 64


class SigningError(ValueError):
    """Malformed key or signature material."""


class SignedReport(BaseModel):
    payload: str
    signature: str
    public_key: str
    algorithm: str = ALGORITHM


def _decode(value: str, what: str, length: int) -> bytes:
    try:
        raw = bytes.fromhex(value.strip())
    except ValueError as e:
        raise SigningError(f"Invalid {what} hex: {e}") from e
    if len(raw) != length:
        raise SigningError(f"{what.capitalize()} must be {length} bytes, got {len(raw)}")
    return raw


def _public_hex(key: Ed25519PublicKey) -> str:
    return key.public_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PublicFormat.Raw,
    ).hex()


def generate_keypair() -> tuple[str, str]:
    """Return a fresh (private_hex, public_hex) pair."""
    private_key = Ed25519PrivateKey.generate()
    private_hex = private_key.private_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PrivateFormat.Raw,
        encryption_algorithm=serialization.NoEncryption(),
    ).hex()
    return private_hex, _public_hex(private_key.public_key())


def public_key_for(private_key_hex: str) -> str:
    """Hex public key matching a hex-encoded private key."""
    private_key = Ed25519PrivateKey.from_private_bytes(
        _decode(private_key_hex, "private key", KEY_BYTES)
    )
    return _public_hex(private_key.public_key())


def canonical_payload(report: AnalysisReport) -> str:
    """Serialise a report deterministically: sorted keys, no whitespace."""
    return json.dumps(report.model_dump(mode="json"), sort_keys=True, separators=(",", ":"))


def sign_report(payload: str, private_key_hex: str) -> SignedReport:
    """Sign `payload` with a hex-encoded 32-byte private key."""
    private_key = Ed25519PrivateKey.from_private_bytes(
        _decode(private_key_hex, "private key", KEY_BYTES)
    )
    signature = private_key.sign(payload.encode("utf-8"))
    return SignedReport(
        payload=payload,
        signature=signature.hex(),
        public_key=_public_hex(private_key.public_key()),
    )


def verify_report(report: SignedReport, public_key_hex: str) -> bool:
    """Check a signed report against a hex-encoded public key.

    A signature that does not match returns False; malformed key or
    signature encodings raise SigningError.
    """
    key_bytes = _decode(public_key_hex, "public key", KEY_BYTES)
    signature = _decode(report.signature, "signature", SIGNATURE_BYTES)
    try:
        public_key = Ed25519PublicKey.from_public_bytes(key_bytes)
    except ValueError as e:
        raise SigningError(f"Invalid Ed25519 public key: {e}") from e
    try:
        public_key.verify(signature, report.payload.encode("utf-8"))
    except InvalidSignature:
        return False
    return True
