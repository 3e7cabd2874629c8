"""Signature verification API endpoint."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from pipelinex.signing import SignedReport, SigningError, verify_report

router = APIRouter(prefix="/api", tags=["verify"])


class VerifyRequest(BaseModel):
    signed: SignedReport
    public_key: str


class VerifyResponse(BaseModel):
    valid: bool


@router.post("/verify", response_model=VerifyResponse)
async def verify_signed_report(body: VerifyRequest) -> VerifyResponse:
    try:
        valid = verify_report(body.signed, body.public_key)
    except SigningError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return VerifyResponse(valid=valid)
