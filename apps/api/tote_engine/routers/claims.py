"""Claim entry endpoints (public).

Domain errors (out of stock, duplicate claim, expired code, ...) are
rendered by the AllocationError handler in main with a `next_step` hint.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import EmailStr
from sqlalchemy.orm import Session

from tote_engine.core.deps import get_db
from tote_engine.core.rate_limit import VERIFY_LIMIT, limiter
from tote_engine.schemas.claim import (
    ChallengeRead,
    ClaimCheckResponse,
    ClaimRead,
    ClaimSubmit,
    ClaimSubmitResponse,
    ClaimVerify,
)
from tote_engine.services import claim_service


router = APIRouter(prefix="/claims", tags=["claims"])


@router.post("", response_model=ClaimSubmitResponse, status_code=201)
@limiter.limit("20/minute")
def submit_claim(request: Request, body: ClaimSubmit, db: Session = Depends(get_db)):
    """
    Submit a claim through any entry channel.

    Direct claims come back in `pending-verification` with an OTP on its
    way; QR, sponsor-link and magic-link claims are verified immediately.
    """
    try:
        result = claim_service.submit(
            db,
            cause_id=body.cause_id,
            email=body.email,
            channel=body.channel,
            full_name=body.full_name,
            phone=body.phone,
            address=body.address,
            city=body.city,
            state=body.state,
            zip_code=body.zip_code,
            verification_method=body.verification_method,
            magic_link_token=body.magic_link_token,
        )
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))

    return ClaimSubmitResponse(
        claim=ClaimRead.model_validate(result.claim),
        challenge=ChallengeRead.model_validate(result.challenge),
        requires_verification=result.requires_verification,
    )


@router.get("/check", response_model=ClaimCheckResponse)
@limiter.limit("30/minute")
def check_existing_claim(
    request: Request,
    cause_id: UUID,
    email: EmailStr = Query(...),
    db: Session = Depends(get_db),
):
    """Whether this email already holds an active claim for the cause."""
    claim = claim_service.find_active_claim(db, cause_id, email)
    return ClaimCheckResponse(
        exists=claim is not None,
        claim=ClaimRead.model_validate(claim) if claim else None,
    )


@router.get("/{claim_id}", response_model=ClaimRead)
@limiter.limit("30/minute")
def get_claim(request: Request, claim_id: UUID, db: Session = Depends(get_db)):
    return claim_service.get_claim(db, claim_id)


@router.post("/{claim_id}/verify", response_model=ClaimRead)
@limiter.limit(VERIFY_LIMIT)
def verify_claim(request: Request, claim_id: UUID, body: ClaimVerify, db: Session = Depends(get_db)):
    """Confirm the OTP for a pending claim."""
    return claim_service.confirm_verification(db, claim_id, body.code)


@router.post("/{claim_id}/resend", response_model=ChallengeRead)
@limiter.limit(VERIFY_LIMIT)
def resend_code(request: Request, claim_id: UUID, db: Session = Depends(get_db)):
    """Send a new OTP; the previous code stops working."""
    return claim_service.resend_verification(db, claim_id)
