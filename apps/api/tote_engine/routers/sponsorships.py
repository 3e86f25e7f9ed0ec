"""Sponsorship endpoints: public submission and admin review."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from tote_engine.core.deps import get_db, require_admin_key
from tote_engine.core.rate_limit import limiter
from tote_engine.db.enums import SponsorshipStatus
from tote_engine.schemas.sponsorship import (
    LogoReview,
    SponsorshipRead,
    SponsorshipReject,
    SponsorshipSubmit,
)
from tote_engine.services import sponsorship_service


router = APIRouter(prefix="/sponsorships", tags=["sponsorships"])


@router.post("", response_model=SponsorshipRead, status_code=201)
@limiter.limit("10/minute")
def submit_sponsorship(request: Request, body: SponsorshipSubmit, db: Session = Depends(get_db)):
    """Offer to fund totes for a cause. Takes effect once approved."""
    try:
        return sponsorship_service.submit_sponsorship(
            db,
            cause_id=body.cause_id,
            organization_name=body.organization_name,
            contact_name=body.contact_name,
            email=body.email,
            tote_quantity=body.tote_quantity,
            phone=body.phone,
            logo_url=body.logo_url,
            message=body.message,
        )
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))


# =============================================================================
# Admin review
# =============================================================================


@router.get("", response_model=list[SponsorshipRead], dependencies=[Depends(require_admin_key)])
def list_sponsorships(
    status: SponsorshipStatus | None = None,
    cause_id: UUID | None = None,
    db: Session = Depends(get_db),
):
    return sponsorship_service.list_sponsorships(db, status=status, cause_id=cause_id)


@router.get("/{sponsorship_id}", response_model=SponsorshipRead, dependencies=[Depends(require_admin_key)])
def get_sponsorship(sponsorship_id: UUID, db: Session = Depends(get_db)):
    return sponsorship_service.get_sponsorship(db, sponsorship_id)


@router.post("/{sponsorship_id}/approve", response_model=SponsorshipRead, dependencies=[Depends(require_admin_key)])
def approve_sponsorship(sponsorship_id: UUID, db: Session = Depends(get_db)):
    """Approve: totes are added to the cause and the waitlist is promoted."""
    return sponsorship_service.approve(db, sponsorship_id)


@router.post("/{sponsorship_id}/reject", response_model=SponsorshipRead, dependencies=[Depends(require_admin_key)])
def reject_sponsorship(sponsorship_id: UUID, body: SponsorshipReject, db: Session = Depends(get_db)):
    return sponsorship_service.reject(db, sponsorship_id, body.reason)


@router.post("/{sponsorship_id}/end", response_model=SponsorshipRead, dependencies=[Depends(require_admin_key)])
def end_sponsorship(sponsorship_id: UUID, db: Session = Depends(get_db)):
    """End the campaign; unclaimed totes are withdrawn, claims stand."""
    return sponsorship_service.end_campaign(db, sponsorship_id)


@router.post("/{sponsorship_id}/logo", response_model=SponsorshipRead, dependencies=[Depends(require_admin_key)])
def review_logo(sponsorship_id: UUID, body: LogoReview, db: Session = Depends(get_db)):
    return sponsorship_service.review_logo(db, sponsorship_id, body.approved, body.reason)
