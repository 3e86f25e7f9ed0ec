"""Admin endpoints for claims and waitlists (X-Admin-Key)."""

from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from tote_engine.core.deps import get_db, require_admin_key
from tote_engine.db.enums import ClaimStatus, WaitlistStatus
from tote_engine.schemas.claim import (
    ClaimAdminRead,
    ClaimAdvance,
    ClaimCancel,
    ClaimListResponse,
    ClaimStatsResponse,
)
from tote_engine.schemas.waitlist import WaitlistEntryRead
from tote_engine.services import claim_service, waitlist_service
from tote_engine.utils.pagination import PaginationParams, get_pagination, page_count


router = APIRouter(
    prefix="/admin",
    tags=["admin"],
    dependencies=[Depends(require_admin_key)],
)


# =============================================================================
# Claims
# =============================================================================


@router.get("/claims", response_model=ClaimListResponse)
def list_claims(
    cause_id: UUID | None = None,
    status: ClaimStatus | None = None,
    email: str | None = None,
    pagination: PaginationParams = Depends(get_pagination),
    db: Session = Depends(get_db),
):
    """Recent claims, newest first."""
    items, total = claim_service.list_claims(
        db,
        cause_id=cause_id,
        status=status,
        email=email,
        limit=pagination.per_page,
        offset=pagination.offset,
    )
    return ClaimListResponse(
        items=[ClaimAdminRead.model_validate(c) for c in items],
        total=total,
        page=pagination.page,
        per_page=pagination.per_page,
        pages=page_count(total, pagination.per_page),
    )


@router.get("/claims/stats", response_model=ClaimStatsResponse)
def claim_stats(cause_id: UUID | None = None, db: Session = Depends(get_db)):
    return claim_service.claim_stats(db, cause_id=cause_id)


@router.post("/claims/{claim_id}/cancel", response_model=ClaimAdminRead)
def cancel_claim(claim_id: UUID, body: ClaimCancel, db: Session = Depends(get_db)):
    """Cancel a claim that has not shipped; its tote goes back to the pool."""
    return claim_service.cancel(db, claim_id, reason=body.reason)


@router.post("/claims/{claim_id}/advance", response_model=ClaimAdminRead)
def advance_claim(claim_id: UUID, body: ClaimAdvance, db: Session = Depends(get_db)):
    """Record shipping or delivery."""
    return claim_service.advance_fulfilment(
        db,
        claim_id,
        body.status,
        tracking_number=body.tracking_number,
        carrier=body.carrier,
    )


# =============================================================================
# Waitlist
# =============================================================================


@router.get("/waitlist/{cause_id}", response_model=list[WaitlistEntryRead])
def list_waitlist(cause_id: UUID, status: WaitlistStatus | None = None, db: Session = Depends(get_db)):
    return waitlist_service.list_for_cause(db, cause_id, status=status)


@router.post("/waitlist/{entry_id}/resend-link", response_model=WaitlistEntryRead)
def resend_magic_link(entry_id: UUID, db: Session = Depends(get_db)):
    return waitlist_service.resend_magic_link(db, entry_id)
