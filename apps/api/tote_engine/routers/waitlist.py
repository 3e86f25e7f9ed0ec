"""Waitlist endpoints (public)."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import EmailStr
from sqlalchemy.orm import Session

from tote_engine.core.deps import get_db
from tote_engine.core.rate_limit import limiter
from tote_engine.schemas.waitlist import (
    MagicLinkValidation,
    WaitlistEntryRead,
    WaitlistJoin,
    WaitlistLeave,
    WaitlistStandingRead,
)
from tote_engine.services import waitlist_service


router = APIRouter(prefix="/waitlist", tags=["waitlist"])


@router.post("", response_model=WaitlistEntryRead, status_code=201)
@limiter.limit("20/minute")
def join_waitlist(request: Request, body: WaitlistJoin, db: Session = Depends(get_db)):
    """Join a cause's waitlist. Promoted immediately if totes are free."""
    try:
        return waitlist_service.join(
            db,
            cause_id=body.cause_id,
            email=body.email,
            full_name=body.full_name,
            phone=body.phone,
            message=body.message,
            notify_email=body.notify_email,
            notify_sms=body.notify_sms,
        )
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))


@router.get("", response_model=list[WaitlistStandingRead])
@limiter.limit("30/minute")
def my_waitlist_entries(request: Request, email: EmailStr = Query(...), db: Session = Depends(get_db)):
    """An email's waitlist entries with how many people are ahead."""
    standings = waitlist_service.list_for_email(db, email)
    return [
        WaitlistStandingRead(entry=WaitlistEntryRead.model_validate(s.entry), ahead=s.ahead)
        for s in standings
    ]


@router.get("/magic-link/{token}", response_model=MagicLinkValidation)
@limiter.limit("30/minute")
def validate_magic_link(request: Request, token: str, db: Session = Depends(get_db)):
    """Check a magic link before showing the claim form. Does not consume it."""
    entry = waitlist_service.validate_token(db, token)
    return MagicLinkValidation(
        valid=True,
        entry_id=entry.id,
        cause_id=entry.cause_id,
        email=entry.email,
        expires_at=entry.magic_link_expires_at,
    )


@router.post("/{entry_id}/leave", response_model=WaitlistEntryRead)
@limiter.limit("20/minute")
def leave_waitlist(request: Request, entry_id: UUID, body: WaitlistLeave, db: Session = Depends(get_db)):
    return waitlist_service.leave(db, entry_id, body.email)
