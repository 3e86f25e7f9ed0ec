"""
Internal endpoints for scheduled/cron operations.

Protected by X-Internal-Secret header.
Call from an external cron when the worker is not running the sweeps.
"""

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from tote_engine.core.deps import get_db, verify_internal_secret
from tote_engine.services import claim_service, waitlist_service


router = APIRouter(
    prefix="/internal/scheduled",
    tags=["internal"],
    dependencies=[Depends(verify_internal_secret)],
)


class SweepResponse(BaseModel):
    expired: int


@router.post("/sweep-verifications", response_model=SweepResponse)
def sweep_verifications(db: Session = Depends(get_db)):
    """Expire claims that never finished verification."""
    return SweepResponse(expired=claim_service.sweep_stale_verifications(db))


@router.post("/sweep-magic-links", response_model=SweepResponse)
def sweep_magic_links(db: Session = Depends(get_db)):
    """Expire unredeemed waitlist magic links and promote the next entries."""
    return SweepResponse(expired=waitlist_service.sweep_expired_links(db))
