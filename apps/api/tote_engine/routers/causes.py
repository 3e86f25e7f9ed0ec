"""Cause endpoints: public availability plus admin publishing."""

from uuid import UUID

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from tote_engine.core.deps import get_db, require_admin_key
from tote_engine.core.rate_limit import limiter
from tote_engine.schemas.cause import CauseCreate, CauseRead, CauseUpdate
from tote_engine.services import cause_service, inventory_service


router = APIRouter(prefix="/causes", tags=["causes"])


@router.get("", response_model=list[CauseRead])
def list_causes(online_only: bool = True, db: Session = Depends(get_db)):
    """List causes with their current tote counts."""
    return cause_service.list_causes(db, online_only=online_only)


@router.get("/{cause_id}", response_model=CauseRead)
@limiter.limit("120/minute")
def get_cause(request: Request, cause_id: UUID, db: Session = Depends(get_db)):
    """Availability for one cause."""
    return inventory_service.get_availability(db, cause_id)


@router.post("", response_model=CauseRead, status_code=201, dependencies=[Depends(require_admin_key)])
def create_cause(body: CauseCreate, db: Session = Depends(get_db)):
    return cause_service.create_cause(
        db, title=body.title, description=body.description, is_online=body.is_online
    )


@router.patch("/{cause_id}", response_model=CauseRead, dependencies=[Depends(require_admin_key)])
def update_cause(cause_id: UUID, body: CauseUpdate, db: Session = Depends(get_db)):
    return cause_service.update_cause(
        db,
        cause_id,
        title=body.title,
        description=body.description,
        is_online=body.is_online,
    )
