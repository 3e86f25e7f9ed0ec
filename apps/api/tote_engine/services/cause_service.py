"""Cause publishing and lookup."""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from tote_engine.db.models import Cause
from tote_engine.services import inventory_service, waitlist_service


def create_cause(
    db: Session,
    title: str,
    description: str | None = None,
    is_online: bool = True,
) -> Cause:
    """Publish a cause with an empty ledger; totes arrive via sponsorships."""
    cause = Cause(
        title=title.strip(),
        description=description,
        is_online=is_online,
        total_totes=0,
        claimed_totes=0,
        available_totes=0,
        reserved_totes=0,
    )
    db.add(cause)
    db.commit()
    db.refresh(cause)
    return cause


def update_cause(
    db: Session,
    cause_id: UUID,
    title: str | None = None,
    description: str | None = None,
    is_online: bool | None = None,
) -> Cause:
    """
    Edit display fields. Counters are not editable here.

    Bringing a cause back online promotes waiting entries into any totes
    that were freed while it was offline.
    """
    cause = inventory_service.get_availability(db, cause_id)
    reopened = is_online is True and not cause.is_online
    try:
        if title is not None:
            cause.title = title.strip()
        if description is not None:
            cause.description = description
        if is_online is not None:
            cause.is_online = is_online
        if reopened:
            db.flush()
            waitlist_service.try_promote(db, cause_id)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(cause)
    return cause


def list_causes(db: Session, online_only: bool = False) -> list[Cause]:
    query = select(Cause)
    if online_only:
        query = query.where(Cause.is_online.is_(True))
    return list(db.execute(query.order_by(Cause.created_at.desc())).scalars())
