"""Sponsorship lifecycle - the only source of capacity changes.

pending → approved | rejected, approved → ended. Approval grows the cause
ledger and promotes the waitlist; ending a campaign removes whatever is
still unclaimed and records the shortfall without touching existing claims.
"""

from __future__ import annotations

import logging
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from tote_engine.core.exceptions import InvalidTransitionError, SponsorshipNotFoundError
from tote_engine.core.structured_logging import mask_email
from tote_engine.db.enums import (
    LogoStatus,
    NotificationChannel,
    NotificationTemplate,
    SponsorshipStatus,
)
from tote_engine.db.models import Sponsorship
from tote_engine.services import inventory_service, notification_service, waitlist_service
from tote_engine.utils.datetime_utils import utc_now
from tote_engine.utils.normalization import normalize_email, normalize_name, normalize_phone

logger = logging.getLogger(__name__)


def get_sponsorship(db: Session, sponsorship_id: UUID) -> Sponsorship:
    sponsorship = db.get(Sponsorship, sponsorship_id, populate_existing=True)
    if not sponsorship:
        raise SponsorshipNotFoundError(f"Sponsorship {sponsorship_id} not found")
    return sponsorship


def list_sponsorships(
    db: Session,
    status: SponsorshipStatus | None = None,
    cause_id: UUID | None = None,
) -> list[Sponsorship]:
    """List sponsorships, newest first."""
    query = select(Sponsorship)
    if status:
        query = query.where(Sponsorship.status == status.value)
    if cause_id:
        query = query.where(Sponsorship.cause_id == cause_id)
    return list(db.execute(query.order_by(Sponsorship.created_at.desc())).scalars())


def submit_sponsorship(
    db: Session,
    cause_id: UUID,
    organization_name: str,
    contact_name: str,
    email: str,
    tote_quantity: int,
    phone: str | None = None,
    logo_url: str | None = None,
    message: str | None = None,
) -> Sponsorship:
    """Record a sponsorship offer awaiting admin review."""
    if tote_quantity < 1:
        raise ValueError("tote_quantity must be at least 1")
    inventory_service.get_availability(db, cause_id)

    sponsorship = Sponsorship(
        cause_id=cause_id,
        organization_name=organization_name.strip(),
        contact_name=normalize_name(contact_name) or contact_name,
        email=normalize_email(email),
        phone=normalize_phone(phone),
        tote_quantity=tote_quantity,
        logo_url=logo_url,
        message=message,
        status=SponsorshipStatus.PENDING.value,
        logo_status=LogoStatus.PENDING.value,
    )
    db.add(sponsorship)
    db.commit()
    db.refresh(sponsorship)
    logger.info("Sponsorship %s submitted for cause %s (%s totes)", sponsorship.id, cause_id, tote_quantity)
    return sponsorship


def _transition(
    db: Session,
    sponsorship: Sponsorship,
    from_status: SponsorshipStatus,
    to_status: SponsorshipStatus,
    **values,
) -> None:
    """Guarded status change; raises if another request moved it first."""
    result = db.execute(
        update(Sponsorship)
        .where(Sponsorship.id == sponsorship.id, Sponsorship.status == from_status.value)
        .values(status=to_status.value, **values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        db.refresh(sponsorship)
        raise InvalidTransitionError(
            f"Sponsorship is {sponsorship.status}; cannot move to {to_status.value}"
        )


def _notify_sponsor(db: Session, sponsorship: Sponsorship, template: NotificationTemplate, **extra) -> None:
    payload = {
        "sponsorship_id": str(sponsorship.id),
        "organization_name": sponsorship.organization_name,
        "tote_quantity": sponsorship.tote_quantity,
        **extra,
    }
    notification_service.enqueue_notification(
        db, sponsorship.email, NotificationChannel.EMAIL, template, payload
    )


def approve(db: Session, sponsorship_id: UUID) -> Sponsorship:
    """Approve a pending sponsorship, add its totes and promote the waitlist."""
    sponsorship = get_sponsorship(db, sponsorship_id)
    try:
        _transition(
            db, sponsorship, SponsorshipStatus.PENDING, SponsorshipStatus.APPROVED, approved_at=utc_now()
        )
        inventory_service.grow(db, sponsorship.cause_id, sponsorship.tote_quantity)
        promoted = waitlist_service.try_promote(db, sponsorship.cause_id)
        _notify_sponsor(db, sponsorship, NotificationTemplate.SPONSORSHIP_APPROVED)
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(sponsorship)
    logger.info(
        "Sponsorship %s approved: +%s totes, %s waitlist entr(ies) promoted",
        sponsorship.id,
        sponsorship.tote_quantity,
        len(promoted),
    )
    return sponsorship


def reject(db: Session, sponsorship_id: UUID, reason: str) -> Sponsorship:
    """Reject a pending sponsorship. The cause ledger is untouched."""
    sponsorship = get_sponsorship(db, sponsorship_id)
    try:
        _transition(
            db,
            sponsorship,
            SponsorshipStatus.PENDING,
            SponsorshipStatus.REJECTED,
            rejected_at=utc_now(),
            rejection_reason=reason,
        )
        _notify_sponsor(db, sponsorship, NotificationTemplate.SPONSORSHIP_REJECTED, reason=reason)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(sponsorship)
    logger.info("Sponsorship %s rejected (sponsor %s)", sponsorship.id, mask_email(sponsorship.email))
    return sponsorship


def end_campaign(db: Session, sponsorship_id: UUID) -> Sponsorship:
    """
    End an approved sponsorship.

    Only unclaimed, unreserved totes are removed. If fewer than
    tote_quantity are free the difference is recorded as end_shortfall;
    claims already made against the sponsorship stand.
    """
    sponsorship = get_sponsorship(db, sponsorship_id)
    try:
        _transition(
            db, sponsorship, SponsorshipStatus.APPROVED, SponsorshipStatus.ENDED, ended_at=utc_now()
        )
        result = inventory_service.shrink(db, sponsorship.cause_id, sponsorship.tote_quantity)
        db.execute(
            update(Sponsorship)
            .where(Sponsorship.id == sponsorship.id)
            .values(totes_removed_on_end=result.removed, end_shortfall=result.shortfall)
            .execution_options(synchronize_session=False)
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(sponsorship)
    if result.shortfall:
        logger.warning(
            "Sponsorship %s ended with shortfall %s (removed %s)",
            sponsorship.id,
            result.shortfall,
            result.removed,
        )
    return sponsorship


def review_logo(
    db: Session, sponsorship_id: UUID, approved: bool, reason: str | None = None
) -> Sponsorship:
    """Approve or reject the sponsor's logo while the campaign is live."""
    sponsorship = get_sponsorship(db, sponsorship_id)
    if sponsorship.status in (SponsorshipStatus.ENDED.value, SponsorshipStatus.REJECTED.value):
        raise InvalidTransitionError(f"Cannot review the logo of a {sponsorship.status} sponsorship")
    if not sponsorship.logo_url:
        raise InvalidTransitionError("Sponsorship has no logo to review")
    if sponsorship.logo_status == LogoStatus.APPROVED.value and approved:
        return sponsorship

    try:
        if approved:
            sponsorship.logo_status = LogoStatus.APPROVED.value
            sponsorship.logo_rejection_reason = None
        else:
            sponsorship.logo_status = LogoStatus.REJECTED.value
            sponsorship.logo_rejection_reason = reason
            _notify_sponsor(db, sponsorship, NotificationTemplate.LOGO_REJECTED, reason=reason)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(sponsorship)
    return sponsorship
