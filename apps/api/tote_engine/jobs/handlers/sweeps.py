"""Expiry sweep job handlers."""

from __future__ import annotations

import logging

from tote_engine.services import claim_service, waitlist_service

logger = logging.getLogger(__name__)


async def process_verification_sweep(db, job) -> None:
    """Expire claims stuck before verification and promote the waitlist."""
    expired = claim_service.sweep_stale_verifications(db)
    logger.info("Verification sweep job %s expired %s claim(s)", job.id, expired)


async def process_magic_link_sweep(db, job) -> None:
    """Expire lapsed waitlist magic links and promote the next entries."""
    expired = waitlist_service.sweep_expired_links(db)
    logger.info("Magic-link sweep job %s expired %s entr(ies)", job.id, expired)
