"""FastAPI dependencies for admin access and database sessions."""

import hmac
from typing import Generator

from fastapi import Header, HTTPException
from sqlalchemy.orm import Session

from tote_engine.core.config import settings
from tote_engine.db.session import SessionLocal


ADMIN_KEY_HEADER = "X-Admin-Key"


def get_db() -> Generator[Session, None, None]:
    """
    Database session dependency.

    Yields a database session and ensures it's closed after the request.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def _secret_matches(provided: str | None, expected: str) -> bool:
    if not provided:
        return False
    return hmac.compare_digest(provided.encode(), expected.encode())


def require_admin_key(
    x_admin_key: str | None = Header(default=None, alias=ADMIN_KEY_HEADER),
) -> None:
    """
    Guard admin endpoints (sponsorship review, fulfilment, cause publishing).

    Raises:
        HTTPException 501: ADMIN_API_KEY not configured
        HTTPException 403: Missing or wrong key
    """
    if not settings.ADMIN_API_KEY:
        raise HTTPException(status_code=501, detail="ADMIN_API_KEY not configured")
    if not _secret_matches(x_admin_key, settings.ADMIN_API_KEY):
        raise HTTPException(status_code=403, detail="Invalid admin key")


def verify_internal_secret(
    x_internal_secret: str | None = Header(default=None),
) -> None:
    """Verify the internal secret header used by cron callers."""
    if not settings.INTERNAL_SECRET:
        raise HTTPException(status_code=501, detail="INTERNAL_SECRET not configured")
    if not _secret_matches(x_internal_secret, settings.INTERNAL_SECRET):
        raise HTTPException(status_code=403, detail="Invalid internal secret")
