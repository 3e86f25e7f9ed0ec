"""Pydantic schemas for the waitlist."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class WaitlistJoin(BaseModel):
    cause_id: UUID
    email: EmailStr
    full_name: str | None = Field(default=None, max_length=255)
    phone: str | None = Field(default=None, max_length=32)
    message: str | None = None
    notify_email: bool = True
    notify_sms: bool = False


class WaitlistLeave(BaseModel):
    email: EmailStr


class WaitlistEntryRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    cause_id: UUID
    email: str
    full_name: str | None
    position: int
    status: str
    magic_link_sent_at: datetime | None
    magic_link_expires_at: datetime | None
    claimed_at: datetime | None
    created_at: datetime


class WaitlistStandingRead(BaseModel):
    entry: WaitlistEntryRead
    ahead: int


class MagicLinkValidation(BaseModel):
    """Result of checking a magic link before the claim form is shown."""
    valid: bool
    entry_id: UUID
    cause_id: UUID
    email: str
    expires_at: datetime | None
