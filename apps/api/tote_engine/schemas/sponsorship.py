"""Pydantic schemas for sponsorships."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, model_validator


class SponsorshipSubmit(BaseModel):
    cause_id: UUID
    organization_name: str = Field(min_length=1, max_length=255)
    contact_name: str = Field(min_length=1, max_length=255)
    email: EmailStr
    phone: str | None = Field(default=None, max_length=32)
    tote_quantity: int = Field(ge=1)
    logo_url: str | None = Field(default=None, max_length=1000)
    message: str | None = None


class SponsorshipReject(BaseModel):
    reason: str = Field(min_length=1)


class LogoReview(BaseModel):
    approved: bool
    reason: str | None = None

    @model_validator(mode="after")
    def require_reason_on_reject(self):
        if not self.approved and not self.reason:
            raise ValueError("reason is required when rejecting a logo")
        return self


class SponsorshipRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    cause_id: UUID
    organization_name: str
    contact_name: str
    email: str
    phone: str | None
    tote_quantity: int
    logo_url: str | None
    message: str | None
    status: str
    logo_status: str
    rejection_reason: str | None
    logo_rejection_reason: str | None
    approved_at: datetime | None
    rejected_at: datetime | None
    ended_at: datetime | None
    totes_removed_on_end: int | None
    end_shortfall: int | None
    created_at: datetime
