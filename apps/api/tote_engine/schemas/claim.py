"""Pydantic schemas for claims."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, model_validator

from tote_engine.db.enums import ClaimChannel, ClaimStatus, VerificationMethod


class ClaimSubmit(BaseModel):
    """Submit-claim request from any entry channel."""
    cause_id: UUID
    email: EmailStr
    channel: ClaimChannel = ClaimChannel.DIRECT
    full_name: str | None = Field(default=None, max_length=255)
    phone: str | None = Field(default=None, max_length=32)
    address: str | None = None
    city: str | None = Field(default=None, max_length=120)
    state: str | None = Field(default=None, max_length=120)
    zip_code: str | None = Field(default=None, max_length=20)
    verification_method: VerificationMethod = VerificationMethod.EMAIL
    magic_link_token: str | None = None

    @model_validator(mode="after")
    def check_channel_inputs(self):
        if self.channel in ClaimChannel.token_bearing() and not self.magic_link_token:
            raise ValueError("magic_link_token is required for magic-link claims")
        if (
            self.channel == ClaimChannel.DIRECT
            and self.verification_method == VerificationMethod.PHONE
            and not self.phone
        ):
            raise ValueError("phone is required for phone verification")
        return self


class ClaimVerify(BaseModel):
    code: str = Field(min_length=4, max_length=12)


class ClaimCancel(BaseModel):
    reason: str | None = None


class ClaimAdvance(BaseModel):
    status: ClaimStatus
    tracking_number: str | None = Field(default=None, max_length=100)
    carrier: str | None = Field(default=None, max_length=100)


class ClaimRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    cause_id: UUID
    email: str
    full_name: str | None
    channel: str
    status: str
    verification_method: str | None
    resend_count: int
    tracking_number: str | None
    carrier: str | None
    verified_at: datetime | None
    shipped_at: datetime | None
    delivered_at: datetime | None
    cancelled_at: datetime | None
    expired_at: datetime | None
    created_at: datetime


class ClaimAdminRead(ClaimRead):
    """Admin view including shipping details."""
    phone: str | None
    address: str | None
    city: str | None
    state: str | None
    zip_code: str | None
    cancel_reason: str | None


class ChallengeRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    channel: str
    status: str
    expires_at: datetime | None
    resend_count: int


class ClaimSubmitResponse(BaseModel):
    claim: ClaimRead
    challenge: ChallengeRead
    requires_verification: bool


class ClaimCheckResponse(BaseModel):
    exists: bool
    claim: ClaimRead | None = None


class ClaimListResponse(BaseModel):
    items: list[ClaimAdminRead]
    total: int
    page: int
    per_page: int
    pages: int


class ClaimStatsResponse(BaseModel):
    total: int
    today: int
    by_status: dict[str, int]
