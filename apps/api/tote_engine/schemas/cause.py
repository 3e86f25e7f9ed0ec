"""Pydantic schemas for causes."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class CauseCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    description: str | None = None
    is_online: bool = True


class CauseUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    is_online: bool | None = None


class CauseRead(BaseModel):
    """Cause with its live ledger counters."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    title: str
    description: str | None
    is_online: bool
    total_totes: int
    claimed_totes: int
    available_totes: int
    reserved_totes: int
    created_at: datetime
