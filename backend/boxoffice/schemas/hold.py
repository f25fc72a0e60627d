"""
Pydantic schemas for seat holds.
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class HoldCreate(BaseModel):
    seats: list[str] = Field(..., description="External seat ids, e.g. premium-3-7")
    session_token: str = Field(..., min_length=1, max_length=255)
    ttl_seconds: Optional[int] = None


class HoldResponse(BaseModel):
    id: uuid.UUID
    show_id: uuid.UUID
    status: str
    seats: list[str]
    expires_at: datetime
    created_at: datetime


class FinalizeRequest(BaseModel):
    session_token: str = Field(..., min_length=1, max_length=255)
    customer_ref: str = Field(..., min_length=1, max_length=255)
    payment_confirmation: str = Field(..., min_length=1, max_length=255)


class HoldExtend(BaseModel):
    session_token: str = Field(..., min_length=1, max_length=255)
    extra_seconds: Optional[int] = Field(None, description="Defaults to HOLD_EXTENSION_SECONDS")


class ExpireHoldsResponse(BaseModel):
    expired: int
