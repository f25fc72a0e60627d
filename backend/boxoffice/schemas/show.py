"""
Pydantic schemas for show provisioning, seat maps and seat mappings.
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class SeatLayout(BaseModel):
    number: int = Field(..., gt=0)
    price_pence: int = Field(..., ge=0)
    is_accessible: bool = False
    # Derived from section slug, row position and number when omitted
    external_id: Optional[str] = Field(None, min_length=1, max_length=100)
    x: Optional[float] = None
    y: Optional[float] = None


class RowLayout(BaseModel):
    label: str = Field(..., min_length=1, max_length=10)
    seats: list[SeatLayout] = Field(..., min_length=1)


class SectionLayout(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    slug: str = Field(..., pattern=r"^[A-Za-z][A-Za-z0-9]*$", max_length=50)
    rows: list[RowLayout] = Field(..., min_length=1)


class ShowCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    venue_name: Optional[str] = Field(None, max_length=255)
    starts_at: datetime
    sections: list[SectionLayout] = Field(..., min_length=1)


class SectionResponse(BaseModel):
    name: str
    slug: str


class ShowResponse(BaseModel):
    id: uuid.UUID
    title: str
    venue_name: Optional[str]
    starts_at: datetime
    sections: list[SectionResponse]
    seat_counts: dict[str, int]
    created_at: datetime


class SeatView(BaseModel):
    external_id: str
    section: str
    row: str
    number: int
    price_pence: int
    is_accessible: bool
    status: str
    x: Optional[float] = None
    y: Optional[float] = None


class SeatMapResponse(BaseModel):
    show_id: uuid.UUID
    seats: list[SeatView]
    cached: bool = False


class MappingCreate(BaseModel):
    external_id: str = Field(..., min_length=1, max_length=100)
    seat_id: uuid.UUID


class MappingResponse(BaseModel):
    show_id: uuid.UUID
    external_id: str
    seat_id: uuid.UUID

    model_config = {"from_attributes": True}
