"""
Pydantic schemas for bookings.
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class BookingResponse(BaseModel):
    reference: str
    show_id: uuid.UUID
    hold_id: Optional[uuid.UUID]
    customer_ref: str
    seats: list[str]
    total_price_pence: int
    status: str
    created_at: datetime
