"""
Seat model: one bookable position for one show performance.

Key design decisions:
- `status` is the only mutable shared resource in the system. It is written
  exclusively through AvailabilityStore.try_transition (conditional UPDATE).
- `hold_id` records which hold owns a `held` seat, so releasing a stale hold
  can never free a seat that another hold has since taken.
- Prices are integer pence.
- Seats are never deleted while the show is active.
"""

import enum
import uuid

from sqlalchemy import (
    Boolean, CheckConstraint, Column, Float, ForeignKey, Index, Integer, String, UniqueConstraint, Uuid,
)
from sqlalchemy.orm import relationship

from boxoffice.db.base import Base, TimestampMixin


class SeatStatus(str, enum.Enum):
    AVAILABLE = "available"
    HELD = "held"
    BOOKED = "booked"


class Seat(Base, TimestampMixin):
    __tablename__ = "seats"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    show_id = Column(Uuid, ForeignKey("shows.id", ondelete="CASCADE"), nullable=False)
    section_id = Column(Uuid, ForeignKey("sections.id", ondelete="CASCADE"), nullable=False)
    row_label = Column(String(10), nullable=False)
    seat_number = Column(Integer, nullable=False)
    price_pence = Column(Integer, nullable=False)
    is_accessible = Column(Boolean, nullable=False, default=False)
    status = Column(String(20), nullable=False, default=SeatStatus.AVAILABLE.value)
    hold_id = Column(Uuid, ForeignKey("holds.id", ondelete="SET NULL"), nullable=True)

    # Presentation only
    pos_x = Column(Float, nullable=True)
    pos_y = Column(Float, nullable=True)

    section = relationship("Section", lazy="selectin")

    __table_args__ = (
        UniqueConstraint("show_id", "section_id", "row_label", "seat_number", name="uq_seat_position"),
        CheckConstraint("price_pence >= 0", name="check_seat_price_non_negative"),
        CheckConstraint("status IN ('available', 'held', 'booked')", name="check_seat_status"),
        CheckConstraint("status = 'held' OR hold_id IS NULL", name="check_seat_hold_owner"),
        # Availability listings filter by show and status
        Index("ix_seats_show_status", "show_id", "status"),
        Index("ix_seats_hold_id", "hold_id"),
    )

    def __repr__(self) -> str:
        return f"<Seat(id={self.id}, row={self.row_label}, number={self.seat_number}, status={self.status})>"
