"""
Booking model representing seats sold to a customer for a show.

Key design decisions:
- Unique constraint on booking_seats (show_id, seat_id): a seat appears in at
  most one booking per show, independent of the seat status column.
- `reference` is the short human-shareable code given to the customer.
- Status field allows cancellation without deleting records.
"""

import uuid

from sqlalchemy import CheckConstraint, Column, ForeignKey, Integer, String, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship

from boxoffice.db.base import Base, TimestampMixin


class Booking(Base, TimestampMixin):
    __tablename__ = "bookings"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    show_id = Column(Uuid, ForeignKey("shows.id", ondelete="CASCADE"), nullable=False, index=True)
    hold_id = Column(Uuid, ForeignKey("holds.id", ondelete="SET NULL"), nullable=True, unique=True)
    customer_ref = Column(String(255), nullable=False, index=True)
    reference = Column(String(16), nullable=False, unique=True)
    total_price_pence = Column(Integer, nullable=False)
    payment_confirmation = Column(String(255), nullable=False)
    status = Column(String(20), nullable=False, default="confirmed")

    seats = relationship("BookingSeat", lazy="selectin", cascade="all, delete-orphan")

    __table_args__ = (
        CheckConstraint("total_price_pence >= 0", name="check_booking_total_non_negative"),
        CheckConstraint("status IN ('confirmed', 'cancelled')", name="check_booking_status"),
    )

    @property
    def seat_ids(self) -> list[uuid.UUID]:
        return [booking_seat.seat_id for booking_seat in self.seats]

    def __repr__(self) -> str:
        return f"<Booking(id={self.id}, reference={self.reference}, show={self.show_id})>"


class BookingSeat(Base):
    __tablename__ = "booking_seats"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    booking_id = Column(Uuid, ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True)
    show_id = Column(Uuid, ForeignKey("shows.id", ondelete="CASCADE"), nullable=False)
    seat_id = Column(Uuid, ForeignKey("seats.id", ondelete="CASCADE"), nullable=False)
    price_paid_pence = Column(Integer, nullable=False)

    __table_args__ = (
        UniqueConstraint("show_id", "seat_id", name="uq_booking_seat_per_show"),
    )
