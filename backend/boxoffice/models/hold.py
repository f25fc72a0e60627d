"""
Hold model: a time-boxed exclusive claim on seats for a checkout session.

Key design decisions:
- Holds are durable rows so expiry survives restarts.
- `status` moves only forward from `active` (to released, expired or
  finalized) via conditional UPDATEs; whoever flips it owns the cleanup.
- `hold_seats` keeps the seat set even after the seats themselves have been
  released, for audit and idempotent replays.
"""

import enum
import uuid

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Index, String, Uuid
from sqlalchemy.orm import relationship

from boxoffice.db.base import Base, TimestampMixin


class HoldStatus(str, enum.Enum):
    ACTIVE = "active"
    RELEASED = "released"
    EXPIRED = "expired"
    FINALIZED = "finalized"


class Hold(Base, TimestampMixin):
    __tablename__ = "holds"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    show_id = Column(Uuid, ForeignKey("shows.id", ondelete="CASCADE"), nullable=False)
    session_token = Column(String(255), nullable=False)
    status = Column(String(20), nullable=False, default=HoldStatus.ACTIVE.value)
    expires_at = Column(DateTime(timezone=True), nullable=False)

    seats = relationship("HoldSeat", lazy="selectin", cascade="all, delete-orphan")

    __table_args__ = (
        CheckConstraint(
            "status IN ('active', 'released', 'expired', 'finalized')",
            name="check_hold_status",
        ),
        # Sweep query: active holds past expiry
        Index("ix_holds_status_expires", "status", "expires_at"),
        Index("ix_holds_session_token", "session_token"),
    )

    @property
    def seat_ids(self) -> list[uuid.UUID]:
        return [hold_seat.seat_id for hold_seat in self.seats]

    def __repr__(self) -> str:
        return f"<Hold(id={self.id}, status={self.status}, expires_at={self.expires_at})>"


class HoldSeat(Base):
    __tablename__ = "hold_seats"

    hold_id = Column(Uuid, ForeignKey("holds.id", ondelete="CASCADE"), primary_key=True)
    seat_id = Column(Uuid, ForeignKey("seats.id", ondelete="CASCADE"), primary_key=True)

    __table_args__ = (
        # Lazy expiry looks up holds by seat
        Index("ix_hold_seats_seat_id", "seat_id"),
    )
