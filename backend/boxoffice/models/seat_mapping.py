"""
External seat identifier mapping.

Maps client-facing ids like "premium-3-7" to internal seat ids. Exactly
one-to-one per show: both (show_id, external_id) and (show_id, seat_id)
are unique. Rows are written once at provisioning and never updated.
"""

import uuid

from sqlalchemy import Column, ForeignKey, String, UniqueConstraint, Uuid

from boxoffice.db.base import Base, TimestampMixin


class SeatMapping(Base, TimestampMixin):
    __tablename__ = "seat_mappings"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    show_id = Column(Uuid, ForeignKey("shows.id", ondelete="CASCADE"), nullable=False)
    external_id = Column(String(100), nullable=False)
    seat_id = Column(Uuid, ForeignKey("seats.id", ondelete="CASCADE"), nullable=False)

    __table_args__ = (
        UniqueConstraint("show_id", "external_id", name="uq_mapping_show_external"),
        UniqueConstraint("show_id", "seat_id", name="uq_mapping_show_seat"),
    )

    def __repr__(self) -> str:
        return f"<SeatMapping(show={self.show_id}, external={self.external_id}, seat={self.seat_id})>"
