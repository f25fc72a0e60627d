"""
Show performance and its pricing sections.

A show is the scope for seat identity and availability: every seat,
mapping, hold and booking belongs to exactly one show.
"""

import uuid

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, UniqueConstraint, Uuid, Index
from sqlalchemy.orm import relationship

from boxoffice.db.base import Base, TimestampMixin


class Show(Base, TimestampMixin):
    __tablename__ = "shows"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    title = Column(String(255), nullable=False)
    venue_name = Column(String(255), nullable=True)
    starts_at = Column(DateTime(timezone=True), nullable=False)

    sections = relationship("Section", back_populates="show", lazy="selectin", order_by="Section.sort_order")

    __table_args__ = (
        Index("ix_shows_starts_at", "starts_at"),
    )

    def __repr__(self) -> str:
        return f"<Show(id={self.id}, title={self.title})>"


class Section(Base, TimestampMixin):
    __tablename__ = "sections"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    show_id = Column(Uuid, ForeignKey("shows.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    # Prefix of the external seat ids in this section, e.g. "premium"
    slug = Column(String(50), nullable=False)
    sort_order = Column(Integer, nullable=False, default=0)

    show = relationship("Show", back_populates="sections")

    __table_args__ = (
        UniqueConstraint("show_id", "slug", name="uq_section_show_slug"),
    )

    def __repr__(self) -> str:
        return f"<Section(id={self.id}, slug={self.slug})>"
