"""Initial schema: shows, seats, seat mappings, holds and bookings.

Revision ID: 001
Revises: None
Create Date: 2026-10-17
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    op.create_table(
        "shows",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("venue_name", sa.String(255), nullable=True),
        sa.Column("starts_at", sa.DateTime(timezone=True), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_shows_starts_at", "shows", ["starts_at"])

    op.create_table(
        "sections",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("show_id", sa.Uuid(), sa.ForeignKey("shows.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("slug", sa.String(50), nullable=False),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default=sa.text("0")),
        *_timestamps(),
        sa.UniqueConstraint("show_id", "slug", name="uq_section_show_slug"),
    )
    op.create_index("ix_sections_show_id", "sections", ["show_id"])

    op.create_table(
        "holds",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("show_id", sa.Uuid(), sa.ForeignKey("shows.id", ondelete="CASCADE"), nullable=False),
        sa.Column("session_token", sa.String(255), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        *_timestamps(),
        sa.CheckConstraint(
            "status IN ('active', 'released', 'expired', 'finalized')",
            name="check_hold_status",
        ),
    )
    # The sweep scans active holds past expiry
    op.create_index("ix_holds_status_expires", "holds", ["status", "expires_at"])
    op.create_index("ix_holds_session_token", "holds", ["session_token"])

    op.create_table(
        "seats",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("show_id", sa.Uuid(), sa.ForeignKey("shows.id", ondelete="CASCADE"), nullable=False),
        sa.Column("section_id", sa.Uuid(), sa.ForeignKey("sections.id", ondelete="CASCADE"), nullable=False),
        sa.Column("row_label", sa.String(10), nullable=False),
        sa.Column("seat_number", sa.Integer(), nullable=False),
        sa.Column("price_pence", sa.Integer(), nullable=False),
        sa.Column("is_accessible", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("status", sa.String(20), nullable=False, server_default="available"),
        sa.Column("hold_id", sa.Uuid(), sa.ForeignKey("holds.id", ondelete="SET NULL"), nullable=True),
        sa.Column("pos_x", sa.Float(), nullable=True),
        sa.Column("pos_y", sa.Float(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("show_id", "section_id", "row_label", "seat_number", name="uq_seat_position"),
        sa.CheckConstraint("price_pence >= 0", name="check_seat_price_non_negative"),
        sa.CheckConstraint("status IN ('available', 'held', 'booked')", name="check_seat_status"),
        sa.CheckConstraint("status = 'held' OR hold_id IS NULL", name="check_seat_hold_owner"),
    )
    # Every hold attempt filters on (show_id, status) through the seat map and counts
    op.create_index("ix_seats_show_status", "seats", ["show_id", "status"])
    op.create_index("ix_seats_hold_id", "seats", ["hold_id"])

    op.create_table(
        "seat_mappings",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("show_id", sa.Uuid(), sa.ForeignKey("shows.id", ondelete="CASCADE"), nullable=False),
        sa.Column("external_id", sa.String(100), nullable=False),
        sa.Column("seat_id", sa.Uuid(), sa.ForeignKey("seats.id", ondelete="CASCADE"), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("show_id", "external_id", name="uq_mapping_show_external"),
        sa.UniqueConstraint("show_id", "seat_id", name="uq_mapping_show_seat"),
    )

    op.create_table(
        "hold_seats",
        sa.Column("hold_id", sa.Uuid(), sa.ForeignKey("holds.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("seat_id", sa.Uuid(), sa.ForeignKey("seats.id", ondelete="CASCADE"), primary_key=True),
    )
    op.create_index("ix_hold_seats_seat_id", "hold_seats", ["seat_id"])

    op.create_table(
        "bookings",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("show_id", sa.Uuid(), sa.ForeignKey("shows.id", ondelete="CASCADE"), nullable=False),
        sa.Column("hold_id", sa.Uuid(), sa.ForeignKey("holds.id", ondelete="SET NULL"), nullable=True),
        sa.Column("customer_ref", sa.String(255), nullable=False),
        sa.Column("reference", sa.String(16), nullable=False),
        sa.Column("total_price_pence", sa.Integer(), nullable=False),
        sa.Column("payment_confirmation", sa.String(255), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="confirmed"),
        *_timestamps(),
        sa.UniqueConstraint("hold_id", name="uq_booking_hold"),
        sa.UniqueConstraint("reference", name="uq_booking_reference"),
        sa.CheckConstraint("total_price_pence >= 0", name="check_booking_total_non_negative"),
        sa.CheckConstraint("status IN ('confirmed', 'cancelled')", name="check_booking_status"),
    )
    op.create_index("ix_bookings_show_id", "bookings", ["show_id"])
    op.create_index("ix_bookings_customer_ref", "bookings", ["customer_ref"])

    op.create_table(
        "booking_seats",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("booking_id", sa.Uuid(), sa.ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False),
        sa.Column("show_id", sa.Uuid(), sa.ForeignKey("shows.id", ondelete="CASCADE"), nullable=False),
        sa.Column("seat_id", sa.Uuid(), sa.ForeignKey("seats.id", ondelete="CASCADE"), nullable=False),
        sa.Column("price_paid_pence", sa.Integer(), nullable=False),
        # A seat is sold at most once per show, whatever seats.status says
        sa.UniqueConstraint("show_id", "seat_id", name="uq_booking_seat_per_show"),
    )
    op.create_index("ix_booking_seats_booking_id", "booking_seats", ["booking_id"])


def downgrade() -> None:
    op.drop_table("booking_seats")
    op.drop_table("bookings")
    op.drop_table("hold_seats")
    op.drop_table("seat_mappings")
    op.drop_table("seats")
    op.drop_table("holds")
    op.drop_table("sections")
    op.drop_table("shows")
