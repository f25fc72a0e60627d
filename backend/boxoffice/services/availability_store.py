"""
Availability store: single source of truth for seat status per show.

CONCURRENCY STRATEGY: Conditional UPDATE (compare-and-swap)
============================================================

Problem:
  Two checkouts try to hold the same seat at the same moment. Both read
  status='available', both write status='held', both think they won.

Solution:
  Every status change is one statement:

    UPDATE seats SET status = :to, hold_id = ...
    WHERE id = :seat AND show_id = :show AND status = :from [AND hold_id = :hold]

  and the caller checks rowcount. PostgreSQL takes the row lock as part of
  the UPDATE, re-evaluates the WHERE clause against the committed row after
  any concurrent writer finishes, so exactly one of two racing transactions
  sees rowcount == 1. There is no read-then-write window to close.

  A rowcount of 0 is ordinary contention, not an error: try_transition
  returns False and the caller decides what that means.

Nothing else in the codebase writes seats.status.
"""

import uuid
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from boxoffice.core.exceptions import NotFoundError
from boxoffice.core.logging import get_logger
from boxoffice.core.metrics import record_seat_transition
from boxoffice.models.seat import Seat, SeatStatus
from boxoffice.models.seat_mapping import SeatMapping
from boxoffice.models.show import Section

logger = get_logger(__name__)


class AvailabilityStore:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_status(self, show_id: uuid.UUID, seat_id: uuid.UUID) -> SeatStatus:
        """Stored status. Holds past their expiry still read as held until something expires them."""
        result = await self.db.execute(
            select(Seat.status).where(Seat.id == seat_id, Seat.show_id == show_id)
        )
        status = result.scalar_one_or_none()
        if status is None:
            raise NotFoundError(f"Seat {seat_id} not found for show {show_id}")
        return SeatStatus(status)

    async def try_transition(
        self,
        show_id: uuid.UUID,
        seat_id: uuid.UUID,
        from_status: SeatStatus,
        to_status: SeatStatus,
        hold_id: Optional[uuid.UUID] = None,
    ) -> bool:
        """
        Atomically move a seat from one status to another.

        Entering `held` stamps the seat with `hold_id`. Leaving `held` with a
        `hold_id` also requires the seat to belong to that hold, and always
        clears the stamp. Returns False if the seat was not in `from_status`.
        """
        conditions = [
            Seat.id == seat_id,
            Seat.show_id == show_id,
            Seat.status == from_status.value,
        ]
        if from_status == SeatStatus.HELD and hold_id is not None:
            conditions.append(Seat.hold_id == hold_id)

        new_owner = hold_id if to_status == SeatStatus.HELD else None

        result = await self.db.execute(
            update(Seat)
            .where(*conditions)
            .values(status=to_status.value, hold_id=new_owner)
            .execution_options(synchronize_session=False)
        )
        ok = result.rowcount == 1
        record_seat_transition(from_status.value, to_status.value, ok)

        if not ok:
            logger.debug(
                "seat_transition_rejected",
                show_id=str(show_id),
                seat_id=str(seat_id),
                from_status=from_status.value,
                to_status=to_status.value,
            )
        return ok

    async def existing_seat_ids(
        self, show_id: uuid.UUID, seat_ids: list[uuid.UUID]
    ) -> set[uuid.UUID]:
        """Subset of `seat_ids` that belong to the show."""
        if not seat_ids:
            return set()
        result = await self.db.execute(
            select(Seat.id).where(Seat.show_id == show_id, Seat.id.in_(seat_ids))
        )
        return set(result.scalars().all())

    async def seat_prices(self, show_id: uuid.UUID, seat_ids: list[uuid.UUID]) -> dict[uuid.UUID, int]:
        """Price in pence for each seat."""
        result = await self.db.execute(
            select(Seat.id, Seat.price_pence).where(Seat.show_id == show_id, Seat.id.in_(seat_ids))
        )
        return {row.id: row.price_pence for row in result}

    async def count_by_status(self, show_id: uuid.UUID) -> dict[str, int]:
        counts = {status.value: 0 for status in SeatStatus}
        result = await self.db.execute(select(Seat.status).where(Seat.show_id == show_id))
        for status in result.scalars():
            counts[status] += 1
        return counts

    async def list_seats(self, show_id: uuid.UUID) -> list[dict]:
        """
        All seats of a show with section, external id and current status,
        ordered for display (section, row, seat number).
        """
        result = await self.db.execute(
            select(
                SeatMapping.external_id,
                Section.name.label("section"),
                Seat.row_label,
                Seat.seat_number,
                Seat.price_pence,
                Seat.is_accessible,
                Seat.status,
                Seat.pos_x,
                Seat.pos_y,
            )
            .select_from(Seat)
            .join(Section, Section.id == Seat.section_id)
            .join(SeatMapping, SeatMapping.seat_id == Seat.id)
            .where(Seat.show_id == show_id)
            .order_by(Section.sort_order, Seat.row_label, Seat.seat_number)
        )
        return [
            {
                "external_id": row.external_id,
                "section": row.section,
                "row": row.row_label,
                "number": row.seat_number,
                "price_pence": row.price_pence,
                "is_accessible": row.is_accessible,
                "status": row.status,
                "x": row.pos_x,
                "y": row.pos_y,
            }
            for row in result
        ]
