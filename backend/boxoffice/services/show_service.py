"""
Show provisioning: seeds a performance, its seats and their external ids.

A layout is written in one transaction. Every seat's external id goes
through SeatIdentityResolver.register, so a conflicting id aborts the
whole show rather than leaving it half-mapped.
"""

import uuid

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from boxoffice.core.exceptions import ConflictError, NotFoundError
from boxoffice.core.logging import get_logger
from boxoffice.models.seat import Seat, SeatStatus
from boxoffice.models.show import Section, Show
from boxoffice.schemas.show import ShowCreate
from boxoffice.services.availability_store import AvailabilityStore
from boxoffice.services.seat_identity import SeatIdentityResolver, format_external_id

logger = get_logger(__name__)


class ShowService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.resolver = SeatIdentityResolver(db)
        self.store = AvailabilityStore(db)

    async def provision_show(self, show_data: ShowCreate) -> Show:
        show = Show(
            id=uuid.uuid4(),
            title=show_data.title,
            venue_name=show_data.venue_name,
            starts_at=show_data.starts_at,
        )
        pending: list[tuple[str, Seat]] = []
        for sort_order, section_data in enumerate(show_data.sections):
            section = Section(
                id=uuid.uuid4(),
                show=show,
                name=section_data.name,
                slug=section_data.slug,
                sort_order=sort_order,
            )
            # Row positions are 1-based: the third row of "premium" is premium-3-*
            for row_position, row in enumerate(section_data.rows, start=1):
                for seat_data in row.seats:
                    seat = Seat(
                        id=uuid.uuid4(),
                        show_id=show.id,
                        section=section,
                        row_label=row.label,
                        seat_number=seat_data.number,
                        price_pence=seat_data.price_pence,
                        is_accessible=seat_data.is_accessible,
                        status=SeatStatus.AVAILABLE.value,
                        pos_x=seat_data.x,
                        pos_y=seat_data.y,
                    )
                    external_id = seat_data.external_id or format_external_id(
                        section_data.slug, row_position, seat_data.number
                    )
                    pending.append((external_id, seat))

        try:
            # A conflict rolls back to the savepoint, dropping every pending row of this show
            async with self.db.begin_nested():
                self.db.add_all([show, *(seat for _, seat in pending)])
                await self.db.flush()
                for external_id, seat in pending:
                    await self.resolver.register(show.id, external_id, seat.id)
        except IntegrityError as exc:
            logger.error("show_provisioning_failed", title=show_data.title, error=str(exc.orig))
            raise ConflictError("Layout contains duplicate sections or seat positions") from exc

        await self.db.commit()
        logger.info(
            "show_provisioned",
            show_id=str(show.id),
            title=show.title,
            sections=len(show_data.sections),
            seats=len(pending),
        )
        return show

    async def get_show(self, show_id: uuid.UUID) -> Show:
        result = await self.db.execute(select(Show).where(Show.id == show_id))
        show = result.scalar_one_or_none()
        if show is None:
            raise NotFoundError(f"Show {show_id} not found")
        return show

    async def show_summary(self, show_id: uuid.UUID) -> dict:
        """Show details with seat counts by status."""
        show = await self.get_show(show_id)
        counts = await self.store.count_by_status(show_id)
        return {
            "id": show.id,
            "title": show.title,
            "venue_name": show.venue_name,
            "starts_at": show.starts_at,
            "sections": [{"name": section.name, "slug": section.slug} for section in show.sections],
            "seat_counts": counts,
            "created_at": show.created_at,
        }
