"""
Seat identity resolver: external seat ids <-> internal seat ids.

Clients address seats by stable labels such as "premium-3-7"
(section slug, 1-based row position, seat number). The database addresses
them by UUID. The mapping is one-to-one per show and immutable: once an
external id is registered it can never be pointed at a different seat, and
a seat can never gain a second external id. Violations raise ConflictError
and must halt provisioning rather than overwrite.
"""

import re
import uuid
from typing import Iterable, NamedTuple

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from boxoffice.core.exceptions import ConflictError, NotFoundError
from boxoffice.core.logging import get_logger
from boxoffice.models.seat import Seat
from boxoffice.models.seat_mapping import SeatMapping

logger = get_logger(__name__)

EXTERNAL_ID_PATTERN = re.compile(r"^(?P<section>[A-Za-z][A-Za-z0-9]*)-(?P<row>[1-9][0-9]*)-(?P<seat>[1-9][0-9]*)$")


class ExternalSeatId(NamedTuple):
    section: str
    row: int
    seat: int


def format_external_id(section_slug: str, row_position: int, seat_number: int) -> str:
    return f"{section_slug}-{row_position}-{seat_number}"


def parse_external_id(value: str) -> ExternalSeatId:
    match = EXTERNAL_ID_PATTERN.match(value)
    if not match:
        raise ValueError(f"Malformed external seat id: {value!r}")
    return ExternalSeatId(match["section"], int(match["row"]), int(match["seat"]))


class SeatIdentityResolver:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def resolve(self, show_id: uuid.UUID, external_id: str) -> uuid.UUID:
        result = await self.db.execute(
            select(SeatMapping.seat_id).where(
                SeatMapping.show_id == show_id,
                SeatMapping.external_id == external_id,
            )
        )
        seat_id = result.scalar_one_or_none()
        if seat_id is None:
            raise NotFoundError(f"Seat {external_id} not found for show {show_id}")
        return seat_id

    async def resolve_many(self, show_id: uuid.UUID, external_ids: Iterable[str]) -> dict[str, uuid.UUID]:
        """Resolve a batch; one NotFoundError lists every unknown id."""
        wanted = list(dict.fromkeys(external_ids))
        if not wanted:
            return {}
        result = await self.db.execute(
            select(SeatMapping.external_id, SeatMapping.seat_id).where(
                SeatMapping.show_id == show_id,
                SeatMapping.external_id.in_(wanted),
            )
        )
        found = {row.external_id: row.seat_id for row in result}
        missing = [external_id for external_id in wanted if external_id not in found]
        if missing:
            raise NotFoundError(f"Seats not found for show {show_id}: {', '.join(missing)}")
        return {external_id: found[external_id] for external_id in wanted}

    async def external_ids_for(self, show_id: uuid.UUID, seat_ids: Iterable[uuid.UUID]) -> dict[uuid.UUID, str]:
        """Reverse lookup. Seats without a mapping are left out."""
        seat_ids = list(seat_ids)
        if not seat_ids:
            return {}
        result = await self.db.execute(
            select(SeatMapping.seat_id, SeatMapping.external_id).where(
                SeatMapping.show_id == show_id,
                SeatMapping.seat_id.in_(seat_ids),
            )
        )
        return {row.seat_id: row.external_id for row in result}

    async def register(self, show_id: uuid.UUID, external_id: str, seat_id: uuid.UUID) -> SeatMapping:
        """
        Create the mapping external_id -> seat_id for a show.

        Re-registering the identical pair returns the existing mapping.
        Raises ConflictError if either side is already mapped elsewhere and
        NotFoundError if the seat does not belong to the show.
        """
        result = await self.db.execute(
            select(SeatMapping).where(
                SeatMapping.show_id == show_id,
                or_(SeatMapping.external_id == external_id, SeatMapping.seat_id == seat_id),
            )
        )
        existing = list(result.scalars().all())

        for mapping in existing:
            if mapping.external_id == external_id and mapping.seat_id == seat_id:
                return mapping

        for mapping in existing:
            if mapping.external_id == external_id:
                logger.error(
                    "seat_mapping_conflict",
                    show_id=str(show_id),
                    external_id=external_id,
                    existing_seat_id=str(mapping.seat_id),
                    requested_seat_id=str(seat_id),
                )
                raise ConflictError(
                    f"External seat id {external_id} is already mapped to seat {mapping.seat_id}"
                )
            logger.error(
                "seat_mapping_conflict",
                show_id=str(show_id),
                seat_id=str(seat_id),
                existing_external_id=mapping.external_id,
                requested_external_id=external_id,
            )
            raise ConflictError(f"Seat {seat_id} is already mapped to external id {mapping.external_id}")

        seat_exists = await self.db.execute(
            select(Seat.id).where(Seat.id == seat_id, Seat.show_id == show_id)
        )
        if seat_exists.scalar_one_or_none() is None:
            raise NotFoundError(f"Seat {seat_id} not found for show {show_id}")

        mapping = SeatMapping(show_id=show_id, external_id=external_id, seat_id=seat_id)
        self.db.add(mapping)
        try:
            await self.db.flush()
        except IntegrityError as exc:
            # Lost a race with a concurrent registration; the unique constraints decided
            raise ConflictError(f"External seat id {external_id} was registered concurrently") from exc

        logger.debug("seat_mapping_registered", show_id=str(show_id), external_id=external_id, seat_id=str(seat_id))
        return mapping
