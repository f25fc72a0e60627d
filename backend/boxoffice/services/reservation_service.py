"""
Client-facing reservation operations.

Clients only ever see external seat ids and hold/booking references. This
service translates at the edge and delegates to the core components:

  seat_map     -> AvailabilityStore.list_seats
  hold_seats   -> SeatIdentityResolver.resolve_many + HoldManager.create_hold
  finalize     -> BookingFinalizer.finalize

Reads that report availability (seat_map, show_summary, seat_status) expire
overdue holds first, so they never depend on the background sweep.

Every component shares the request's database session, so a call is one
unit of work from the client's point of view.
"""

import uuid
from typing import Iterable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from boxoffice.core.clock import SystemClock
from boxoffice.core.config import Settings, get_settings
from boxoffice.core.exceptions import SeatUnavailableError
from boxoffice.models.booking import Booking
from boxoffice.models.hold import Hold
from boxoffice.models.seat import SeatStatus
from boxoffice.services.availability_store import AvailabilityStore
from boxoffice.services.booking_finalizer import BookingFinalizer
from boxoffice.services.hold_manager import HoldManager
from boxoffice.services.seat_identity import SeatIdentityResolver
from boxoffice.services.show_service import ShowService


class ReservationService:
    def __init__(self, db: AsyncSession, clock=None, settings: Optional[Settings] = None):
        self.db = db
        self.settings = settings or get_settings()
        self.clock = clock or SystemClock()
        self.shows = ShowService(db)
        self.resolver = SeatIdentityResolver(db)
        self.store = AvailabilityStore(db)
        self.holds = HoldManager(db, self.store, self.clock, self.settings)
        self.finalizer = BookingFinalizer(db, self.store, self.holds, self.settings)

    async def seat_map(self, show_id: uuid.UUID) -> dict:
        """All seats of a show with their current status."""
        await self.shows.get_show(show_id)
        await self.holds.expire_holds(show_id=show_id, trigger="lazy")
        return {"show_id": show_id, "seats": await self.store.list_seats(show_id)}

    async def show_summary(self, show_id: uuid.UUID) -> dict:
        """Show details with seat counts; holds past their expiry count as available."""
        await self.shows.get_show(show_id)
        await self.holds.expire_holds(show_id=show_id, trigger="lazy")
        return await self.shows.show_summary(show_id)

    async def seat_status(self, show_id: uuid.UUID, external_id: str) -> SeatStatus:
        seat_id = await self.resolver.resolve(show_id, external_id)
        return await self.holds.seat_status(show_id, seat_id)

    async def hold_seats(
        self,
        show_id: uuid.UUID,
        external_ids: Iterable[str],
        session_token: str,
        ttl_seconds: Optional[int] = None,
    ) -> dict:
        await self.shows.get_show(show_id)
        mapping = await self.resolver.resolve_many(show_id, external_ids)
        try:
            hold = await self.holds.create_hold(show_id, list(mapping.values()), session_token, ttl_seconds)
        except SeatUnavailableError as exc:
            external_by_seat = {str(seat_id): external_id for external_id, seat_id in mapping.items()}
            raise SeatUnavailableError(
                [external_by_seat.get(seat_id, seat_id) for seat_id in exc.seat_ids]
            ) from exc
        return await self._hold_view(hold)

    async def release(self, hold_id: uuid.UUID, session_token: Optional[str] = None) -> dict:
        hold = await self.holds.release_hold(hold_id, session_token)
        return await self._hold_view(hold)

    async def extend(
        self, hold_id: uuid.UUID, session_token: str, extra_seconds: Optional[int] = None
    ) -> dict:
        hold = await self.holds.extend_hold(hold_id, session_token, extra_seconds)
        return await self._hold_view(hold)

    async def get_hold(self, hold_id: uuid.UUID, session_token: Optional[str] = None) -> dict:
        hold = await self.holds.get_hold(hold_id, session_token)
        return await self._hold_view(hold)

    async def session_holds(self, session_token: str) -> list[dict]:
        return [await self._hold_view(hold) for hold in await self.holds.list_session_holds(session_token)]

    async def finalize(
        self,
        hold_id: uuid.UUID,
        session_token: str,
        customer_ref: str,
        payment_confirmation: str,
    ) -> dict:
        booking = await self.finalizer.finalize(hold_id, customer_ref, payment_confirmation, session_token)
        return await self._booking_view(booking)

    async def get_booking(self, reference: str) -> dict:
        booking = await self.finalizer.get_booking(reference)
        return await self._booking_view(booking)

    async def customer_bookings(self, customer_ref: str) -> list[dict]:
        return [await self._booking_view(booking) for booking in await self.finalizer.list_bookings(customer_ref)]

    async def expire_holds(self) -> int:
        return await self.holds.expire_holds(trigger="admin")

    async def _hold_view(self, hold: Hold) -> dict:
        return {
            "id": hold.id,
            "show_id": hold.show_id,
            "status": hold.status,
            "seats": await self._external_ids(hold.show_id, hold.seat_ids),
            "expires_at": hold.expires_at,
            "created_at": hold.created_at,
        }

    async def _booking_view(self, booking: Booking) -> dict:
        return {
            "reference": booking.reference,
            "show_id": booking.show_id,
            "hold_id": booking.hold_id,
            "customer_ref": booking.customer_ref,
            "seats": await self._external_ids(booking.show_id, booking.seat_ids),
            "total_price_pence": booking.total_price_pence,
            "status": booking.status,
            "created_at": booking.created_at,
        }

    async def _external_ids(self, show_id: uuid.UUID, seat_ids: list[uuid.UUID]) -> list[str]:
        external = await self.resolver.external_ids_for(show_id, seat_ids)
        return sorted(external.get(seat_id, str(seat_id)) for seat_id in seat_ids)
