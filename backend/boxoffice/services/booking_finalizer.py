"""
Booking finalizer: turns a paid-for hold into a permanent booking.

ATOMICITY
=========

Everything below happens in one transaction, inside a savepoint; any
failure rolls back to the savepoint:

  1. Claim the hold:   UPDATE holds SET status='finalized'
                       WHERE id = :hold AND status = 'active' AND expires_at > now
     rowcount 0 means the hold expired, was released or was already
     finalized -> HoldExpiredError. This is what makes a second finalize of
     the same hold fail instead of double-booking.
  2. Book the seats:   AvailabilityStore.try_transition(held -> booked, hold_id)
     for every seat. A failure here cannot happen while the hold row says
     'active'; if it does, the state is corrupt -> InternalConsistencyError,
     logged at error level and never retried.
  3. INSERT the booking and its booking_seats rows. booking_seats is unique
     on (show_id, seat_id), the last line of defence against a seat being
     sold twice.

The payment confirmation is an opaque token from the payment processor.
It is stored, not validated.
"""

import secrets
import uuid
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from boxoffice.core.config import Settings, get_settings
from boxoffice.core.exceptions import HoldExpiredError, InternalConsistencyError, NotFoundError
from boxoffice.core.logging import get_logger
from boxoffice.core.metrics import operation_latency, record_finalize_attempt
from boxoffice.models.booking import Booking, BookingSeat
from boxoffice.models.hold import HoldStatus
from boxoffice.models.seat import SeatStatus
from boxoffice.services.availability_store import AvailabilityStore
from boxoffice.services.hold_manager import HoldManager

logger = get_logger(__name__)

# No 0/O or 1/I/L
REFERENCE_ALPHABET = "ABCDEFGHJKMNPQRSTUVWXYZ23456789"
MAX_REFERENCE_ATTEMPTS = 5


def generate_reference(length: int) -> str:
    return "".join(secrets.choice(REFERENCE_ALPHABET) for _ in range(length))


class BookingFinalizer:
    def __init__(
        self,
        db: AsyncSession,
        store: AvailabilityStore,
        holds: HoldManager,
        settings: Optional[Settings] = None,
    ):
        self.db = db
        self.store = store
        self.holds = holds
        self.settings = settings or get_settings()

    async def finalize(
        self,
        hold_id: uuid.UUID,
        customer_ref: str,
        payment_confirmation: str,
        session_token: Optional[str] = None,
    ) -> Booking:
        if not customer_ref:
            raise ValueError("A customer reference is required")
        if not payment_confirmation:
            raise ValueError("A payment confirmation is required")

        with operation_latency.labels(operation="finalize").time():
            hold = await self.holds.load_hold(hold_id, session_token)

            if hold.status != HoldStatus.ACTIVE.value:
                record_finalize_attempt("expired")
                logger.info("finalize_rejected", hold_id=str(hold_id), status=hold.status)
                raise HoldExpiredError(f"Hold {hold_id} is no longer active ({hold.status})")

            if self.holds.is_expired(hold):
                await self.holds.expire_hold(hold)
                record_finalize_attempt("expired")
                logger.info("finalize_rejected", hold_id=str(hold_id), status=HoldStatus.EXPIRED.value)
                raise HoldExpiredError(f"Hold {hold_id} has expired")

            show_id = hold.show_id
            seat_ids = sorted(hold.seat_ids)

            # Rolling back to the savepoint leaves the caller's loaded objects intact
            async with self.db.begin_nested():
                if not await self.holds.claim_for_finalize(hold_id):
                    # Expired, released or finalized between the read and the claim
                    record_finalize_attempt("expired")
                    logger.info("finalize_lost_race", hold_id=str(hold_id))
                    raise HoldExpiredError(f"Hold {hold_id} is no longer active")

                failed = []
                for seat_id in seat_ids:
                    booked = await self.store.try_transition(
                        show_id, seat_id, SeatStatus.HELD, SeatStatus.BOOKED, hold_id=hold_id
                    )
                    if not booked:
                        failed.append(seat_id)

                if failed:
                    self._fail_inconsistent(hold_id, show_id, seat_ids, failed, reason="seat_not_held")

                prices = await self.store.seat_prices(show_id, seat_ids)
                booking = Booking(
                    show_id=show_id,
                    hold_id=hold_id,
                    customer_ref=customer_ref,
                    reference=await self._new_reference(),
                    total_price_pence=sum(prices[seat_id] for seat_id in seat_ids),
                    payment_confirmation=payment_confirmation,
                    status="confirmed",
                    seats=[
                        BookingSeat(show_id=show_id, seat_id=seat_id, price_paid_pence=prices[seat_id])
                        for seat_id in seat_ids
                    ],
                )
                self.db.add(booking)
                try:
                    await self.db.flush()
                except IntegrityError:
                    self._fail_inconsistent(hold_id, show_id, seat_ids, seat_ids, reason="seat_already_booked")

            await self.db.commit()

        record_finalize_attempt("success")
        logger.info(
            "booking_finalized",
            booking_id=str(booking.id),
            reference=booking.reference,
            hold_id=str(hold_id),
            show_id=str(show_id),
            customer_ref=customer_ref,
            seats=len(seat_ids),
            total_price_pence=booking.total_price_pence,
        )
        return booking

    async def get_booking(self, reference: str) -> Booking:
        result = await self.db.execute(
            select(Booking).where(Booking.reference == reference.strip().upper())
        )
        booking = result.scalar_one_or_none()
        if booking is None:
            raise NotFoundError(f"Booking {reference} not found")
        return booking

    async def list_bookings(self, customer_ref: str) -> list[Booking]:
        """A customer's bookings, newest first."""
        if not customer_ref:
            raise ValueError("A customer reference is required")
        result = await self.db.execute(
            select(Booking)
            .where(Booking.customer_ref == customer_ref)
            .order_by(Booking.created_at.desc(), Booking.reference)
        )
        return list(result.scalars().all())

    async def _new_reference(self) -> str:
        length = self.settings.BOOKING_REFERENCE_LENGTH
        for _ in range(MAX_REFERENCE_ATTEMPTS):
            reference = generate_reference(length)
            taken = await self.db.execute(select(Booking.id).where(Booking.reference == reference))
            if taken.scalar_one_or_none() is None:
                return reference
        raise InternalConsistencyError("Could not allocate a unique booking reference")

    def _fail_inconsistent(self, hold_id, show_id, seat_ids, failed, reason: str):
        record_finalize_attempt("inconsistent")
        logger.error(
            "finalize_inconsistent_state",
            hold_id=str(hold_id),
            show_id=str(show_id),
            seats=[str(seat_id) for seat_id in seat_ids],
            failed_seats=[str(seat_id) for seat_id in failed],
            reason=reason,
        )
        raise InternalConsistencyError(f"Hold {hold_id} could not be finalized")
