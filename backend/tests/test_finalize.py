"""
Tests for converting holds into bookings, including the end-to-end
checkout scenarios.
"""

import uuid

import pytest
from sqlalchemy import func, select, update

from boxoffice.core.exceptions import (
    HoldExpiredError, InternalConsistencyError, NotFoundError, SeatUnavailableError,
)
from boxoffice.models.booking import Booking, BookingSeat
from boxoffice.models.hold import HoldStatus
from boxoffice.models.seat import Seat, SeatStatus
from boxoffice.services.booking_finalizer import REFERENCE_ALPHABET


async def _booking_count(db_session) -> int:
    result = await db_session.execute(select(func.count()).select_from(Booking))
    return result.scalar()


@pytest.mark.asyncio
async def test_checkout_race_scenario(reservations, small_show, seat_id):
    """
    X holds A1; Y is turned away; X pays and A1 is booked; Y still cannot
    hold A1.
    """
    a1 = await seat_id(small_show, "A1")

    hold = await reservations.hold_seats(small_show.id, ["A1"], "X", 900)
    assert await reservations.store.get_status(small_show.id, a1) == SeatStatus.HELD

    with pytest.raises(SeatUnavailableError) as exc_info:
        await reservations.hold_seats(small_show.id, ["A1"], "Y", 900)
    assert exc_info.value.seat_ids == ["A1"]
    assert await reservations.store.get_status(small_show.id, a1) == SeatStatus.HELD

    booking = await reservations.finalize(hold["id"], "X", "customer-1", "payment-token")
    assert booking["seats"] == ["A1"]
    assert booking["total_price_pence"] == 3000
    assert await reservations.store.get_status(small_show.id, a1) == SeatStatus.BOOKED

    with pytest.raises(SeatUnavailableError):
        await reservations.hold_seats(small_show.id, ["A1"], "Y", 900)


@pytest.mark.asyncio
async def test_expired_hold_cannot_be_finalized(reservations, small_show, seat_id, clock):
    """A 1 second hold, 2 seconds later: finalize fails and both seats are free again."""
    hold = await reservations.hold_seats(small_show.id, ["A1", "A2"], "X", 1)

    clock.advance(2)
    with pytest.raises(HoldExpiredError):
        await reservations.finalize(hold["id"], "X", "customer-1", "payment-token")

    assert await reservations.store.get_status(small_show.id, await seat_id(small_show, "A1")) == SeatStatus.AVAILABLE
    assert await reservations.store.get_status(small_show.id, await seat_id(small_show, "A2")) == SeatStatus.AVAILABLE
    assert (await reservations.get_hold(hold["id"], "X"))["status"] == HoldStatus.EXPIRED.value


@pytest.mark.asyncio
async def test_finalize_twice_books_once(db_session, reservations, small_show):
    hold = await reservations.hold_seats(small_show.id, ["A1"], "X")
    await reservations.finalize(hold["id"], "X", "customer-1", "payment-token")

    with pytest.raises(HoldExpiredError):
        await reservations.finalize(hold["id"], "X", "customer-1", "payment-token")
    assert await _booking_count(db_session) == 1


@pytest.mark.asyncio
async def test_released_hold_cannot_be_finalized(db_session, reservations, small_show):
    hold = await reservations.hold_seats(small_show.id, ["A1"], "X")
    await reservations.release(hold["id"], "X")

    with pytest.raises(HoldExpiredError):
        await reservations.finalize(hold["id"], "X", "customer-1", "payment-token")
    assert await _booking_count(db_session) == 0


@pytest.mark.asyncio
async def test_finalize_requires_owning_session(reservations, small_show):
    hold = await reservations.hold_seats(small_show.id, ["A1"], "X")

    with pytest.raises(NotFoundError):
        await reservations.finalize(hold["id"], "Y", "customer-2", "payment-token")
    with pytest.raises(NotFoundError):
        await reservations.finalize(uuid.uuid4(), "X", "customer-1", "payment-token")


@pytest.mark.asyncio
async def test_finalize_at_expiry_instant_fails(reservations, small_show, clock):
    hold = await reservations.hold_seats(small_show.id, ["A1"], "X", 60)
    clock.advance(60)
    with pytest.raises(HoldExpiredError):
        await reservations.finalize(hold["id"], "X", "customer-1", "payment-token")


@pytest.mark.asyncio
async def test_booking_record(db_session, reservations, small_show):
    hold = await reservations.hold_seats(small_show.id, ["A2", "A1"], "X")
    booking = await reservations.finalizer.finalize(hold["id"], "customer-1", "payment-token", "X")

    assert booking.total_price_pence == 6500
    assert booking.payment_confirmation == "payment-token"
    assert booking.hold_id == hold["id"]
    assert len(booking.reference) == 8
    assert set(booking.reference) <= set(REFERENCE_ALPHABET)

    prices = await db_session.execute(
        select(BookingSeat.price_paid_pence).where(BookingSeat.booking_id == booking.id)
    )
    assert sorted(prices.scalars().all()) == [3000, 3500]

    hold_after = await reservations.get_hold(hold["id"], "X")
    assert hold_after["status"] == HoldStatus.FINALIZED.value


@pytest.mark.asyncio
async def test_get_booking_by_reference(reservations, small_show):
    hold = await reservations.hold_seats(small_show.id, ["A1", "A2"], "X")
    booking = await reservations.finalize(hold["id"], "X", "customer-1", "payment-token")

    found = await reservations.get_booking(booking["reference"].lower())
    assert found["reference"] == booking["reference"]
    assert found["seats"] == ["A1", "A2"]

    with pytest.raises(NotFoundError):
        await reservations.get_booking("ZZZZZZZZ")


@pytest.mark.asyncio
async def test_finalize_requires_customer_and_payment(reservations, small_show):
    hold = await reservations.hold_seats(small_show.id, ["A1"], "X")
    with pytest.raises(ValueError):
        await reservations.finalize(hold["id"], "X", "", "payment-token")
    with pytest.raises(ValueError):
        await reservations.finalize(hold["id"], "X", "customer-1", "")


@pytest.mark.asyncio
async def test_seat_lost_while_held_aborts_everything(db_session, reservations, small_show, seat_id):
    """A held seat that is not held any more at finalize time is a consistency failure."""
    a1 = await seat_id(small_show, "A1")
    a2 = await seat_id(small_show, "A2")
    hold = await reservations.hold_seats(small_show.id, ["A1", "A2"], "X")

    # Simulate a lost update behind the hold's back
    await db_session.execute(
        update(Seat).where(Seat.id == a2).values(status=SeatStatus.AVAILABLE.value, hold_id=None)
    )
    await db_session.commit()

    with pytest.raises(InternalConsistencyError):
        await reservations.finalize(hold["id"], "X", "customer-1", "payment-token")

    assert await _booking_count(db_session) == 0
    assert await reservations.store.get_status(small_show.id, a1) == SeatStatus.HELD
    assert (await reservations.get_hold(hold["id"], "X"))["status"] == HoldStatus.ACTIVE.value


@pytest.mark.asyncio
async def test_refused_hold_keeps_winner_objects_usable(db_session, reservations, small_show, seat_id):
    """
    X holds A1 and Y is turned away, both through the core components; X's
    Hold object and the show stay usable for the finalize that follows.
    """
    a1 = await seat_id(small_show, "A1")
    hold_x = await reservations.holds.create_hold(small_show.id, [a1], "X")

    with pytest.raises(SeatUnavailableError):
        await reservations.holds.create_hold(small_show.id, [a1], "Y")

    booking = await reservations.finalizer.finalize(hold_x.id, "customer-1", "payment-token", "X")
    assert booking.hold_id == hold_x.id
    assert booking.seat_ids == [a1]
    assert await reservations.store.get_status(small_show.id, a1) == SeatStatus.BOOKED


@pytest.mark.asyncio
async def test_list_bookings_for_customer(reservations, small_show):
    first = await reservations.hold_seats(small_show.id, ["A1"], "X")
    second = await reservations.hold_seats(small_show.id, ["A2"], "X")
    await reservations.finalize(first["id"], "X", "customer-1", "payment-1")
    await reservations.finalize(second["id"], "X", "customer-1", "payment-2")

    bookings = await reservations.finalizer.list_bookings("customer-1")
    assert sorted(b.hold_id for b in bookings) == sorted([first["id"], second["id"]])
    assert all(b.customer_ref == "customer-1" for b in bookings)

    views = await reservations.customer_bookings("customer-1")
    assert sorted(seat for view in views for seat in view["seats"]) == ["A1", "A2"]

    assert await reservations.finalizer.list_bookings("someone-else") == []
    with pytest.raises(ValueError):
        await reservations.finalizer.list_bookings("")
