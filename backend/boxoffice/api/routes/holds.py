"""
Hold endpoints: read, list, extend, release and finalize.

Hold ids are only usable together with the session token that created
them; a mismatched token gets the same 404 as an unknown hold.

Reads expire overdue holds on the spot, so any of these endpoints can
return seats to the pool; the affected seat maps are dropped from the cache
before responding.
"""

import uuid

from fastapi import APIRouter, Depends, Query, status

from boxoffice.api.deps import get_reservation_service
from boxoffice.core.exceptions import HoldExpiredError
from boxoffice.core.logging import get_logger
from boxoffice.schemas.booking import BookingResponse
from boxoffice.schemas.hold import FinalizeRequest, HoldExtend, HoldResponse
from boxoffice.services.cache_service import invalidate_seat_map, invalidate_seat_maps
from boxoffice.services.reservation_service import ReservationService

logger = get_logger(__name__)
router = APIRouter(prefix="/holds", tags=["Holds"])


@router.get("/", response_model=list[HoldResponse])
async def list_session_holds_endpoint(
    session_token: str = Query(..., min_length=1),
    reservations: ReservationService = Depends(get_reservation_service),
):
    """Active holds of a checkout session."""
    holds = await reservations.session_holds(session_token)
    await invalidate_seat_maps(reservations.holds.expired_show_ids)
    return holds


@router.get("/{hold_id}", response_model=HoldResponse)
async def get_hold_endpoint(
    hold_id: uuid.UUID,
    session_token: str = Query(..., min_length=1),
    reservations: ReservationService = Depends(get_reservation_service),
):
    hold = await reservations.get_hold(hold_id, session_token)
    await invalidate_seat_maps(reservations.holds.expired_show_ids)
    return hold


@router.post("/{hold_id}/extend", response_model=HoldResponse)
async def extend_hold_endpoint(
    hold_id: uuid.UUID,
    extend_data: HoldExtend,
    reservations: ReservationService = Depends(get_reservation_service),
):
    """
    Give the session more time to pay. The hold never outlives
    MAX_HOLD_TTL_SECONDS from its creation; 410 if it already expired.
    """
    try:
        return await reservations.extend(hold_id, extend_data.session_token, extend_data.extra_seconds)
    finally:
        await invalidate_seat_maps(reservations.holds.expired_show_ids)


@router.delete("/{hold_id}", response_model=HoldResponse)
async def release_hold_endpoint(
    hold_id: uuid.UUID,
    session_token: str = Query(..., min_length=1),
    reservations: ReservationService = Depends(get_reservation_service),
):
    """Release a hold. Releasing an already closed hold is a no-op."""
    hold = await reservations.release(hold_id, session_token)
    await invalidate_seat_map(hold["show_id"])
    return hold


@router.post("/{hold_id}/finalize", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def finalize_hold_endpoint(
    hold_id: uuid.UUID,
    finalize_data: FinalizeRequest,
    reservations: ReservationService = Depends(get_reservation_service),
):
    """
    Convert a hold into a booking after payment succeeded.

    410 if the hold expired or was already released or finalized.
    """
    try:
        booking = await reservations.finalize(
            hold_id,
            finalize_data.session_token,
            finalize_data.customer_ref,
            finalize_data.payment_confirmation,
        )
    except HoldExpiredError:
        # Expiry may just have returned seats to the pool
        await invalidate_seat_maps(reservations.holds.expired_show_ids)
        raise

    await invalidate_seat_map(booking["show_id"])
    return booking
