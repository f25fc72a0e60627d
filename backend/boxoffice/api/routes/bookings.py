"""
Booking lookups: by reference, or every booking of a customer.
"""

from fastapi import APIRouter, Depends, Query

from boxoffice.api.deps import get_reservation_service
from boxoffice.schemas.booking import BookingResponse
from boxoffice.services.reservation_service import ReservationService

router = APIRouter(prefix="/bookings", tags=["Bookings"])


@router.get("/", response_model=list[BookingResponse])
async def list_customer_bookings_endpoint(
    customer_ref: str = Query(..., min_length=1, max_length=255),
    reservations: ReservationService = Depends(get_reservation_service),
):
    """Bookings made under a customer reference, newest first."""
    return await reservations.customer_bookings(customer_ref)


@router.get("/{reference}", response_model=BookingResponse)
async def get_booking_endpoint(
    reference: str,
    reservations: ReservationService = Depends(get_reservation_service),
):
    return await reservations.get_booking(reference)
