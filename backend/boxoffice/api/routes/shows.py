"""
Show endpoints: provisioning, seat map and seat id mappings.
"""

import uuid

from fastapi import APIRouter, Depends, status

from boxoffice.api.deps import get_reservation_service, get_seat_resolver, get_show_service, require_admin
from boxoffice.core.logging import get_logger
from boxoffice.schemas.hold import HoldCreate, HoldResponse
from boxoffice.schemas.show import (
    MappingCreate, MappingResponse, SeatMapResponse, ShowCreate, ShowResponse,
)
from boxoffice.services.cache_service import (
    get_cached_seat_map, invalidate_seat_map, invalidate_seat_maps, set_cached_seat_map,
)
from boxoffice.services.reservation_service import ReservationService
from boxoffice.services.seat_identity import SeatIdentityResolver
from boxoffice.services.show_service import ShowService

logger = get_logger(__name__)
router = APIRouter(prefix="/shows", tags=["Shows"])


@router.post(
    "/",
    response_model=ShowResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_admin)],
)
async def provision_show_endpoint(
    show_data: ShowCreate,
    shows: ShowService = Depends(get_show_service),
):
    """
    Seed a show from a venue layout. Seats without an explicit external id
    get one derived from section slug, row position and seat number.
    """
    show = await shows.provision_show(show_data)
    return await shows.show_summary(show.id)


@router.get("/{show_id}", response_model=ShowResponse)
async def get_show_endpoint(
    show_id: uuid.UUID,
    reservations: ReservationService = Depends(get_reservation_service),
):
    """Show details and seat counts by status."""
    summary = await reservations.show_summary(show_id)
    await invalidate_seat_maps(reservations.holds.expired_show_ids)
    return summary


@router.get("/{show_id}/seats", response_model=SeatMapResponse)
async def seat_map_endpoint(
    show_id: uuid.UUID,
    reservations: ReservationService = Depends(get_reservation_service),
):
    """
    Seat availability by external id.
    Cached in Redis for a few seconds; holds always re-check the database.
    """
    cached = await get_cached_seat_map(show_id)
    if cached:
        cached["cached"] = True
        return SeatMapResponse(**cached)

    seat_map = await reservations.seat_map(show_id)
    response = SeatMapResponse(**seat_map)
    await set_cached_seat_map(show_id, response.model_dump(mode="json"))
    return response


@router.post("/{show_id}/holds", response_model=HoldResponse, status_code=status.HTTP_201_CREATED)
async def create_hold_endpoint(
    show_id: uuid.UUID,
    hold_data: HoldCreate,
    reservations: ReservationService = Depends(get_reservation_service),
):
    """
    Hold all requested seats for the session, or none of them.

    409 lists the seats that were no longer available. Retrying the same
    request from the same session returns the existing hold.
    """
    hold = await reservations.hold_seats(show_id, hold_data.seats, hold_data.session_token, hold_data.ttl_seconds)
    await invalidate_seat_map(show_id)
    return hold


@router.post(
    "/{show_id}/mappings",
    response_model=MappingResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_admin)],
)
async def register_mapping_endpoint(
    show_id: uuid.UUID,
    mapping_data: MappingCreate,
    resolver: SeatIdentityResolver = Depends(get_seat_resolver),
):
    mapping = await resolver.register(show_id, mapping_data.external_id, mapping_data.seat_id)
    await resolver.db.commit()
    await invalidate_seat_map(show_id)
    return mapping


@router.get(
    "/{show_id}/mappings/{external_id}",
    response_model=MappingResponse,
    dependencies=[Depends(require_admin)],
)
async def resolve_mapping_endpoint(
    show_id: uuid.UUID,
    external_id: str,
    resolver: SeatIdentityResolver = Depends(get_seat_resolver),
):
    seat_id = await resolver.resolve(show_id, external_id)
    return MappingResponse(show_id=show_id, external_id=external_id, seat_id=seat_id)
