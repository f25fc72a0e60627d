"""
Operational endpoints. Protected by ADMIN_API_TOKEN when configured.
"""

from fastapi import APIRouter, Depends

from boxoffice.api.deps import get_reservation_service, require_admin
from boxoffice.core.logging import get_logger
from boxoffice.schemas.hold import ExpireHoldsResponse
from boxoffice.services.cache_service import invalidate_all_seat_maps
from boxoffice.services.reservation_service import ReservationService

logger = get_logger(__name__)
router = APIRouter(prefix="/admin", tags=["Admin"], dependencies=[Depends(require_admin)])


@router.post("/holds/expire", response_model=ExpireHoldsResponse)
async def expire_holds_endpoint(
    reservations: ReservationService = Depends(get_reservation_service),
):
    """Run a hold sweep now instead of waiting for the background sweeper."""
    expired = await reservations.expire_holds()
    if expired:
        await invalidate_all_seat_maps()
    logger.info("admin_hold_sweep", expired=expired)
    return ExpireHoldsResponse(expired=expired)
