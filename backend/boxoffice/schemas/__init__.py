from boxoffice.schemas.show import (
    ShowCreate, ShowResponse, SeatMapResponse, SeatView, MappingCreate, MappingResponse,
)
from boxoffice.schemas.hold import HoldCreate, HoldExtend, HoldResponse, FinalizeRequest, ExpireHoldsResponse
from boxoffice.schemas.booking import BookingResponse

__all__ = [
    "ShowCreate", "ShowResponse", "SeatMapResponse", "SeatView", "MappingCreate", "MappingResponse",
    "HoldCreate", "HoldExtend", "HoldResponse", "FinalizeRequest", "ExpireHoldsResponse",
    "BookingResponse",
]
