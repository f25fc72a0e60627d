from boxoffice.models.show import Show, Section
from boxoffice.models.seat import Seat, SeatStatus
from boxoffice.models.seat_mapping import SeatMapping
from boxoffice.models.hold import Hold, HoldSeat, HoldStatus
from boxoffice.models.booking import Booking, BookingSeat

__all__ = [
    "Show", "Section",
    "Seat", "SeatStatus",
    "SeatMapping",
    "Hold", "HoldSeat", "HoldStatus",
    "Booking", "BookingSeat",
]
