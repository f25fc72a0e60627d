"""
Typed errors raised by the reservation core.

Every error carries the HTTP status the API layer maps it to; the core
itself never builds user-facing responses.
"""

from typing import Iterable


class BoxOfficeError(Exception):
    """Base class for all reservation errors."""

    status_code: int = 400

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class NotFoundError(BoxOfficeError):
    """External id, seat, hold, show or booking reference does not exist."""

    status_code = 404


class ConflictError(BoxOfficeError):
    """A seat mapping would break the one-to-one invariant."""

    status_code = 409


class SeatUnavailableError(BoxOfficeError):
    """One or more requested seats could not be held."""

    status_code = 409

    def __init__(self, seat_ids: Iterable, message: str = "") -> None:
        self.seat_ids = [str(seat_id) for seat_id in seat_ids]
        super().__init__(
            message or f"Seats no longer available: {', '.join(self.seat_ids)}"
        )


class HoldExpiredError(BoxOfficeError):
    """Hold is past its expiry, or was already released or finalized."""

    status_code = 410


class InternalConsistencyError(BoxOfficeError):
    """
    A held seat could not be moved to booked during finalize.

    Indicates a sweep/TTL bug or a lost update. Never retried.
    """

    status_code = 500
