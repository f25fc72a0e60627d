"""
Maps reservation errors to HTTP responses.
"""

from typing import Any, Callable, Coroutine

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from starlette.responses import Response

from boxoffice.core.exceptions import BoxOfficeError, InternalConsistencyError, SeatUnavailableError
from boxoffice.core.logging import get_logger

logger = get_logger(__name__)

ExceptionHandler = Callable[[Request, Exception], Coroutine[Any, Any, Response]]


async def box_office_error_handler(request: Request, exc: Exception) -> JSONResponse:
    error = exc if isinstance(exc, BoxOfficeError) else BoxOfficeError(str(exc))
    return JSONResponse(status_code=error.status_code, content={"detail": error.message})


async def seat_unavailable_handler(request: Request, exc: Exception) -> JSONResponse:
    seats = exc.seat_ids if isinstance(exc, SeatUnavailableError) else []
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content={"detail": "Seat no longer available", "seats": seats},
    )


async def internal_consistency_handler(request: Request, exc: Exception) -> JSONResponse:
    # Details are in the finalize_inconsistent_state log entry
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Booking could not be completed"},
    )


async def value_error_handler(request: Request, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": str(exc)})


EXCEPTION_HANDLERS: dict[type[Exception], ExceptionHandler] = {
    BoxOfficeError: box_office_error_handler,
    SeatUnavailableError: seat_unavailable_handler,
    InternalConsistencyError: internal_consistency_handler,
    ValueError: value_error_handler,
}


def register_exception_handlers(app: FastAPI) -> None:
    for exception_class, handler in EXCEPTION_HANDLERS.items():
        app.add_exception_handler(exception_class, handler)
