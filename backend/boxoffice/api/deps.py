"""
FastAPI dependencies: per-request services and the admin token check.

Services are built per request around the request's session. The clock is
a dependency of its own so tests can swap in a controllable one through
app.dependency_overrides.
"""

import secrets
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from boxoffice.core.clock import SystemClock
from boxoffice.core.config import Settings, get_settings
from boxoffice.core.logging import get_logger
from boxoffice.db.session import get_db
from boxoffice.services.reservation_service import ReservationService
from boxoffice.services.seat_identity import SeatIdentityResolver
from boxoffice.services.show_service import ShowService

logger = get_logger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def get_clock():
    return SystemClock()


def get_reservation_service(
    db: AsyncSession = Depends(get_db),
    clock=Depends(get_clock),
    settings: Settings = Depends(get_settings),
) -> ReservationService:
    return ReservationService(db, clock, settings)


def get_show_service(db: AsyncSession = Depends(get_db)) -> ShowService:
    return ShowService(db)


def get_seat_resolver(db: AsyncSession = Depends(get_db)) -> SeatIdentityResolver:
    return SeatIdentityResolver(db)


def require_admin(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    settings: Settings = Depends(get_settings),
) -> None:
    """Open when ADMIN_API_TOKEN is unset; otherwise the bearer token must match."""
    expected = settings.ADMIN_API_TOKEN
    if not expected:
        return
    if credentials is None or not secrets.compare_digest(credentials.credentials, expected):
        logger.warning("admin_auth_failed")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid admin token",
            headers={"WWW-Authenticate": "Bearer"},
        )
