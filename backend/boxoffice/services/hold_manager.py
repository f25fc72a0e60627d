"""
Hold manager: time-boxed exclusive claims on seats during checkout.

ALL-OR-NOTHING HOLDS
====================

create_hold runs in a single database transaction, inside a savepoint:

  1. INSERT the hold row (status='active', expires_at=now+ttl)
  2. For each seat, in sorted id order:
       AvailabilityStore.try_transition(available -> held, hold_id)
  3. If any seat was not available: ROLLBACK TO SAVEPOINT and raise
     SeatUnavailableError naming every seat that failed. Otherwise COMMIT.

Because the seat updates are uncommitted until step 3, nobody else ever
sees a partial hold. Sorting the seat ids makes every transaction lock rows
in the same order, so two overlapping multi-seat holds cannot deadlock.

EXPIRY
======

Expiry is enforced lazily wherever a hold is read or a seat is requested,
and additionally by a periodic sweep (HoldSweeper). The sweep is an
optimisation only. Closing a hold is itself a compare-and-swap on the hold
row (status='active' -> expired/released/finalized); only the caller whose
UPDATE matched goes on to release the seats, so concurrent sweeps and
releases never double-release.
"""

import uuid
from datetime import timedelta
from typing import Iterable, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from boxoffice.core.clock import SystemClock, as_utc
from boxoffice.core.config import Settings, get_settings
from boxoffice.core.exceptions import HoldExpiredError, NotFoundError, SeatUnavailableError
from boxoffice.core.logging import get_logger
from boxoffice.core.metrics import (
    operation_latency, record_hold_attempt, record_hold_extension, record_hold_release,
    record_holds_expired,
)
from boxoffice.models.hold import Hold, HoldSeat, HoldStatus
from boxoffice.models.seat import SeatStatus
from boxoffice.services.availability_store import AvailabilityStore

logger = get_logger(__name__)


class HoldManager:
    def __init__(
        self,
        db: AsyncSession,
        store: AvailabilityStore,
        clock=None,
        settings: Optional[Settings] = None,
    ):
        self.db = db
        self.store = store
        self.clock = clock or SystemClock()
        self.settings = settings or get_settings()
        # Shows whose seats this manager returned to the pool by expiring holds
        self.expired_show_ids: set[uuid.UUID] = set()

    async def create_hold(
        self,
        show_id: uuid.UUID,
        seat_ids: Iterable[uuid.UUID],
        session_token: str,
        ttl_seconds: Optional[int] = None,
    ) -> Hold:
        """
        Hold every seat in `seat_ids` for `session_token`, or none of them.

        Duplicate ids are collapsed. A retry from the same session for the
        same seat set returns the hold it already has.
        """
        requested = list(dict.fromkeys(seat_ids))
        ttl = self.settings.HOLD_TTL_SECONDS if ttl_seconds is None else ttl_seconds
        self._validate_request(requested, session_token, ttl)

        with operation_latency.labels(operation="create_hold").time():
            known = await self.store.existing_seat_ids(show_id, requested)
            missing = [seat_id for seat_id in requested if seat_id not in known]
            if missing:
                raise NotFoundError(
                    f"Seats not found for show {show_id}: {', '.join(str(s) for s in missing)}"
                )

            existing = await self._find_replay(show_id, session_token, set(requested))
            if existing is not None:
                record_hold_attempt("replayed")
                logger.info("hold_replayed", hold_id=str(existing.id), session_token=session_token)
                return existing

            # Expired holds must never block a new one
            await self.expire_holds(show_id=show_id, seat_ids=requested, trigger="lazy")

            now = self.clock.now()
            failed = []
            try:
                # A savepoint undoes only this attempt; the caller's objects stay loaded
                async with self.db.begin_nested():
                    hold = Hold(
                        show_id=show_id,
                        session_token=session_token,
                        status=HoldStatus.ACTIVE.value,
                        expires_at=now + timedelta(seconds=ttl),
                        created_at=now,
                        seats=[HoldSeat(seat_id=seat_id) for seat_id in requested],
                    )
                    self.db.add(hold)
                    await self.db.flush()

                    for seat_id in sorted(requested):
                        taken = await self.store.try_transition(
                            show_id, seat_id, SeatStatus.AVAILABLE, SeatStatus.HELD, hold_id=hold.id
                        )
                        if not taken:
                            failed.append(seat_id)

                    if failed:
                        raise SeatUnavailableError(failed)
            except SeatUnavailableError:
                record_hold_attempt("unavailable")
                logger.info(
                    "hold_rejected",
                    show_id=str(show_id),
                    session_token=session_token,
                    requested=len(requested),
                    unavailable=[str(seat_id) for seat_id in failed],
                )
                raise

            await self.db.commit()

        record_hold_attempt("created")
        logger.info(
            "hold_created",
            hold_id=str(hold.id),
            show_id=str(show_id),
            session_token=session_token,
            seats=len(requested),
            expires_at=hold.expires_at.isoformat(),
        )
        return hold

    async def release_hold(self, hold_id: uuid.UUID, session_token: Optional[str] = None) -> Hold:
        """
        Return the hold's seats to available. Idempotent: a hold that is
        already released, expired or finalized is left as it is.
        """
        hold = await self.load_hold(hold_id, session_token)
        released = await self._close_hold(hold.id, hold.show_id, HoldStatus.RELEASED)
        await self.db.commit()

        record_hold_release(released)
        if released:
            logger.info("hold_released", hold_id=str(hold_id), show_id=str(hold.show_id))
        else:
            logger.debug("hold_release_noop", hold_id=str(hold_id), status=hold.status)
        return await self.load_hold(hold_id)

    async def extend_hold(
        self,
        hold_id: uuid.UUID,
        session_token: str,
        extra_seconds: Optional[int] = None,
    ) -> Hold:
        """
        Push an active hold's expiry out to now + extra_seconds. Only the
        owning session can extend, an expiry is never brought forward, and a
        hold never lives longer than MAX_HOLD_TTL_SECONDS from its creation.
        """
        seconds = self.settings.HOLD_EXTENSION_SECONDS if extra_seconds is None else extra_seconds
        if seconds <= 0 or seconds > self.settings.MAX_HOLD_TTL_SECONDS:
            raise ValueError(f"Extension must be between 1 and {self.settings.MAX_HOLD_TTL_SECONDS} seconds")
        if not session_token:
            raise ValueError("A session token is required")

        hold = await self.load_hold(hold_id, session_token)
        if hold.status == HoldStatus.ACTIVE.value and self.is_expired(hold):
            await self.expire_hold(hold)

        now = self.clock.now()
        current_expiry = as_utc(hold.expires_at)
        latest = as_utc(hold.created_at) + timedelta(seconds=self.settings.MAX_HOLD_TTL_SECONDS)
        new_expiry = max(current_expiry, min(now + timedelta(seconds=seconds), latest))

        result = await self.db.execute(
            update(Hold)
            .where(
                Hold.id == hold_id,
                Hold.session_token == session_token,
                Hold.status == HoldStatus.ACTIVE.value,
                Hold.expires_at > now,
            )
            .values(expires_at=new_expiry)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            record_hold_extension("expired")
            logger.info("hold_extension_rejected", hold_id=str(hold_id))
            raise HoldExpiredError(f"Hold {hold_id} is no longer active")
        await self.db.commit()

        record_hold_extension("extended")
        logger.info(
            "hold_extended",
            hold_id=str(hold_id),
            show_id=str(hold.show_id),
            expires_at=new_expiry.isoformat(),
            capped=new_expiry == latest,
        )
        return await self.load_hold(hold_id)

    async def expire_holds(
        self,
        show_id: Optional[uuid.UUID] = None,
        seat_ids: Optional[list[uuid.UUID]] = None,
        session_token: Optional[str] = None,
        trigger: str = "sweep",
    ) -> int:
        """
        Expire every active hold past its expiry (optionally narrowed to a
        show, a set of seats or a session). Returns how many this call expired.
        Safe to run concurrently with itself.
        """
        now = self.clock.now()
        query = select(Hold.id, Hold.show_id).where(
            Hold.status == HoldStatus.ACTIVE.value,
            Hold.expires_at <= now,
        )
        if show_id is not None:
            query = query.where(Hold.show_id == show_id)
        if session_token is not None:
            query = query.where(Hold.session_token == session_token)
        if seat_ids:
            query = query.where(
                Hold.id.in_(select(HoldSeat.hold_id).where(HoldSeat.seat_id.in_(seat_ids)))
            )

        candidates = (await self.db.execute(query)).all()
        expired = 0
        for row in candidates:
            if await self._close_hold(row.id, row.show_id, HoldStatus.EXPIRED, expired_by=now):
                expired += 1
            # One hold per transaction keeps row locks short
            await self.db.commit()

        if expired:
            record_holds_expired(trigger, expired)
            logger.info("holds_expired", count=expired, trigger=trigger)
        return expired

    async def get_hold(self, hold_id: uuid.UUID, session_token: Optional[str] = None) -> Hold:
        """Read a hold, expiring it first if its time is up."""
        hold = await self.load_hold(hold_id, session_token)
        if hold.status == HoldStatus.ACTIVE.value and self.is_expired(hold):
            await self.expire_hold(hold)
            hold = await self.load_hold(hold_id)
        return hold

    async def seat_status(self, show_id: uuid.UUID, seat_id: uuid.UUID) -> SeatStatus:
        """
        Current status of a seat as a client should see it: a hold whose
        time is up no longer counts, even before the sweep reaches it.
        AvailabilityStore.get_status reports the stored column as is.
        """
        await self.expire_holds(show_id=show_id, seat_ids=[seat_id], trigger="lazy")
        return await self.store.get_status(show_id, seat_id)

    async def list_session_holds(self, session_token: str) -> list[Hold]:
        """Active holds of a checkout session, most recent first."""
        await self.expire_holds(session_token=session_token, trigger="lazy")
        result = await self.db.execute(
            select(Hold)
            .where(Hold.session_token == session_token, Hold.status == HoldStatus.ACTIVE.value)
            .order_by(Hold.created_at.desc())
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def load_hold(self, hold_id: uuid.UUID, session_token: Optional[str] = None) -> Hold:
        """Fetch a hold as stored. A foreign session token is treated as not found."""
        result = await self.db.execute(
            select(Hold).where(Hold.id == hold_id).execution_options(populate_existing=True)
        )
        hold = result.scalar_one_or_none()
        if hold is None or (session_token is not None and hold.session_token != session_token):
            raise NotFoundError(f"Hold {hold_id} not found")
        return hold

    def is_expired(self, hold: Hold) -> bool:
        return as_utc(hold.expires_at) <= self.clock.now()

    async def expire_hold(self, hold: Hold) -> bool:
        """Lazily expire one hold and commit. False if someone else closed it first."""
        expired = await self._close_hold(hold.id, hold.show_id, HoldStatus.EXPIRED, expired_by=self.clock.now())
        await self.db.commit()
        if expired:
            record_holds_expired("lazy")
            logger.info("hold_expired", hold_id=str(hold.id), show_id=str(hold.show_id), trigger="lazy")
        return expired

    async def claim_for_finalize(self, hold_id: uuid.UUID) -> bool:
        """
        Flip an active, unexpired hold to finalized. Runs inside the caller's
        transaction; the seats are left held for the finalizer to book.
        """
        result = await self.db.execute(
            update(Hold)
            .where(
                Hold.id == hold_id,
                Hold.status == HoldStatus.ACTIVE.value,
                Hold.expires_at > self.clock.now(),
            )
            .values(status=HoldStatus.FINALIZED.value)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def _close_hold(
        self,
        hold_id: uuid.UUID,
        show_id: uuid.UUID,
        new_status: HoldStatus,
        expired_by=None,
    ) -> bool:
        conditions = [Hold.id == hold_id, Hold.status == HoldStatus.ACTIVE.value]
        if expired_by is not None:
            conditions.append(Hold.expires_at <= expired_by)

        result = await self.db.execute(
            update(Hold)
            .where(*conditions)
            .values(status=new_status.value)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            return False

        if new_status == HoldStatus.EXPIRED:
            self.expired_show_ids.add(show_id)
        seat_rows = await self.db.execute(select(HoldSeat.seat_id).where(HoldSeat.hold_id == hold_id))
        for seat_id in sorted(seat_rows.scalars().all()):
            await self.store.try_transition(show_id, seat_id, SeatStatus.HELD, SeatStatus.AVAILABLE, hold_id=hold_id)
        return True

    async def _find_replay(
        self, show_id: uuid.UUID, session_token: str, seat_ids: set[uuid.UUID]
    ) -> Optional[Hold]:
        result = await self.db.execute(
            select(Hold)
            .where(
                Hold.show_id == show_id,
                Hold.session_token == session_token,
                Hold.status == HoldStatus.ACTIVE.value,
            )
            .execution_options(populate_existing=True)
        )
        for hold in result.scalars():
            if not self.is_expired(hold) and set(hold.seat_ids) == seat_ids:
                return hold
        return None

    def _validate_request(self, seat_ids: list, session_token: str, ttl: int) -> None:
        if not seat_ids:
            raise ValueError("At least one seat must be requested")
        if len(seat_ids) > self.settings.MAX_SEATS_PER_HOLD:
            raise ValueError(f"Maximum {self.settings.MAX_SEATS_PER_HOLD} seats allowed per hold")
        if not session_token:
            raise ValueError("A session token is required")
        if ttl < 0 or ttl > self.settings.MAX_HOLD_TTL_SECONDS:
            raise ValueError(f"Hold TTL must be between 0 and {self.settings.MAX_HOLD_TTL_SECONDS} seconds")
