"""
Periodic background sweep of expired holds.

Started and stopped by the application lifespan. Each pass opens its own
session and runs HoldManager.expire_holds. Holds are also expired lazily
on every read, hold attempt and finalize, so a stopped or slow sweeper
only delays when expired seats show up as available in the seat map.

A failing pass (database down, driver error) is logged and retried on the
next interval; the loop only ends when the task is cancelled.
"""

import asyncio
from typing import Optional

from sqlalchemy.ext.asyncio import async_sessionmaker

from boxoffice.core.clock import SystemClock
from boxoffice.core.config import Settings, get_settings
from boxoffice.core.logging import get_logger
from boxoffice.services.availability_store import AvailabilityStore
from boxoffice.services.cache_service import invalidate_seat_maps
from boxoffice.services.hold_manager import HoldManager

logger = get_logger(__name__)


class HoldSweeper:
    def __init__(
        self,
        session_factory: async_sessionmaker,
        clock=None,
        settings: Optional[Settings] = None,
    ):
        self.session_factory = session_factory
        self.clock = clock or SystemClock()
        self.settings = settings or get_settings()
        self.failures = 0
        self._task: Optional[asyncio.Task] = None

    async def sweep_once(self) -> int:
        async with self.session_factory() as db:
            holds = HoldManager(db, AvailabilityStore(db), self.clock, self.settings)
            expired = await holds.expire_holds(trigger="sweep")
        await invalidate_seat_maps(holds.expired_show_ids)
        return expired

    async def _run(self) -> None:
        interval = self.settings.HOLD_SWEEP_INTERVAL_SECONDS
        logger.info("hold_sweeper_started", interval_seconds=interval)
        while True:
            try:
                await self.sweep_once()
            except Exception:
                self.failures += 1
                logger.exception("hold_sweep_failed", failures=self.failures)
            await asyncio.sleep(interval)

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self._task is None:
            self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        if self._task is None:
            return
        task, self._task = self._task, None
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        except Exception:
            # Loop died before the cancel arrived
            logger.exception("hold_sweeper_crashed")
        logger.info("hold_sweeper_stopped")
