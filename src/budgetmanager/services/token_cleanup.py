"""Revoked-token cleanup loop.

Logged-out tokens stay in the revocation table until their own expiry;
after that they would fail validation anyway, so the rows are dead
weight. This loop deletes them in one batch per pass, then sleeps.

  STOPPED --run_loop()--> RUNNING --stop()--> STOPPING --> STOPPED

stop() wakes the sleep immediately; the loop exits without running
another batch. A failing pass is logged and the loop carries on.

Usage:
    cleanup = RevokedTokenCleanup(interval=3600)
    asyncio.create_task(cleanup.run_loop())
"""

import asyncio
import enum
from datetime import datetime, timezone
from typing import Callable, Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from budgetmanager.auth.revocation import RevocationRegistry
from budgetmanager.db.engine import async_session_factory

logger = structlog.get_logger()


class CleanupState(str, enum.Enum):
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"


class RevokedTokenCleanup:
    def __init__(
        self,
        interval: float = 3600.0,
        session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.interval = interval
        self.session_factory = session_factory or async_session_factory
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._stop_event = asyncio.Event()
        self.state = CleanupState.STOPPED

    async def run_loop(self) -> None:
        """Purge, sleep, repeat until stop() is called.

        A stop() issued before the task first runs is honoured: the loop
        returns without running a batch.
        """
        if self.state == CleanupState.RUNNING:
            return
        if self._stop_event.is_set():
            self._stop_event.clear()
            logger.info("token_cleanup.stopped_before_start")
            return
        self.state = CleanupState.RUNNING
        logger.info("token_cleanup.started", interval=self.interval)

        try:
            while self.state == CleanupState.RUNNING:
                try:
                    await self.purge_once()
                except Exception:
                    logger.exception("token_cleanup.error")

                try:
                    await asyncio.wait_for(self._stop_event.wait(), timeout=self.interval)
                except asyncio.TimeoutError:
                    pass
        finally:
            # The stop signal is consumed; a later run_loop() starts fresh.
            self._stop_event.clear()
            self.state = CleanupState.STOPPED
            logger.info("token_cleanup.stopped")

    async def purge_once(self) -> int:
        """Delete every expired revocation entry. Returns the row count."""
        async with self.session_factory() as db:
            purged = await RevocationRegistry(db).purge_expired(self._clock())
            await db.commit()
        return purged

    def stop(self) -> None:
        """Signal the loop to stop; wakes it if sleeping."""
        if self.state == CleanupState.RUNNING:
            self.state = CleanupState.STOPPING
            logger.info("token_cleanup.stopping")
        self._stop_event.set()
