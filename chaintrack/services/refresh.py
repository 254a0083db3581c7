"""
chaintrack.services.refresh - Periodic Dashboard Refresh
==========================================================

While a chain is active and its view is visible, re-sync every
``refresh_interval_seconds`` (120 s by default):

- Ticks are skipped while the view is hidden or a sync is already in flight.
- When the chain turns out to have ended, the stored record is marked
  finished once, the view is updated, and the loop stops.
- Failures are logged and the loop keeps going, except for key rejections,
  which stop it.
- ``stop()`` never interrupts a running sync; it only prevents the next tick.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

from chaintrack.engine.events import ChainRecord
from chaintrack.services.sync_service import (
    ChainSyncService,
    chain_is_running,
    resolve_chain_context,
)
from chaintrack.services.torn_client import TornAPIError

logger = logging.getLogger(__name__)

OnUpdate = Callable[[ChainRecord], Awaitable[None] | None]


class AutoRefresher:
    """Background refresh loop for one active chain."""

    def __init__(
        self,
        service: ChainSyncService,
        status_source,
        *,
        interval: float = 120.0,
        is_visible: Callable[[], bool] = lambda: True,
        on_update: OnUpdate | None = None,
        on_key_rejected: Callable[[TornAPIError], Awaitable[None] | None] | None = None,
    ) -> None:
        self.service = service
        self.status_source = status_source
        self.interval = interval
        self.is_visible = is_visible
        self.on_update = on_update
        self.on_key_rejected = on_key_rejected
        self.api_key: str | None = None
        self.record: ChainRecord | None = None
        self._task: asyncio.Task | None = None
        self._ticking: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self, api_key: str, record: ChainRecord) -> bool:
        """Start refreshing *record*.  Returns False if nothing was started."""
        if not record.is_active or self.running:
            return False
        self.api_key = api_key
        self.record = record

        async def _refresh_loop() -> None:
            me = asyncio.current_task()
            while True:
                await asyncio.sleep(self.interval)
                self._ticking = me
                try:
                    await self.tick()
                finally:
                    if self._ticking is me:
                        self._ticking = None
                # stop() during the tick lets it finish and lands here
                if self._task is not me or self.record is None or not self.record.is_active:
                    break

        self._task = asyncio.get_running_loop().create_task(
            _refresh_loop(), name=f"chain-refresh-{record.chain_id}"
        )
        logger.info(
            "Auto-refresh started for chain %d every %.0fs", record.chain_id, self.interval
        )
        return True

    def stop(self) -> None:
        """Stop scheduling ticks.

        A loop waiting for its next tick is cancelled.  A tick that is
        already running completes (its sync is persisted) and the loop exits
        right after it.
        """
        task, self._task = self._task, None
        if task is None or task is asyncio.current_task() or task is self._ticking:
            return
        task.cancel()

    async def wait(self) -> None:
        """Block until the loop ends on its own or is stopped."""
        task = self._task
        if task is None:
            return
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _notify(self, callback, arg) -> None:
        if callback is None:
            return
        result = callback(arg)
        if asyncio.iscoroutine(result):
            await result

    async def tick(self) -> None:
        """One refresh step.  Safe to call directly (tests, manual refresh)."""
        if self.record is None or self.api_key is None:
            return
        if not self.is_visible():
            logger.debug("Refresh tick skipped: view hidden")
            return
        if self.service.in_flight:
            logger.debug("Refresh tick skipped: sync already in flight")
            return

        self.service.in_flight = True
        try:
            status = await self.status_source.fetch_current_chain(self.api_key)
            if not chain_is_running(status) or (
                resolve_chain_context(status).chain_id != self.record.chain_id
            ):
                self.record = await self.service.finish(self.record)
                self.stop()
            else:
                # sync() takes the guard itself
                self.service.in_flight = False
                self.record = await self.service.sync(self.api_key, status)
        except TornAPIError as exc:
            if exc.remove_key:
                logger.warning("Auto-refresh stopped: API key rejected (%s)", exc)
                self.stop()
                await self._notify(self.on_key_rejected, exc)
                return
            logger.exception("Auto-refresh failed for chain %d", self.record.chain_id)
            return
        except Exception:
            logger.exception("Auto-refresh failed for chain %d", self.record.chain_id)
            return
        finally:
            self.service.in_flight = False

        await self._notify(self.on_update, self.record)
