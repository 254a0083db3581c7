"""
chaintrack.services.tracker - Tracker Facade
==============================================

Ties the store, the Torn client, the sync service and the refresher together
into the flows a front end needs:

* ``load()``          - startup: no key -> ask for one; no running chain ->
                        list API and cached chains; else sync and show it.
* ``save_api_key()``  - store a key, then ``load()``.
* ``select_chain()``  - show a cached chain without touching the API.
* ``fetch_chain_from_list()`` - sync a past chain picked from the API list.

Key rejections from Torn clear the stored key and return a ``needs_key``
state carrying the error.  Other failures propagate.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field

from sqlalchemy import Engine

from chaintrack.config import ChainTrackConfig
from chaintrack.constants import SETTING_API_KEY
from chaintrack.database.engine import run_db
from chaintrack.engine.events import ChainRecord
from chaintrack.services.chain_store import (
    get_chain_record,
    get_setting_value,
    list_chain_records,
    set_setting_value,
)
from chaintrack.services.refresh import AutoRefresher, OnUpdate
from chaintrack.services.sync_service import (
    ChainSyncService,
    chain_is_running,
    resolve_chain_context,
)
from chaintrack.services.torn_client import TornAPIError, TornClient

logger = logging.getLogger(__name__)


class TrackerView(enum.StrEnum):
    NEEDS_KEY = "needs_key"
    NO_ACTIVE_CHAIN = "no_active_chain"
    DASHBOARD = "dashboard"


@dataclass
class TrackerState:
    """What the front end should render next."""

    view: TrackerView
    record: ChainRecord | None = None
    api_chains: list[dict] = field(default_factory=list)
    cached_chains: list[ChainRecord] = field(default_factory=list)
    error: str | None = None


class ChainTracker:
    """Front-end facing entry point."""

    def __init__(
        self,
        engine: Engine,
        client: TornClient,
        cfg: ChainTrackConfig | None = None,
        *,
        service: ChainSyncService | None = None,
        on_update: OnUpdate | None = None,
    ) -> None:
        self.engine = engine
        self.client = client
        self.cfg = cfg or ChainTrackConfig()
        self.service = service or ChainSyncService(engine, client)
        self.refresher = AutoRefresher(
            self.service,
            client,
            interval=self.cfg.refresh_interval_seconds,
            on_update=on_update,
            on_key_rejected=self._forget_key,
        )

    # -------------------------------------------------------------------
    # Key handling
    # -------------------------------------------------------------------
    async def get_api_key(self) -> str | None:
        return await run_db(get_setting_value, self.engine, SETTING_API_KEY)

    async def save_api_key(self, key: str) -> TrackerState:
        await run_db(set_setting_value, self.engine, SETTING_API_KEY, key.strip())
        logger.info("API key saved")
        return await self.load()

    async def _forget_key(self, exc: TornAPIError) -> None:
        logger.warning("Removing stored API key after Torn error %s", exc.code)
        await run_db(set_setting_value, self.engine, SETTING_API_KEY, None)

    async def _rejected(self, exc: TornAPIError) -> TrackerState:
        await self._forget_key(exc)
        return TrackerState(TrackerView.NEEDS_KEY, error=str(exc))

    # -------------------------------------------------------------------
    # Flows
    # -------------------------------------------------------------------
    async def load(self) -> TrackerState:
        """Startup flow; see module docstring."""
        self.stop_auto_refresh()
        api_key = await self.get_api_key()
        if not api_key:
            return TrackerState(TrackerView.NEEDS_KEY)

        try:
            current = await self.client.fetch_current_chain(api_key)
            if not chain_is_running(current):
                return await self._no_active_chain(api_key)
            try:
                resolve_chain_context(current)
            except ValueError:
                logger.warning("Chain status without id/start, listing chains: %r", current)
                return await self._no_active_chain(api_key)
            record = await self.service.sync(api_key, current)
        except TornAPIError as exc:
            if exc.remove_key:
                return await self._rejected(exc)
            raise

        return TrackerState(TrackerView.DASHBOARD, record=record)

    async def _no_active_chain(self, api_key: str) -> TrackerState:
        data = await self.client.fetch_faction_chains(api_key)
        cached = await run_db(list_chain_records, self.engine)
        return TrackerState(
            TrackerView.NO_ACTIVE_CHAIN,
            api_chains=list(data.get("chains") or []),
            cached_chains=cached,
        )

    async def list_chains(self) -> TrackerState:
        api_key = await self.get_api_key()
        if not api_key:
            return TrackerState(
                TrackerView.NEEDS_KEY,
                cached_chains=await run_db(list_chain_records, self.engine),
            )
        try:
            return await self._no_active_chain(api_key)
        except TornAPIError as exc:
            if exc.remove_key:
                return await self._rejected(exc)
            raise

    async def select_chain(self, chain_id: int) -> ChainRecord | None:
        """A cached chain, or ``None`` if it was never synced."""
        return await run_db(get_chain_record, self.engine, chain_id)

    async def fetch_chain_from_list(self, chain_entry: dict) -> TrackerState:
        """Sync a past chain picked from ``fetch_faction_chains``."""
        self.stop_auto_refresh()
        api_key = await self.get_api_key()
        if not api_key:
            return TrackerState(TrackerView.NEEDS_KEY)

        chain_id = chain_entry.get("id") or chain_entry.get("chain")
        payload = {
            "id": chain_id,
            "start": chain_entry.get("start"),
            "end": chain_entry.get("end"),
            "current": None,
        }
        try:
            record = await self.service.sync(api_key, payload)
        except TornAPIError as exc:
            if exc.remove_key:
                return await self._rejected(exc)
            raise
        return TrackerState(TrackerView.DASHBOARD, record=record)

    # -------------------------------------------------------------------
    # Auto-refresh
    # -------------------------------------------------------------------
    async def start_auto_refresh(self, record: ChainRecord) -> bool:
        api_key = await self.get_api_key()
        if not api_key:
            return False
        return self.refresher.start(api_key, record)

    def stop_auto_refresh(self) -> None:
        self.refresher.stop()
