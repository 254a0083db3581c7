"""
chaintrack.services.sync_service - Chain Sync Orchestrator
============================================================

One sync of one chain:

    1. Resolve id / start / end / in-progress from the chain payload.
    2. Load the stored record, or seed an empty one.
    3. Concurrently fetch the chain report and walk the news feed from the
       record's start to the chain end (or now), extending a *copy* of the
       record's dedup set.
    4. Aggregate consumption, merge with the report, persist the record
       and ``last_sync_timestamp``.
    5. Return the updated record.

Nothing is written unless both fetches succeed.  Errors propagate unchanged
so the caller can decide what to show (and whether to drop the API key).
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

from sqlalchemy import Engine

from chaintrack.constants import SETTING_LAST_SYNC
from chaintrack.database.engine import run_db
from chaintrack.engine.aggregator import aggregate_consumption
from chaintrack.engine.events import ChainRecord
from chaintrack.engine.merger import mark_finished, merge_chain_record, parse_chain_report
from chaintrack.services.chain_store import get_chain_record, save_chain_record, set_setting_value
from chaintrack.services.news_paginator import collect_consumption_events

logger = logging.getLogger(__name__)


class ChainSource(Protocol):
    async def fetch_chain_report(self, chain_id: int, api_key: str) -> dict: ...

    async def fetch_faction_news(self, api_key: str, before: str | None = None) -> dict: ...


# ---------------------------------------------------------------------------
# ChainContext - what a chain status payload tells us
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class ChainContext:
    """Normalized chain identity and bounds.

    ``end`` is ``None`` while the chain is in progress.
    """

    chain_id: int
    start: int
    end: int | None
    in_progress: bool


def _first(payload: dict, *keys: str):
    for key in keys:
        if payload.get(key) is not None:
            return payload[key]
    return None


def resolve_chain_context(payload: dict) -> ChainContext:
    """Build a :class:`ChainContext` from ``/faction/chain`` or a chain-list entry.

    Raises
    ------
    ValueError
        If the payload has no chain id or no start time.
    """
    chain_id = _first(payload, "id", "chain_id", "chainId", "chain")
    start = _first(payload, "start", "chain_start")
    if chain_id is None or start is None:
        raise ValueError(f"Chain payload without id/start: {payload!r}")

    in_progress = bool(payload.get("current"))
    end = payload.get("end")
    return ChainContext(
        chain_id=int(chain_id),
        start=int(start),
        end=None if in_progress or not end else int(end),
        in_progress=in_progress,
    )


def chain_is_running(payload: dict | None) -> bool:
    """True when a chain status payload describes a running chain."""
    return bool(payload) and bool(payload.get("current") or payload.get("id"))


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------
class ChainSyncService:
    """Runs syncs against one store and one API client.

    ``in_flight`` is True while a sync is running.  Periodic ticks check it
    and skip instead of starting a second sync.
    """

    def __init__(
        self,
        engine: Engine,
        client: ChainSource,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.engine = engine
        self.client = client
        self._clock = clock
        self.in_flight = False

    def now(self) -> int:
        return int(self._clock())

    async def sync(self, api_key: str, chain_payload: dict) -> ChainRecord:
        """Sync the chain described by *chain_payload* and return the new record."""
        ctx = resolve_chain_context(chain_payload)
        self.in_flight = True
        try:
            return await self._sync(api_key, ctx)
        finally:
            self.in_flight = False

    async def _sync(self, api_key: str, ctx: ChainContext) -> ChainRecord:
        record = await run_db(get_chain_record, self.engine, ctx.chain_id)
        if record is None:
            logger.info("Chain %d seen for the first time, seeding record", ctx.chain_id)
            record = ChainRecord.seed(ctx.chain_id, ctx.start)

        now = self.now()
        news_end = ctx.end if ctx.end is not None else now
        if record.end is not None:
            news_end = min(news_end, record.end)
        processed = set(record.processed_news_ids)

        logger.info(
            "Syncing chain %d (%s), news window [%d, %d], %d item(s) already processed",
            ctx.chain_id, "in progress" if ctx.in_progress else "ended",
            record.start, news_end, len(processed),
        )
        report_payload, events = await asyncio.gather(
            self.client.fetch_chain_report(ctx.chain_id, api_key),
            collect_consumption_events(
                self.client,
                api_key,
                start=record.start,
                end=news_end,
                processed=processed,
            ),
        )

        updated = merge_chain_record(
            record,
            parse_chain_report(report_payload),
            aggregate_consumption(events),
            in_progress=ctx.in_progress,
            chain_end=ctx.end,
            now=now,
        )
        updated.processed_news_ids = sorted(processed)

        await run_db(save_chain_record, self.engine, updated)
        await run_db(set_setting_value, self.engine, SETTING_LAST_SYNC, self.now())
        logger.info(
            "Chain %d synced: status=%s totals=%s", updated.chain_id, updated.status, updated.totals
        )
        return updated

    async def finish(self, record: ChainRecord) -> ChainRecord:
        """Mark *record* finished without fetching anything, and persist it."""
        finished = mark_finished(record, self.now())
        await run_db(save_chain_record, self.engine, finished)
        logger.info("Chain %d marked finished at %d", finished.chain_id, finished.end)
        return finished
