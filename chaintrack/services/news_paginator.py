"""
chaintrack.services.news_paginator - Faction News Walker
==========================================================

Walks ``/faction/news`` newest-first, page by page, and turns every
unprocessed item inside ``[start, end]`` into consumption events.

How it works:
    1. Request a page (first page without cursor, then the ``prev`` link).
    2. For each item, newest first:
       - timestamp < start  -> stop; the feed is descending so no older
         page can matter.  The rest of this page is discarded.
       - timestamp > end    -> skip (after the chain; not marked processed).
       - key already seen   -> skip.
       - otherwise          -> mark processed, parse, keep the events.
    3. Continue while a ``prev`` cursor exists.

The dedup set is mutated in place.  Items without a usable timestamp are
marked processed and produce nothing.
"""

from __future__ import annotations

import hashlib
import json
import logging
from typing import Protocol

from chaintrack.engine.events import ConsumptionEvent
from chaintrack.engine.parser import parse_news_text

logger = logging.getLogger(__name__)

__all__ = ["NewsSource", "collect_consumption_events", "news_item_key"]


class NewsSource(Protocol):
    async def fetch_faction_news(self, api_key: str, before: str | None = None) -> dict: ...


# ---------------------------------------------------------------------------
# Page / item helpers
# ---------------------------------------------------------------------------
def _page_items(page: dict) -> list[dict]:
    news = page.get("news")
    if news is None:
        news = (page.get("faction") or {}).get("news")
    if isinstance(news, dict):
        # Legacy v1 shape: {"<id>": {...}}; keep the key as the id.
        return [{"id": key, **item} for key, item in news.items() if isinstance(item, dict)]
    return [item for item in (news or []) if isinstance(item, dict)]


def _next_cursor(page: dict) -> str | None:
    meta = page.get("_metadata") or page.get("metadata") or {}
    prev = (meta.get("links") or {}).get("prev") or meta.get("prev")
    if isinstance(prev, dict):
        prev = prev.get("url") or prev.get("before")
    return str(prev) if prev else None


def _item_timestamp(item: dict) -> int | None:
    raw = item.get("timestamp")
    if raw is None:
        raw = item.get("time")
    try:
        return int(raw) if raw is not None else None
    except (TypeError, ValueError):
        return None


def _item_text(item: dict) -> str:
    text = item.get("text")
    if text is None:
        text = item.get("news") or item.get("content") or ""
    return str(text)


def news_item_key(item: dict) -> str:
    """Stable dedup key for a news item.

    Uses the native id when present, otherwise ``"<timestamp>-<sha1>"`` over
    the whole item serialized with sorted keys.
    """
    native = item.get("id")
    if native not in (None, ""):
        return str(native)
    digest = hashlib.sha1(
        json.dumps(item, sort_keys=True, default=str).encode("utf-8")
    ).hexdigest()
    return f"{_item_timestamp(item)}-{digest}"


# ---------------------------------------------------------------------------
# Walker
# ---------------------------------------------------------------------------
def _consume_page(
    items: list[dict],
    start: int,
    end: int,
    processed: set[str],
    events: list[ConsumptionEvent],
) -> bool:
    """Fold one page into *events*.  Returns True once the start bound is crossed."""
    for item in items:
        ts = _item_timestamp(item)
        key = news_item_key(item)
        if ts is None:
            if key not in processed:
                logger.warning("News item %s has no timestamp; marking processed", key)
                processed.add(key)
            continue
        if ts < start:
            return True
        if ts > end or key in processed:
            continue
        processed.add(key)
        events.extend(parse_news_text(_item_text(item), timestamp=ts, item_key=key))
    return False


async def collect_consumption_events(
    source: NewsSource,
    api_key: str,
    *,
    start: int,
    end: int,
    processed: set[str],
) -> list[ConsumptionEvent]:
    """Return every new consumption event between *start* and *end*.

    Parameters
    ----------
    source : anything with ``fetch_faction_news`` (normally :class:`TornClient`)
    api_key : passed through to *source*
    start, end : inclusive epoch-second bounds
    processed : dedup set; every consumed item key is added to it
    """
    events: list[ConsumptionEvent] = []
    cursor: str | None = None
    pages = 0

    while True:
        page = await source.fetch_faction_news(api_key, before=cursor)
        pages += 1
        reached_start = _consume_page(_page_items(page), start, end, processed, events)
        cursor = _next_cursor(page)
        if reached_start or not cursor:
            break

    logger.info(
        "News walk: %d page(s), %d consumption event(s) in [%d, %d]",
        pages, len(events), start, end,
    )
    return events
