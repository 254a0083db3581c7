"""
chaintrack.services.chain_store - Chain & Settings Persistence
================================================================

Synchronous store functions over the ``chains`` and ``settings`` tables.
Call them from async code through :func:`chaintrack.database.engine.run_db`.

Records cross the boundary as :class:`~chaintrack.engine.events.ChainRecord`
so the engine never sees ORM objects.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from sqlalchemy import Engine, select
from sqlalchemy.orm import Session

from chaintrack.database.engine import get_session
from chaintrack.database.models import Chain, ChainStatus, Setting
from chaintrack.engine.events import ChainRecord, empty_totals

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Conversion
# ---------------------------------------------------------------------------
def _to_record(row: Chain) -> ChainRecord:
    return ChainRecord(
        chain_id=row.chain_id,
        start=row.start,
        end=row.end,
        status=ChainStatus(row.status),
        hits=dict(row.hits or {}),
        consumption=dict(row.consumption or {}),
        totals=dict(row.totals or empty_totals()),
        processed_news_ids=list(row.processed_news_ids or []),
    )


# ---------------------------------------------------------------------------
# Chains
# ---------------------------------------------------------------------------
def get_chain_record(engine: Engine, chain_id: int) -> ChainRecord | None:
    """Fetch a single chain by id, or ``None`` if it was never synced."""
    with Session(engine) as session:
        row = session.get(Chain, chain_id)
        return _to_record(row) if row is not None else None


def save_chain_record(engine: Engine, record: ChainRecord) -> None:
    """Insert or update *record*.

    ``start`` is written only on insert; an existing row keeps the start it
    was created with.
    """
    with get_session(engine) as session:
        row = session.get(Chain, record.chain_id)
        if row is None:
            row = Chain(chain_id=record.chain_id, start=record.start)
            session.add(row)
        row.end = record.end
        row.status = record.status
        row.hits = record.hits
        row.consumption = record.consumption
        row.totals = record.totals
        row.processed_news_ids = sorted(set(record.processed_news_ids))

    logger.debug(
        "Saved chain %d (%s, %d processed news items)",
        record.chain_id, record.status, len(record.processed_news_ids),
    )


def list_chain_records(engine: Engine) -> list[ChainRecord]:
    """Every cached chain, newest first."""
    with Session(engine) as session:
        rows = session.scalars(select(Chain).order_by(Chain.start.desc())).all()
        return [_to_record(r) for r in rows]


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------
def get_setting_value(engine: Engine, key: str, default: Any = None) -> Any:
    """Read a single setting's decoded value.

    Returns *default* when the key does not exist.  A stored ``null`` reads
    back as ``None``, not as *default*.
    """
    with Session(engine) as session:
        row = session.get(Setting, key)
        if row is None:
            return default
        try:
            return json.loads(row.value_json)
        except (json.JSONDecodeError, TypeError):
            return row.value_json


def set_setting_value(engine: Engine, key: str, value: Any) -> None:
    """Insert or update a single setting."""
    value_json = json.dumps(value)
    with get_session(engine) as session:
        existing = session.get(Setting, key)
        if existing:
            existing.value_json = value_json
        else:
            session.add(Setting(key=key, value_json=value_json))
