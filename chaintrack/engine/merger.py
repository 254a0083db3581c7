"""
chaintrack.engine.merger - Chain Report + Consumption -> ChainRecord
======================================================================

Pure merge step of the sync pipeline.  No network or DB I/O.

Rules:
  * ``hits`` is **replaced** by the latest report.  The report is
    cumulative, so adding it to the previous value would double count.
  * ``consumption`` is **added** to what the record already holds.
  * ``totals`` is recomputed from scratch every time.
  * ``status`` only moves ACTIVE -> FINISHED, and ``end`` is set once.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field

from chaintrack.database.models import ChainStatus
from chaintrack.engine.events import ChainRecord

logger = logging.getLogger(__name__)

__all__ = [
    "ChainReport",
    "compute_totals",
    "mark_finished",
    "merge_chain_record",
    "parse_chain_report",
]


@dataclass
class ChainReport:
    """Normalized chain report: ``actor_id -> {"hits", "respect", "name"}``."""

    entries: dict[str, dict] = field(default_factory=dict)
    end: int | None = None


def _first(mapping: dict, *keys: str):
    for key in keys:
        value = mapping.get(key)
        if value is not None:
            return value
    return None


def _total(value) -> float:
    """Torn nests some counters as ``{"total": N, ...}``."""
    if isinstance(value, dict):
        value = value.get("total")
    if value is None:
        return 0
    return value


def parse_chain_report(payload: dict) -> ChainReport:
    """Normalize a ``/faction/{id}/chainreport`` response."""
    report = payload.get("chainreport") or payload
    attackers = _first(report, "attackers", "attacker") or []
    if isinstance(attackers, dict):
        attackers = list(attackers.values())

    entries: dict[str, dict] = {}
    for attacker in attackers:
        raw_id = _first(attacker, "id", "user_id", "attacker_id")
        if raw_id is None:
            logger.warning("Chain report attacker without id skipped: %r", attacker)
            continue
        actor_id = str(raw_id)
        entries[actor_id] = {
            "hits": _total(_first(attacker, "attacks", "hits")),
            "respect": _total(attacker.get("respect")),
            "name": _first(attacker, "name", "username") or actor_id,
        }

    end = report.get("end")
    return ChainReport(entries=entries, end=int(end) if end else None)


def compute_totals(hits: dict[str, dict], consumption: dict[str, dict]) -> dict[str, float]:
    """Sum hits/respect over ``hits`` and xanax/points over ``consumption``."""
    return {
        "hits": sum(m.get("hits") or 0 for m in hits.values()),
        "respect": sum(m.get("respect") or 0 for m in hits.values()),
        "xanax": sum(c.get("xanax") or 0 for c in consumption.values()),
        "points": sum(c.get("points") or 0 for c in consumption.values()),
    }


def _merge_consumption(existing: dict[str, dict], tally: dict[str, dict]) -> dict[str, dict]:
    merged = copy.deepcopy(existing)
    for actor_id, new in tally.items():
        current = merged.get(actor_id) or {"xanax": 0, "points": 0, "name": None}
        current["xanax"] = (current.get("xanax") or 0) + (new.get("xanax") or 0)
        current["points"] = (current.get("points") or 0) + (new.get("points") or 0)
        if new.get("name"):
            current["name"] = new["name"]
        merged[actor_id] = current
    return merged


def merge_chain_record(
    record: ChainRecord,
    report: ChainReport,
    consumption: dict[str, dict],
    *,
    in_progress: bool,
    chain_end: int | None,
    now: int,
) -> ChainRecord:
    """Return a new :class:`ChainRecord` with *report* and *consumption* applied.

    Parameters
    ----------
    record : previously persisted (or freshly seeded) record; not mutated
    report : normalized chain report
    consumption : tally from :func:`aggregate_consumption`
    in_progress : whether the chain status fetch says the chain is running
    chain_end : end bound resolved from the chain status payload, if any
    now : current epoch seconds, used when no end marker is known
    """
    merged = copy.deepcopy(record)
    merged.hits = copy.deepcopy(report.entries)
    merged.consumption = _merge_consumption(record.consumption, consumption)

    if record.status == ChainStatus.FINISHED:
        # One-way transition: keep the recorded end.
        merged.end = record.end if record.end is not None else (report.end or chain_end or now)
        merged.status = ChainStatus.FINISHED
    elif in_progress:
        merged.end = None
        merged.status = ChainStatus.ACTIVE
    else:
        merged.end = report.end or chain_end or now
        merged.status = ChainStatus.FINISHED

    merged.totals = compute_totals(merged.hits, merged.consumption)
    return merged


def mark_finished(record: ChainRecord, now: int) -> ChainRecord:
    """Close an active record without new data (chain ended between syncs)."""
    finished = copy.deepcopy(record)
    finished.status = ChainStatus.FINISHED
    if finished.end is None:
        finished.end = now
    finished.totals = compute_totals(finished.hits, finished.consumption)
    return finished
