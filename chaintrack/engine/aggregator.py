"""
chaintrack.engine.aggregator - Consumption Fold
=================================================

Folds a flat batch of :class:`ConsumptionEvent` into per-actor tallies::

    {"2405862": {"xanax": 3, "points": 250000, "name": "AJMC"}, ...}

The fold is additive and order-independent.  The display name kept for an
actor is the one carried by its newest named event, ordered by
``(timestamp, item_key)``, so shuffling the input never changes the output.
"""

from __future__ import annotations

from collections.abc import Iterable

from chaintrack.engine.events import ConsumptionEvent, ConsumptionKind

__all__ = ["aggregate_consumption"]


def aggregate_consumption(events: Iterable[ConsumptionEvent]) -> dict[str, dict]:
    """Return ``actor_id -> {"xanax", "points", "name"}`` for *events*."""
    tallies: dict[str, dict] = {}
    name_rank: dict[str, tuple[int, str]] = {}

    for event in events:
        tally = tallies.setdefault(
            event.actor_id, {"xanax": 0, "points": 0, "name": None}
        )
        if event.kind == ConsumptionKind.XANAX:
            tally["xanax"] += event.quantity
        else:
            tally["points"] += event.quantity

        if event.name:
            rank = (event.timestamp, event.item_key)
            if event.actor_id not in name_rank or rank > name_rank[event.actor_id]:
                name_rank[event.actor_id] = rank
                tally["name"] = event.name

    return tallies
