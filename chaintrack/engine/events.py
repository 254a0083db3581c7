"""
chaintrack.engine.events - ConsumptionEvent and ChainRecord
=============================================================

The value types that flow through the reconciliation engine.  Nothing here
touches the network or the database; :mod:`chaintrack.services.chain_store`
converts :class:`ChainRecord` to and from the ``chains`` table.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field

from chaintrack.database.models import ChainStatus

__all__ = ["ChainRecord", "ConsumptionEvent", "ConsumptionKind", "empty_totals"]


class ConsumptionKind(enum.StrEnum):
    """What a faction news item reports a member consuming."""
    XANAX = "xanax"
    POINTS = "points"


@dataclass(frozen=True, slots=True)
class ConsumptionEvent:
    """One unit of consumption parsed from a single news item.

    ``quantity`` is always 1 for Xanax and the spent amount for points.
    ``name`` is ``None`` when the news text carried an id but no display name.
    """

    actor_id: str
    kind: ConsumptionKind
    quantity: int
    timestamp: int
    item_key: str
    name: str | None = None


def empty_totals() -> dict[str, float]:
    return {"hits": 0, "respect": 0, "xanax": 0, "points": 0}


@dataclass
class ChainRecord:
    """In-memory view of a persisted chain.

    ``hits`` maps actor id -> ``{"hits", "respect", "name"}``;
    ``consumption`` maps actor id -> ``{"xanax", "points", "name"}``.
    """

    chain_id: int
    start: int
    end: int | None = None
    status: ChainStatus = ChainStatus.ACTIVE
    hits: dict[str, dict] = field(default_factory=dict)
    consumption: dict[str, dict] = field(default_factory=dict)
    totals: dict[str, float] = field(default_factory=empty_totals)
    processed_news_ids: list[str] = field(default_factory=list)

    @classmethod
    def seed(cls, chain_id: int, start: int) -> ChainRecord:
        """A fresh record for a chain seen for the first time."""
        return cls(chain_id=chain_id, start=start)

    @property
    def is_active(self) -> bool:
        return self.status == ChainStatus.ACTIVE
