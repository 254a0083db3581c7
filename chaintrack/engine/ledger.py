"""
chaintrack.engine.ledger - Per-member Dashboard Rows
======================================================

Joins a record's ``hits`` and ``consumption`` maps into one row per member
for display.  Members who only consumed (no hits) still get a row.
"""

from __future__ import annotations

from dataclasses import dataclass

from chaintrack.engine.events import ChainRecord

SORT_KEYS = ("name", "hits", "respect", "rph", "xanax", "points")


@dataclass
class MemberRow:
    actor_id: str
    name: str
    hits: int = 0
    respect: float = 0
    xanax: int = 0
    points: int = 0

    @property
    def rph(self) -> float:
        """Respect per hit."""
        return self.respect / self.hits if self.hits and self.respect else 0.0


def build_member_rows(
    record: ChainRecord,
    *,
    sort_key: str = "hits",
    descending: bool = True,
) -> list[MemberRow]:
    """Rows for every member seen in *record*, sorted by *sort_key*.

    Raises
    ------
    ValueError
        If *sort_key* is not one of :data:`SORT_KEYS`.
    """
    if sort_key not in SORT_KEYS:
        raise ValueError(f"Unknown sort key {sort_key!r}; expected one of {SORT_KEYS}")

    rows: dict[str, MemberRow] = {}
    for actor_id, data in record.hits.items():
        rows[actor_id] = MemberRow(
            actor_id=actor_id,
            name=data.get("name") or actor_id,
            hits=data.get("hits") or 0,
            respect=data.get("respect") or 0,
        )
    for actor_id, data in record.consumption.items():
        row = rows.setdefault(actor_id, MemberRow(actor_id=actor_id, name=actor_id))
        row.xanax += data.get("xanax") or 0
        row.points += data.get("points") or 0
        if data.get("name"):
            row.name = data["name"]

    def _key(row: MemberRow):
        value = getattr(row, sort_key)
        return value.lower() if isinstance(value, str) else value

    return sorted(rows.values(), key=_key, reverse=descending)
