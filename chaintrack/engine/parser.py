"""
chaintrack.engine.parser - Faction News Text -> ConsumptionEvents
===================================================================

Armory news arrives as free text, optionally with HTML markup, e.g.::

    <a href="profiles.php?XID=2405862">AJMC</a> used 250000 faction points
    AJMC used one of the faction's Xanax items

Actor identity is recovered by an ordered chain of extractors, first success
wins:

    1. Profile link  (``profiles.php?XID=<id>`` -> id, anchor text -> name)
    2. Marker        (text before `` used ``)
    3. First token   (first whitespace-delimited word)
    4. ``Unknown``   placeholder

Pure functions only.  No I/O.
"""

from __future__ import annotations

import html
import re
from collections.abc import Callable
from typing import NamedTuple

from chaintrack.constants import ACTOR_MARKER, POINTS_PATTERN, UNKNOWN_ACTOR, XANAX_PHRASE
from chaintrack.engine.events import ConsumptionEvent, ConsumptionKind

__all__ = [
    "Actor",
    "clean_text",
    "extract_actor",
    "parse_news_text",
]

_TAG_RE = re.compile(r"<[^>]+>")
_PROFILE_LINK_RE = re.compile(
    r"<a\b[^>]*href\s*=\s*[\"'][^\"']*profiles\.php\?XID=(\d+)[^\"']*[\"'][^>]*>(.*?)</a>",
    re.IGNORECASE | re.DOTALL,
)
_BARE_XID_RE = re.compile(r"XID=(\d+)", re.IGNORECASE)
_WHITESPACE_RE = re.compile(r"\s+")


class Actor(NamedTuple):
    actor_id: str
    name: str | None


def clean_text(text: str) -> str:
    """Strip markup, decode entities and collapse whitespace."""
    stripped = _TAG_RE.sub(" ", text)
    return _WHITESPACE_RE.sub(" ", html.unescape(stripped)).strip()


# ---------------------------------------------------------------------------
# Identity extractors, in priority order
# ---------------------------------------------------------------------------
def _from_profile_link(text: str) -> Actor | None:
    match = _PROFILE_LINK_RE.search(text)
    if match:
        name = clean_text(match.group(2)) or None
        return Actor(match.group(1), name)
    bare = _BARE_XID_RE.search(text)
    if bare:
        return Actor(bare.group(1), None)
    return None


def _from_marker(text: str) -> Actor | None:
    cleaned = clean_text(text)
    idx = cleaned.find(ACTOR_MARKER)
    if idx <= 0:
        return None
    name = cleaned[:idx].strip()
    return Actor(name, name) if name else None


def _from_first_token(text: str) -> Actor | None:
    tokens = clean_text(text).split()
    if not tokens:
        return None
    return Actor(tokens[0], tokens[0])


def _unknown(text: str) -> Actor | None:
    return Actor(UNKNOWN_ACTOR, UNKNOWN_ACTOR)


_EXTRACTORS: tuple[Callable[[str], Actor | None], ...] = (
    _from_profile_link,
    _from_marker,
    _from_first_token,
    _unknown,
)


def extract_actor(text: str) -> Actor:
    """Return the member a news line is about.  Never fails."""
    for extractor in _EXTRACTORS:
        actor = extractor(text)
        if actor is not None:
            return actor
    raise AssertionError("unreachable: the last extractor always matches")


# ---------------------------------------------------------------------------
# Event detection
# ---------------------------------------------------------------------------
def _parse_amount(raw: str) -> int:
    try:
        return int(raw.replace(",", ""))
    except ValueError:
        return 0


def parse_news_text(text: str, *, timestamp: int, item_key: str) -> list[ConsumptionEvent]:
    """Turn one news line into zero or more :class:`ConsumptionEvent`.

    A line can report a Xanax use, one or more points spends, both, or
    neither.  Zero-point matches are dropped.
    """
    if not text:
        return []

    cleaned = clean_text(text)
    is_xanax = XANAX_PHRASE in cleaned
    amounts = [_parse_amount(m.group(1)) for m in POINTS_PATTERN.finditer(cleaned)]
    amounts = [a for a in amounts if a > 0]
    if not is_xanax and not amounts:
        return []

    actor = extract_actor(text)
    events: list[ConsumptionEvent] = []
    if is_xanax:
        events.append(ConsumptionEvent(
            actor_id=actor.actor_id,
            kind=ConsumptionKind.XANAX,
            quantity=1,
            timestamp=timestamp,
            item_key=item_key,
            name=actor.name,
        ))
    for amount in amounts:
        events.append(ConsumptionEvent(
            actor_id=actor.actor_id,
            kind=ConsumptionKind.POINTS,
            quantity=amount,
            timestamp=timestamp,
            item_key=item_key,
            name=actor.name,
        ))
    return events
