"""
chaintrack.constants - Shared Constants
=========================================

Single source of truth for Torn API error codes, news-text markers and
settings keys.  Import from here instead of duplicating in services.
"""

from __future__ import annotations

import re

# ---------------------------------------------------------------------------
# Torn API error codes (https://www.torn.com/api.html)
# ---------------------------------------------------------------------------
TORN_ERROR_TOO_MANY_REQUESTS = 5

# Incorrect key, inactive key, access-level, paused key.  Torn asks clients
# to stop using such keys to avoid IP bans.
TORN_KEY_REJECTION_CODES: frozenset[int] = frozenset({2, 12, 13, 18})

# ---------------------------------------------------------------------------
# Faction news markers
# ---------------------------------------------------------------------------
XANAX_PHRASE = "used one of the faction's Xanax items"
POINTS_PATTERN = re.compile(r"used (\d[\d,]*) faction points", re.IGNORECASE)
ACTOR_MARKER = " used "
UNKNOWN_ACTOR = "Unknown"

NEWS_CATEGORY = "armoryAction"

# ---------------------------------------------------------------------------
# Settings keys (``settings`` table)
# ---------------------------------------------------------------------------
SETTING_API_KEY = "api_key"
SETTING_LAST_SYNC = "last_sync_timestamp"
