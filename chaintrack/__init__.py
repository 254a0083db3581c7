"""
chaintrack - Torn Faction Chain & Consumption Tracker
=======================================================
Reconciles a faction's chain report (hits, respect) with Xanax and faction
point usage pulled from armory news, into one per-member ledger that
survives repeated partial syncs.

Package layout::

    chaintrack/
    ├── config.py          # YAML -> typed Python config
    ├── constants.py       # Torn error codes, news markers, settings keys
    ├── __main__.py        # CLI: status / watch / chains / show / fetch
    ├── database/
    │   ├── engine.py      # SQLAlchemy engine + async helper
    │   └── models.py      # chains, settings
    ├── engine/
    │   ├── events.py      # ConsumptionEvent, ChainRecord
    │   ├── parser.py      # News text -> consumption events
    │   ├── aggregator.py  # Per-member consumption fold
    │   ├── merger.py      # Report + consumption -> ChainRecord
    │   └── ledger.py      # Dashboard rows
    └── services/
        ├── torn_client.py     # Rate-limited Torn API v2 client
        ├── throttle.py        # Rolling-window limiter
        ├── news_paginator.py  # Faction news walker with dedup
        ├── chain_store.py     # Chain / settings persistence
        ├── sync_service.py    # Sync orchestrator
        ├── refresh.py         # Periodic refresh loop
        └── tracker.py         # Front-end facing facade
"""

__version__ = "0.1.0"
