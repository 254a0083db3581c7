"""
tests/conftest.py - Shared Test Fixtures
==========================================
"""

from __future__ import annotations

import asyncio

import pytest
from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

from chaintrack.database.models import Base
from chaintrack.services.torn_client import TornAPIError

NEWS_URL = "https://api.torn.com/v2/faction/news"


def run_async(coro):
    """Run an async coroutine to completion without pytest-asyncio."""
    return asyncio.run(coro)


# ---------------------------------------------------------------------------
# News helpers
# ---------------------------------------------------------------------------
def xanax_item(item_id, ts: int, name: str = "AJMC", xid: int | None = None) -> dict:
    who = f'<a href="profiles.php?XID={xid}">{name}</a>' if xid else name
    return {"id": item_id, "timestamp": ts, "text": f"{who} used one of the faction's Xanax items"}


def points_item(item_id, ts: int, amount: int, name: str = "AJMC", xid: int | None = None) -> dict:
    who = f'<a href="profiles.php?XID={xid}">{name}</a>' if xid else name
    return {"id": item_id, "timestamp": ts, "text": f"{who} used {amount} faction points"}


def chatter_item(item_id, ts: int) -> dict:
    return {"id": item_id, "timestamp": ts, "text": "AJMC deposited $1,000"}


# ---------------------------------------------------------------------------
# Fake Torn client
# ---------------------------------------------------------------------------
class FakeTornClient:
    """In-memory stand-in for :class:`TornClient`.

    ``news_pages`` is a list of item lists, newest page first.  Each page but
    the last advertises a ``prev`` cursor pointing at the next one.
    """

    def __init__(
        self,
        *,
        news_pages: list[list[dict]] | None = None,
        report: dict | None = None,
        current: dict | None = None,
        chains: list[dict] | None = None,
    ) -> None:
        self.news_pages = news_pages if news_pages is not None else [[]]
        self.report = report if report is not None else {"chainreport": {"attackers": []}}
        self.current = current
        self.chains = chains or []
        self.news_requests: list[str | None] = []
        self.report_requests: list[int] = []
        self.api_keys: list[str] = []
        self.report_error: Exception | None = None
        self.news_error: Exception | None = None
        self.current_error: Exception | None = None

    async def fetch_faction_news(self, api_key: str, before: str | None = None) -> dict:
        self.api_keys.append(api_key)
        self.news_requests.append(before)
        if self.news_error:
            raise self.news_error
        index = 0 if before is None else int(before.rsplit("=", 1)[1])
        page: dict = {"news": list(self.news_pages[index]), "_metadata": {"links": {}}}
        if index + 1 < len(self.news_pages):
            page["_metadata"]["links"]["prev"] = f"{NEWS_URL}?page={index + 1}"
        return page

    async def fetch_chain_report(self, chain_id: int, api_key: str) -> dict:
        self.api_keys.append(api_key)
        self.report_requests.append(chain_id)
        if self.report_error:
            raise self.report_error
        return self.report

    async def fetch_current_chain(self, api_key: str) -> dict | None:
        self.api_keys.append(api_key)
        if self.current_error:
            raise self.current_error
        return self.current

    async def fetch_faction_chains(self, api_key: str, *, limit=None, before=None) -> dict:
        self.api_keys.append(api_key)
        return {"chains": list(self.chains)}


def report(*attackers: tuple, end: int | None = None) -> dict:
    """Build a chainreport payload from ``(id, hits, respect, name)`` tuples."""
    body: dict = {
        "attackers": [
            {
                "id": aid,
                "name": name,
                "attacks": {"total": hits},
                "respect": {"total": respect},
            }
            for aid, hits, respect, name in attackers
        ]
    }
    if end is not None:
        body["end"] = end
    return {"chainreport": body}


def key_rejected() -> TornAPIError:
    return TornAPIError("Incorrect key", code=2)


# ---------------------------------------------------------------------------
# Database fixtures
# ---------------------------------------------------------------------------
@pytest.fixture
def db_engine() -> Engine:
    """In-memory SQLite engine with all chaintrack tables.

    Uses StaticPool so the worker threads spawned by ``run_db`` share the
    same in-memory database.
    """
    engine = create_engine(
        "sqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    return engine


@pytest.fixture
def db_session(db_engine: Engine):
    """Provide a session that rolls back after each test."""
    with Session(db_engine) as session:
        yield session
        session.rollback()


@pytest.fixture
def fake_client() -> FakeTornClient:
    return FakeTornClient()
