"""
tests/test_news_paginator.py - Faction News Walker Tests
==========================================================
"""

from __future__ import annotations

from conftest import FakeTornClient, chatter_item, points_item, run_async, xanax_item

from chaintrack.engine.aggregator import aggregate_consumption
from chaintrack.services.news_paginator import collect_consumption_events, news_item_key


def _walk(client, *, start, end=10_000, processed=None):
    processed = processed if processed is not None else set()
    events = run_async(
        collect_consumption_events(client, "KEY", start=start, end=end, processed=processed)
    )
    return events, processed


def _page(first_ts: int, last_ts: int) -> list[dict]:
    return [xanax_item(f"n{ts}", ts) for ts in range(first_ts, last_ts - 1, -1)]


class TestPagination:

    def test_stops_once_start_bound_crossed(self):
        client = FakeTornClient(news_pages=[_page(100, 90), _page(89, 80), _page(79, 70)])
        events, processed = _walk(client, start=85)

        timestamps = sorted(e.timestamp for e in events)
        assert timestamps == list(range(85, 101))
        # P3 is never requested
        assert len(client.news_requests) == 2
        assert client.news_requests[0] is None
        assert "n84" not in processed

    def test_stops_when_feed_exhausted(self):
        client = FakeTornClient(news_pages=[_page(100, 95), _page(94, 90)])
        events, _ = _walk(client, start=0)
        assert len(events) == 11
        assert len(client.news_requests) == 2

    def test_cursor_passed_through_unchanged(self):
        client = FakeTornClient(news_pages=[_page(100, 99), _page(98, 97)])
        _walk(client, start=0)
        assert client.news_requests[1] == "https://api.torn.com/v2/faction/news?page=1"

    def test_items_after_end_skipped_and_not_processed(self):
        client = FakeTornClient(news_pages=[_page(100, 90)])
        events, processed = _walk(client, start=90, end=95)
        assert max(e.timestamp for e in events) == 95
        assert "n96" not in processed
        assert "n95" in processed

    def test_legacy_mapping_shape(self):
        class MappingClient(FakeTornClient):
            async def fetch_faction_news(self, api_key, before=None):
                return {"news": {
                    "abc": {"timestamp": 50, "news": "AJMC used 5 faction points"},
                }}

        events, processed = _walk(MappingClient(), start=0)
        assert [e.quantity for e in events] == [5]
        assert processed == {"abc"}


class TestDedup:

    def test_same_page_twice_counts_once(self):
        pages = [[
            xanax_item("a", 100, xid=1, name="One"),
            points_item("b", 99, 300, xid=1, name="One"),
            xanax_item("c", 98, xid=2, name="Two"),
        ]]
        processed: set[str] = set()
        first, _ = _walk(FakeTornClient(news_pages=pages), start=0, processed=processed)
        second, _ = _walk(FakeTornClient(news_pages=pages), start=0, processed=processed)

        assert aggregate_consumption(first) == aggregate_consumption(first + second)
        assert second == []

    def test_irrelevant_items_still_marked_processed(self):
        client = FakeTornClient(news_pages=[[chatter_item("z", 100), xanax_item("y", 99)]])
        events, processed = _walk(client, start=0)
        assert len(events) == 1
        assert processed == {"z", "y"}

    def test_already_processed_items_skipped(self):
        client = FakeTornClient(news_pages=[_page(100, 96)])
        events, _ = _walk(client, start=0, processed={"n100", "n99"})
        assert sorted(e.timestamp for e in events) == [96, 97, 98]

    def test_item_without_timestamp_marked_processed(self):
        client = FakeTornClient(news_pages=[[
            {"id": "bad", "text": "AJMC used 5 faction points"},
            xanax_item("good", 100),
        ]])
        events, processed = _walk(client, start=0)
        assert [e.item_key for e in events] == ["good"]
        assert "bad" in processed


class TestNewsItemKey:

    def test_native_id(self):
        assert news_item_key({"id": 123, "timestamp": 5}) == "123"

    def test_fallback_is_stable(self):
        item = {"timestamp": 5, "text": "AJMC used 5 faction points"}
        assert news_item_key(item) == news_item_key(dict(reversed(list(item.items()))))
        assert news_item_key(item).startswith("5-")

    def test_fallback_distinguishes_near_duplicates(self):
        a = {"timestamp": 5, "text": "AJMC used 5 faction points" + "x" * 60}
        b = {"timestamp": 5, "text": "AJMC used 5 faction points" + "x" * 60 + "y"}
        assert news_item_key(a) != news_item_key(b)
