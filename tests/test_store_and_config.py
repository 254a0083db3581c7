"""
tests/test_store_and_config.py - Persistence & Configuration Tests
====================================================================
"""

from __future__ import annotations

import pytest

from chaintrack.config import ChainTrackConfig, load_config
from chaintrack.database.models import ChainStatus, Setting
from chaintrack.engine.events import ChainRecord
from chaintrack.services.chain_store import (
    get_chain_record,
    get_setting_value,
    list_chain_records,
    save_chain_record,
    set_setting_value,
)


class TestChainStore:

    def test_missing_chain(self, db_engine):
        assert get_chain_record(db_engine, 1) is None

    def test_round_trip(self, db_engine):
        record = ChainRecord(
            chain_id=9,
            start=100,
            end=200,
            status=ChainStatus.FINISHED,
            hits={"1": {"hits": 2, "respect": 3.5, "name": "A"}},
            consumption={"1": {"xanax": 1, "points": 0, "name": None}},
            totals={"hits": 2, "respect": 3.5, "xanax": 1, "points": 0},
            processed_news_ids=["b", "a", "a"],
        )
        save_chain_record(db_engine, record)
        loaded = get_chain_record(db_engine, 9)
        assert loaded.processed_news_ids == ["a", "b"]
        assert loaded.status == ChainStatus.FINISHED
        assert loaded.hits == record.hits
        assert loaded.consumption == record.consumption

    def test_update_keeps_original_start(self, db_engine):
        save_chain_record(db_engine, ChainRecord.seed(9, 100))
        save_chain_record(db_engine, ChainRecord(chain_id=9, start=555, end=600))
        loaded = get_chain_record(db_engine, 9)
        assert loaded.start == 100
        assert loaded.end == 600

    def test_list_newest_first(self, db_engine):
        for chain_id, start in [(1, 10), (2, 30), (3, 20)]:
            save_chain_record(db_engine, ChainRecord.seed(chain_id, start))
        assert [r.chain_id for r in list_chain_records(db_engine)] == [2, 3, 1]


class TestSettings:

    def test_default_when_missing(self, db_engine):
        assert get_setting_value(db_engine, "nope", "fallback") == "fallback"

    def test_round_trip_and_overwrite(self, db_engine):
        set_setting_value(db_engine, "api_key", "abc")
        set_setting_value(db_engine, "api_key", "def")
        assert get_setting_value(db_engine, "api_key") == "def"

    def test_null_is_not_default(self, db_engine):
        set_setting_value(db_engine, "api_key", None)
        assert get_setting_value(db_engine, "api_key", "fallback") is None

    def test_non_json_value_returned_raw(self, db_engine, db_session):
        db_session.add(Setting(key="raw", value_json="not json"))
        db_session.commit()
        assert get_setting_value(db_engine, "raw") == "not json"


class TestLoadConfig:

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "config.yaml")

    def test_empty_file_gives_defaults(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("")
        assert load_config(path) == ChainTrackConfig()

    def test_partial_override(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("rate_limit: 20\nrefresh_interval_seconds: 30\nstrip_tags: true\n")
        cfg = load_config(path)
        assert cfg.rate_limit == 20
        assert cfg.refresh_interval_seconds == 30.0
        assert cfg.strip_tags is True
        assert cfg.news_page_limit == 100

    def test_unknown_key(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("guild_id: 1\n")
        with pytest.raises(ValueError, match="guild_id"):
            load_config(path)

    @pytest.mark.parametrize("body", ["rate_limit: lots\n", "strip_tags: maybe\n", "rate_limit: 0\n"])
    def test_invalid_values(self, tmp_path, body):
        path = tmp_path / "config.yaml"
        path.write_text(body)
        with pytest.raises(ValueError):
            load_config(path)
