"""Tests for the rate limit persistence stores."""

import json
from unittest.mock import patch

import pytest

from app.adapters.rate_limit import (
    REQUESTS_LEFT_KEY,
    RESET_TIME_KEY,
    InMemoryRateLimitStore,
    JsonFileRateLimitStore,
)


class TestInMemoryStore:
    def test_set_get_delete(self):
        store = InMemoryRateLimitStore()

        store.set(REQUESTS_LEFT_KEY, "29")
        assert store.get(REQUESTS_LEFT_KEY) == "29"

        store.delete(REQUESTS_LEFT_KEY)
        assert store.get(REQUESTS_LEFT_KEY) is None

    def test_delete_missing_key_is_noop(self):
        store = InMemoryRateLimitStore()

        store.delete(RESET_TIME_KEY)

        assert store.snapshot() == {}

    def test_initial_values_are_copied(self):
        initial = {REQUESTS_LEFT_KEY: "5"}
        store = InMemoryRateLimitStore(initial)

        store.set(REQUESTS_LEFT_KEY, "4")

        assert initial[REQUESTS_LEFT_KEY] == "5"


class TestJsonFileStore:
    def test_missing_file_is_empty(self, tmp_path):
        store = JsonFileRateLimitStore(tmp_path / "state.json")

        assert store.get(REQUESTS_LEFT_KEY) is None
        assert not (tmp_path / "state.json").exists()

    def test_values_persist_across_instances(self, tmp_path):
        path = tmp_path / "nested" / "state.json"
        store = JsonFileRateLimitStore(path)
        store.set(REQUESTS_LEFT_KEY, "28")
        store.set(RESET_TIME_KEY, "1700000000000")

        reopened = JsonFileRateLimitStore(path)

        assert reopened.get(REQUESTS_LEFT_KEY) == "28"
        assert reopened.get(RESET_TIME_KEY) == "1700000000000"
        assert json.loads(path.read_text(encoding="utf-8")) == {
            REQUESTS_LEFT_KEY: "28",
            RESET_TIME_KEY: "1700000000000",
        }

    def test_delete_persists(self, tmp_path):
        path = tmp_path / "state.json"
        store = JsonFileRateLimitStore(path)
        store.set(REQUESTS_LEFT_KEY, "1")
        store.set(RESET_TIME_KEY, "2")

        store.delete(REQUESTS_LEFT_KEY)

        assert JsonFileRateLimitStore(path).get(REQUESTS_LEFT_KEY) is None
        assert JsonFileRateLimitStore(path).get(RESET_TIME_KEY) == "2"

    def test_no_temp_file_left_behind(self, tmp_path):
        store = JsonFileRateLimitStore(tmp_path / "state.json")

        store.set(REQUESTS_LEFT_KEY, "3")

        assert [p.name for p in tmp_path.iterdir()] == ["state.json"]

    def test_corrupt_file_treated_as_empty(self, tmp_path):
        path = tmp_path / "state.json"
        path.write_text("{not json", encoding="utf-8")

        store = JsonFileRateLimitStore(path)

        assert store.get(REQUESTS_LEFT_KEY) is None

    def test_non_object_file_treated_as_empty(self, tmp_path):
        path = tmp_path / "state.json"
        path.write_text("[1, 2, 3]", encoding="utf-8")

        store = JsonFileRateLimitStore(path)

        assert store.get(REQUESTS_LEFT_KEY) is None

    def test_values_read_as_strings(self, tmp_path):
        path = tmp_path / "state.json"
        path.write_text(json.dumps({REQUESTS_LEFT_KEY: 7}), encoding="utf-8")

        assert JsonFileRateLimitStore(path).get(REQUESTS_LEFT_KEY) == "7"


class TestWriteBothRecords:
    def test_in_memory_set_many(self):
        store = InMemoryRateLimitStore()

        store.set_many({REQUESTS_LEFT_KEY: "29", RESET_TIME_KEY: "1800000"})

        assert store.snapshot() == {REQUESTS_LEFT_KEY: "29", RESET_TIME_KEY: "1800000"}

    def test_json_set_many_writes_both_records(self, tmp_path):
        path = tmp_path / "state.json"
        store = JsonFileRateLimitStore(path)

        with patch.object(store, "_persist_locked", wraps=store._persist_locked) as persist:
            store.set_many({REQUESTS_LEFT_KEY: "29", RESET_TIME_KEY: "1800000"})

        persist.assert_called_once()
        assert json.loads(path.read_text(encoding="utf-8")) == {
            REQUESTS_LEFT_KEY: "29",
            RESET_TIME_KEY: "1800000",
        }

    def test_failed_write_changes_nothing(self, tmp_path):
        path = tmp_path / "state.json"
        store = JsonFileRateLimitStore(path)
        store.set_many({REQUESTS_LEFT_KEY: "2", RESET_TIME_KEY: "1060000"})

        with patch("pathlib.Path.replace", side_effect=OSError("disk full")):
            with pytest.raises(OSError):
                store.set_many({REQUESTS_LEFT_KEY: "1", RESET_TIME_KEY: "1060000"})

        assert store.get(REQUESTS_LEFT_KEY) == "2"
        assert JsonFileRateLimitStore(path).get(REQUESTS_LEFT_KEY) == "2"
