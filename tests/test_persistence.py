"""Tests for persistence adapters and the quote repository."""

import json
import os
import stat
import sys

import pytest

from conftest import make_record
from quotesync.persistence import (
    CONFLICTS_KEY,
    LAST_QUOTE_KEY,
    QUOTES_KEY,
    SELECTED_CATEGORY_KEY,
    JsonFilePersistence,
    MemoryPersistence,
    QuoteRepository,
)
from quotesync.protocols import PersistenceAdapter
from quotesync.types import ConflictEntry


class TestAdapters:
    def test_memory_adapter_satisfies_protocol(self):
        assert isinstance(MemoryPersistence(), PersistenceAdapter)

    def test_file_adapter_satisfies_protocol(self, tmp_path):
        assert isinstance(JsonFilePersistence(tmp_path / "s.json"), PersistenceAdapter)

    def test_memory_get_set(self):
        adapter = MemoryPersistence()
        assert adapter.get("k") is None
        adapter.set("k", "v")
        assert adapter.get("k") == "v"

    def test_file_round_trip_across_instances(self, tmp_path):
        path = tmp_path / "nested" / "store.json"
        JsonFilePersistence(path).set("k", "v")

        assert JsonFilePersistence(path).get("k") == "v"

    def test_file_keeps_other_keys(self, tmp_path):
        adapter = JsonFilePersistence(tmp_path / "store.json")
        adapter.set("a", "1")
        adapter.set("b", "2")

        assert json.loads((tmp_path / "store.json").read_text()) == {"a": "1", "b": "2"}

    @pytest.mark.skipif(sys.platform == "win32", reason="POSIX permissions")
    def test_file_is_private(self, tmp_path):
        path = tmp_path / "store.json"
        JsonFilePersistence(path).set("k", "v")

        assert stat.S_IMODE(os.stat(path).st_mode) == 0o600

    def test_corrupt_file_reads_as_empty(self, tmp_path):
        path = tmp_path / "store.json"
        path.write_text("{not json")

        adapter = JsonFilePersistence(path)

        assert adapter.get("k") is None
        adapter.set("k", "v")
        assert JsonFilePersistence(path).get("k") == "v"

    def test_no_temp_files_left_behind(self, tmp_path):
        adapter = JsonFilePersistence(tmp_path / "store.json")
        adapter.set("k", "v")
        adapter.set("k", "w")

        assert [p.name for p in tmp_path.iterdir()] == ["store.json"]


class TestQuoteRepository:
    def test_records_round_trip(self):
        repo = QuoteRepository(MemoryPersistence())
        repo.save_records([make_record("1", pending_sync=True)])

        items = repo.load_records()

        assert items == [make_record("1", pending_sync=True).to_dict()]

    def test_absent_records(self):
        assert QuoteRepository(MemoryPersistence()).load_records() is None

    def test_corrupt_records(self):
        repo = QuoteRepository(MemoryPersistence({QUOTES_KEY: "[oops"}))
        assert repo.load_records() is None

    def test_non_list_records(self):
        repo = QuoteRepository(MemoryPersistence({QUOTES_KEY: '{"a": 1}'}))
        assert repo.load_records() is None

    def test_empty_list_is_kept(self):
        repo = QuoteRepository(MemoryPersistence({QUOTES_KEY: "[]"}))
        assert repo.load_records() == []

    def test_conflicts_round_trip(self):
        repo = QuoteRepository(MemoryPersistence())
        entry = ConflictEntry(
            id="1", local=make_record("1", text="mine"), server=make_record("1", text="theirs")
        )
        repo.save_conflicts([entry])

        items = repo.load_conflicts()

        assert items == [entry.to_dict()]
        assert json.loads(repo.adapter.get(CONFLICTS_KEY))[0]["server"]["text"] == "theirs"

    @pytest.mark.parametrize("stored", [None, "", "[oops", '{"a": 1}'])
    def test_missing_or_unreadable_conflicts_are_empty(self, stored):
        initial = {} if stored is None else {CONFLICTS_KEY: stored}
        repo = QuoteRepository(MemoryPersistence(initial))
        assert repo.load_conflicts() == []

    def test_selected_category_defaults_to_all(self):
        repo = QuoteRepository(MemoryPersistence())
        assert repo.get_selected_category() == "All"

        repo.set_selected_category("Wisdom")
        assert repo.adapter.get(SELECTED_CATEGORY_KEY) == "Wisdom"
        assert repo.get_selected_category() == "Wisdom"

    def test_last_quote(self):
        repo = QuoteRepository(MemoryPersistence())
        assert repo.get_last_quote() is None

        repo.set_last_quote(make_record("1", text="seen"))
        assert repo.get_last_quote()["text"] == "seen"

    def test_unreadable_last_quote(self):
        repo = QuoteRepository(MemoryPersistence({LAST_QUOTE_KEY: "{"}))
        assert repo.get_last_quote() is None
