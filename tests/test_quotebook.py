"""Tests for the QuoteBook editing session."""

import json

import pytest

from conftest import T1, T2, remote_item
from quotesync.config import SyncConfig
from quotesync.core import QuoteBook, build_remote, sanitize_text
from quotesync.errors import InvalidImportFormat, RecordNotFound
from quotesync.persistence import MemoryPersistence, QuoteRepository
from quotesync.remote import FallbackRemoteSource, HttpRemoteSource, SimulatedRemoteSource
from quotesync.testing import check_invariants
from quotesync.types import ConflictPolicy, parse_timestamp


class TestLoad:
    def test_first_load_seeds_defaults_and_saves(self, repository):
        book = QuoteBook(repository)

        assert book.load() == 3
        assert len(repository.load_records()) == 3
        assert book.categories() == ["Motivation", "Inspiration", "Wisdom"]

    def test_stored_records_are_restored(self, repository, book):
        book.add_quote("Mine", "Personal", push=False)

        reopened = QuoteBook(repository)
        reopened.load()

        assert len(reopened.quotes()) == 4
        assert reopened.quotes("Personal")[0].pending_sync is True

    def test_empty_stored_list_stays_empty(self):
        repository = QuoteRepository(MemoryPersistence({"quotes": "[]"}))
        book = QuoteBook(repository)

        assert book.load() == 0
        assert book.quotes() == []

    def test_simulated_remote_is_seeded(self, book, remote):
        assert len(remote.store) == 3

    def test_fallback_remote_seeds_its_simulated_side(self, repository):
        fallback = SimulatedRemoteSource()
        book = QuoteBook(repository, remote=FallbackRemoteSource(SimulatedRemoteSource(), fallback))
        book.load()
        assert len(fallback.store) == 3


class TestEditing:
    def test_add_quote_pushes_and_clears_pending(self, book, remote):
        record = book.add_quote("  Stay curious  ", "Wisdom")

        assert record.text == "Stay curious"
        assert record.pending_sync is False
        assert remote.posted == [record.id]

    def test_add_quote_push_failure_stays_pending(self, book, remote, repository):
        remote.fail_post = True

        record = book.add_quote("Offline quote", "Wisdom")

        assert record.pending_sync is True
        stored = {item["id"]: item for item in repository.load_records()}
        assert stored[record.id]["pendingSync"] is True

    def test_pending_quote_is_pushed_on_next_sync(self, book, remote):
        remote.fail_post = True
        record = book.add_quote("Later", "Wisdom")
        remote.fail_post = False

        result = book.sync()

        assert result.pushed == 1
        assert book.get_quote(record.id).pending_sync is False

    def test_add_without_push(self, book, remote):
        record = book.add_quote("Quiet", "Wisdom", push=False)
        assert record.pending_sync is True
        assert remote.posted == []

    @pytest.mark.parametrize("text,category", [("", "Wisdom"), ("Text", "   "), (None, "x")])
    def test_add_rejects_blank_fields(self, book, text, category):
        with pytest.raises(ValueError):
            book.add_quote(text, category)

    def test_edit_quote(self, book):
        original = book.quotes()[0]

        updated = book.edit_quote(original.id, text="Edited")

        assert updated.text == "Edited"
        assert updated.category == original.category
        assert updated.pending_sync is True
        assert parse_timestamp(updated.last_modified) >= parse_timestamp(original.last_modified)

    def test_edit_unknown(self, book):
        with pytest.raises(RecordNotFound):
            book.edit_quote("missing", text="x")

    def test_delete_quote(self, book, repository):
        target = book.quotes()[0]

        book.delete_quote(target.id)

        assert target.id not in [r.id for r in book.quotes()]
        assert len(repository.load_records()) == 2

    def test_returned_records_are_copies(self, book):
        record = book.quotes()[0]
        record.text = "mutated"
        assert book.get_quote(record.id).text != "mutated"


class TestViewing:
    def test_show_random_uses_saved_category(self, book):
        book.select_category("Wisdom")

        record = book.show_random()

        assert record.category == "Wisdom"
        assert book.last_viewed().id == record.id

    def test_show_random_explicit_category(self, book):
        assert book.show_random("Motivation").category == "Motivation"

    def test_show_random_empty_category(self, book):
        assert book.show_random("Nothing here") is None

    def test_selected_category_persists(self, repository, book):
        book.select_category("Inspiration")
        assert QuoteBook(repository).selected_category == "Inspiration"

    def test_sanitize_strips_control_characters(self):
        assert sanitize_text("a\x00b\x1fc", "text", 10) == "abc"

    def test_sanitize_length(self):
        with pytest.raises(ValueError, match="too long"):
            sanitize_text("x" * 11, "text", 10)


class TestImportExport:
    def test_import_replaces_all(self, book, repository):
        count = book.import_json(
            json.dumps([{"id": "i1", "text": "Imported", "category": "New", "lastModified": T1}])
        )

        assert count == 1
        assert [r.id for r in book.quotes()] == ["i1"]
        assert repository.load_records()[0]["id"] == "i1"

    def test_rejected_import_leaves_quotes_unchanged(self, book):
        before = book.quotes()

        with pytest.raises(InvalidImportFormat):
            book.import_json('{"not": "an array"}')

        assert book.quotes() == before

    def test_export(self, book):
        exported = json.loads(book.export_json())
        assert [item["id"] for item in exported] == [r.id for r in book.quotes()]


class TestSync:
    def test_sync_adds_remote_records(self, book, remote):
        remote.store.append(remote_item("srv", text="From server", last_modified=T2))

        result = book.sync()

        assert result.added == 1
        assert book.get_quote("srv").pending_sync is False
        assert check_invariants(book.store, book.registry).ok

    def test_conflict_round_trip(self, book, remote):
        target = book.quotes()[0]
        for item in remote.store:
            if item["id"] == target.id:
                item["text"] = "Server edit"
                item["lastModified"] = "2999-01-01T00:00:00+00:00"

        result = book.sync()

        assert result.conflict_count == 1
        assert [c.id for c in book.conflicts()] == [target.id]
        assert book.get_quote(target.id).text == "Server edit"

        book.keep_local(target.id)

        assert book.get_quote(target.id).text == target.text
        assert book.conflicts() == []

    def test_category_only_edit_reaches_remote(self, book, remote):
        target = book.quotes()[0]
        book.edit_quote(target.id, category="Changed")

        result = book.sync()

        assert result.pushed == 1
        assert book.get_quote(target.id).pending_sync is False
        assert next(i for i in remote.store if i["id"] == target.id)["category"] == "Changed"
        assert book.sync().pushed == 0

    def test_status(self, book):
        status = book.status()

        assert status["records"] == 3
        assert status["conflicts"] == 0
        assert status["categories"] == 3
        assert status["selected_category"] == "All"
        assert status["policy"] == "remote_wins"


class TestOpen:
    def test_open_with_config(self, tmp_path):
        config = SyncConfig(data_dir=tmp_path, conflict_policy=ConflictPolicy.LOCAL_WINS)

        book = QuoteBook.open(config, offline=True)

        assert book.policy == ConflictPolicy.LOCAL_WINS
        assert isinstance(book.remote, SimulatedRemoteSource)
        assert (tmp_path / "store.json").exists()

    def test_reopen_restores_edits(self, tmp_path):
        config = SyncConfig(data_dir=tmp_path)
        QuoteBook.open(config, offline=True).add_quote("Persisted", "Disk", push=False)

        reopened = QuoteBook.open(config, offline=True)

        assert "Disk" in reopened.categories()

    def test_reopen_restores_unresolved_conflicts(self, tmp_path):
        config = SyncConfig(data_dir=tmp_path)
        remote = SimulatedRemoteSource()
        book = QuoteBook.open(config, remote=remote)
        target = book.quotes()[0]
        remote.store[0].update(text="Server edit", lastModified="2999-01-01T00:00:00+00:00")
        assert book.sync().conflict_count == 1

        reopened = QuoteBook.open(config, remote=remote)

        assert [c.id for c in reopened.conflicts()] == [target.id]
        assert reopened.conflicts()[0].local.text == target.text

        reopened.keep_local(target.id)

        assert QuoteBook.open(config, remote=remote).conflicts() == []
        assert remote.store[0]["text"] == target.text


class TestBuildRemote:
    def test_offline(self):
        assert isinstance(build_remote(SyncConfig(), offline=True), SimulatedRemoteSource)

    def test_no_url(self):
        assert isinstance(build_remote(SyncConfig(server_url=None)), SimulatedRemoteSource)

    def test_http_with_fallback(self):
        remote = build_remote(SyncConfig(server_url="https://quotes.example.com/posts"))
        assert isinstance(remote, FallbackRemoteSource)
        assert isinstance(remote.primary, HttpRemoteSource)
        remote.primary.close()

    def test_http_without_fallback(self):
        config = SyncConfig(server_url="https://quotes.example.com", use_simulated_fallback=False)
        remote = build_remote(config)
        assert isinstance(remote, HttpRemoteSource)
        remote.close()
