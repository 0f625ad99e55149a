"""Tests for shared record types, timestamp helpers and invariant checks."""

from datetime import datetime, timezone

import pytest

from conftest import T1, T2, make_record
from quotesync.conflicts import ConflictRegistry
from quotesync.errors import ConfigError, ConflictNotFound, QuoteSyncError
from quotesync.store import RecordStore
from quotesync.testing import check_invariants
from quotesync.types import (
    ConflictEntry,
    ConflictPolicy,
    ReconcileResult,
    generate_id,
    normalize_timestamp,
    parse_timestamp,
    timestamps_equal,
)


class TestGenerateId:
    def test_shape(self):
        record_id = generate_id()
        assert record_id.isalnum()
        assert record_id == record_id.lower()
        assert len(record_id) >= 8

    def test_unique(self):
        assert len({generate_id() for _ in range(200)}) == 200


class TestTimestamps:
    def test_iso_with_offset(self):
        assert parse_timestamp("2024-01-01T12:00:00+02:00") == datetime(
            2024, 1, 1, 10, 0, tzinfo=timezone.utc
        )

    def test_naive_is_utc(self):
        assert parse_timestamp("2024-01-01T10:00:00") == parse_timestamp(T1)

    def test_z_suffix(self):
        assert parse_timestamp("2024-01-01T10:00:00Z") == parse_timestamp(T1)

    def test_epoch_seconds_and_millis(self):
        assert parse_timestamp(100).year == 1970
        assert parse_timestamp(1704103200000) == parse_timestamp(T1)

    @pytest.mark.parametrize("value", [None, "", "garbage text", True, [], {}])
    def test_unparseable(self, value):
        assert parse_timestamp(value) is None

    def test_normalize_keeps_strings(self):
        assert normalize_timestamp("2024-01-01T10:00:00Z") == "2024-01-01T10:00:00Z"
        assert normalize_timestamp(0) == "1970-01-01T00:00:00+00:00"
        assert normalize_timestamp("nope nope") is None

    def test_equal_instants_in_different_formats(self):
        assert timestamps_equal(T1, "2024-01-01T10:00:00Z")
        assert not timestamps_equal(T1, T2)


class TestConflictPolicy:
    @pytest.mark.parametrize(
        "value,expected",
        [
            ("remote_wins", ConflictPolicy.REMOTE_WINS),
            ("Local-Wins", ConflictPolicy.LOCAL_WINS),
            (ConflictPolicy.LOCAL_WINS, ConflictPolicy.LOCAL_WINS),
        ],
    )
    def test_parse(self, value, expected):
        assert ConflictPolicy.parse(value) is expected

    def test_parse_unknown(self):
        with pytest.raises(ConfigError):
            ConflictPolicy.parse("newest")

    def test_is_a_string(self):
        assert ConflictPolicy.REMOTE_WINS == "remote_wins"


class TestRecords:
    def test_to_dict_uses_camel_case(self):
        assert make_record("1", pending_sync=True).to_dict() == {
            "id": "1",
            "text": "Some quote",
            "category": "Wisdom",
            "lastModified": T1,
            "pendingSync": True,
        }

    def test_same_content_compares_instants(self):
        a = make_record("1", last_modified=T1)
        b = make_record("1", last_modified="2024-01-01T10:00:00Z")
        assert a.same_content(b)
        assert not a.same_content(make_record("1", text="other"))

    def test_summary_truncates(self):
        assert make_record("1", text="x" * 100).summary(width=10) == '"xxxxxxx..." [Wisdom]'

    def test_conflict_entry_to_dict(self):
        entry = ConflictEntry("1", make_record("1"), make_record("1", text="s"))
        data = entry.to_dict()
        assert data["policy"] == "remote_wins"
        assert data["server"]["text"] == "s"
        assert "detectedAt" in data


class TestReconcileResult:
    def test_success(self):
        assert ReconcileResult().success
        assert not ReconcileResult(skipped=True).success
        assert not ReconcileResult(unavailable=True).success
        assert not ReconcileResult(errors=["x"]).success

    def test_to_dict(self):
        entry = ConflictEntry("1", make_record("1"), make_record("1"))
        data = ReconcileResult(added=1, conflicts=[entry]).to_dict()
        assert data["conflict_count"] == 1
        assert data["conflicts"][0]["id"] == "1"
        assert data["success"] is True


class TestErrors:
    def test_conflict_not_found(self):
        error = ConflictNotFound("abc")
        assert isinstance(error, QuoteSyncError)
        assert isinstance(error, KeyError)
        assert "abc" in str(error)


class TestInvariants:
    def test_healthy_state(self):
        registry = ConflictRegistry()
        registry.add(ConflictEntry("1", make_record("1"), make_record("1", text="s")))

        report = check_invariants(RecordStore([make_record("1"), make_record("2")]), registry)

        assert report.ok
        assert report.passed == 3

    def test_duplicate_ids_detected(self):
        store = RecordStore([make_record("1")])
        store._records.append(make_record("1"))

        report = check_invariants(store)

        assert not report.ok
        assert report.failures()[0].details == {"duplicates": ["1"]}

    def test_mismatched_conflict_snapshot(self):
        registry = ConflictRegistry()
        registry.add(ConflictEntry("1", make_record("1"), make_record("2")))

        report = check_invariants(RecordStore(), registry)

        assert [f.name for f in report.failures()] == ["conflict_entries"]
