"""
Pytest fixtures and test configuration for quotesync tests.
"""

from typing import Any, Dict, List, Optional

import pytest

from quotesync.conflicts import ConflictRegistry
from quotesync.core import QuoteBook
from quotesync.engine import ReconciliationEngine
from quotesync.persistence import MemoryPersistence, QuoteRepository
from quotesync.remote import SimulatedRemoteSource
from quotesync.store import RecordStore
from quotesync.types import QuoteRecord

T1 = "2024-01-01T10:00:00+00:00"
T2 = "2024-01-02T10:00:00+00:00"
T3 = "2024-01-03T10:00:00+00:00"


def make_record(
    record_id: str,
    text: str = "Some quote",
    category: str = "Wisdom",
    last_modified: str = T1,
    pending_sync: bool = False,
) -> QuoteRecord:
    """Build a QuoteRecord with sensible defaults."""
    return QuoteRecord(
        id=record_id,
        text=text,
        category=category,
        last_modified=last_modified,
        pending_sync=pending_sync,
    )


def remote_item(
    record_id: str, text: str = "Some quote", category: str = "Wisdom", last_modified: str = T1
) -> Dict[str, Any]:
    """Build a canonical remote dict."""
    return {"id": record_id, "text": text, "category": category, "lastModified": last_modified}


class RecordingPush:
    """Push callable that records calls and can fail for selected ids."""

    def __init__(self, fail_ids: Optional[set] = None, fail_all: bool = False):
        self.fail_ids = set(fail_ids or ())
        self.fail_all = fail_all
        self.calls: List[str] = []

    def __call__(self, record: QuoteRecord) -> Dict[str, Any]:
        self.calls.append(record.id)
        if self.fail_all or record.id in self.fail_ids:
            raise ConnectionError(f"push rejected for {record.id}")
        return record.to_dict()


@pytest.fixture
def persistence():
    return MemoryPersistence()


@pytest.fixture
def repository(persistence):
    return QuoteRepository(persistence)


@pytest.fixture
def store():
    return RecordStore()


@pytest.fixture
def registry():
    return ConflictRegistry()


@pytest.fixture
def remote():
    """Empty simulated remote collection."""
    return SimulatedRemoteSource()


@pytest.fixture
def engine(store, registry, repository, remote):
    return ReconciliationEngine(store, registry, repository=repository, remote=remote)


@pytest.fixture
def book(repository, remote):
    """A loaded QuoteBook with the default quotes and an in-memory remote."""
    b = QuoteBook(repository, remote=remote)
    b.load()
    return b
