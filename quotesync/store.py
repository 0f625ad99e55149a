"""In-memory record store for quotes.

The store is the single source of truth during a session. Anything coming
from outside (persisted JSON, imports, remote payloads) passes through
``normalize_record`` first so the rest of the system only ever sees
well-formed ``QuoteRecord`` objects.
"""

import logging
import random
from typing import Any, Dict, Iterable, Iterator, List, Optional

from .errors import EmptyResult, RecordNotFound
from .types import (
    ALL_CATEGORIES,
    UNCATEGORIZED,
    QuoteRecord,
    generate_id,
    normalize_timestamp,
    utc_now,
)

logger = logging.getLogger(__name__)

DEFAULT_QUOTES: List[Dict[str, str]] = [
    {
        "text": "The best way to get started is to quit talking and begin doing.",
        "category": "Motivation",
    },
    {
        "text": "In the middle of every difficulty lies opportunity.",
        "category": "Inspiration",
    },
    {
        "text": "Strive not to be a success, but rather to be of value.",
        "category": "Wisdom",
    },
]


def _first_present(raw: Dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in raw and raw[key] is not None:
            return raw[key]
    return None


def normalize_record(raw: Any, pending_sync: Optional[bool] = None) -> Optional[QuoteRecord]:
    """Coerce an untrusted mapping into a canonical QuoteRecord.

    Missing fields get defaults: a generated id, the current time,
    ``"Uncategorized"`` and ``pendingSync=False``. Passing ``pending_sync``
    forces the flag regardless of the input. Returns None for values that
    are not mappings at all.
    """
    if isinstance(raw, QuoteRecord):
        record = raw.copy()
        if pending_sync is not None:
            record.pending_sync = pending_sync
        return record
    if not isinstance(raw, dict):
        return None

    record_id = raw.get("id")
    record_id = str(record_id) if record_id not in (None, "") else generate_id()

    text = raw.get("text")
    text = "" if text is None else str(text)

    category = raw.get("category")
    category = str(category) if category not in (None, "") else UNCATEGORIZED

    last_modified = normalize_timestamp(_first_present(raw, "lastModified", "last_modified"))
    if last_modified is None:
        last_modified = utc_now()

    if pending_sync is None:
        pending_sync = bool(_first_present(raw, "pendingSync", "pending_sync") or False)

    return QuoteRecord(
        id=record_id,
        text=text,
        category=category,
        last_modified=last_modified,
        pending_sync=pending_sync,
    )


def default_records() -> List[QuoteRecord]:
    """Build the starter quotes used when nothing has been persisted."""
    return [normalize_record(dict(q), pending_sync=False) for q in DEFAULT_QUOTES]


class RecordStore:
    """Ordered list of quote records keyed by id.

    No two records share an id. Mutations go through ``upsert``, ``remove``
    and ``replace_all``; readers get copies from ``snapshot``.
    """

    def __init__(self, records: Optional[Iterable[QuoteRecord]] = None):
        self._records: List[QuoteRecord] = []
        if records:
            self.replace_all(records)

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[QuoteRecord]:
        return iter(list(self._records))

    def __contains__(self, record_id: object) -> bool:
        return self._index_of(str(record_id)) is not None

    def _index_of(self, record_id: str) -> Optional[int]:
        for i, record in enumerate(self._records):
            if record.id == record_id:
                return i
        return None

    # === Loading ===

    def load(
        self,
        records: Optional[Iterable[Any]],
        initial_defaults: Optional[Iterable[Any]] = None,
    ) -> int:
        """Replace the store with normalized records.

        Falls back to ``initial_defaults`` when ``records`` is empty or None.
        Returns the number of records loaded.
        """
        raw_items = list(records or [])
        if not raw_items and initial_defaults is not None:
            raw_items = list(initial_defaults)

        normalized = []
        for item in raw_items:
            record = normalize_record(item)
            if record is None:
                logger.warning(f"Skipping malformed quote entry: {item!r}")
                continue
            normalized.append(record)

        self.replace_all(normalized)
        return len(self._records)

    def replace_all(self, records: Iterable[QuoteRecord]) -> None:
        """Swap the whole list in a single assignment.

        Duplicate ids keep their first occurrence.
        """
        seen = set()
        fresh = []
        for record in records:
            if record.id in seen:
                logger.warning(f"Dropping duplicate quote id {record.id}")
                continue
            seen.add(record.id)
            fresh.append(record)
        self._records = fresh

    # === Mutation ===

    def upsert(self, record: QuoteRecord) -> QuoteRecord:
        """Insert a record or replace the stored record with the same id.

        ``last_modified`` is re-stamped when text or category changed and the
        caller did not already supply a newer timestamp.
        """
        index = self._index_of(record.id)
        if index is None:
            self._records.append(record)
            return record

        existing = self._records[index]
        content_changed = existing.text != record.text or existing.category != record.category
        if content_changed and record.last_modified == existing.last_modified:
            record = record.copy(last_modified=utc_now())
        self._records[index] = record
        return record

    def remove(self, record_id: str) -> QuoteRecord:
        index = self._index_of(record_id)
        if index is None:
            raise RecordNotFound(record_id)
        return self._records.pop(index)

    # === Queries ===

    def get(self, record_id: str) -> Optional[QuoteRecord]:
        index = self._index_of(record_id)
        return self._records[index] if index is not None else None

    def snapshot(self) -> List[QuoteRecord]:
        """Point-in-time copies of every record, in store order."""
        return [record.copy() for record in self._records]

    def list_by_category(self, category: Optional[str] = ALL_CATEGORIES) -> List[QuoteRecord]:
        if not category or category == ALL_CATEGORIES:
            return list(self._records)
        return [r for r in self._records if r.category == category]

    def pick_random(
        self, category: Optional[str] = ALL_CATEGORIES, rng: Optional[random.Random] = None
    ) -> QuoteRecord:
        """Pick a random quote from a category.

        Raises:
            EmptyResult: if no quotes match the filter.
        """
        candidates = self.list_by_category(category)
        if not candidates:
            raise EmptyResult(category or ALL_CATEGORIES)
        return (rng or random).choice(candidates)

    def categories(self) -> List[str]:
        """Unique categories in first-seen order."""
        seen: List[str] = []
        for record in self._records:
            if record.category not in seen:
                seen.append(record.category)
        return seen

    def pending(self) -> List[QuoteRecord]:
        return [r for r in self._records if r.pending_sync]

    def to_dicts(self) -> List[Dict[str, Any]]:
        return [r.to_dict() for r in self._records]
