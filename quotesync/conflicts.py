"""Conflict registry.

Holds the conflicts found by reconciliation passes until someone reviews
them. At most one entry per quote id; a newer detection replaces the older
one. Resolution actions work against the record store the engine owns, and
the entries are persisted with the quotes so a later session can review them.
"""

import logging
from typing import Any, Dict, List, Optional

from .errors import ConflictNotFound, PushFailed
from .protocols import PushFn
from .store import RecordStore
from .types import ConflictEntry, QuoteRecord, utc_now

logger = logging.getLogger(__name__)


class ConflictRegistry:
    """Unresolved conflicts keyed by quote id, in detection order."""

    def __init__(self):
        self._entries: Dict[str, ConflictEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, record_id: object) -> bool:
        return record_id in self._entries

    def add(self, entry: ConflictEntry) -> None:
        """Register a conflict, replacing any existing entry for the same id."""
        self._entries.pop(entry.id, None)
        self._entries[entry.id] = entry

    def remove(self, record_id: str) -> Optional[ConflictEntry]:
        return self._entries.pop(record_id, None)

    def get(self, record_id: str) -> Optional[ConflictEntry]:
        return self._entries.get(record_id)

    def list(self) -> List[ConflictEntry]:
        return list(self._entries.values())

    def ids(self) -> List[str]:
        return list(self._entries)

    def clear(self) -> int:
        count = len(self._entries)
        self._entries.clear()
        return count

    def _require(self, record_id: str) -> ConflictEntry:
        entry = self._entries.get(record_id)
        if entry is None:
            raise ConflictNotFound(record_id)
        return entry

    # === Resolution ===

    def resolve_accept_server(self, record_id: str, store: RecordStore) -> QuoteRecord:
        """Resolve a conflict in favour of the server version.

        Under the remote-wins policy the server values are already in the
        store, so this only drops the entry. Otherwise the server snapshot
        is written back into the store.

        Raises:
            ConflictNotFound: if there is no entry for ``record_id``.
        """
        entry = self._require(record_id)
        current = store.get(record_id)
        server = entry.server.copy(pending_sync=False)

        if current is None or not current.same_content(server) or current.pending_sync:
            store.upsert(server)
            current = server
            logger.info(f"Applied server version of quote {record_id}")

        self.remove(record_id)
        return current

    def resolve_keep_local(self, record_id: str, store: RecordStore, push: PushFn) -> QuoteRecord:
        """Resolve a conflict by pushing the local version to the server.

        Runs ``prepare_keep_local``, ``push_local`` and ``confirm_keep_local``
        back to back.

        Raises:
            ConflictNotFound: if there is no entry for ``record_id``.
            PushFailed: if the push fails; the entry stays registered and the
                record stays pending.
        """
        local = self.prepare_keep_local(record_id, store)
        self.push_local(record_id, local, push)
        return self.confirm_keep_local(record_id, store, local)

    def prepare_keep_local(self, record_id: str, store: RecordStore) -> QuoteRecord:
        """Stage the local version of a conflict in the store as pending.

        If the stored record still carries the server values (remote-wins was
        applied, or the quote was deleted), the local snapshot captured at
        detection time is restored. Either way ``last_modified`` is
        re-stamped to now so the pushed version is the newest.
        """
        entry = self._require(record_id)
        current = store.get(record_id)
        if current is not None and (current.text, current.category) != (
            entry.server.text,
            entry.server.category,
        ):
            base = current
        else:
            base = entry.local
        local = base.copy(last_modified=utc_now(), pending_sync=True)
        store.upsert(local)
        return local.copy()

    def push_local(self, record_id: str, local: QuoteRecord, push: PushFn) -> None:
        """Send a staged local version; failures raise ``PushFailed``."""
        try:
            push(local)
        except Exception as e:
            logger.warning(f"Keep-local push failed for quote {record_id}: {e}")
            raise PushFailed(record_id, str(e)) from e

    def confirm_keep_local(
        self, record_id: str, store: RecordStore, pushed: QuoteRecord
    ) -> QuoteRecord:
        """Drop the entry after a successful push and clear the pending flag.

        A record edited again while the push was in flight keeps its pending
        flag so the next pass sends the newer version; one deleted meanwhile
        stays deleted.
        """
        current = store.get(record_id)
        if current is None:
            current = pushed.copy(pending_sync=False)
        elif current.same_content(pushed):
            current = current.copy(pending_sync=False)
            store.upsert(current)
        self.remove(record_id)
        logger.info(f"Pushed local version of quote {record_id}")
        return current.copy()

    # === Persistence ===

    def load(self, items: List[Any]) -> int:
        """Replace the registry with persisted entries, skipping unreadable ones."""
        self._entries.clear()
        for item in items:
            try:
                entry = ConflictEntry.from_dict(item)
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping unreadable stored conflict: {e}")
                continue
            self._entries[entry.id] = entry
        return len(self._entries)
