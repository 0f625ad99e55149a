"""
quotesync Protocol Definitions
==============================

Interface contracts for the collaborators the reconciliation engine talks to.

- PersistenceAdapter: durable key-value storage for the session (the record
  list, the selected category filter, the last viewed quote).
- RemoteSource: the remote collection. ``fetch_all`` returns the whole
  remote snapshot, ``post`` creates or updates one record.

Error handling:
- Adapters signal failure by raising. The engine treats any exception from
  ``fetch_all`` as the remote being unavailable, and any exception from
  ``post`` as a failed push for that one record.
- Remote sources map their own field names into the canonical quote shape
  (``id``, ``text``, ``category``, ``lastModified``) before returning data.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional, Protocol, runtime_checkable

from quotesync.types import QuoteRecord

# A push callable accepts one record and returns the server representation,
# raising on failure.
PushFn = Callable[[QuoteRecord], Any]

# A fetch callable returns the remote snapshot as canonical dicts.
FetchFn = Callable[[], List[Dict[str, Any]]]


@runtime_checkable
class PersistenceAdapter(Protocol):
    """Durable string key-value storage."""

    def get(self, key: str) -> Optional[str]:
        """Return the stored value, or None if the key was never set."""
        ...

    def set(self, key: str, value: str) -> None:
        """Store a value, replacing any previous one."""
        ...


@runtime_checkable
class RemoteSource(Protocol):
    """The remote quote collection."""

    def fetch_all(self) -> List[Dict[str, Any]]:
        """Fetch every remote quote as canonical dicts."""
        ...

    def post(self, record: QuoteRecord) -> Dict[str, Any]:
        """Create or update one quote remotely and return the server representation."""
        ...
