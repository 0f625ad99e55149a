"""
quotesync - a quote-list editor that reconciles with a remote collection.

Local edits are kept in a record store and periodically merged with the
remote snapshot; divergent versions are surfaced as conflicts for review.
"""

from .conflicts import ConflictRegistry
from .core import QuoteBook
from .engine import ReconciliationEngine, plan_merge
from .errors import (
    ConflictNotFound,
    EmptyResult,
    InvalidImportFormat,
    PushFailed,
    QuoteSyncError,
    SyncUnavailable,
)
from .store import RecordStore
from .types import ConflictEntry, ConflictPolicy, QuoteRecord, ReconcileResult

try:
    from importlib.metadata import version

    __version__ = version("quotesync")
except Exception:
    __version__ = "0.0.0"

__all__ = [
    "ConflictEntry",
    "ConflictNotFound",
    "ConflictPolicy",
    "ConflictRegistry",
    "EmptyResult",
    "InvalidImportFormat",
    "PushFailed",
    "QuoteBook",
    "QuoteRecord",
    "QuoteSyncError",
    "ReconcileResult",
    "ReconciliationEngine",
    "RecordStore",
    "SyncUnavailable",
    "plan_merge",
]
