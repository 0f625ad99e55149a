"""
QuoteBook - the quote-list editing session.

Ties together the record store, the conflict registry, the reconciliation
engine and the persistence and remote adapters. Every mutation is saved
immediately so a crash between sync ticks never loses local edits.
"""

import logging
import re
from typing import Any, Dict, List, Optional

from .config import SyncConfig, load_config
from .conflicts import ConflictRegistry
from .engine import ReconciliationEngine
from .errors import EmptyResult, RecordNotFound
from .persistence import JsonFilePersistence, MemoryPersistence, QuoteRepository
from .remote import FallbackRemoteSource, HttpRemoteSource, SimulatedRemoteSource
from .store import RecordStore, default_records, normalize_record
from .transfer import export_records, parse_import
from .types import (
    ALL_CATEGORIES,
    ConflictEntry,
    ConflictPolicy,
    QuoteRecord,
    ReconcileResult,
    generate_id,
    utc_now,
)

logger = logging.getLogger(__name__)

MAX_TEXT_LENGTH = 2000
MAX_CATEGORY_LENGTH = 100


def sanitize_text(value: Any, field_name: str, max_length: int) -> str:
    """Validate user-entered text and strip control characters.

    Raises:
        ValueError: if the value is not a string, is blank, or is too long.
    """
    if not isinstance(value, str):
        raise ValueError(f"{field_name} must be a string, got {type(value).__name__}")
    value = value.strip()
    if not value:
        raise ValueError(f"{field_name} cannot be empty")
    if len(value) > max_length:
        raise ValueError(f"{field_name} too long (max {max_length} characters, got {len(value)})")
    return re.sub(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]", "", value)


def build_remote(config: SyncConfig, offline: bool = False):
    """Build the remote source described by ``config``.

    Offline sessions, or configs without a usable server URL, get a
    simulated in-memory remote. Otherwise the HTTP source is used, wrapped
    with a simulated fallback when ``use_simulated_fallback`` is set.
    """
    if offline or not config.server_url:
        return SimulatedRemoteSource()
    http = HttpRemoteSource(
        config.server_url, timeout=config.timeout, limit=config.fetch_limit
    )
    if config.use_simulated_fallback:
        return FallbackRemoteSource(http, SimulatedRemoteSource())
    return http


class QuoteBook:
    """A quote-list editing session backed by a persistence adapter.

    Args:
        repository: Where records and UI selections are saved.
        remote: Remote source to reconcile against (None disables sync).
        policy: Conflict resolution policy for reconciliation passes.
    """

    def __init__(
        self,
        repository: Optional[QuoteRepository] = None,
        remote=None,
        policy: ConflictPolicy = ConflictPolicy.REMOTE_WINS,
    ):
        self.repository = repository or QuoteRepository(MemoryPersistence())
        self.store = RecordStore()
        self.registry = ConflictRegistry()
        self.remote = remote
        self.engine = ReconciliationEngine(
            self.store,
            self.registry,
            repository=self.repository,
            remote=remote,
            policy=policy,
        )

    @classmethod
    def open(
        cls, config: Optional[SyncConfig] = None, offline: bool = False, remote=None
    ) -> "QuoteBook":
        """Open the session stored under ``config.data_dir`` and load it."""
        config = config or load_config()
        repository = QuoteRepository(JsonFilePersistence(config.store_path))
        book = cls(
            repository,
            remote=remote if remote is not None else build_remote(config, offline=offline),
            policy=config.conflict_policy,
        )
        book.load()
        return book

    # === Session ===

    def load(self) -> int:
        """Restore records and unresolved conflicts, seeding default quotes if none are stored."""
        stored = self.repository.load_records()
        with self.engine.state_lock:
            if stored is not None:
                count = self.store.load(stored)
            else:
                count = self.store.load(None, initial_defaults=default_records())
            conflicts = self.registry.load(self.repository.load_conflicts())
            self.save()

        self._seed_simulated_remote()
        logger.debug(f"Loaded {count} quotes, {conflicts} unresolved conflict(s)")
        return count

    def _seed_simulated_remote(self) -> None:
        simulated = self.remote
        if isinstance(simulated, FallbackRemoteSource):
            simulated = simulated.fallback
        if isinstance(simulated, SimulatedRemoteSource):
            simulated.seed_from(self.store.snapshot())

    def save(self) -> None:
        self.repository.save_records(self.store.snapshot())
        self.repository.save_conflicts(self.registry.list())

    @property
    def policy(self) -> ConflictPolicy:
        return self.engine.policy

    # === Quotes ===

    def quotes(self, category: Optional[str] = None) -> List[QuoteRecord]:
        return [r.copy() for r in self.store.list_by_category(category or ALL_CATEGORIES)]

    def get_quote(self, record_id: str) -> QuoteRecord:
        record = self.store.get(record_id)
        if record is None:
            raise RecordNotFound(record_id)
        return record.copy()

    def add_quote(self, text: str, category: str, push: bool = True) -> QuoteRecord:
        """Add a quote locally and optionally push it right away.

        The quote is saved as pending before the push is attempted; a failed
        push leaves it pending for the next reconciliation pass.
        """
        record = QuoteRecord(
            id=generate_id(),
            text=sanitize_text(text, "text", MAX_TEXT_LENGTH),
            category=sanitize_text(category, "category", MAX_CATEGORY_LENGTH),
            last_modified=utc_now(),
            pending_sync=True,
        )
        with self.engine.state_lock:
            self.store.upsert(record)
            self.save()

        if push and self.remote is not None:
            self._push_new(record)
        return self.get_quote(record.id)

    def _push_new(self, record: QuoteRecord) -> bool:
        try:
            self.remote.post(record)
        except Exception as e:
            logger.warning(f"New quote saved locally but failed to sync: {e}")
            return False

        with self.engine.state_lock:
            current = self.store.get(record.id)
            if current is not None and current == record:
                self.store.upsert(current.copy(pending_sync=False))
                self.save()
        logger.info(f"New quote {record.id} synced to server")
        return True

    def edit_quote(
        self, record_id: str, text: Optional[str] = None, category: Optional[str] = None
    ) -> QuoteRecord:
        """Change a quote's text and/or category; marks it pending."""
        with self.engine.state_lock:
            current = self.store.get(record_id)
            if current is None:
                raise RecordNotFound(record_id)
            if text is not None:
                text = sanitize_text(text, "text", MAX_TEXT_LENGTH)
            if category is not None:
                category = sanitize_text(category, "category", MAX_CATEGORY_LENGTH)
            updated = current.copy(
                text=current.text if text is None else text,
                category=current.category if category is None else category,
                last_modified=utc_now(),
                pending_sync=True,
            )
            self.store.upsert(updated)
            self.save()
        return updated.copy()

    def delete_quote(self, record_id: str) -> QuoteRecord:
        with self.engine.state_lock:
            removed = self.store.remove(record_id)
            self.save()
        return removed

    def categories(self) -> List[str]:
        return self.store.categories()

    @property
    def selected_category(self) -> str:
        return self.repository.get_selected_category()

    def select_category(self, category: str) -> None:
        self.repository.set_selected_category(category)

    def show_random(self, category: Optional[str] = None) -> Optional[QuoteRecord]:
        """Pick a random quote, defaulting to the saved category filter.

        Returns None when nothing matches so callers can show an empty state.
        """
        category = category or self.selected_category
        try:
            record = self.store.pick_random(category)
        except EmptyResult as e:
            logger.info(str(e))
            return None
        self.repository.set_last_quote(record)
        return record.copy()

    def last_viewed(self) -> Optional[QuoteRecord]:
        raw = self.repository.get_last_quote()
        return normalize_record(raw) if raw else None

    # === Import / Export ===

    def import_json(self, payload: str) -> int:
        """Replace all quotes with an imported JSON array.

        Raises:
            InvalidImportFormat: if the payload is rejected; existing quotes
                are left untouched.
        """
        records = parse_import(payload)
        with self.engine.state_lock:
            self.store.replace_all(records)
            self.save()
        logger.info(f"Imported {len(self.store)} quotes")
        return len(self.store)

    def export_json(self) -> str:
        return export_records(self.store.snapshot())

    # === Sync ===

    def sync(self) -> ReconcileResult:
        return self.engine.reconcile()

    def conflicts(self) -> List[ConflictEntry]:
        return self.registry.list()

    def accept_server(self, record_id: str) -> QuoteRecord:
        return self.engine.resolve_accept_server(record_id)

    def keep_local(self, record_id: str) -> QuoteRecord:
        return self.engine.resolve_keep_local(record_id)

    def accept_all(self) -> int:
        return self.engine.resolve_all_accept_server()

    def keep_all_local(self) -> List[str]:
        return self.engine.resolve_all_keep_local()

    def status(self) -> Dict[str, Any]:
        status = self.engine.status()
        status["categories"] = len(self.store.categories())
        status["selected_category"] = self.selected_category
        return status
