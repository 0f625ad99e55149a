"""Persistence adapters and the quote repository.

Adapters are plain string key-value stores (the shape of browser local
storage). ``QuoteRepository`` sits on top and knows which keys hold the
record list, the unresolved conflicts, the selected category filter and the
last viewed quote.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from .protocols import PersistenceAdapter
from .types import ALL_CATEGORIES, ConflictEntry, QuoteRecord

logger = logging.getLogger(__name__)

QUOTES_KEY = "quotes"
SELECTED_CATEGORY_KEY = "selectedCategory"
LAST_QUOTE_KEY = "lastQuote"
CONFLICTS_KEY = "conflicts"


class MemoryPersistence:
    """Dict-backed adapter for tests and throwaway sessions."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self.data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        self.data[key] = value


class JsonFilePersistence:
    """Adapter that keeps every key in one JSON object on disk.

    Each ``set`` rewrites the file through a temp file and ``os.replace`` so
    a crash mid-write never leaves a truncated store behind.

    Args:
        path: File to read and write. Parent directories are created.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self._cache: Optional[Dict[str, str]] = None

    def _read(self) -> Dict[str, str]:
        if self._cache is not None:
            return self._cache

        data: Dict[str, str] = {}
        if self.path.exists():
            try:
                with open(self.path, encoding="utf-8") as f:
                    loaded = json.load(f)
                if isinstance(loaded, dict):
                    data = {str(k): v for k, v in loaded.items() if isinstance(v, str)}
                else:
                    logger.warning(f"Ignoring non-object storage file {self.path}")
            except (json.JSONDecodeError, OSError, UnicodeDecodeError) as e:
                logger.warning(f"Failed to read storage file {self.path}: {e}")
        self._cache = data
        return data

    def get(self, key: str) -> Optional[str]:
        return self._read().get(key)

    def set(self, key: str, value: str) -> None:
        data = dict(self._read())
        data[key] = value

        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=".quotesync-", dir=str(self.path.parent))
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
            os.chmod(tmp_name, 0o600)
            os.replace(tmp_name, self.path)
        except OSError:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise
        self._cache = data


class QuoteRepository:
    """Reads and writes the session state through a persistence adapter."""

    def __init__(self, adapter: PersistenceAdapter):
        self.adapter = adapter

    def load_records(self) -> Optional[List[Any]]:
        """Return the raw persisted quote list, or None if absent or unreadable.

        Entries are returned as parsed JSON; the record store normalizes them.
        """
        stored = self.adapter.get(QUOTES_KEY)
        if not stored:
            return None
        try:
            items = json.loads(stored)
        except json.JSONDecodeError as e:
            logger.warning(f"Failed to parse stored quotes, will reinitialize: {e}")
            return None
        if not isinstance(items, list):
            logger.warning("Stored quotes are not a list, will reinitialize")
            return None
        return items

    def save_records(self, records: List[QuoteRecord]) -> None:
        self.adapter.set(QUOTES_KEY, json.dumps([r.to_dict() for r in records]))

    def load_conflicts(self) -> List[Any]:
        """Return the raw persisted conflict entries ([] if absent or unreadable)."""
        stored = self.adapter.get(CONFLICTS_KEY)
        if not stored:
            return []
        try:
            items = json.loads(stored)
        except json.JSONDecodeError as e:
            logger.warning(f"Failed to parse stored conflicts, starting empty: {e}")
            return []
        if not isinstance(items, list):
            logger.warning("Stored conflicts are not a list, starting empty")
            return []
        return items

    def save_conflicts(self, entries: List[ConflictEntry]) -> None:
        self.adapter.set(CONFLICTS_KEY, json.dumps([e.to_dict() for e in entries]))

    def get_selected_category(self) -> str:
        return self.adapter.get(SELECTED_CATEGORY_KEY) or ALL_CATEGORIES

    def set_selected_category(self, category: str) -> None:
        self.adapter.set(SELECTED_CATEGORY_KEY, category or ALL_CATEGORIES)

    def get_last_quote(self) -> Optional[Dict[str, Any]]:
        stored = self.adapter.get(LAST_QUOTE_KEY)
        if not stored:
            return None
        try:
            value = json.loads(stored)
        except json.JSONDecodeError:
            logger.debug("Ignoring unreadable last viewed quote")
            return None
        return value if isinstance(value, dict) else None

    def set_last_quote(self, record: QuoteRecord) -> None:
        self.adapter.set(LAST_QUOTE_KEY, json.dumps(record.to_dict()))
