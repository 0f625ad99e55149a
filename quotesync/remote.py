"""Remote quote sources.

``HttpRemoteSource`` talks to a JSON collection endpoint over httpx. It
accepts either canonical quote objects or the ``{id, title, body, userId}``
post shape served by JSONPlaceholder-style mock APIs, and maps both into the
canonical quote shape before anything reaches the engine.

``SimulatedRemoteSource`` is an in-memory stand-in used offline and in tests;
``FallbackRemoteSource`` tries one source and falls back to another.
"""

import copy
import logging
from typing import Any, Dict, List, Optional, Set

import httpx

from .errors import RemoteError
from .types import QuoteRecord, generate_id

logger = logging.getLogger(__name__)

DEFAULT_SERVER_URL = "https://jsonplaceholder.typicode.com/posts"
DEFAULT_TIMEOUT = 10.0
DEFAULT_FETCH_LIMIT = 100

# Titles sent alongside the body are truncated to this many characters.
POST_TITLE_LENGTH = 50


def map_remote_item(item: Any) -> Optional[Dict[str, Any]]:
    """Map one remote item into the canonical quote shape.

    Canonical items (with a ``text`` field) pass through; post-shaped items
    use ``body``/``title`` for text and ``userId`` for the category.
    Returns None for items that are not objects.
    """
    if not isinstance(item, dict):
        return None

    raw_id = item.get("id")
    record_id = str(raw_id) if raw_id not in (None, "") else generate_id()

    if "text" in item:
        mapped = {
            "id": record_id,
            "text": item.get("text") or "",
            "category": item.get("category"),
        }
    else:
        user_id = item.get("userId")
        mapped = {
            "id": record_id,
            "text": item.get("body") or item.get("title") or "Untitled",
            "category": f"User-{user_id}" if user_id not in (None, "") else "Import",
        }

    last_modified = item.get("lastModified") or item.get("last_modified")
    if last_modified is not None:
        mapped["lastModified"] = last_modified
    return mapped


def record_to_payload(record: QuoteRecord) -> Dict[str, Any]:
    """Build the POST body for a record (canonical fields plus post aliases)."""
    return {
        "id": record.id,
        "text": record.text,
        "category": record.category,
        "lastModified": record.last_modified,
        "title": record.text[:POST_TITLE_LENGTH],
        "body": record.text,
        "userId": record.category,
    }


class HttpRemoteSource:
    """Remote source backed by an HTTP JSON collection.

    Args:
        base_url: Collection URL; GET lists, POST creates.
        timeout: Per-request timeout in seconds.
        limit: Value sent as the ``_limit`` query parameter on fetch.
        client: Optional preconfigured ``httpx.Client`` (tests inject one
            with a mock transport).
    """

    def __init__(
        self,
        base_url: str = DEFAULT_SERVER_URL,
        timeout: float = DEFAULT_TIMEOUT,
        limit: int = DEFAULT_FETCH_LIMIT,
        client: Optional[httpx.Client] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.limit = limit
        self._owns_client = client is None
        self._client = client or httpx.Client(timeout=timeout)

    def __enter__(self) -> "HttpRemoteSource":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def _headers(self) -> Dict[str, str]:
        return {"Content-Type": "application/json", "Accept": "application/json"}

    def _decode(self, response: httpx.Response, action: str) -> Any:
        if not response.is_success:
            raise RemoteError(
                f"{action} failed: server returned status {response.status_code}",
                status_code=response.status_code,
            )
        try:
            return response.json()
        except ValueError as e:
            raise RemoteError(f"{action} failed: invalid JSON response ({e})") from e

    def fetch_all(self) -> List[Dict[str, Any]]:
        response = self._client.get(
            self.base_url,
            params={"_limit": self.limit},
            headers=self._headers(),
            timeout=self.timeout,
        )
        data = self._decode(response, "Fetch")
        if not isinstance(data, list):
            raise RemoteError(f"Fetch failed: expected a list, got {type(data).__name__}")

        mapped = []
        for item in data:
            quote = map_remote_item(item)
            if quote is None:
                logger.debug(f"Skipping non-object remote item: {item!r}")
                continue
            mapped.append(quote)
        logger.debug(f"Fetched {len(mapped)} remote quotes from {self.base_url}")
        return mapped

    def post(self, record: QuoteRecord) -> Dict[str, Any]:
        response = self._client.post(
            self.base_url,
            json=record_to_payload(record),
            headers=self._headers(),
            timeout=self.timeout,
        )
        data = self._decode(response, f"Post of {record.id}")
        # The server may assign its own id; the local id stays the join key.
        return data if isinstance(data, dict) else {}


class SimulatedRemoteSource:
    """In-memory remote collection.

    ``post`` upserts by id. Set ``fail_fetch``/``fail_post`` (or add ids to
    ``fail_post_ids``) to simulate an unreachable or rejecting server.
    """

    def __init__(self, seed: Optional[List[Dict[str, Any]]] = None):
        self.store: List[Dict[str, Any]] = [dict(item) for item in (seed or [])]
        self.fail_fetch = False
        self.fail_post = False
        self.fail_post_ids: Set[str] = set()
        self.fetch_count = 0
        self.posted: List[str] = []

    def seed_from(self, records: List[QuoteRecord]) -> bool:
        """Seed the collection from local records if it is still empty."""
        if self.store:
            return False
        self.store = [
            {
                "id": r.id,
                "text": r.text,
                "category": r.category,
                "lastModified": r.last_modified,
            }
            for r in records
        ]
        return True

    def fetch_all(self) -> List[Dict[str, Any]]:
        self.fetch_count += 1
        if self.fail_fetch:
            raise RemoteError("Simulated fetch failure")
        return copy.deepcopy(self.store)

    def post(self, record: QuoteRecord) -> Dict[str, Any]:
        if self.fail_post or record.id in self.fail_post_ids:
            raise RemoteError(f"Simulated post failure for {record.id}")

        entry = {
            "id": record.id,
            "text": record.text,
            "category": record.category,
            "lastModified": record.last_modified,
        }
        for i, existing in enumerate(self.store):
            if existing.get("id") == record.id:
                self.store[i] = entry
                break
        else:
            self.store.append(entry)
        self.posted.append(record.id)
        return dict(entry)


class FallbackRemoteSource:
    """Use ``primary`` and fall back to ``fallback`` when it fails.

    A failure of both sources propagates to the caller.
    """

    def __init__(self, primary, fallback):
        self.primary = primary
        self.fallback = fallback

    def fetch_all(self) -> List[Dict[str, Any]]:
        try:
            return self.primary.fetch_all()
        except Exception as e:
            logger.warning(f"Fetch from remote server failed; using fallback source: {e}")
            return self.fallback.fetch_all()

    def post(self, record: QuoteRecord) -> Dict[str, Any]:
        try:
            return self.primary.post(record)
        except Exception as e:
            logger.warning(f"Post of {record.id} failed; using fallback source: {e}")
            return self.fallback.post(record)
