"""
Shared record types for quotesync.

These dataclasses are the vocabulary shared by the store, the reconciliation
engine, the conflict registry and the adapters. Records are serialized with
camelCase keys (``lastModified``, ``pendingSync``) so persisted lists, exports
and remote payloads all use the same shape.
"""

import random
import string
import time
from dataclasses import asdict, dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from dateutil import parser as date_parser

from .errors import ConfigError

UNCATEGORIZED = "Uncategorized"
ALL_CATEGORIES = "All"

_ID_ALPHABET = string.digits + string.ascii_lowercase

# Epoch values above this are treated as milliseconds rather than seconds.
_EPOCH_MILLIS_THRESHOLD = 10**11


# === Shared Utility Functions ===


def utc_now() -> str:
    """Get current timestamp as ISO string in UTC."""
    return datetime.now(timezone.utc).isoformat()


def _to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_ID_ALPHABET[rem])
    return "".join(reversed(digits))


def generate_id() -> str:
    """Generate a time-based + random record id.

    Base-36 millisecond clock followed by seven random base-36 characters.
    Not cryptographically secure; only needs to be unique per client.
    """
    millis = int(time.time() * 1000)
    suffix = "".join(random.choice(_ID_ALPHABET) for _ in range(7))
    return _to_base36(millis) + suffix


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO string or epoch number into an aware UTC datetime.

    Returns None when the value is missing or cannot be parsed.
    """
    if value is None or value == "" or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        seconds = value / 1000 if abs(value) > _EPOCH_MILLIS_THRESHOLD else value
        try:
            return datetime.fromtimestamp(seconds, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        try:
            parsed = date_parser.isoparse(value)
        except (ValueError, OverflowError):
            try:
                parsed = date_parser.parse(value)
            except (ValueError, OverflowError):
                return None
    else:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def normalize_timestamp(value: Any) -> Optional[str]:
    """Return a canonical timestamp string, or None if unusable.

    Strings that already parse are kept verbatim so re-normalizing a record
    never changes its ``lastModified``. Epoch numbers become ISO strings.
    """
    parsed = parse_timestamp(value)
    if parsed is None:
        return None
    if isinstance(value, str):
        return value
    return parsed.isoformat()


def timestamps_equal(a: str, b: str) -> bool:
    """Compare two timestamps as instants, falling back to string equality."""
    parsed_a = parse_timestamp(a)
    parsed_b = parse_timestamp(b)
    if parsed_a is None or parsed_b is None:
        return a == b
    return parsed_a == parsed_b


# === Enums ===


class ConflictPolicy(str, Enum):
    """Which side wins when local and remote versions of a quote diverge.

    The losing side is never discarded silently: every conflict is kept in
    the conflict registry for manual review either way.
    """

    REMOTE_WINS = "remote_wins"
    LOCAL_WINS = "local_wins"

    @classmethod
    def parse(cls, value: Union[str, "ConflictPolicy"]) -> "ConflictPolicy":
        if isinstance(value, cls):
            return value
        normalized = str(value).strip().lower().replace("-", "_")
        for policy in cls:
            if policy.value == normalized:
                return policy
        valid = ", ".join(p.value for p in cls)
        raise ConfigError(f"Unknown conflict policy {value!r} (expected one of: {valid})")


# === Record Types ===


@dataclass
class QuoteRecord:
    """A single quote in the local list."""

    id: str
    text: str
    category: str = UNCATEGORIZED
    last_modified: str = field(default_factory=utc_now)
    pending_sync: bool = False

    def to_dict(self) -> Dict[str, Any]:
        """Serialize using the camelCase wire/storage keys."""
        return {
            "id": self.id,
            "text": self.text,
            "category": self.category,
            "lastModified": self.last_modified,
            "pendingSync": self.pending_sync,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "QuoteRecord":
        """Rebuild a record serialized by ``to_dict``.

        Raises:
            KeyError: if ``id`` or ``text`` is missing.
        """
        return cls(
            id=str(data["id"]),
            text=data["text"],
            category=data.get("category") or UNCATEGORIZED,
            last_modified=normalize_timestamp(data.get("lastModified")) or utc_now(),
            pending_sync=bool(data.get("pendingSync", False)),
        )

    def copy(self, **changes) -> "QuoteRecord":
        return replace(self, **changes)

    def same_content(self, other: "QuoteRecord") -> bool:
        """True if text, category and timestamp all match."""
        return (
            self.text == other.text
            and self.category == other.category
            and timestamps_equal(self.last_modified, other.last_modified)
        )

    def summary(self, width: int = 60) -> str:
        text = self.text if len(self.text) <= width else self.text[: width - 3] + "..."
        return f'"{text}" [{self.category}]'


@dataclass
class ConflictEntry:
    """A divergence between the local and remote versions of one quote.

    Both snapshots are captured at comparison time, before the resolution
    policy is applied, so a reviewer can still see what was overwritten.
    """

    id: str
    local: QuoteRecord
    server: QuoteRecord
    policy: ConflictPolicy = ConflictPolicy.REMOTE_WINS
    detected_at: str = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "local": self.local.to_dict(),
            "server": self.server.to_dict(),
            "policy": self.policy.value,
            "detectedAt": self.detected_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ConflictEntry":
        """Rebuild an entry serialized by ``to_dict``.

        Raises:
            KeyError, TypeError: for missing or malformed fields.
            ConfigError: for an unknown policy name.
        """
        return cls(
            id=str(data["id"]),
            local=QuoteRecord.from_dict(data["local"]),
            server=QuoteRecord.from_dict(data["server"]),
            policy=ConflictPolicy.parse(data.get("policy", ConflictPolicy.REMOTE_WINS)),
            detected_at=data.get("detectedAt") or utc_now(),
        )


@dataclass
class ReconcileResult:
    """Result of one reconciliation pass."""

    added: int = 0  # Remote-only records added locally
    conflicts: List[ConflictEntry] = field(default_factory=list)
    pushed: int = 0  # Push candidates confirmed by the remote
    push_failed: int = 0  # Push candidates that stay pending
    errors: List[str] = field(default_factory=list)
    skipped: bool = False  # Dropped because another pass was in flight
    unavailable: bool = False  # Remote fetch failed, nothing was changed

    @property
    def conflict_count(self) -> int:
        """Number of conflicts detected in this pass."""
        return len(self.conflicts)

    @property
    def success(self) -> bool:
        return not self.skipped and not self.unavailable and len(self.errors) == 0

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["conflicts"] = [c.to_dict() for c in self.conflicts]
        data["conflict_count"] = self.conflict_count
        data["success"] = self.success
        return data
