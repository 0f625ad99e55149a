"""JSON import and export of quote lists.

Imports accept a JSON array of objects with optional ``id``, ``text``,
``category`` and ``lastModified`` fields; missing fields get the same
defaults the record store uses. Exports are pretty-printed arrays of full
records.
"""

import json
import logging
from typing import Iterable, List

from .errors import InvalidImportFormat
from .store import normalize_record
from .types import QuoteRecord

logger = logging.getLogger(__name__)


def parse_import(payload: str) -> List[QuoteRecord]:
    """Parse and normalize an import payload.

    Imported records start with ``pendingSync=False``; the next
    reconciliation pass pushes any that the remote does not know.

    Raises:
        InvalidImportFormat: for invalid JSON, a non-array top level, or an
            array element that is not an object.
    """
    try:
        data = json.loads(payload)
    except (json.JSONDecodeError, TypeError) as e:
        raise InvalidImportFormat(f"Error reading JSON: {e}") from e

    if not isinstance(data, list):
        raise InvalidImportFormat(
            f"Invalid JSON format. Expected an array of quotes, got {type(data).__name__}"
        )

    records = []
    for index, item in enumerate(data):
        record = normalize_record(item, pending_sync=False)
        if record is None:
            raise InvalidImportFormat(
                f"Invalid quote at index {index}: expected an object, got {type(item).__name__}"
            )
        records.append(record)

    logger.debug(f"Parsed {len(records)} quotes from import payload")
    return records


def export_records(records: Iterable[QuoteRecord]) -> str:
    """Serialize records as a pretty-printed JSON array."""
    return json.dumps([r.to_dict() for r in records], indent=2, ensure_ascii=False)
