"""Import/export commands for the quotesync CLI."""

import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING

from quotesync.errors import InvalidImportFormat

if TYPE_CHECKING:
    from quotesync import QuoteBook

logger = logging.getLogger(__name__)


def cmd_import(args, book: "QuoteBook"):
    """Replace all quotes with the contents of a JSON file."""
    path = Path(args.file)
    try:
        payload = path.read_text(encoding="utf-8")
    except OSError as e:
        print(f"✗ Error reading JSON file: {e}")
        sys.exit(1)

    try:
        count = book.import_json(payload)
    except InvalidImportFormat as e:
        print(f"✗ {e}")
        sys.exit(1)
    print(f"✓ Successfully imported {count} quotes!")


def cmd_export(args, book: "QuoteBook"):
    """Write all quotes as pretty-printed JSON to a file or stdout."""
    payload = book.export_json()
    if not args.file or args.file == "-":
        print(payload)
        return

    path = Path(args.file)
    path.write_text(payload + "\n", encoding="utf-8")
    print(f"✓ Exported {len(book.quotes())} quotes to {path}")
