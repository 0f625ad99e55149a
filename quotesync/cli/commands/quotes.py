"""Quote commands for the quotesync CLI: list, random, add, edit, delete, categories."""

import json
import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from quotesync import QuoteBook

logger = logging.getLogger(__name__)


def _format_quote(record, show_id: bool = True) -> str:
    pending = " (pending sync)" if record.pending_sync else ""
    prefix = f"[{record.id}] " if show_id else ""
    return f'{prefix}"{record.text}" ({record.category}){pending}'


def cmd_list(args, book: "QuoteBook"):
    """List quotes, optionally filtered by category."""
    quotes = book.quotes(args.category)

    if args.json:
        print(json.dumps([q.to_dict() for q in quotes], indent=2))
        return

    if not quotes:
        print(f"No quotes found for category: {args.category or 'All'}")
        return
    for quote in quotes:
        print(_format_quote(quote))


def cmd_random(args, book: "QuoteBook"):
    """Show a random quote from a category (or the saved filter)."""
    quote = book.show_random(args.category)
    if quote is None:
        print(f"No quotes found for category: {args.category or book.selected_category}")
        return
    print(f'Quote: "{quote.text}"')
    print(f"Category: {quote.category}")


def cmd_add(args, book: "QuoteBook"):
    """Add a quote and try to push it immediately."""
    quote = book.add_quote(args.text, args.category, push=not args.no_push)
    print(f"✓ Added quote {quote.id}")
    if quote.pending_sync:
        print("  (saved locally, will sync to server in background)")


def cmd_edit(args, book: "QuoteBook"):
    """Edit a quote's text or category."""
    if args.text is None and args.category is None:
        print("✗ Nothing to change (use --text and/or --category)")
        return
    quote = book.edit_quote(args.id, text=args.text, category=args.category)
    print(f"✓ Updated quote {quote.id}")


def cmd_delete(args, book: "QuoteBook"):
    removed = book.delete_quote(args.id)
    print(f"✓ Deleted quote {removed.id}")


def cmd_categories(args, book: "QuoteBook"):
    selected = book.selected_category
    for category in ["All"] + book.categories():
        marker = "*" if category == selected else " "
        print(f"{marker} {category}")


def cmd_select(args, book: "QuoteBook"):
    """Save the category filter used by `random`."""
    book.select_category(args.category)
    print(f"✓ Category filter set to {args.category}")


def cmd_status(args, book: "QuoteBook"):
    status = book.status()
    if args.json:
        print(json.dumps(status, indent=2))
        return

    print(f"Quotes:     {status['records']}")
    print(f"Categories: {status['categories']} (filter: {status['selected_category']})")
    print(f"Pending:    {status['pending']}")
    print(f"Conflicts:  {status['conflicts']}")
    print(f"Policy:     {status['policy']}")
