"""
quotesync CLI - manage a quote list and keep it in sync with a server.

Usage:
    quotesync list [--category C] [--json]
    quotesync random [--category C]
    quotesync add TEXT --category C [--no-push]
    quotesync edit ID [--text T] [--category C]
    quotesync delete ID
    quotesync categories
    quotesync select CATEGORY
    quotesync sync [--json]
    quotesync watch [--interval S] [--ticks N]
    quotesync conflicts [list|accept ID|keep-local ID|accept-all|keep-all-local]
    quotesync import FILE
    quotesync export [FILE]
    quotesync status [--json]
"""

import argparse
import logging
import sys
from pathlib import Path

from quotesync.cli.commands import (
    cmd_add,
    cmd_categories,
    cmd_conflicts,
    cmd_delete,
    cmd_edit,
    cmd_export,
    cmd_import,
    cmd_list,
    cmd_random,
    cmd_select,
    cmd_status,
    cmd_sync,
    cmd_watch,
)
from quotesync.config import load_config
from quotesync.core import QuoteBook
from quotesync.errors import ConfigError, QuoteSyncError
from quotesync.types import ConflictPolicy

# Set up logging
logging.basicConfig(level=logging.WARNING)
logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="quotesync",
        description="Quote list editor with server sync and conflict handling",
    )
    parser.add_argument("--home", help="Data directory (default: ~/.quotesync)")
    parser.add_argument(
        "--policy",
        choices=[p.value for p in ConflictPolicy],
        help="Conflict resolution policy for this run",
    )
    parser.add_argument(
        "--offline", action="store_true", help="Use the simulated in-memory server only"
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Log sync activity")
    parser.add_argument("--debug", action="store_true", help="Debug logging")

    subparsers = parser.add_subparsers(dest="command", required=True)

    # list
    p_list = subparsers.add_parser("list", help="List quotes")
    p_list.add_argument("--category", "-c", help="Only quotes in this category")
    p_list.add_argument("--json", "-j", action="store_true")

    # random
    p_random = subparsers.add_parser("random", help="Show a random quote")
    p_random.add_argument("--category", "-c", help="Category (default: saved filter)")

    # add
    p_add = subparsers.add_parser("add", help="Add a quote")
    p_add.add_argument("text", help="Quote text")
    p_add.add_argument("--category", "-c", required=True, help="Quote category")
    p_add.add_argument(
        "--no-push", action="store_true", help="Save locally without pushing right away"
    )

    # edit
    p_edit = subparsers.add_parser("edit", help="Edit a quote")
    p_edit.add_argument("id", help="Quote ID")
    p_edit.add_argument("--text", "-t", help="New text")
    p_edit.add_argument("--category", "-c", help="New category")

    # delete
    p_delete = subparsers.add_parser("delete", help="Delete a quote")
    p_delete.add_argument("id", help="Quote ID")

    # categories / select
    subparsers.add_parser("categories", help="List categories")
    p_select = subparsers.add_parser("select", help="Set the category filter")
    p_select.add_argument("category", help="Category name, or All")

    # sync
    p_sync = subparsers.add_parser("sync", help="Reconcile with the server once")
    p_sync.add_argument("--json", "-j", action="store_true")

    # watch
    p_watch = subparsers.add_parser("watch", help="Reconcile periodically")
    p_watch.add_argument("--interval", "-i", type=float, help="Seconds between syncs")
    p_watch.add_argument("--ticks", "-n", type=int, help="Stop after N syncs")

    # conflicts
    p_conflicts = subparsers.add_parser("conflicts", help="Review sync conflicts")
    p_conflicts.add_argument("--json", "-j", action="store_true")
    conflicts_sub = p_conflicts.add_subparsers(dest="conflicts_action")
    conflicts_sub.add_parser("list", help="List unresolved conflicts")
    c_accept = conflicts_sub.add_parser("accept", help="Accept the server version")
    c_accept.add_argument("id", help="Quote ID")
    c_keep = conflicts_sub.add_parser("keep-local", help="Push the local version")
    c_keep.add_argument("id", help="Quote ID")
    conflicts_sub.add_parser("accept-all", help="Accept the server version for all")
    conflicts_sub.add_parser("keep-all-local", help="Push local versions for all")

    # import / export
    p_import = subparsers.add_parser("import", help="Replace quotes from a JSON file")
    p_import.add_argument("file", help="JSON file with an array of quotes")
    p_export = subparsers.add_parser("export", help="Export quotes as JSON")
    p_export.add_argument("file", nargs="?", help="Output file (default: stdout)")

    # status
    p_status = subparsers.add_parser("status", help="Show session status")
    p_status.add_argument("--json", "-j", action="store_true")

    return parser


def _configure_logging(args) -> None:
    root = logging.getLogger()
    if args.debug:
        root.setLevel(logging.DEBUG)
    elif args.verbose:
        root.setLevel(logging.INFO)


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args)

    # Initialize the session with error handling
    try:
        home = Path(args.home).expanduser() if args.home else None
        config = load_config(config_path=home / "config.json" if home else None)
        if home:
            config.data_dir = home
        if args.policy:
            config.conflict_policy = ConflictPolicy.parse(args.policy)
        book = QuoteBook.open(config, offline=args.offline)
    except (ConfigError, OSError) as e:
        logger.error(f"Failed to initialize quotesync: {e}")
        sys.exit(1)

    args.config_interval = config.sync_interval

    # Dispatch with error handling
    try:
        if args.command == "list":
            cmd_list(args, book)
        elif args.command == "random":
            cmd_random(args, book)
        elif args.command == "add":
            cmd_add(args, book)
        elif args.command == "edit":
            cmd_edit(args, book)
        elif args.command == "delete":
            cmd_delete(args, book)
        elif args.command == "categories":
            cmd_categories(args, book)
        elif args.command == "select":
            cmd_select(args, book)
        elif args.command == "sync":
            cmd_sync(args, book)
        elif args.command == "watch":
            cmd_watch(args, book)
        elif args.command == "conflicts":
            cmd_conflicts(args, book)
        elif args.command == "import":
            cmd_import(args, book)
        elif args.command == "export":
            cmd_export(args, book)
        elif args.command == "status":
            cmd_status(args, book)
    except (ValueError, TypeError) as e:
        logger.error(f"Input validation error: {e}")
        sys.exit(1)
    except QuoteSyncError as e:
        logger.error(f"{e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
