"""Sync commands for the quotesync CLI: sync, watch, conflicts."""

import json
import logging
from typing import TYPE_CHECKING

from quotesync.errors import PushFailed
from quotesync.scheduler import SyncScheduler

if TYPE_CHECKING:
    from quotesync import QuoteBook, ReconcileResult

logger = logging.getLogger(__name__)


def format_result(result: "ReconcileResult") -> str:
    """One-line human summary of a reconciliation pass."""
    if result.skipped:
        return "Sync skipped: previous sync still running."
    if result.unavailable:
        return "Sync attempt failed (network error). Will retry."

    parts = []
    if result.added:
        parts.append(f"{result.added} new quote(s) synced from server")
    if result.conflict_count:
        parts.append(f"{result.conflict_count} conflict(s) detected")
    if result.pushed:
        parts.append(f"{result.pushed} pushed")
    if result.push_failed:
        parts.append(f"{result.push_failed} failed to push")
    if not parts:
        return "Already in sync."
    return "Sync complete: " + ", ".join(parts) + "."


def cmd_sync(args, book: "QuoteBook"):
    """Run one reconciliation pass."""
    result = book.sync()

    if args.json:
        print(json.dumps(result.to_dict(), indent=2))
        return

    print(format_result(result))
    if result.conflict_count:
        print("  Review with `quotesync conflicts list`.")
    for error in result.errors:
        if not result.unavailable:
            print(f"  ✗ {error}")


def cmd_watch(args, book: "QuoteBook"):
    """Reconcile on a fixed interval until interrupted."""
    interval = args.interval or args.config_interval

    def report(result):
        print(format_result(result), flush=True)

    scheduler = SyncScheduler(
        book.engine, interval=interval, on_result=report, max_ticks=args.ticks
    )
    print(f"Syncing every {interval:g}s (Ctrl+C to stop)")
    scheduler.start()
    try:
        scheduler.join()
    except KeyboardInterrupt:
        print()
    finally:
        scheduler.stop(timeout=interval)


def _print_conflict(entry):
    print(f"ID: {entry.id}")
    print(f"  Local:  \"{entry.local.text}\"")
    print(f"          Category: {entry.local.category} - Modified: {entry.local.last_modified}")
    print(f"  Server: \"{entry.server.text}\"")
    print(f"          Category: {entry.server.category} - Modified: {entry.server.last_modified}")


def cmd_conflicts(args, book: "QuoteBook"):
    """Review and resolve sync conflicts."""
    action = args.conflicts_action or "list"

    if action == "list":
        conflicts = book.conflicts()
        if getattr(args, "json", False):
            print(json.dumps([c.to_dict() for c in conflicts], indent=2))
            return
        if not conflicts:
            print("No conflicts at the moment.")
            return
        print(f"{len(conflicts)} conflict(s) (policy: {book.policy.value})")
        for entry in conflicts:
            _print_conflict(entry)

    elif action == "accept":
        book.accept_server(args.id)
        print("✓ Server change accepted for one conflict.")

    elif action == "keep-local":
        try:
            book.keep_local(args.id)
        except PushFailed as e:
            print(f"✗ Failed to push local change to server: {e}")
            return
        print("✓ Local change pushed to server for one conflict.")

    elif action == "accept-all":
        count = book.accept_all()
        print(f"✓ Server changes accepted for {count} conflict(s).")

    elif action == "keep-all-local":
        failed = book.keep_all_local()
        if failed:
            print(f"✗ Failed to push {len(failed)} conflict(s): {', '.join(failed)}")
        else:
            print("✓ Local changes pushed to server for all conflicts.")
