"""CLI command modules for quotesync.

Each module contains related command handlers used by __main__.py.
"""

from quotesync.cli.commands.quotes import (
    cmd_add,
    cmd_categories,
    cmd_delete,
    cmd_edit,
    cmd_list,
    cmd_random,
    cmd_select,
    cmd_status,
)
from quotesync.cli.commands.sync import cmd_conflicts, cmd_sync, cmd_watch
from quotesync.cli.commands.transfer import cmd_export, cmd_import

__all__ = [
    "cmd_add",
    "cmd_categories",
    "cmd_conflicts",
    "cmd_delete",
    "cmd_edit",
    "cmd_export",
    "cmd_import",
    "cmd_list",
    "cmd_random",
    "cmd_select",
    "cmd_status",
    "cmd_sync",
    "cmd_watch",
]
