"""
CLI Commands.

Organized by domain/feature area.
"""

from notesync.cli.commands.notes import app as notes_app
from notesync.cli.commands.server import app as server_app
from notesync.cli.commands.sync import app as sync_app
from notesync.cli.commands.tags import app as tags_app

__all__ = [
    "notes_app",
    "server_app",
    "sync_app",
    "tags_app",
]
