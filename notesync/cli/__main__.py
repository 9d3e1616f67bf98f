"""Allow `python -m notesync.cli`."""

from notesync.cli.app import app

app()
