"""
notesync.

- backend/: Authoritative notes/tags service (FastAPI, SQLAlchemy), configuration, logging
- client/: Offline-first client (local store, remote client, cloud backup, sync orchestrator)
- cli/: Command-line front end (Typer + Rich)
"""

__version__ = "0.1.0"
