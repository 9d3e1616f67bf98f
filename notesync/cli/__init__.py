"""
notesync command-line client.

Typer commands over the sync orchestrator, with Rich output.
"""
