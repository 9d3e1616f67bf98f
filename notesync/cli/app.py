"""
notesync CLI.

Offline-first notes from the terminal.
Built with Typer for type-safe commands and Rich for formatted output.

Usage:
    notesync --help

    # Notes
    notesync notes list                       # Active notes
    notesync notes create -t Trip -c "<p>Pack bags</p>"
    notesync notes export 12 --format markdown

    # Tags
    notesync tags list
    notesync tags attach 12 3

    # Offline work
    notesync --offline notes create -t Draft  # Never touch the network
    notesync sync status
    notesync sync push                        # Create offline notes on the server
    notesync --user alice sync restore        # Pull the cloud backup

    # Server
    notesync server start --reload

Options:
    --verbose, -v     Enable verbose output
    --debug, -d       Enable debug mode (detailed logging)
    --offline         Work against the local store only
    --user            Signed-in user id for cloud backup
"""

from typing import Optional

import typer

from notesync.cli.commands import notes_app, server_app, sync_app, tags_app
from notesync.cli.context import CliState, console

app = typer.Typer(
    name="notesync",
    help="notesync - offline-first notes and tags.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

app.add_typer(notes_app, name="notes")
app.add_typer(tags_app, name="tags")
app.add_typer(sync_app, name="sync")
app.add_typer(server_app, name="server")


@app.callback()
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose output (INFO level logging)",
    ),
    debug: bool = typer.Option(
        False,
        "--debug",
        "-d",
        help="Enable debug mode (DEBUG level logging)",
    ),
    offline: bool = typer.Option(
        False,
        "--offline",
        help="Work against the local store only",
    ),
    user: Optional[str] = typer.Option(
        None,
        "--user",
        envvar="NOTESYNC_USER",
        help="Signed-in user id; enables cloud backup mirroring",
    ),
) -> None:
    """
    notesync CLI.

    Every command reports whether it was served live, offline or degraded.
    """
    from notesync.backend.core.logging import setup_logging

    ctx.obj = CliState(offline=offline, user_id=user)

    if debug:
        log_level = "DEBUG"
    elif verbose:
        log_level = "INFO"
    else:
        log_level = "WARNING"
    setup_logging(level=log_level, format_type="console")

    if debug:
        console.print("[dim]Debug mode enabled[/dim]")


if __name__ == "__main__":
    app()
