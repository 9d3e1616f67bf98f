"""
Sync Commands.

Inspect the local store and push or restore offline work.
"""

import typer
from rich.panel import Panel
from rich.table import Table

from notesync.cli.context import console, get_state, print_outcome, run
from notesync.client.results import SyncOutcome

app = typer.Typer(help="Offline sync commands")


@app.command()
def status(ctx: typer.Context) -> None:
    """Show connectivity, last sync time and unsynced work."""
    sync_status = run(ctx, _status)

    table = Table(show_header=False, box=None)
    table.add_column("Key", style="cyan")
    table.add_column("Value")
    table.add_row(
        "Connection",
        "[green]online[/green]" if sync_status.online else "[yellow]offline[/yellow]",
    )
    table.add_row(
        "Last sync",
        f"{sync_status.last_sync:%Y-%m-%d %H:%M:%S}" if sync_status.last_sync else "never",
    )
    table.add_row("Unsynced notes", str(sync_status.pending_notes))
    table.add_row("Unsynced tags", str(sync_status.pending_tags))
    table.add_row("Signed in as", sync_status.user_id or "[dim]-[/dim]")

    console.print(Panel(table, title="[bold]Sync status[/bold]", border_style="blue"))


async def _status(orchestrator):
    return await orchestrator.status()


@app.command()
def push(ctx: typer.Context) -> None:
    """Create notes and tags made offline on the backend."""
    report = run(ctx, lambda o: o.push_placeholders())

    if report.outcome is SyncOutcome.OFFLINE:
        console.print("[yellow]Offline: nothing pushed[/yellow]")
        raise typer.Exit(1)

    console.print(
        f"[green]Pushed {report.pushed_notes} note(s) and {report.pushed_tags} tag(s)[/green]"
    )
    for placeholder_id, server_id in report.id_map.items():
        console.print(f"[dim]  {placeholder_id} -> {server_id}[/dim]")
    if report.failed:
        console.print(f"[red]Not pushed: {', '.join(str(i) for i in report.failed)}[/red]")
    if not report.complete:
        raise typer.Exit(1)


@app.command()
def restore(ctx: typer.Context) -> None:
    """Pull the signed-in user's cloud backup into the local store."""
    if get_state(ctx).user_id is None:
        console.print("[red]Error: pass --user to restore a cloud backup[/red]")
        raise typer.Exit(1)

    result = run(ctx, lambda o: o.restore_from_backup())
    if result.outcome is SyncOutcome.REJECTED:
        console.print(f"[red]Restore failed: {result.reason}[/red]")
        raise typer.Exit(1)

    counts = result.value or {}
    console.print(
        f"[green]Restored {counts.get('notes', 0)} note(s) "
        f"and {counts.get('tags', 0)} tag(s)[/green]"
    )
    print_outcome(result)
