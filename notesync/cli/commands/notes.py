"""
Note Commands.

List, edit, trash and export notes through the sync orchestrator.
"""

from pathlib import Path
from typing import Optional

import typer
from rich.panel import Panel
from rich.table import Table

from notesync.backend.core.markup import strip_html
from notesync.backend.schemas.export import ExportFormat
from notesync.backend.schemas.note import NoteCreate, NoteUpdate, NoteWithTags
from notesync.cli.context import console, print_outcome, run

app = typer.Typer(help="Note commands")


def _notes_table(notes: list[NoteWithTags], title: str) -> Table:
    table = Table(title=title, show_header=True)
    table.add_column("ID", style="cyan", justify="right")
    table.add_column("Title")
    table.add_column("Tags", style="magenta")
    table.add_column("Fav", justify="center")
    table.add_column("Updated", style="dim")

    for note in notes:
        table.add_row(
            str(note.id),
            note.title,
            ", ".join(tag.name for tag in note.tags),
            "*" if note.is_favorite else "",
            note.updated_at.strftime("%Y-%m-%d %H:%M"),
        )
    return table


def _print_note(note: NoteWithTags) -> None:
    tags = ", ".join(tag.name for tag in note.tags) or "-"
    flags = []
    if note.is_favorite:
        flags.append("favorite")
    if note.is_deleted:
        flags.append("in trash")
    body = strip_html(note.content) or "[dim](empty)[/dim]"
    console.print(
        Panel(
            f"{body}\n\n[dim]Tags: {tags}[/dim]\n"
            f"[dim]Updated: {note.updated_at:%Y-%m-%d %H:%M:%S}"
            f"{' | ' + ', '.join(flags) if flags else ''}[/dim]",
            title=f"[bold]{note.title}[/bold] [dim]#{note.id}[/dim]",
            border_style="blue",
        )
    )


@app.command("list")
def list_notes(
    ctx: typer.Context,
    trash: bool = typer.Option(False, "--trash", help="Show only notes in the trash"),
) -> None:
    """
    List notes, most recently updated first.

    Examples:
        notesync notes list
        notesync notes list --trash
    """
    result = run(ctx, lambda o: o.list_notes(include_deleted=trash))
    notes = result.value or []
    if trash:
        notes = [note for note in notes if note.is_deleted]

    if notes:
        console.print(_notes_table(notes, "Trash" if trash else "Notes"))
    else:
        console.print("[dim]No notes[/dim]")
    print_outcome(result)


@app.command()
def show(ctx: typer.Context, note_id: int = typer.Argument(..., help="Note ID")) -> None:
    """Show a single note."""
    result = run(ctx, lambda o: o.get_note(note_id))
    if result.value is None:
        console.print(f"[red]Note {note_id} not found[/red]")
        raise typer.Exit(1)
    _print_note(result.value)
    print_outcome(result)


@app.command()
def create(
    ctx: typer.Context,
    title: str = typer.Option("Untitled", "--title", "-t", help="Note title"),
    content: str = typer.Option("", "--content", "-c", help="Note content (HTML)"),
    tag: Optional[list[int]] = typer.Option(None, "--tag", help="Tag ID to attach (repeatable)"),
    favorite: bool = typer.Option(False, "--favorite", "-f", help="Mark as favorite"),
) -> None:
    """
    Create a note.

    Examples:
        notesync notes create -t Trip -c "<p>Pack bags</p>"
        notesync notes create -t Standup --tag 1 --tag 4
    """
    draft = NoteCreate(title=title, content=content, is_favorite=favorite, tag_ids=tag or None)
    result = run(ctx, lambda o: o.create_note(draft))
    console.print(f"[green]Created note {result.value.id}[/green]: {result.value.title}")
    print_outcome(result)


@app.command()
def edit(
    ctx: typer.Context,
    note_id: int = typer.Argument(..., help="Note ID"),
    title: Optional[str] = typer.Option(None, "--title", "-t", help="New title"),
    content: Optional[str] = typer.Option(None, "--content", "-c", help="New content (HTML)"),
    tag: Optional[list[int]] = typer.Option(None, "--tag", help="Replace tags (repeatable)"),
    clear_tags: bool = typer.Option(False, "--clear-tags", help="Remove every tag"),
) -> None:
    """Update a note. Only the given fields change."""
    fields: dict = {}
    if title is not None:
        fields["title"] = title
    if content is not None:
        fields["content"] = content
    if clear_tags:
        fields["tag_ids"] = []
    elif tag:
        fields["tag_ids"] = tag
    if not fields:
        console.print("[yellow]Nothing to change[/yellow]")
        raise typer.Exit(1)

    result = run(ctx, lambda o: o.update_note(note_id, NoteUpdate(**fields)))
    console.print(f"[green]Updated note {result.value.id}[/green]")
    print_outcome(result)


@app.command()
def delete(ctx: typer.Context, note_id: int = typer.Argument(..., help="Note ID")) -> None:
    """Move a note to the trash."""
    result = run(ctx, lambda o: o.delete_note(note_id))
    console.print(f"[green]Moved note {note_id} to the trash[/green]")
    print_outcome(result)


@app.command()
def restore(ctx: typer.Context, note_id: int = typer.Argument(..., help="Note ID")) -> None:
    """Restore a note from the trash."""
    result = run(ctx, lambda o: o.restore_note(note_id))
    console.print(f"[green]Restored note {note_id}[/green]")
    print_outcome(result)


@app.command()
def favorite(ctx: typer.Context, note_id: int = typer.Argument(..., help="Note ID")) -> None:
    """Toggle the favorite flag."""
    result = run(ctx, lambda o: o.toggle_favorite(note_id))
    state = "marked" if result.value.is_favorite else "unmarked"
    console.print(f"[green]Note {note_id} {state} as favorite[/green]")
    print_outcome(result)


@app.command()
def search(ctx: typer.Context, query: str = typer.Argument("", help="Search text")) -> None:
    """Case-insensitive search over titles and content."""
    result = run(ctx, lambda o: o.search_notes(query))
    notes = result.value or []
    if notes:
        console.print(_notes_table(notes, f"Results for '{query}'"))
    else:
        console.print("[dim]No matching notes[/dim]")
    print_outcome(result)


@app.command()
def export(
    ctx: typer.Context,
    note_id: int = typer.Argument(..., help="Note ID"),
    export_format: ExportFormat = typer.Option(
        ExportFormat.TEXT, "--format", "-f", help="Export format"
    ),
    output: Optional[Path] = typer.Option(
        None,
        "--output",
        "-o",
        help="Target file, '-' for stdout (default: generated filename)",
    ),
) -> None:
    """
    Export a note as text, Markdown or JSON.

    Examples:
        notesync notes export 12 --format markdown
        notesync notes export 12 -f json -o -
    """
    result = run(ctx, lambda o: o.export_note(note_id, export_format))
    document = result.value

    if output is not None and str(output) == "-":
        typer.echo(document.body)
        return

    target = output or Path(document.filename)
    target.write_text(document.body, encoding="utf-8")
    console.print(f"[green]Exported to {target}[/green]")
    print_outcome(result)
