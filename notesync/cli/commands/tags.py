"""
Tag Commands.

Manage tags and attach them to notes.
"""

import typer
from rich.table import Table

from notesync.backend.schemas.tag import DEFAULT_TAG_COLOR, TagCreate
from notesync.cli.context import console, print_outcome, run

app = typer.Typer(help="Tag commands")


@app.command("list")
def list_tags(ctx: typer.Context) -> None:
    """List tags ordered by name."""
    result = run(ctx, lambda o: o.list_tags())

    table = Table(title="Tags", show_header=True)
    table.add_column("ID", style="cyan", justify="right")
    table.add_column("Name")
    table.add_column("Color")
    for tag in result.value or []:
        table.add_row(str(tag.id), tag.name, f"[{tag.color}]{tag.color}[/]")

    console.print(table)
    print_outcome(result)


@app.command()
def create(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Tag name"),
    color: str = typer.Option(DEFAULT_TAG_COLOR, "--color", "-c", help="Hex color (#RRGGBB)"),
) -> None:
    """Create a tag."""
    result = run(ctx, lambda o: o.create_tag(TagCreate(name=name, color=color)))
    console.print(f"[green]Created tag {result.value.id}[/green]: {result.value.name}")
    print_outcome(result)


@app.command()
def delete(ctx: typer.Context, tag_id: int = typer.Argument(..., help="Tag ID")) -> None:
    """Delete a tag and detach it from every note."""
    result = run(ctx, lambda o: o.delete_tag(tag_id))
    console.print(f"[green]Deleted tag {tag_id}[/green]")
    print_outcome(result)


@app.command()
def attach(
    ctx: typer.Context,
    note_id: int = typer.Argument(..., help="Note ID"),
    tag_id: int = typer.Argument(..., help="Tag ID"),
) -> None:
    """Attach a tag to a note."""
    result = run(ctx, lambda o: o.add_tag_to_note(note_id, tag_id))
    names = ", ".join(tag.name for tag in result.value or []) or "-"
    console.print(f"[green]Note {note_id} tags:[/green] {names}")
    print_outcome(result)


@app.command()
def detach(
    ctx: typer.Context,
    note_id: int = typer.Argument(..., help="Note ID"),
    tag_id: int = typer.Argument(..., help="Tag ID"),
) -> None:
    """Detach a tag from a note."""
    result = run(ctx, lambda o: o.remove_tag_from_note(note_id, tag_id))
    names = ", ".join(tag.name for tag in result.value or []) or "-"
    console.print(f"[green]Note {note_id} tags:[/green] {names}")
    print_outcome(result)
