"""
CLI runtime helpers.

Global options live on the Typer context object. Each command builds a
fresh orchestrator from them, runs one coroutine and closes the HTTP client.
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

import typer
from rich.console import Console

from notesync.backend.core.exceptions import ApplicationRejectedError, LocalStoreInconsistencyError
from notesync.client import factory
from notesync.client.orchestrator import SyncOrchestrator
from notesync.client.results import SyncOutcome, SyncResult

T = TypeVar("T")

console = Console()

_OUTCOME_LABELS = {
    SyncOutcome.LIVE: "[green]live[/green]",
    SyncOutcome.OFFLINE: "[yellow]offline[/yellow] (saved locally)",
    SyncOutcome.DEGRADED: "[yellow]degraded[/yellow] (served from local store)",
    SyncOutcome.REJECTED: "[red]rejected[/red]",
}


@dataclass
class CliState:
    offline: bool = False
    user_id: str | None = None


def get_state(ctx: typer.Context) -> CliState:
    if not isinstance(ctx.obj, CliState):
        ctx.obj = CliState()
    return ctx.obj


def build_orchestrator(state: CliState) -> SyncOrchestrator:
    return factory.build_orchestrator(force_offline=state.offline, user_id=state.user_id)


def run(ctx: typer.Context, operation: Callable[[SyncOrchestrator], Awaitable[T]]) -> T:
    """
    Run one orchestrator operation to completion.

    Rejections are printed and turned into exit code 1.
    """
    state = get_state(ctx)

    async def _main() -> T:
        orchestrator = build_orchestrator(state)
        try:
            return await operation(orchestrator)
        finally:
            await orchestrator.remote.close()

    try:
        return asyncio.run(_main())
    except ApplicationRejectedError as e:
        console.print(f"[red]Error: {e.message}[/red] [dim]({e.code}, HTTP {e.status})[/dim]")
        raise typer.Exit(1)
    except LocalStoreInconsistencyError as e:
        console.print(f"[red]Error: {e.message}[/red]")
        console.print("[dim]Run `notesync notes list` online to refresh the local store.[/dim]")
        raise typer.Exit(1)


def print_outcome(result: SyncResult) -> None:
    line = f"[dim]Result:[/dim] {_OUTCOME_LABELS[result.outcome]}"
    if result.outcome is SyncOutcome.DEGRADED and result.reason:
        line += f" [dim]- {result.reason}[/dim]"
    console.print(line)
