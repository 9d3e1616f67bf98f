"""
Server Commands.

Start the notes backend.
"""

import subprocess
import sys
from typing import Optional

import typer
from rich.console import Console

app = typer.Typer(help="Server management commands")
console = Console()


def _server_defaults() -> tuple[str, int]:
    """Host and port from application.yaml."""
    try:
        from notesync.backend.core.config import get_app_config

        server = get_app_config().application.server
    except (RuntimeError, FileNotFoundError, ValueError) as e:
        console.print("[red]Error: Could not load config/settings/application.yaml[/red]")
        console.print(f"[dim]Error: {e}[/dim]")
        raise typer.Exit(1)
    return server.host, server.port


@app.command()
def start(
    host: Optional[str] = typer.Option(None, "--host", "-h", help="Server host"),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Server port"),
    reload: bool = typer.Option(False, "--reload", "-r", help="Enable auto-reload"),
) -> None:
    """
    Start the FastAPI server.

    Examples:
        notesync server start
        notesync server start --reload
        notesync server start --host 0.0.0.0 --port 8080
    """
    default_host, default_port = _server_defaults()
    server_host = host or default_host
    server_port = port or default_port

    cmd = [
        sys.executable, "-m", "uvicorn",
        "notesync.backend.main:app",
        "--host", server_host,
        "--port", str(server_port),
    ]
    if reload:
        cmd.append("--reload")

    console.print(f"[bold]Starting server at http://{server_host}:{server_port}[/bold]")
    if reload:
        console.print("[dim]Auto-reload enabled[/dim]")
    console.print("[dim]Press Ctrl+C to stop[/dim]\n")

    try:
        subprocess.run(cmd, check=True)
    except KeyboardInterrupt:
        console.print("\n[dim]Server stopped[/dim]")
    except subprocess.CalledProcessError as e:
        console.print(f"[red]Server failed to start (exit code: {e.returncode})[/red]")
        raise typer.Exit(e.returncode)
