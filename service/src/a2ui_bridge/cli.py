"""Typer CLI interface for A2UI Bridge."""

import asyncio
import os
import signal
import sys

import httpx
import typer
import uvicorn
from rich.console import Console
from rich.panel import Panel

app = typer.Typer(
    name="a2ui-bridge",
    help="A2UI Bridge - stream model tool calls as A2UI surfaces",
    add_completion=False,
)
console = Console()


async def check_service_running(host: str, port: int) -> bool:
    """Check if service is already running on port."""
    try:
        async with httpx.AsyncClient() as client:
            resp = await client.get(f"http://{host}:{port}/health", timeout=2.0)
            return resp.status_code == 200
    except httpx.HTTPError:
        return False


@app.command()
def serve(
    port: int = typer.Option(10002, "--port", help="HTTP port"),
    host: str = typer.Option("localhost", "--host", help="Bind address"),
    mode: str = typer.Option(
        "a2ui",
        "--mode",
        "-m",
        help="Translation mode: 'a2ui' (surface messages) or 'passthrough' (raw tool requests)",
    ),
    catalog_backend: str = typer.Option(
        "memory", "--catalog-backend", help="Catalog cache: 'memory' or 'sqlite'"
    ),
    debug: bool = typer.Option(False, "--debug", help="Enable debug logging"),
    reload: bool = typer.Option(
        False, "--reload", help="Enable auto-reload (dev mode)"
    ),
):
    """Start the A2UI Bridge service."""
    if mode not in ("a2ui", "passthrough"):
        console.print(
            f"[red]Error:[/red] Invalid mode: {mode}. Use 'a2ui' or 'passthrough'"
        )
        raise typer.Exit(1)

    if catalog_backend not in ("memory", "sqlite"):
        console.print(
            f"[red]Error:[/red] Invalid catalog backend: {catalog_backend}. Use 'memory' or 'sqlite'"
        )
        raise typer.Exit(1)

    # Set environment variables BEFORE importing settings to ensure they're picked up
    os.environ["TRANSLATION_MODE"] = mode
    os.environ["CATALOG_BACKEND"] = catalog_backend
    os.environ["HOST"] = host
    os.environ["PORT"] = str(port)
    os.environ["DEBUG"] = "true" if debug else "false"

    if asyncio.run(check_service_running(host, port)):
        console.print(f"[red]Error:[/red] Service already running on port {port}")
        raise typer.Exit(1)

    def signal_handler(sig, frame):
        console.print("\n[yellow]Shutting down gracefully...[/yellow]")
        sys.exit(0)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    from .config import Settings

    config = Settings()
    api_key_info = "set" if config.ANTHROPIC_API_KEY else "[yellow]not set[/yellow]"
    console.print(
        Panel.fit(
            f"[bold]A2UI Bridge[/bold]\n\n"
            f"🤖 Model: {config.MODEL} (API key {api_key_info})\n"
            f"🧩 Mode: {mode}\n"
            f"🗂  Catalogs: {catalog_backend}\n"
            f"📡 HTTP: http://{host}:{port}\n"
            f"🔗 Agent card: http://{host}:{port}/.well-known/agent-card.json\n"
            f"🔍 Debug: {'enabled' if debug else 'disabled'}",
            border_style="green",
        )
    )

    uvicorn.run(
        "a2ui_bridge.main:app",
        host=host,
        port=port,
        log_level="debug" if debug else "info",
        reload=reload,
        access_log=debug,
        timeout_keep_alive=120,
    )


@app.command()
def version():
    """Show the installed version."""
    from . import __version__

    console.print(f"a2ui-bridge {__version__}")


if __name__ == "__main__":
    app()
