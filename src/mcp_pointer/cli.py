"""Typer CLI interface for MCP Pointer."""

import asyncio
import json
from typing import Any, Dict, Optional

import httpx
import typer
from rich.console import Console
from rich.panel import Panel

from .config import Settings
from .logging_config import setup_logging

app = typer.Typer(
    name="mcp-pointer",
    help="MCP Pointer - point at DOM elements for your AI coding tool",
    add_completion=False,
)
# stdout belongs to the MCP stdio transport
console = Console(stderr=True)

SERVER_KEY = "pointer"


def _build_settings(**overrides: Any) -> Settings:
    """Settings from env/.env files, with CLI values taking priority."""
    return Settings(**{key: value for key, value in overrides.items() if value is not None})


async def fetch_leader_health(host: str, port: int) -> Optional[Dict[str, Any]]:
    """Return the leader's /health body, or None if nobody serves the port."""
    try:
        async with httpx.AsyncClient() as client:
            resp = await client.get(f"http://{host}:{port}/health", timeout=2.0)
            if resp.status_code != 200:
                return None
            return resp.json()
    except httpx.HTTPError:
        return None


def _mcp_server_config(port: int) -> Dict[str, Any]:
    return {
        "command": "mcp-pointer",
        "args": ["start"],
        "env": {"MCP_POINTER_PORT": str(port)},
    }


@app.command()
def start(
    port: Optional[int] = typer.Option(
        None, "--port", "-p", help="WebSocket port (default: MCP_POINTER_PORT or 7007)"
    ),
    host: Optional[str] = typer.Option(None, "--host", help="Bind address"),
    log_level: Optional[str] = typer.Option(
        None, "--log-level", "-l", help="Log level (DEBUG, INFO, WARNING, ERROR)"
    ),
    debug: bool = typer.Option(False, "--debug", help="Enable debug logging"),
):
    """Start pointing at elements (run the relay)."""
    from .main import run_relay

    settings = _build_settings(
        PORT=port, HOST=host, LOG_LEVEL=log_level, DEBUG=debug or None
    )
    setup_logging(level=settings.LOG_LEVEL, debug=settings.DEBUG)

    console.print(
        Panel.fit(
            f"[bold]{settings.PROJECT_NAME}[/bold]\n\n"
            f"📡 WebSocket: ws://{settings.HOST}:{settings.PORT}\n"
            f"💾 State file: {settings.STATE_FILE}\n"
            f"🔍 Debug: {'enabled' if settings.DEBUG else 'disabled'}",
            border_style="green",
        )
    )

    exit_code = run_relay(settings)
    if exit_code:
        raise typer.Exit(exit_code)


@app.command()
def configure(
    port: Optional[int] = typer.Option(None, "--port", "-p", help="WebSocket port"),
):
    """Show how to register MCP Pointer with Claude Code."""
    settings = _build_settings(PORT=port)
    command = (
        f"claude mcp add {SERVER_KEY} -s user "
        f"--env MCP_POINTER_PORT={settings.PORT} -- mcp-pointer start"
    )
    console.print("🔧 To configure MCP Pointer with Claude Code, run this command:\n")
    console.print(f"  [bold]{command}[/bold]\n", soft_wrap=True)
    console.print("This will configure MCP Pointer user-wide across all your projects.")
    console.print("For a project-specific configuration, drop [bold]-s user[/bold].")


@app.command("show-config")
def show_config(
    port: Optional[int] = typer.Option(None, "--port", "-p", help="WebSocket port"),
):
    """Print the MCP server entry for other AI tools."""
    settings = _build_settings(PORT=port)
    config = {"mcpServers": {SERVER_KEY: _mcp_server_config(settings.PORT)}}
    console.print("Add this to your AI tool's MCP settings:")
    console.print_json(json.dumps(config))


@app.command()
def status(
    port: Optional[int] = typer.Option(None, "--port", "-p", help="WebSocket port"),
    host: Optional[str] = typer.Option(None, "--host", help="Leader address"),
):
    """Check whether a relay is currently the ingress leader."""
    settings = _build_settings(PORT=port, HOST=host)
    health = asyncio.run(fetch_leader_health(settings.HOST, settings.PORT))
    if health is None:
        console.print(
            f"[yellow]No leader[/yellow] is serving ws://{settings.HOST}:{settings.PORT}"
        )
        raise typer.Exit(1)

    console.print(
        f"[green]✓[/green] Leader active on port {settings.PORT}: "
        f"{health.get('active_connections', 0)} connection(s), "
        f"{health.get('elements_inspected', 0)} element(s) inspected"
    )


if __name__ == "__main__":
    app()
