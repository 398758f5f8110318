"""Doctor command for environment diagnostics."""

from __future__ import annotations

import asyncio

import typer
from rich.console import Console
from rich.table import Table

from adapters.http_client import build_async_client
from adapters.session_store import SessionStore, default_session_path
from core.config import AppSettings, AuthTransport, write_user_env_vars

app = typer.Typer(no_args_is_help=True, help="Environment diagnostics and configuration checks.")

_console = Console()


async def _check_http(settings: AppSettings) -> tuple[bool, str]:
    try:
        async with build_async_client(settings) as client:
            response = await client.get("/")
        return True, f"HTTP {response.status_code}"
    except Exception as exc:
        return False, str(exc) or type(exc).__name__


@app.command()
def run() -> None:
    """Run baseline diagnostics and show recommended fixes."""

    settings = AppSettings()
    session = SessionStore(default_session_path(settings)).load()

    table = Table(title="DULAS Doctor")
    table.add_column("Check", style="bright_green", no_wrap=True)
    table.add_column("Status", style="white")
    table.add_column("Details", style="dim")

    table.add_row("API base URL", "OK", settings.api_base_url)
    table.add_row("Auth transport", "OK", settings.auth_transport.value)
    if session.authenticated:
        who = session.user_type or "unknown role"
        table.add_row("Session", "OK", f"token stored ({who})")
    else:
        table.add_row("Session", "MISSING", "Run `dulas login --token <token>`")
    table.add_row("Timeout", "OK", f"{settings.http_timeout_seconds:g}s")

    ok_http, detail_http = asyncio.run(_check_http(settings))
    table.add_row("API connectivity", "OK" if ok_http else "FAIL", detail_http)

    _console.print(table)

    if not ok_http:
        _console.print(
            "\n[yellow]Note:[/yellow] Set DULAS_API_BASE_URL (or run `dulas doctor setup`) to point at the portal."
        )


@app.command(name="setup")
def setup() -> None:
    """Interactive setup (stores config in the user config .env)."""

    current = AppSettings()
    base_url = typer.prompt("API base URL", default=current.api_base_url, show_default=True).strip()
    transport = typer.prompt(
        "Auth transport (bearer/cookie)",
        default=current.auth_transport.value,
        show_default=True,
    ).strip().lower()
    timeout = typer.prompt("Request timeout (seconds)", default=current.http_timeout_seconds, type=float)

    if not base_url:
        raise typer.BadParameter("base URL is required")
    try:
        AuthTransport(transport)
    except ValueError:
        raise typer.BadParameter("transport must be 'bearer' or 'cookie'") from None

    env_path = write_user_env_vars(
        {
            "DULAS_API_BASE_URL": base_url,
            "DULAS_AUTH_TRANSPORT": transport,
            "DULAS_HTTP_TIMEOUT_SECONDS": f"{timeout:g}",
        }
    )

    _console.print(f"[green]Saved config to:[/green] {env_path}")
