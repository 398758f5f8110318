"""CLI de DULAS (Typer).

Por qué la CLI es delgada:
- Cada comando monta un `RemoteListPage`, ejecuta una carga o una mutación
  y pinta el resultado con Rich; la lógica vive en `core.services`.
- Los fallos llegan como toasts del `ErrorReporter` compartido: cualquier
  toast de error hace que el comando salga con código 1.
"""

from __future__ import annotations

import asyncio
import json
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import date, datetime
from pathlib import Path
from typing import AsyncIterator, Optional

import typer
from rich.console import Console, Group
from rich.live import Live

from adapters.console_notifier import ConsoleNavigator, RichNotifier
from adapters.csv_exporter import export_entities_csv
from adapters.http_client import ApiClient
from adapters.resources import RESOURCES, ResourceSpec, get_resource
from adapters.session_store import SessionStore, default_session_path
from cli import doctor
from cli.ui_components import (
    build_collection_table,
    build_countdown_text,
    build_resources_table,
    print_banner,
)
from core.config import AppSettings
from core.domain.errors import AuthExpired
from core.domain.models import SelectionSet, Session, SortDirection
from core.logging_setup import configure_logging
from core.services.mutations import FormDialog
from core.services.page import PageOptions, RemoteListPage
from core.services.reporting import ErrorReporter
from core.session import SessionProvider

logger = logging.getLogger(__name__)

app = typer.Typer(no_args_is_help=True, help="DULAS portal client: list, watch and mutate remote resources.")
app.add_typer(doctor.app, name="doctor")

_console = Console()


@dataclass
class _Runtime:
    settings: AppSettings
    notifier: RichNotifier
    reporter: ErrorReporter
    provider: SessionProvider


def build_api(settings: AppSettings, session: Session) -> ApiClient:
    """Fetch Client factory; tests swap it for one backed by `httpx.MockTransport`."""

    return ApiClient.from_settings(settings, session)


def _runtime(token: str | None = None) -> _Runtime:
    settings = AppSettings()
    notifier = RichNotifier(_console)
    reporter = ErrorReporter(
        notifier,
        ConsoleNavigator(_console),
        login_route=settings.login_route,
    )
    store = SessionStore(default_session_path(settings))
    provider = SessionProvider(store, override_token=token)
    reporter.on_auth_expired(provider.expire)
    return _Runtime(settings=settings, notifier=notifier, reporter=reporter, provider=provider)


def _resource_or_exit(name: str) -> ResourceSpec:
    try:
        return get_resource(name)
    except KeyError as exc:
        raise typer.BadParameter(str(exc.args[0])) from None


def _parse_value(raw: str) -> object:
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return raw


def _parse_pairs(pairs: list[str] | None, *, typed: bool) -> dict[str, object]:
    out: dict[str, object] = {}
    for pair in pairs or []:
        if "=" not in pair:
            raise typer.BadParameter(f"expected key=value, got {pair!r}")
        key, value = pair.split("=", 1)
        key = key.strip()
        if not key:
            raise typer.BadParameter(f"empty key in {pair!r}")
        out[key] = _parse_value(value) if typed else value
    return out


def _parse_day(value: str | None) -> date | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value).date()
    except ValueError:
        raise typer.BadParameter(f"invalid date {value!r} (expected YYYY-MM-DD)") from None


@asynccontextmanager
async def _open_page(
    runtime: _Runtime,
    resource: ResourceSpec,
    *,
    options: PageOptions | None = None,
    mount: bool = True,
) -> AsyncIterator[RemoteListPage | None]:
    try:
        session = runtime.provider.require()
    except AuthExpired as exc:
        runtime.reporter.report(exc)
        yield None
        return

    api = build_api(runtime.settings, session)
    page = RemoteListPage(api, resource, runtime.reporter, options=options)
    try:
        if mount:
            await page.mount()
        yield page
    finally:
        await page.unmount()
        await api.aclose()


def _finish(runtime: _Runtime) -> None:
    if runtime.notifier.had_errors():
        raise typer.Exit(code=1)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log debug output to stderr."),
) -> None:
    settings = AppSettings()
    configure_logging("DEBUG" if verbose else settings.log_level)


@app.command()
def resources() -> None:
    """List the resources this client can sync."""

    _console.print(build_resources_table(list(RESOURCES.values())))


@app.command(name="list")
def list_cmd(
    resource: str = typer.Argument(..., help="Resource name (see `dulas resources`)."),
    search: str = typer.Option("", "--search", "-s", help="Case-insensitive text search."),
    filters: Optional[list[str]] = typer.Option(None, "--filter", "-f", help="field=value (repeatable)."),
    sort: Optional[str] = typer.Option(None, "--sort", help="Sort key."),
    desc: bool = typer.Option(False, "--desc", help="Sort descending."),
    date_from: Optional[str] = typer.Option(None, "--from", help="Earliest date (inclusive)."),
    date_to: Optional[str] = typer.Option(None, "--to", help="Latest date (inclusive)."),
    csv_path: Optional[Path] = typer.Option(None, "--csv", help="Also write the view to a CSV file."),
    token: Optional[str] = typer.Option(None, "--token", envvar="DULAS_TOKEN", help="Session token override."),
) -> None:
    """Load a resource once and print its filtered, sorted view."""

    spec = _resource_or_exit(resource)
    equals = {k: str(v) for k, v in _parse_pairs(filters, typed=False).items()}
    start, end = _parse_day(date_from), _parse_day(date_to)
    runtime = _runtime(token)

    async def _run() -> None:
        async with _open_page(runtime, spec, mount=False) as page:
            if page is None:
                return
            await page.set_filters(search=search, equals=equals, date_from=start, date_to=end)
            await page.mount()
            if sort:
                page.sort_by(sort, SortDirection.DESC if desc else SortDirection.ASC)
            elif desc:
                page.sort_by(page.sort.key, SortDirection.DESC)
            if page.collection.last_error is not None:
                return
            view = page.view()
            _console.print(build_collection_table(spec, view, sort=page.sort))
            if page.stats is not None:
                _console.print_json(data=page.stats)
            if csv_path is not None:
                written = export_entities_csv(items=view, columns=spec.columns, output_path=csv_path)
                _console.print(f"[green]Wrote[/green] {written}")

    asyncio.run(_run())
    _finish(runtime)


@app.command()
def watch(
    resource: str = typer.Argument(..., help="Resource name."),
    interval: Optional[float] = typer.Option(None, "--interval", "-i", min=0.1, help="Seconds between refreshes."),
    ticks: int = typer.Option(0, "--ticks", min=0, help="Stop after N refreshes (0 = until Ctrl+C)."),
    search: str = typer.Option("", "--search", "-s"),
    token: Optional[str] = typer.Option(None, "--token", envvar="DULAS_TOKEN"),
) -> None:
    """Poll a resource and show a live table with a countdown to the next refresh."""

    spec = _resource_or_exit(resource)
    runtime = _runtime(token)
    options = PageOptions(
        poll=True,
        poll_interval_s=interval or spec.poll_interval_seconds or runtime.settings.poll_interval_seconds,
    )

    def _render(page: RemoteListPage) -> Group:
        return Group(
            build_collection_table(spec, page.view(), sort=page.sort),
            build_countdown_text(page.countdown(), loading=page.collection.loading),
        )

    async def _run() -> None:
        async with _open_page(runtime, spec, options=options, mount=False) as page:
            if page is None:
                return
            await page.set_filters(search=search)
            await page.mount()
            if not page.scheduler.is_running:
                return
            with Live(_render(page), console=_console, refresh_per_second=4) as live:
                while page.scheduler.is_running:
                    if ticks and page.scheduler.ticks >= ticks and not page.collection.loading:
                        break
                    live.update(_render(page))
                    await asyncio.sleep(0.25)
                live.update(_render(page))

    try:
        asyncio.run(_run())
    except KeyboardInterrupt:
        _console.print("[dim]stopped[/dim]")
    _finish(runtime)


def _mutate(token: str | None, spec: ResourceSpec, action) -> None:
    runtime = _runtime(token)

    async def _run() -> None:
        async with _open_page(runtime, spec, mount=False) as page:
            if page is None:
                return
            await action(page)

    asyncio.run(_run())
    _finish(runtime)


@app.command()
def create(
    resource: str = typer.Argument(...),
    fields: list[str] = typer.Option(..., "--field", help="field=value (JSON values allowed)."),
    token: Optional[str] = typer.Option(None, "--token", envvar="DULAS_TOKEN"),
) -> None:
    """Create an entity."""

    spec = _resource_or_exit(resource)
    payload = _parse_pairs(fields, typed=True)

    async def action(page: RemoteListPage) -> None:
        page.form.open_for_create(payload)
        await page.dispatcher.save(page.form)

    _mutate(token, spec, action)


@app.command()
def update(
    resource: str = typer.Argument(...),
    entity_id: str = typer.Argument(..., metavar="ID"),
    fields: list[str] = typer.Option(..., "--field", help="field=value (JSON values allowed)."),
    token: Optional[str] = typer.Option(None, "--token", envvar="DULAS_TOKEN"),
) -> None:
    """Update an entity."""

    spec = _resource_or_exit(resource)
    payload = _parse_pairs(fields, typed=True)

    async def action(page: RemoteListPage) -> None:
        page.form = FormDialog(open=True, values=payload, editing_id=entity_id)
        await page.dispatcher.save(page.form)

    _mutate(token, spec, action)


@app.command()
def delete(
    resource: str = typer.Argument(...),
    entity_id: str = typer.Argument(..., metavar="ID"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation."),
    token: Optional[str] = typer.Option(None, "--token", envvar="DULAS_TOKEN"),
) -> None:
    """Delete one entity."""

    spec = _resource_or_exit(resource)
    if not yes:
        typer.confirm(f"Delete {entity_id} from {spec.name}?", abort=True)

    async def action(page: RemoteListPage) -> None:
        await page.dispatcher.delete(entity_id)

    _mutate(token, spec, action)


@app.command(name="bulk-delete")
def bulk_delete(
    resource: str = typer.Argument(...),
    ids: list[str] = typer.Argument(..., metavar="ID..."),
    yes: bool = typer.Option(False, "--yes", "-y"),
    token: Optional[str] = typer.Option(None, "--token", envvar="DULAS_TOKEN"),
) -> None:
    """Delete several entities with one request."""

    spec = _resource_or_exit(resource)
    if not yes:
        typer.confirm(f"Delete {len(ids)} {spec.name}?", abort=True)

    async def action(page: RemoteListPage) -> None:
        page.selection = SelectionSet(ids)
        await page.dispatcher.bulk_delete(page.selection)
        if page.selection:
            _console.print(f"[yellow]Still selected:[/yellow] {', '.join(page.selection.ids())}")

    _mutate(token, spec, action)


@app.command(name="bulk-update")
def bulk_update(
    resource: str = typer.Argument(...),
    ids: list[str] = typer.Argument(..., metavar="ID..."),
    fields: list[str] = typer.Option(..., "--field", help="field=value applied to every id."),
    token: Optional[str] = typer.Option(None, "--token", envvar="DULAS_TOKEN"),
) -> None:
    """Apply the same change to several entities."""

    spec = _resource_or_exit(resource)
    changes = _parse_pairs(fields, typed=True)

    async def action(page: RemoteListPage) -> None:
        page.selection = SelectionSet(ids)
        await page.dispatcher.bulk_update(page.selection, changes)

    _mutate(token, spec, action)


@app.command(name="export")
def export_cmd(
    resource: str = typer.Argument(...),
    destination: Path = typer.Argument(Path("."), help="File or directory to write the CSV to."),
    token: Optional[str] = typer.Option(None, "--token", envvar="DULAS_TOKEN"),
) -> None:
    """Download the server-side CSV export of a resource."""

    spec = _resource_or_exit(resource)

    async def action(page: RemoteListPage) -> None:
        target = await page.dispatcher.export_csv(destination)
        if target is not None:
            _console.print(f"[green]Saved[/green] {target}")

    _mutate(token, spec, action)


@app.command(name="import")
def import_cmd(
    resource: str = typer.Argument(...),
    file_path: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True),
    token: Optional[str] = typer.Option(None, "--token", envvar="DULAS_TOKEN"),
) -> None:
    """Upload a CSV file to the resource's import endpoint."""

    spec = _resource_or_exit(resource)

    async def action(page: RemoteListPage) -> None:
        await page.dispatcher.import_csv(file_path)

    _mutate(token, spec, action)


@app.command()
def login(
    token: str = typer.Option(..., "--token", prompt=True, hide_input=True, help="Token issued by the portal."),
    user_id: Optional[str] = typer.Option(None, "--user-id"),
    user_type: Optional[str] = typer.Option(None, "--user-type", help="admin, coordinator, lawyer or client."),
) -> None:
    """Store the session used by every other command."""

    settings = AppSettings()
    store = SessionStore(default_session_path(settings))
    path = store.save(Session(token=token.strip(), user_id=user_id, user_type=user_type))
    _console.print(f"[green]Session saved to:[/green] {path}")


@app.command()
def logout() -> None:
    """Forget the stored session."""

    settings = AppSettings()
    SessionStore(default_session_path(settings)).clear()
    _console.print("[green]Logged out.[/green]")


@app.command()
def banner() -> None:
    """Print the welcome banner."""

    print_banner(_console)


def run() -> None:
    app()
