"""Componentes de UI para CLI (Rich).

Por qué separar componentes:
- Evita mezclar lógica de comandos con detalles visuales.
- Permite reutilizar tablas y la cuenta atrás en `list` y `watch`.
"""

from __future__ import annotations

from typing import Any, Sequence

from rich.align import Align
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from adapters.resources import ResourceSpec
from core.domain.models import Countdown, RemoteEntity, SortDirection, SortState


def print_banner(console: Console) -> None:
    title = Text("DULAS", style="bold cyan")
    subtitle = Text("Case management • Remote sync client", style="dim")
    body = Align.center(Text.assemble(title, "\n", subtitle), vertical="middle")
    console.print(Panel(body, border_style="cyan", padding=(1, 4)))


def _format(value: Any) -> str:
    if value is None:
        return "-"
    if isinstance(value, float):
        return f"{value:.1f}"
    if isinstance(value, (list, tuple)):
        return ", ".join(_format(v) for v in value)
    if isinstance(value, dict):
        return ", ".join(f"{k}={_format(v)}" for k, v in value.items())
    return str(value)


def build_collection_table(
    resource: ResourceSpec,
    items: Sequence[RemoteEntity],
    *,
    sort: SortState | None = None,
    columns: Sequence[str] | None = None,
    selected: set[str] | None = None,
) -> Table:
    table = Table(title=f"{resource.title} ({len(items)})")
    cols = list(columns or resource.columns)
    for name in cols:
        header = name
        if sort is not None and name in (sort.key, resource.sort_aliases.get(sort.key)):
            header += " ↑" if sort.direction is SortDirection.ASC else " ↓"
        table.add_column(header, style="cyan" if name == "id" else "white", no_wrap=name == "id")
    for entity in items:
        style = "bold" if selected and entity.id in selected else None
        table.add_row(*(_format(entity.get_path(name)) for name in cols), style=style)
    return table


def build_resources_table(resources: Sequence[ResourceSpec]) -> Table:
    table = Table(title="Resources")
    table.add_column("Name", style="bright_green", no_wrap=True)
    table.add_column("Endpoint", style="white")
    table.add_column("Filters", style="dim")
    table.add_column("Poll", style="magenta")
    for spec in resources:
        poll = f"{spec.poll_interval_seconds:g}s" if spec.poll_interval_seconds else "-"
        table.add_row(spec.name, spec.path, ", ".join(spec.filter_fields) or "-", poll)
    return table


def build_countdown_text(countdown: Countdown, *, loading: bool) -> Text:
    text = Text("Next update in ", style="dim")
    text.append(countdown.label(), style="bold yellow")
    if loading:
        text.append("  (refreshing…)", style="cyan")
    return text
