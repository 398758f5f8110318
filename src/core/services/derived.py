"""Derived fields computed once per load.

Workload thresholds: a lawyer is `High` above 1.2x the average case load,
`Low` below 0.8x, `Normal` otherwise.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Callable, Sequence

from core.domain.models import RemoteEntity, WorkloadStats
from core.services.projection import as_date

HIGH_FACTOR = 1.2
LOW_FACTOR = 0.8


def workload_level(case_load: float, average: float) -> str:
    if case_load > average * HIGH_FACTOR:
        return "High"
    if case_load < average * LOW_FACTOR:
        return "Low"
    return "Normal"


def workload_percentage(case_load: float, maximum: float) -> float:
    if maximum <= 0:
        return 0.0
    return round(case_load / maximum * 100, 1)


def days_until(target: date, today: date | None = None) -> int:
    today = today or date.today()
    return (target - today).days


def annotate_workload(
    items: Sequence[RemoteEntity],
    stats: WorkloadStats,
    *,
    case_load_path: str = "lawyerProfile.caseLoad",
) -> list[RemoteEntity]:
    out: list[RemoteEntity] = []
    for entity in items:
        raw = entity.get_path(case_load_path)
        try:
            case_load = float(raw)
        except (TypeError, ValueError):
            out.append(entity)
            continue
        out.append(
            entity.with_fields(
                workloadLevel=workload_level(case_load, stats.average_workload),
                workloadPercentage=workload_percentage(case_load, stats.max_workload),
            )
        )
    return out


def workload_enricher(
    stats_provider: Callable[[], WorkloadStats | None],
) -> Callable[[Sequence[RemoteEntity]], list[RemoteEntity]]:
    """Bind `annotate_workload` to whatever stats were loaded alongside the list."""

    def _enrich(items: Sequence[RemoteEntity]) -> list[RemoteEntity]:
        stats = stats_provider()
        if stats is None:
            return list(items)
        return annotate_workload(items, stats)

    return _enrich


def days_until_enricher(
    field: str,
    *,
    target_field: str = "daysUntil",
    today: Callable[[], date] = date.today,
) -> Callable[[Sequence[RemoteEntity]], list[RemoteEntity]]:
    """Adds `daysUntil` for a date field (appointments, backup expiry)."""

    def _enrich(items: Sequence[RemoteEntity]) -> list[RemoteEntity]:
        current = today()
        out: list[RemoteEntity] = []
        for entity in items:
            value: Any = as_date(entity.get_path(field))
            if value is None:
                out.append(entity)
            else:
                out.append(entity.with_fields(**{target_field: days_until(value, current)}))
        return out

    return _enrich
