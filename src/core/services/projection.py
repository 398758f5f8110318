"""Filter/sort projection of a cached collection.

`project` is pure: the same (items, filter, sort) always yields the same
list, and the input sequence is never mutated.

Rules:
- Filtering is the conjunction of text search (case-insensitive substring on
  any of `search_fields`), categorical equality and inclusive date range.
- Sorting uses one key. Missing/None values go last in both directions and
  equal keys are ordered by `id`.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Iterable, Mapping, Sequence

from core.domain.models import FilterState, RemoteEntity, SortDirection, SortState


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (list, tuple)):
        return " ".join(_as_text(v) for v in value)
    return str(value)


def as_date(value: Any) -> date | None:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value.strip():
        text = value.strip()
        try:
            return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
        except ValueError:
            pass
        try:
            return date.fromisoformat(text[:10])
        except ValueError:
            return None
    return None


def matches_search(entity: RemoteEntity, search: str, fields: Sequence[str]) -> bool:
    needle = search.strip().lower()
    if not needle:
        return True
    return any(needle in _as_text(entity.get_path(field)).lower() for field in fields)


def matches_equals(entity: RemoteEntity, equals: Mapping[str, str]) -> bool:
    for field, expected in equals.items():
        actual = entity.get_path(field)
        if actual is None:
            return False
        if str(actual).lower() != str(expected).lower():
            return False
    return True


def matches_date_range(
    entity: RemoteEntity,
    field: str | None,
    start: date | None,
    end: date | None,
) -> bool:
    if not field or (start is None and end is None):
        return True
    value = as_date(entity.get_path(field))
    if value is None:
        return False
    if start is not None and value < start:
        return False
    if end is not None and value > end:
        return False
    return True


def matches(entity: RemoteEntity, filters: FilterState) -> bool:
    return (
        matches_search(entity, filters.search, filters.search_fields)
        and matches_equals(entity, filters.active_equals())
        and matches_date_range(entity, filters.date_field, filters.date_from, filters.date_to)
    )


def _sort_value(value: Any) -> tuple[int, Any]:
    # Numbers, dates and text must not be compared with each other.
    if isinstance(value, bool):
        return (0, int(value))
    if isinstance(value, (int, float)):
        return (0, value)
    parsed = as_date(value) if isinstance(value, (date, datetime)) else None
    if parsed is not None:
        return (1, parsed.toordinal())
    return (2, _as_text(value).lower())


def sort_entities(
    items: Iterable[RemoteEntity],
    sort: SortState,
    *,
    aliases: Mapping[str, str] | None = None,
) -> list[RemoteEntity]:
    path = (aliases or {}).get(sort.key, sort.key)
    present: list[RemoteEntity] = []
    missing: list[RemoteEntity] = []
    for entity in items:
        (missing if entity.get_path(path) is None else present).append(entity)

    # Two stable passes: id ascending first, then the key in the requested direction.
    present.sort(key=lambda e: e.id)
    present.sort(
        key=lambda e: _sort_value(e.get_path(path)),
        reverse=sort.direction is SortDirection.DESC,
    )
    missing.sort(key=lambda e: e.id)
    return present + missing


def project(
    items: Sequence[RemoteEntity],
    filters: FilterState,
    sort: SortState | None,
    *,
    aliases: Mapping[str, str] | None = None,
) -> list[RemoteEntity]:
    """Return the filtered, sorted view of `items`."""

    kept = [entity for entity in items if matches(entity, filters)]
    if sort is None:
        return kept
    return sort_entities(kept, sort, aliases=aliases)
