"""Remote list page orchestration.

One `RemoteListPage` is what each portal page used to re-implement by hand:
collection cache + loader, filter/sort projection, selection, mutation
dispatcher and an optional polling scheduler, with one lifecycle:

    mount()   -> first load, optional polling, auth-expired hooks
    view()    -> projection of the cache for rendering
    refresh() -> manual load (may race the poller; stale responses are dropped)
    unmount() -> stop polling, cancel the in-flight load, discard the cache

Keeping side effects (printing, prompts) out of here lets the CLI and the
tests drive the same code.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, Callable

from pydantic import ValidationError

from adapters.http_client import ApiClient
from adapters.resources import ResourceSpec
from core.domain.errors import ServerFailure
from core.domain.models import (
    Countdown,
    FilterState,
    RemoteEntity,
    SelectionSet,
    SortDirection,
    SortState,
    WorkloadStats,
)
from core.services.collection import RemoteCollection
from core.services.derived import days_until_enricher, workload_enricher
from core.services.mutations import FormDialog, MutationDispatcher, ReconcileStrategy
from core.services.projection import project
from core.services.reporting import ErrorReporter
from core.services.scheduler import PollingScheduler

logger = logging.getLogger(__name__)

_UNSET: Any = object()


@dataclass
class PageOptions:
    """Per-page switches."""

    poll: bool = False
    poll_interval_s: float | None = None
    strategy: ReconcileStrategy | None = None
    cancel_superseded: bool = True


def to_entities(raw: Any, *, resource: ResourceSpec) -> list[RemoteEntity]:
    if not isinstance(raw, list):
        raise ServerFailure(f"Expected a list of {resource.title.lower()}", payload=raw)
    entities: list[RemoteEntity] = []
    for item in raw:
        if not isinstance(item, dict):
            raise ServerFailure(f"Malformed {resource.title.lower()} entry", payload=item)
        try:
            entities.append(RemoteEntity.from_payload(item))
        except ValidationError as exc:
            raise ServerFailure(f"Malformed {resource.title.lower()} entry", payload=item) from exc
    return entities


async def fetch_collection(
    api: ApiClient,
    resource: ResourceSpec,
    params: dict[str, Any] | None = None,
) -> list[RemoteEntity]:
    if resource.envelope:
        raw = await api.request_envelope("GET", resource.path, key=resource.list_key, params=params)
    else:
        raw = await api.request("GET", resource.path, params=params)
    return to_entities(raw, resource=resource)


async def fetch_stats(api: ApiClient, resource: ResourceSpec) -> Any:
    if not resource.stats_path:
        return None
    return await api.request_envelope("GET", resource.stats_path)


def workload_stats_from_payload(payload: Any) -> WorkloadStats:
    if not isinstance(payload, dict):
        raise ServerFailure("Malformed workload statistics", payload=payload)
    summary = payload.get("summary", payload)
    try:
        return WorkloadStats.model_validate(summary if isinstance(summary, dict) else {})
    except ValidationError as exc:
        raise ServerFailure("Malformed workload statistics", payload=payload) from exc


class RemoteListPage:
    def __init__(
        self,
        api: ApiClient,
        resource: ResourceSpec,
        reporter: ErrorReporter,
        *,
        options: PageOptions | None = None,
        scheduler: PollingScheduler | None = None,
        today: Callable[[], date] = date.today,
    ) -> None:
        self.api = api
        self.resource = resource
        self.reporter = reporter
        self.options = options or PageOptions()
        self.scheduler = scheduler or PollingScheduler()
        self._today = today

        self.filters: FilterState = resource.filter_state()
        self.sort: SortState = resource.default_sort
        self.selection = SelectionSet()
        self.form = FormDialog()
        self.stats: Any = None
        self.workload_stats: WorkloadStats | None = None
        self._annotate_workload = workload_enricher(lambda: self.workload_stats)

        self.collection = RemoteCollection(
            self._fetch,
            reporter,
            enrich=self._enrich,
            cancel_superseded=self.options.cancel_superseded,
            failure_message=f"Failed to load {resource.title.lower()}",
        )
        self.dispatcher = MutationDispatcher(
            api,
            resource,
            self.collection,
            reporter,
            strategy=self.options.strategy,
        )
        self.mounted = False
        self._unsubscribe: Callable[[], None] | None = None

    # -- loading -----------------------------------------------------------

    def _server_params(self) -> dict[str, Any] | None:
        if not self.resource.server_filters:
            return None
        params: dict[str, Any] = dict(self.filters.active_equals())
        if self.filters.search.strip():
            params["search"] = self.filters.search.strip()
        return params or None

    async def _fetch(self) -> list[RemoteEntity]:
        params = self._server_params()
        if self.resource.workload_enrichment:
            items, stats = await asyncio.gather(
                fetch_collection(self.api, self.resource, params),
                fetch_stats(self.api, self.resource),
            )
            self.workload_stats = workload_stats_from_payload(stats)
            return items
        return await fetch_collection(self.api, self.resource, params)

    def _enrich(self, items: list[RemoteEntity]) -> list[RemoteEntity]:
        out = list(items)
        if self.resource.workload_enrichment:
            out = self._annotate_workload(out)
        if self.resource.days_until_field:
            out = days_until_enricher(self.resource.days_until_field, today=self._today)(out)
        return out

    async def load_stats(self) -> bool:
        """Side statistics panel (e.g. specializations by category)."""

        if not self.resource.stats_path or self.resource.workload_enrichment:
            return False
        async with self.reporter.guard("Failed to load statistics"):
            self.stats = await fetch_stats(self.api, self.resource)
            return True
        return False

    async def refresh(self) -> bool:
        self.scheduler.reset_deadline()
        return await self.collection.load()

    # -- lifecycle ---------------------------------------------------------

    async def mount(self) -> None:
        if self.mounted:
            return
        self.mounted = True
        self._unsubscribe = self.reporter.on_auth_expired(self._on_auth_expired)
        await self.collection.load()
        if self.resource.stats_path and not self.resource.workload_enrichment:
            await self.load_stats()
        if self.options.poll and not self.reporter.auth_expired:
            self.start_polling()

    async def unmount(self) -> None:
        self.stop_polling()
        self.collection.invalidate()
        self.collection.clear()
        self.selection.clear()
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self.mounted = False

    def _on_auth_expired(self) -> None:
        self.stop_polling()
        self.collection.invalidate()
        self.collection.clear()
        self.selection.clear()

    # -- polling -----------------------------------------------------------

    def poll_interval(self) -> float | None:
        return self.options.poll_interval_s or self.resource.poll_interval_seconds

    def start_polling(self, interval_s: float | None = None) -> None:
        interval = interval_s or self.poll_interval()
        if interval is None:
            raise ValueError(f"no polling interval configured for {self.resource.name}")
        self.scheduler.start(interval, self.collection.load)

    def stop_polling(self) -> None:
        self.scheduler.stop()

    def set_auto_update(self, enabled: bool) -> None:
        if enabled:
            self.scheduler.set_enabled(True, self.poll_interval(), self.collection.load)
        else:
            self.scheduler.set_enabled(False)

    def countdown(self) -> Countdown:
        return self.scheduler.countdown()

    # -- projection inputs -------------------------------------------------

    def view(self) -> list[RemoteEntity]:
        return project(
            self.collection.items,
            self.filters,
            self.sort,
            aliases=self.resource.sort_aliases,
        )

    async def set_filters(
        self,
        *,
        search: str | None = None,
        equals: dict[str, str] | None = None,
        date_from: date | None = _UNSET,
        date_to: date | None = _UNSET,
    ) -> None:
        """Update the filter state. An explicit `None` date clears that bound."""

        updates: dict[str, Any] = {}
        if search is not None:
            updates["search"] = search
        if equals is not None:
            updates["equals"] = {**self.filters.equals, **equals}
        if date_from is not _UNSET:
            updates["date_from"] = date_from
        if date_to is not _UNSET:
            updates["date_to"] = date_to
        self.filters = self.filters.model_copy(update=updates)
        if self.resource.server_filters and self.mounted:
            # The in-flight load was issued with the old filters.
            self.collection.invalidate()
            await self.collection.load()

    def sort_by(self, key: str, direction: SortDirection | None = None) -> SortState:
        if direction is not None:
            self.sort = SortState(key=key, direction=direction)
        else:
            self.sort = self.sort.toggled(key, initial=self.resource.default_sort.direction)
        return self.sort

    def visible_ids(self) -> list[str]:
        return [entity.id for entity in self.view()]

    def toggle_select_all(self) -> None:
        self.selection.select_all(self.visible_ids())
