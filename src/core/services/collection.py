"""Remote collection cache and its loader.

A `RemoteCollection` owns the client-side copy of one server list:
- `load()` keeps the previous items visible while in flight and replaces
  them only when the fetch succeeds.
- A failed load leaves the items untouched and reports one toast.
- Each load takes a sequence number; a response older than the latest
  dispatched load is dropped, and the superseded fetch is cancelled.
- Derived fields are computed once per successful load by `enrich`.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Awaitable, Callable, Iterable, Sequence

from core.domain.errors import GENERIC_FAILURE, SyncError
from core.domain.models import LoadRecord, RemoteEntity
from core.services.reporting import ErrorReporter

logger = logging.getLogger(__name__)

Fetcher = Callable[[], Awaitable[Sequence[RemoteEntity]]]
Enricher = Callable[[Sequence[RemoteEntity]], Sequence[RemoteEntity]]


class RemoteCollection:
    def __init__(
        self,
        fetch: Fetcher,
        reporter: ErrorReporter,
        *,
        enrich: Enricher | None = None,
        cancel_superseded: bool = True,
        failure_message: str = GENERIC_FAILURE,
    ) -> None:
        self._fetch = fetch
        self._reporter = reporter
        self._enrich = enrich
        self._cancel_superseded = cancel_superseded
        self._failure_message = failure_message

        self._items: tuple[RemoteEntity, ...] = ()
        self._sequence = 0
        self._inflight: asyncio.Task | None = None

        self.loading = False
        self.last_error: SyncError | None = None
        self.last_load: LoadRecord | None = None

    @property
    def items(self) -> tuple[RemoteEntity, ...]:
        return self._items

    def __len__(self) -> int:
        return len(self._items)

    def ids(self) -> list[str]:
        return [entity.id for entity in self._items]

    def get(self, entity_id: str) -> RemoteEntity | None:
        for entity in self._items:
            if entity.id == entity_id:
                return entity
        return None

    async def load(self) -> bool:
        """Fetch and replace the cache. Returns True when this load's result was applied."""

        self._sequence += 1
        sequence = self._sequence

        previous = self._inflight
        if self._cancel_superseded and previous is not None and not previous.done():
            previous.cancel()

        task = asyncio.ensure_future(self._fetch())
        self._inflight = task
        self.loading = True
        try:
            fetched = await task
        except asyncio.CancelledError:
            if task.cancelled() and sequence != self._sequence:
                logger.debug("load #%d cancelled by a newer load", sequence)
                return False
            raise
        except SyncError as exc:
            if sequence != self._sequence:
                logger.debug("dropping failure of stale load #%d", sequence)
                return False
            self.last_error = exc
            self._reporter.report(exc, self._failure_message)
            return False
        finally:
            if sequence == self._sequence:
                self.loading = False
                self._inflight = None

        if sequence != self._sequence:
            logger.debug("dropping stale response of load #%d", sequence)
            return False

        items = list(fetched)
        if self._enrich is not None:
            items = list(self._enrich(items))
        self._items = tuple(items)
        self.last_error = None
        self.last_load = LoadRecord(
            sequence=sequence,
            finished_at=datetime.now(timezone.utc),
            item_count=len(self._items),
        )
        logger.debug("load #%d applied %d items", sequence, len(self._items))
        return True

    def invalidate(self) -> None:
        """Cancel the in-flight load, if any; its response will never be applied."""

        self._sequence += 1
        task = self._inflight
        self._inflight = None
        self.loading = False
        if task is not None and not task.done():
            task.cancel()

    def upsert(self, entity: RemoteEntity) -> None:
        """Replace the entity with the same id in place, or append it."""

        items = list(self._items)
        for index, current in enumerate(items):
            if current.id == entity.id:
                items[index] = entity
                break
        else:
            items.append(entity)
        if self._enrich is not None:
            items = list(self._enrich(items))
        self._items = tuple(items)

    def remove(self, ids: Iterable[str]) -> int:
        doomed = set(ids)
        before = len(self._items)
        self._items = tuple(entity for entity in self._items if entity.id not in doomed)
        return before - len(self._items)

    def clear(self) -> None:
        self._items = ()
