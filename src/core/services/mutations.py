"""Mutation dispatcher: create/update/delete/bulk actions and CSV transfer.

Every action runs the same state machine:

    idle -> submitting -> success | failure

- submitting: a second submit of the same action is ignored (the control is
  disabled).
- success: the associated dialog closes and its form resets, one success
  toast is shown, then the cache is reconciled. The default is a full
  reload; resources flagged `mutations_patch` patch the returned entity in
  place instead.
- failure: one error toast (server message when it sent one, otherwise the
  action's fallback); cache, selection and form are left as they were.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Awaitable, Callable

from adapters.http_client import ApiClient
from adapters.resources import ResourceSpec
from core.domain.errors import SyncError
from core.domain.models import MutationState, RemoteEntity, SelectionSet
from core.services.collection import RemoteCollection
from core.services.reporting import ErrorReporter

logger = logging.getLogger(__name__)


class ReconcileStrategy(str, Enum):
    RELOAD = "reload"
    PATCH = "patch"


@dataclass
class FormDialog:
    """Create/edit dialog state: open flag, field values and the id being edited."""

    open: bool = False
    values: dict[str, Any] = field(default_factory=dict)
    editing_id: str | None = None

    def open_for_create(self, defaults: dict[str, Any] | None = None) -> None:
        self.values = dict(defaults or {})
        self.editing_id = None
        self.open = True

    def open_for_edit(self, entity: RemoteEntity, fields: list[str] | tuple[str, ...]) -> None:
        self.values = {name: entity.get_path(name) for name in fields}
        self.editing_id = entity.id
        self.open = True

    def close_and_reset(self) -> None:
        self.open = False
        self.values = {}
        self.editing_id = None


@dataclass
class Mutation:
    name: str
    state: MutationState = MutationState.IDLE
    error: Exception | None = None
    result: Any = None

    @property
    def disabled(self) -> bool:
        return self.state is MutationState.SUBMITTING


def _failed_ids(result: Any) -> list[str]:
    if not isinstance(result, dict):
        return []
    raw = result.get("failedIds") or result.get("failed_ids") or []
    if not isinstance(raw, list):
        return []
    return [str(value) for value in raw]


class MutationDispatcher:
    def __init__(
        self,
        api: ApiClient,
        resource: ResourceSpec,
        collection: RemoteCollection,
        reporter: ErrorReporter,
        *,
        strategy: ReconcileStrategy | None = None,
    ) -> None:
        self._api = api
        self._resource = resource
        self._collection = collection
        self._reporter = reporter
        if strategy is None:
            strategy = ReconcileStrategy.PATCH if resource.mutations_patch else ReconcileStrategy.RELOAD
        self.strategy = strategy
        self.mutations: dict[str, Mutation] = {}

    def mutation(self, name: str) -> Mutation:
        return self.mutations.setdefault(name, Mutation(name=name))

    async def _run(
        self,
        name: str,
        action: Callable[[], Awaitable[Any]],
        *,
        apply: Callable[[Any], str | None],
        failure_text: str,
        form: FormDialog | None = None,
        patch: Callable[[Any], None] | None = None,
        reconcile: bool = True,
    ) -> bool:
        mutation = self.mutation(name)
        if mutation.disabled:
            logger.debug("%s already submitting; ignoring", name)
            return False

        mutation.state = MutationState.SUBMITTING
        mutation.error = None
        try:
            result = await action()
        except Exception as exc:
            mutation.state = MutationState.FAILURE
            mutation.error = exc
            self._reporter.report(exc, failure_text)
            return False
        finally:
            # Cancelled mid-request: leave the control usable again.
            if mutation.state is MutationState.SUBMITTING:
                mutation.state = MutationState.IDLE

        mutation.state = MutationState.SUCCESS
        mutation.result = result
        if form is not None:
            form.close_and_reset()
        success_text = apply(result)
        if success_text:
            self._reporter.success(success_text)
        if reconcile:
            await self._reconcile(result, patch)
        return mutation.error is None

    async def _reconcile(self, result: Any, patch: Callable[[Any], None] | None) -> None:
        if self.strategy is ReconcileStrategy.PATCH and patch is not None:
            patch(result)
            return
        await self._collection.load()

    def _patch_entity(self, result: Any) -> None:
        if isinstance(result, dict) and result.get("id") is not None:
            self._collection.upsert(RemoteEntity.from_payload(result))
        else:
            logger.debug("no entity in response; patch skipped")

    def _label(self) -> str:
        title = self._resource.title
        return title[:-1] if title.endswith("s") else title

    async def create(self, payload: dict[str, Any], form: FormDialog | None = None) -> bool:
        return await self._run(
            "create",
            lambda: self._api.request_envelope(
                "POST", self._resource.path, key=self._resource.item_key, json_body=payload
            ),
            apply=lambda _result: f"{self._label()} created",
            failure_text=f"Failed to save {self._label().lower()}",
            form=form,
            patch=self._patch_entity,
        )

    async def update(
        self,
        entity_id: str,
        payload: dict[str, Any],
        form: FormDialog | None = None,
    ) -> bool:
        return await self._run(
            "update",
            lambda: self._api.request_envelope(
                "PUT",
                self._resource.item_path(entity_id),
                key=self._resource.item_key,
                json_body=payload,
            ),
            apply=lambda _result: f"{self._label()} updated",
            failure_text=f"Failed to save {self._label().lower()}",
            form=form,
            patch=self._patch_entity,
        )

    async def save(self, form: FormDialog) -> bool:
        """Submit a dialog: update when it is editing an entity, create otherwise."""

        if form.editing_id:
            return await self.update(form.editing_id, dict(form.values), form)
        return await self.create(dict(form.values), form)

    async def delete(self, entity_id: str) -> bool:
        return await self._run(
            "delete",
            lambda: self._api.request_envelope(
                "DELETE", self._resource.item_path(entity_id), key=self._resource.item_key
            ),
            apply=lambda _result: f"{self._label()} deleted",
            failure_text=f"Failed to delete {self._label().lower()}",
            patch=lambda _result: self._collection.remove([entity_id]),
        )

    async def bulk_delete(self, selection: SelectionSet) -> bool:
        """Delete every selected id with one request.

        A response listing `failedIds` is reconciled per item: deleted ids
        leave cache and selection, failed ids stay selected.
        """

        if not selection:
            self._reporter.error("Please select items to delete")
            return False
        ids = selection.ids()
        path = self._resource.bulk_delete_path or f"{self._resource.path.rstrip('/')}/bulk-delete"

        def apply(result: Any) -> str | None:
            failed = set(_failed_ids(result)) & set(ids)
            succeeded = [entity_id for entity_id in ids if entity_id not in failed]
            self._collection.remove(succeeded)
            for entity_id in succeeded:
                selection.discard(entity_id)
            if failed:
                mutation = self.mutation("bulk_delete")
                mutation.state = MutationState.FAILURE
                mutation.error = SyncError(f"{len(failed)} of {len(ids)} items could not be deleted")
                self._reporter.error(mutation.error.message)
                return None
            selection.clear()
            return f"Successfully deleted {len(ids)} items"

        return await self._run(
            "bulk_delete",
            lambda: self._api.request_envelope("POST", path, json_body={"ids": ids}),
            apply=apply,
            failure_text="Failed to delete selected items",
            patch=lambda _result: None,
        )

    async def bulk_update(self, selection: SelectionSet, changes: dict[str, Any]) -> bool:
        if not selection:
            self._reporter.error("Please select items to update")
            return False
        ids = selection.ids()
        path = self._resource.bulk_update_path or f"{self._resource.path.rstrip('/')}/bulk-update"

        def apply(_result: Any) -> str:
            selection.clear()
            return "Successfully updated selected items"

        return await self._run(
            "bulk_update",
            lambda: self._api.request_envelope("POST", path, json_body={"ids": ids, **changes}),
            apply=apply,
            failure_text="Failed to update selected items",
        )

    async def export_csv(self, destination: Path) -> Path | None:
        """Download the resource's CSV export to `destination` (a file or a directory)."""

        path = self._resource.export_path or f"{self._resource.path.rstrip('/')}/export"

        async def action() -> Path:
            filename, content = await self._api.download(
                path, default_filename=self._resource.export_filename
            )
            target = destination / filename if destination.is_dir() else destination
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(content)
            return target

        ok = await self._run(
            "export",
            action,
            apply=lambda _target: "Export completed successfully",
            failure_text=f"Failed to export {self._resource.title.lower()}",
            reconcile=False,
        )
        return self.mutation("export").result if ok else None

    async def import_csv(self, file_path: Path) -> bool:
        path = self._resource.import_path or f"{self._resource.path.rstrip('/')}/import"
        return await self._run(
            "import",
            lambda: self._api.upload(path, file_path),
            apply=lambda _result: f"Successfully imported {self._resource.title.lower()}",
            failure_text=f"Failed to import {self._resource.title.lower()}",
        )
