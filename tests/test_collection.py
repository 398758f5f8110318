from __future__ import annotations

import asyncio
import itertools

import pytest

from adapters.resources import get_resource
from core.domain.errors import NetworkFailure, ServerFailure, ValidationFailure
from core.domain.models import ToastLevel
from core.services.collection import RemoteCollection
from core.services.page import fetch_collection

from conftest import entities, json_response, make_api, spin


def test_successful_load_replaces_items(reporter, notifier) -> None:
    async def fetch():
        return entities({"id": "1", "name": "one"}, {"id": "2", "name": "two"})

    collection = RemoteCollection(fetch, reporter)

    applied = asyncio.run(collection.load())

    assert applied is True
    assert collection.ids() == ["1", "2"]
    assert collection.loading is False
    assert collection.last_error is None
    assert collection.last_load is not None and collection.last_load.item_count == 2
    assert notifier.toasts == []


def test_failed_load_leaves_cache_untouched_and_reports_once(reporter, notifier) -> None:
    results = iter(
        [
            entities({"id": "1"}, {"id": "2"}),
            NetworkFailure("connection refused"),
        ]
    )

    async def fetch():
        result = next(results)
        if isinstance(result, Exception):
            raise result
        return result

    collection = RemoteCollection(fetch, reporter, failure_message="Failed to load cases")

    async def scenario():
        await collection.load()
        before = collection.items
        applied = await collection.load()
        return before, applied

    before, applied = asyncio.run(scenario())

    assert applied is False
    assert collection.items == before
    assert collection.loading is False
    assert isinstance(collection.last_error, NetworkFailure)
    assert notifier.texts(ToastLevel.ERROR) == ["Failed to load cases"]


def test_validation_failure_toast_uses_server_message(reporter, notifier) -> None:
    async def fetch():
        raise ValidationFailure("Invalid filter value", status_code=400)

    collection = RemoteCollection(fetch, reporter, failure_message="Failed to load cases")

    asyncio.run(collection.load())

    assert notifier.texts() == ["Invalid filter value"]


def test_previous_items_stay_visible_while_loading(reporter) -> None:
    calls = itertools.count()

    async def scenario():
        release = asyncio.Event()

        async def fetch():
            if next(calls) == 0:
                return entities({"id": "old"})
            await release.wait()
            return entities({"id": "new"})

        collection = RemoteCollection(fetch, reporter)
        await collection.load()

        pending = asyncio.create_task(collection.load())
        await spin(5)
        during = (collection.loading, collection.ids())
        release.set()
        await pending
        return during, collection.ids()

    during, after = asyncio.run(scenario())

    assert during == (True, ["old"])
    assert after == ["new"]


def test_stale_response_is_dropped_without_cancellation(reporter, notifier) -> None:
    calls = itertools.count()

    async def scenario():
        release_first = asyncio.Event()

        async def fetch():
            if next(calls) == 0:
                await release_first.wait()
                return entities({"id": "stale"})
            return entities({"id": "fresh"})

        collection = RemoteCollection(fetch, reporter, cancel_superseded=False)
        first = asyncio.create_task(collection.load())
        await spin(5)
        second_applied = await collection.load()
        release_first.set()
        first_applied = await first
        return collection, first_applied, second_applied

    collection, first_applied, second_applied = asyncio.run(scenario())

    assert second_applied is True
    assert first_applied is False
    assert collection.ids() == ["fresh"]
    assert collection.loading is False
    assert notifier.toasts == []


def test_newer_load_cancels_superseded_fetch(reporter) -> None:
    calls = itertools.count()
    cancelled: list[int] = []

    async def scenario():
        never = asyncio.Event()

        async def fetch():
            n = next(calls)
            if n == 0:
                try:
                    await never.wait()
                except asyncio.CancelledError:
                    cancelled.append(n)
                    raise
            return entities({"id": f"load-{n}"})

        collection = RemoteCollection(fetch, reporter)
        first = asyncio.create_task(collection.load())
        await spin(5)
        second_applied = await collection.load()
        first_applied = await first
        return collection, first_applied, second_applied

    collection, first_applied, second_applied = asyncio.run(scenario())

    assert cancelled == [0]
    assert first_applied is False
    assert second_applied is True
    assert collection.ids() == ["load-1"]


def test_failure_of_stale_load_is_not_reported(reporter, notifier) -> None:
    calls = itertools.count()

    async def scenario():
        release_first = asyncio.Event()

        async def fetch():
            if next(calls) == 0:
                await release_first.wait()
                raise ServerFailure("boom", status_code=500)
            return entities({"id": "ok"})

        collection = RemoteCollection(fetch, reporter, cancel_superseded=False)
        first = asyncio.create_task(collection.load())
        await spin(5)
        await collection.load()
        release_first.set()
        await first
        return collection

    collection = asyncio.run(scenario())

    assert collection.ids() == ["ok"]
    assert collection.last_error is None
    assert notifier.toasts == []


def test_invalidate_drops_inflight_response(reporter) -> None:
    async def scenario():
        release = asyncio.Event()

        async def fetch():
            await release.wait()
            return entities({"id": "late"})

        collection = RemoteCollection(fetch, reporter)
        pending = asyncio.create_task(collection.load())
        await spin(5)
        collection.invalidate()
        release.set()
        applied = await pending
        return collection, applied

    collection, applied = asyncio.run(scenario())

    assert applied is False
    assert len(collection) == 0
    assert collection.loading is False


def test_enrich_runs_once_per_successful_load(reporter) -> None:
    seen: list[int] = []

    async def fetch():
        return entities({"id": "1"}, {"id": "2"})

    def enrich(items):
        seen.append(len(items))
        return [item.with_fields(flag=True) for item in items]

    collection = RemoteCollection(fetch, reporter, enrich=enrich)
    asyncio.run(collection.load())

    assert seen == [2]
    assert all(item.get_path("flag") is True for item in collection.items)


def test_upsert_and_remove(reporter) -> None:
    async def fetch():
        return entities({"id": "1", "name": "one"}, {"id": "2", "name": "two"})

    collection = RemoteCollection(fetch, reporter)
    asyncio.run(collection.load())

    collection.upsert(entities({"id": "2", "name": "TWO"})[0])
    collection.upsert(entities({"id": "3", "name": "three"})[0])
    removed = collection.remove(["1", "missing"])

    assert removed == 1
    assert collection.ids() == ["2", "3"]
    assert collection.get("2").name == "TWO"


@pytest.mark.parametrize(
    "row",
    [{"name": "no id"}, {"id": None, "name": "null id"}, {"id": "", "name": "empty id"}],
)
def test_entry_without_id_is_reported_as_server_failure(reporter, notifier, row) -> None:
    handler = lambda request: json_response({"success": True, "data": [{"id": "s1"}, row]})

    async def scenario():
        api = make_api(handler)
        collection = RemoteCollection(
            lambda: fetch_collection(api, get_resource("specializations")),
            reporter,
            failure_message="Failed to load legal specializations",
        )
        applied = await collection.load()
        await api.aclose()
        return collection, applied

    collection, applied = asyncio.run(scenario())

    assert applied is False
    assert collection.ids() == []
    assert collection.loading is False
    assert isinstance(collection.last_error, ServerFailure)
    assert notifier.texts(ToastLevel.ERROR) == ["Failed to load legal specializations"]
