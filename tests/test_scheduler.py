from __future__ import annotations

import asyncio

import pytest

from core.domain.models import Countdown
from core.services.collection import RemoteCollection
from core.services.scheduler import PollingScheduler

from conftest import FakeClock, entities, spin, spin_until


def test_one_tick_loads_collection(reporter) -> None:
    async def fetch():
        return entities({"id": "1"}, {"id": "2"}, {"id": "3"})

    async def scenario():
        clock = FakeClock()
        scheduler = PollingScheduler(clock=clock, sleep=clock.sleep)
        collection = RemoteCollection(fetch, reporter)
        scheduler.start(1, collection.load)
        reached = await spin_until(lambda: scheduler.ticks >= 1 and len(collection) == 3)
        scheduler.stop()
        return reached, collection

    reached, collection = asyncio.run(scenario())

    assert reached
    assert len(collection) == 3
    assert collection.loading is False


def test_no_tick_after_stop() -> None:
    calls: list[float] = []

    async def scenario():
        clock = FakeClock()
        scheduler = PollingScheduler(clock=clock, sleep=clock.sleep)

        async def tick():
            calls.append(clock.now)

        scheduler.start(5, tick)
        await spin_until(lambda: len(calls) >= 2)
        scheduler.stop()
        seen = len(calls)
        clock.now += 60
        await spin(500)
        return scheduler, seen

    scheduler, seen = asyncio.run(scenario())

    assert seen == 2
    assert len(calls) == seen
    assert calls == [5, 10]
    assert scheduler.is_running is False
    assert scheduler.deadline is None


def test_stop_before_first_tick_fires_nothing() -> None:
    calls: list[int] = []

    async def scenario():
        clock = FakeClock()
        scheduler = PollingScheduler(clock=clock, sleep=clock.sleep)

        async def tick():
            calls.append(1)

        scheduler.start(2, tick)
        scheduler.stop()
        clock.now += 100
        await spin(200)

    asyncio.run(scenario())

    assert calls == []


def test_countdown_is_derived_from_deadline() -> None:
    async def scenario():
        clock = FakeClock(start=1000.0)
        scheduler = PollingScheduler(clock=clock, sleep=clock.sleep)

        async def tick():
            return None

        scheduler.start(3_725, tick)
        first = scheduler.countdown()
        clock.now += 25.5
        second = scheduler.countdown()
        scheduler.stop()
        return first, second, scheduler.countdown()

    first, second, stopped = asyncio.run(scenario())

    assert (first.hours, first.minutes, first.seconds) == (1, 2, 5)
    assert second.label() == "01:01:39"
    assert stopped.total_seconds == 0


def test_countdown_formats_days() -> None:
    countdown = Countdown.from_seconds(2 * 86_400 + 3 * 3_600 + 4 * 60 + 5)

    assert countdown.days == 2
    assert countdown.label() == "2d 03:04:05"
    assert Countdown.from_seconds(-3).total_seconds == 0


def test_reset_deadline_restarts_wait() -> None:
    async def scenario():
        clock = FakeClock()
        scheduler = PollingScheduler(clock=clock, sleep=clock.sleep)

        async def tick():
            return None

        scheduler.start(30, tick)
        clock.now = 20
        before = scheduler.remaining()
        scheduler.reset_deadline()
        after = scheduler.remaining()
        scheduler.stop()
        return before, after

    before, after = asyncio.run(scenario())

    assert before == 10
    assert after == 30


def test_failing_tick_keeps_polling() -> None:
    calls: list[int] = []

    async def scenario():
        clock = FakeClock()
        scheduler = PollingScheduler(clock=clock, sleep=clock.sleep)

        async def tick():
            calls.append(1)
            raise RuntimeError("boom")

        scheduler.start(1, tick)
        await spin_until(lambda: len(calls) >= 3)
        scheduler.stop()

    asyncio.run(scenario())

    assert len(calls) >= 3


def test_auto_update_toggle() -> None:
    calls: list[int] = []

    async def scenario():
        clock = FakeClock()
        scheduler = PollingScheduler(clock=clock, sleep=clock.sleep)

        async def tick():
            calls.append(1)

        scheduler.set_enabled(True, 10, tick)
        running = scheduler.is_running
        scheduler.set_enabled(False)
        await spin(5)
        stopped = not scheduler.is_running
        scheduler.set_enabled(True)
        resumed = scheduler.is_running
        scheduler.stop()
        return running, stopped, resumed

    running, stopped, resumed = asyncio.run(scenario())

    assert (running, stopped, resumed) == (True, True, True)


def test_enabling_without_interval_is_rejected() -> None:
    async def scenario():
        PollingScheduler().set_enabled(True)

    with pytest.raises(ValueError):
        asyncio.run(scenario())


def test_interval_must_be_positive() -> None:
    async def scenario():
        async def tick():
            return None

        PollingScheduler().start(0, tick)

    with pytest.raises(ValueError):
        asyncio.run(scenario())
