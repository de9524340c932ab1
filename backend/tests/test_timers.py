import asyncio

import pytest

from services.timers import TimerManager


def test_set_timer_rounds_and_replaces_same_label():
    changes = []

    async def scenario():
        timers = TimerManager(on_changed=lambda active: changes.append(len(active)))
        first = timers.set_timer(0.2, " eggs ")
        second = timers.set_timer(2.5, "eggs")
        active = timers.list_active_timers()
        timers.clear_all()
        return first, second, active

    first, second, active = asyncio.run(scenario())

    assert first["durationSeconds"] == 1
    assert first["label"] == "eggs"
    assert second["durationSeconds"] == 3
    assert [timer["label"] for timer in active] == ["eggs"]
    assert changes[-1] == 0


def test_set_timer_rejects_blank_label():
    async def scenario():
        TimerManager().set_timer(10, "  ")

    with pytest.raises(ValueError):
        asyncio.run(scenario())


def test_cancel_timer():
    async def scenario():
        timers = TimerManager()
        timers.set_timer(30, "rest batter")
        cancelled = timers.cancel_timer("rest batter")
        missing = timers.cancel_timer("rest batter")
        return cancelled, missing, timers.list_active_timers()

    assert asyncio.run(scenario()) == (True, False, [])


def test_timer_fires_once():
    fired = []

    async def scenario():
        timers = TimerManager(on_fired=fired.append)
        timers.set_timer(1, "flip")
        await asyncio.sleep(1.2)
        return timers.list_active_timers()

    active = asyncio.run(scenario())

    assert active == []
    assert len(fired) == 1
    assert fired[0]["label"] == "flip"
    assert fired[0]["durationSeconds"] == 1
    assert fired[0]["firedAt"].endswith("Z")


def test_active_timers_sorted_by_end():
    async def scenario():
        timers = TimerManager()
        timers.set_timer(300, "oven")
        timers.set_timer(60, "eggs")
        active = timers.list_active_timers()
        timers.clear_all()
        return active

    assert [timer["label"] for timer in asyncio.run(scenario())] == ["eggs", "oven"]
