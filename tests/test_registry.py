"""Tests for the per-owner sender registry."""

from __future__ import annotations

import asyncio

from inbox_scheduler.scheduling import SchedulerRegistry


def test_get_returns_one_sender_per_owner(repository, provider, clock) -> None:
    registry = SchedulerRegistry(repository, provider, clock=clock)

    assert registry.get("owner-1") is registry.get("owner-1")
    assert registry.get("owner-1") is not registry.get("owner-2")


def test_release_keeps_sender_while_still_held(repository, provider, clock) -> None:
    registry = SchedulerRegistry(repository, provider, clock=clock)

    async def scenario():
        first = registry.acquire("owner-1")
        second = registry.acquire("owner-1")
        await first.list()
        await registry.release("owner-1")
        held = "owner-1" in registry
        await second.list()
        await registry.release("owner-1")
        return held, "owner-1" in registry, first.running

    held, retained, running = asyncio.run(scenario())

    assert held is True
    assert retained is False
    assert running is False


def test_release_keeps_sender_with_armed_wake_time(
    repository, provider, clock, make_request
) -> None:
    registry = SchedulerRegistry(repository, provider, clock=clock)

    async def scenario():
        sender = registry.acquire("owner-1")
        await sender.schedule(make_request(clock.now + 60_000))
        await registry.release("owner-1")
        retained = "owner-1" in registry
        await registry.close()
        return retained

    assert asyncio.run(scenario()) is True
    assert repository.list_alarms() == {"owner-1": clock.now + 60_000}


def test_restore_starts_senders_for_persisted_alarms(
    repository, provider, clock
) -> None:
    repository.set_alarm("owner-1", clock.now + 5_000)
    repository.set_alarm("owner-2", clock.now + 9_000)
    registry = SchedulerRegistry(repository, provider, clock=clock)

    async def scenario():
        restored = await registry.restore()
        armed = {
            owner: registry.get(owner).armed_at for owner in ("owner-1", "owner-2")
        }
        running = registry.get("owner-1").running
        await registry.close()
        return restored, armed, running

    restored, armed, running = asyncio.run(scenario())

    assert restored == 2
    assert armed == {"owner-1": clock.now + 5_000, "owner-2": clock.now + 9_000}
    assert running is True
