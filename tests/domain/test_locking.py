from __future__ import annotations

import asyncio

import pytest

from acvpmeta.domain.errors import ConfigError, PersistError
from acvpmeta.domain.locking import DefinitionLockManager
from acvpmeta.domain.model import ModuleRecord
from tests.helpers.registry import MemoryStore, make_definition


def test_lock_is_created_lazily_and_dropped_after_release(
    locks: DefinitionLockManager,
    store: MemoryStore,
) -> None:
    record = make_definition().vendor

    async def scenario() -> None:
        assert record not in locks
        async with locks.hold(record):
            assert record in locks
            assert locks.refcount(record) == 1
        assert record not in locks

    asyncio.run(scenario())

    assert store.persisted == ["vendor"]


def test_lock_serialises_holders_of_the_same_record(locks: DefinitionLockManager) -> None:
    record = make_definition().environment
    events: list[str] = []

    async def holder(name: str) -> None:
        async with locks.hold(record):
            events.append(f"{name}:enter")
            await asyncio.sleep(0)
            events.append(f"{name}:exit")

    async def scenario() -> None:
        await asyncio.gather(holder("a"), holder("b"))

    asyncio.run(scenario())

    assert events == ["a:enter", "a:exit", "b:enter", "b:exit"]


def test_refcount_counts_waiters(locks: DefinitionLockManager) -> None:
    record = make_definition().module
    seen: list[int] = []

    async def scenario() -> None:
        first = await locks.acquire(record)
        waiter = asyncio.create_task(locks.acquire(record))
        await asyncio.sleep(0)
        seen.append(locks.refcount(record))
        await locks.release(record, first)
        second = await waiter
        await locks.release(record, second)

    asyncio.run(scenario())

    assert seen == [2]
    assert locks.refcount(record) == 0


def test_unlocatable_record_raises_config_error(locks: DefinitionLockManager) -> None:
    record = ModuleRecord(module=make_definition().module.module)

    async def scenario() -> None:
        async with locks.hold(record):
            pytest.fail("lock must not be granted")

    with pytest.raises(ConfigError):
        asyncio.run(scenario())


def test_persist_failure_still_unlocks(locks: DefinitionLockManager, store: MemoryStore) -> None:
    record = make_definition().vendor
    store.fail_persist = True

    async def scenario() -> None:
        async with locks.hold(record):
            record.vendor.identifier = 5

    with pytest.raises(PersistError):
        asyncio.run(scenario())

    assert record not in locks
    assert record.vendor.identifier == 5
