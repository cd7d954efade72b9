"""Per-record locks guarding identifier reads and writes.

Every record gets one lock shared by all jobs of this process. Acquiring it is
required before an identifier is read to decide a verb and before a resolved
identifier is written; releasing it persists the identifiers.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

from .errors import PersistError

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from .model import DefinitionRecord
    from .ports import DefinitionStore

log = getLogger(__name__)


@dataclass(slots=True)
class DefinitionLock:
    key: str
    mutex: asyncio.Lock = field(default_factory=asyncio.Lock)
    refcount: int = 0


class DefinitionLockManager:
    """Lazily created lock + reference count per definition record."""

    def __init__(self, store: DefinitionStore) -> None:
        self._store = store
        self._locks: dict[str, DefinitionLock] = {}

    def __contains__(self, record: DefinitionRecord) -> bool:
        key = record.record_key
        return key is not None and key in self._locks

    def refcount(self, record: DefinitionRecord) -> int:
        lock = self._locks.get(record.record_key or "")
        return lock.refcount if lock else 0

    async def acquire(self, record: DefinitionRecord) -> DefinitionLock:
        key = self._store.locate(record)
        lock = self._locks.get(key)
        if lock is None:
            lock = DefinitionLock(key=key)
            self._locks[key] = lock
        lock.refcount += 1
        try:
            await lock.mutex.acquire()
        except BaseException:
            self._drop_reference(lock)
            raise
        log.debug("Locked definition %s (refcount %s)", key, lock.refcount)
        return lock

    async def release(self, record: DefinitionRecord, lock: DefinitionLock) -> None:
        try:
            self._store.persist(record)
        except OSError as exc:
            log.error("Could not persist identifiers of %s: %s", lock.key, exc)
            raise PersistError(f"Failed to persist identifiers of {lock.key}") from exc
        finally:
            lock.mutex.release()
            self._drop_reference(lock)
            log.debug("Unlocked definition %s", lock.key)

    @asynccontextmanager
    async def hold(self, record: DefinitionRecord) -> AsyncIterator[DefinitionLock]:
        lock = await self.acquire(record)
        try:
            yield lock
        finally:
            await self.release(record, lock)

    def _drop_reference(self, lock: DefinitionLock) -> None:
        lock.refcount -= 1
        if lock.refcount <= 0:
            self._locks.pop(lock.key, None)
