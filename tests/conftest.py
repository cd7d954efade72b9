from __future__ import annotations

import pytest

from acvpmeta.domain.locking import DefinitionLockManager
from tests.helpers.registry import FakeRegistry, MemoryStore


@pytest.fixture
def registry() -> FakeRegistry:
    return FakeRegistry()


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def locks(store: MemoryStore) -> DefinitionLockManager:
    return DefinitionLockManager(store)
