from __future__ import annotations

import asyncio
import logging

import pytest

from acvpmeta.domain.identifier import is_open_request, is_usable_id
from acvpmeta.domain.locking import DefinitionLockManager
from acvpmeta.domain.model import EntityKind, EnvironmentRecord
from acvpmeta.domain.policy import ReconcileOptions, Verb
from acvpmeta.domain.ports import RequestStatus
from acvpmeta.domain.reconciliation import EntityState, Reconciler, reconcile_environment
from tests.helpers.registry import FakeRegistry, MemoryStore, make_environment

XEON = {
    "type": "processor",
    "manufacturer": "Intel",
    "family": "X86",
    "name": "Xeon E5",
    "series": "Broadwell",
}
LINUX = {"type": "software", "name": "Linux 5.4", "description": "Linux 5.4"}
OE_NAME = "Linux 5.4 on Intel Broadwell Xeon E5"


@pytest.fixture
def record() -> EnvironmentRecord:
    return EnvironmentRecord(key="oe", environment=make_environment())


def _run(
    registry: FakeRegistry,
    locks: DefinitionLockManager,
    record: EnvironmentRecord,
    options: ReconcileOptions | None = None,
) -> dict[EntityKind, tuple[EntityState, Verb]]:
    reconciler = Reconciler(registry, options)
    outcomes = asyncio.run(reconcile_environment(reconciler, locks, record))
    return {outcome.kind: (outcome.state, outcome.verb) for outcome in outcomes}


def test_dependencies_are_registered_before_the_environment(
    registry: FakeRegistry,
    locks: DefinitionLockManager,
    store: MemoryStore,
    record: EnvironmentRecord,
) -> None:
    states = _run(registry, locks, record, ReconcileOptions(auto_register=True))

    assert registry.mutations == [
        ("POST", "dependencies"),
        ("POST", "dependencies"),
        ("POST", "oes"),
    ]
    environment = record.environment
    assert environment.processor is not None
    assert environment.software is not None
    _, _, oe_body = registry.bodies[-1]
    assert oe_body == {
        "name": OE_NAME,
        "dependencyUrls": [
            f"/acvp/v1/dependencies/{environment.processor.identifier}",
            f"/acvp/v1/dependencies/{environment.software.identifier}",
        ],
    }
    assert states[EntityKind.ENVIRONMENT] == (EntityState.RESOLVED, Verb.CREATE)
    assert is_usable_id(environment.identifier)
    assert store.persisted == ["oe"]


def test_second_run_changes_nothing(
    registry: FakeRegistry,
    locks: DefinitionLockManager,
    record: EnvironmentRecord,
) -> None:
    _run(registry, locks, record, ReconcileOptions(auto_register=True))
    first_mutations = len(registry.mutations)

    states = _run(registry, locks, record, ReconcileOptions(auto_register=True, revalidate=True))

    assert len(registry.mutations) == first_mutations
    assert all(verb is Verb.NONE for _, verb in states.values())
    assert all(state is EntityState.RESOLVED for state, _ in states.values())


def test_environment_waits_for_pending_dependencies(
    registry: FakeRegistry,
    locks: DefinitionLockManager,
    record: EnvironmentRecord,
) -> None:
    registry.create_status = RequestStatus.PROCESSING

    states = _run(registry, locks, record, ReconcileOptions(auto_register=True))

    assert registry.mutations == [("POST", "dependencies"), ("POST", "dependencies")]
    assert states[EntityKind.ENVIRONMENT] == (EntityState.UNRESOLVED, Verb.NONE)
    software = record.environment.software
    assert software is not None
    assert is_open_request(software.identifier)

    registry.approve_requests()
    registry.create_status = RequestStatus.APPROVED
    states = _run(registry, locks, record, ReconcileOptions(auto_register=True))

    assert states[EntityKind.ENVIRONMENT] == (EntityState.RESOLVED, Verb.CREATE)
    assert is_usable_id(software.identifier)


def test_aborted_dependency_aborts_the_environment(
    registry: FakeRegistry,
    locks: DefinitionLockManager,
    record: EnvironmentRecord,
) -> None:
    states = _run(registry, locks, record)

    assert states[EntityKind.PROCESSOR][0] is EntityState.ABORTED
    assert states[EntityKind.ENVIRONMENT][0] is EntityState.ABORTED
    assert registry.mutations == []


def test_existing_environment_with_foreign_dependency_reference_is_adopted(
    registry: FakeRegistry,
    locks: DefinitionLockManager,
    record: EnvironmentRecord,
) -> None:
    first_xeon = registry.add("dependencies", XEON)
    second_xeon = registry.add("dependencies", XEON)
    linux = registry.add("dependencies", LINUX)
    oe_id = registry.add(
        "oes",
        {
            "name": OE_NAME,
            "dependencyUrls": [
                f"/acvp/v1/dependencies/{second_xeon}",
                f"/acvp/v1/dependencies/{linux}",
            ],
        },
    )

    states = _run(registry, locks, record)

    assert registry.mutations == []
    assert ("GET", f"dependencies/{second_xeon}") in registry.calls
    assert record.environment.processor is not None
    assert record.environment.processor.identifier == first_xeon
    assert record.environment.identifier == oe_id
    assert states[EntityKind.ENVIRONMENT] == (EntityState.RESOLVED, Verb.NONE)


def test_environment_of_other_name_is_not_adopted(
    registry: FakeRegistry,
    locks: DefinitionLockManager,
    record: EnvironmentRecord,
) -> None:
    registry.add(
        "oes",
        {"name": f"{OE_NAME} (32 bit)", "dependencyUrls": ["/acvp/v1/dependencies/1"]},
    )

    _run(registry, locks, record, ReconcileOptions(auto_register=True))

    assert ("GET", "dependencies/1") not in registry.calls
    assert registry.mutations[-1] == ("POST", "oes")


def test_processor_update_asks_for_a_second_run(
    registry: FakeRegistry,
    locks: DefinitionLockManager,
    record: EnvironmentRecord,
    caplog: pytest.LogCaptureFixture,
) -> None:
    processor_id = registry.add("dependencies", {**XEON, "series": "Haswell"})
    linux = registry.add("dependencies", LINUX)
    processor = record.environment.processor
    assert processor is not None
    processor.identifier = processor_id
    options = ReconcileOptions(auto_register=True, revalidate=True)

    reconciler = Reconciler(registry, options, confirm=lambda prompt: "UPDATED" in prompt)
    with caplog.at_level(logging.INFO):
        outcomes = asyncio.run(reconcile_environment(reconciler, locks, record))

    assert outcomes[0].verb is Verb.UPDATE
    assert registry.mutations[0] == ("PUT", f"dependencies/{processor_id}")
    assert record.environment.software is not None
    assert record.environment.software.identifier == linux
    assert "run the reconciliation of" in caplog.text


def test_nameless_software_with_identifier_is_ignored(
    registry: FakeRegistry,
    locks: DefinitionLockManager,
    caplog: pytest.LogCaptureFixture,
) -> None:
    environment = make_environment(env_name=None)
    assert environment.software is not None
    environment.software.identifier = 33
    record = EnvironmentRecord(key="oe", environment=environment)

    with caplog.at_level(logging.WARNING):
        states = _run(registry, locks, record, ReconcileOptions(auto_register=True))

    assert states[EntityKind.SOFTWARE][0] is EntityState.ABSENT
    assert states[EntityKind.ENVIRONMENT] == (EntityState.RESOLVED, Verb.CREATE)
    assert "no environment name is declared" in caplog.text
    _, _, oe_body = registry.bodies[-1]
    assert oe_body["name"] == "Intel Broadwell Xeon E5"
