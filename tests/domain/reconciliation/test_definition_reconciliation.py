from __future__ import annotations

import asyncio

from acvpmeta.domain.identifier import PENDING_PROCESSING, is_usable_id, mark
from acvpmeta.domain.locking import DefinitionLockManager
from acvpmeta.domain.model import EntityKind, ModuleDefinition, ModuleRecord
from acvpmeta.domain.policy import ReconcileOptions, Verb
from acvpmeta.domain.reconciliation import (
    EntityState,
    ReconcileOutcome,
    Reconciler,
    reconcile_definitions,
    reconcile_module,
    reconcile_vendor,
)
from tests.helpers.registry import FakeRegistry, MemoryStore, make_definition

REGISTER = ReconcileOptions(auto_register=True)


def _kinds(outcomes: list[ReconcileOutcome]) -> dict[EntityKind, EntityState]:
    return {outcome.kind: outcome.state for outcome in outcomes}


def test_vendor_children_wait_for_vendor(
    registry: FakeRegistry,
    locks: DefinitionLockManager,
) -> None:
    record = make_definition().vendor
    reconciler = Reconciler(registry, ReconcileOptions(show_only=True))

    outcomes = asyncio.run(reconcile_vendor(reconciler, locks, record))

    assert _kinds(outcomes) == {
        EntityKind.VENDOR: EntityState.UNRESOLVED,
        EntityKind.ADDRESS: EntityState.UNRESOLVED,
        EntityKind.PERSON: EntityState.UNRESOLVED,
    }
    assert outcomes[1].reason == "waiting for vendor Example Corp"
    assert registry.mutations == []


def test_vendor_tree_is_registered_parent_first(
    registry: FakeRegistry,
    locks: DefinitionLockManager,
) -> None:
    record = make_definition().vendor

    asyncio.run(reconcile_vendor(Reconciler(registry, REGISTER), locks, record))

    vendor_id = record.vendor.identifier
    assert registry.mutations == [
        ("POST", "vendors"),
        ("POST", f"vendors/{vendor_id}/addresses"),
        ("POST", "persons"),
    ]
    _, _, person_body = registry.bodies[-1]
    assert person_body["vendorUrl"] == f"/acvp/v1/vendors/{vendor_id}"
    assert is_usable_id(record.address.identifier)
    assert is_usable_id(record.person.identifier)


def test_module_waits_for_pending_contact(
    registry: FakeRegistry,
    locks: DefinitionLockManager,
) -> None:
    definition = make_definition()
    definition.vendor.vendor.identifier = 3
    definition.vendor.person.identifier = mark(8, PENDING_PROCESSING)
    reconciler = Reconciler(registry, REGISTER)

    outcomes = asyncio.run(
        reconcile_module(reconciler, locks, definition.module, definition.vendor)
    )

    assert outcomes[0].state is EntityState.UNRESOLVED
    assert outcomes[0].reason == "waiting for vendor address or contact"
    assert registry.calls == []


def test_module_references_vendor_snapshot(
    registry: FakeRegistry,
    locks: DefinitionLockManager,
) -> None:
    definition = make_definition()
    definition.vendor.vendor.identifier = 3
    definition.vendor.address.identifier = 4
    definition.vendor.person.identifier = 5
    reconciler = Reconciler(registry, REGISTER)

    asyncio.run(reconcile_module(reconciler, locks, definition.module, definition.vendor))

    assert registry.bodies == [
        (
            "POST",
            "modules",
            {
                "name": "libcrypto",
                "version": "1.0",
                "type": "Software",
                "vendorUrl": "/acvp/v1/vendors/3",
                "addressUrl": "/acvp/v1/vendors/3/addresses/4",
                "contactUrls": ["/acvp/v1/persons/5"],
            },
        )
    ]


def test_full_definition_converges_and_stays_put(
    registry: FakeRegistry,
    locks: DefinitionLockManager,
    store: MemoryStore,
) -> None:
    definition = make_definition()

    reports = asyncio.run(
        reconcile_definitions(Reconciler(registry, REGISTER), locks, [definition])
    )

    assert [report.failed for report in reports] == [False]
    assert reports[0].mutations == 7
    assert all(
        is_usable_id(entity.identifier)
        for record in definition.records()
        for entity in record.entities()
    )
    assert sorted(store.persisted) == ["module-libcrypto", "oe", "vendor", "vendor"]

    calls_before = len(registry.calls)
    reports = asyncio.run(
        reconcile_definitions(Reconciler(registry, REGISTER), locks, [definition])
    )

    assert reports[0].mutations == 0
    assert len(registry.calls) == calls_before


def test_shared_records_are_registered_once(
    registry: FakeRegistry,
    locks: DefinitionLockManager,
) -> None:
    first = make_definition("libcrypto")
    second = ModuleDefinition(
        module=ModuleRecord(key="module-libssl", module=make_definition("libssl").module.module),
        vendor=first.vendor,
        environment=first.environment,
    )

    reports = asyncio.run(
        reconcile_definitions(Reconciler(registry, REGISTER), locks, [first, second])
    )

    assert not any(report.failed for report in reports)
    posts = [path for method, path in registry.mutations if method == "POST"]
    assert posts.count("vendors") == 1
    assert posts.count("oes") == 1
    assert posts.count("modules") == 2
    assert locks.refcount(first.vendor) == 0


def test_failing_definition_leaves_others_alone(
    registry: FakeRegistry,
    locks: DefinitionLockManager,
) -> None:
    broken = make_definition("broken", suffix="-broken")
    broken.module.key = None
    healthy = make_definition("libcrypto")

    reports = asyncio.run(
        reconcile_definitions(Reconciler(registry, REGISTER), locks, [broken, healthy])
    )

    assert [report.label for report in reports] == ["broken 1.0", "libcrypto 1.0"]
    assert reports[0].failed
    assert reports[0].errors == ["record has no key"]
    assert not reports[1].failed
    assert healthy.module.module.identifier != 0


def test_persist_failure_is_reported_but_job_continues(
    registry: FakeRegistry,
    locks: DefinitionLockManager,
    store: MemoryStore,
) -> None:
    store.fail_persist = True
    definition = make_definition()

    reports = asyncio.run(
        reconcile_definitions(Reconciler(registry, REGISTER), locks, [definition])
    )

    report = reports[0]
    assert report.failed
    assert len(report.errors) == 3
    assert is_usable_id(definition.vendor.vendor.identifier)
    assert is_usable_id(definition.environment.environment.identifier)
    assert any(outcome.verb is Verb.CREATE for outcome in report.outcomes)
