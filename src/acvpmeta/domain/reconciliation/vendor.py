"""Vendor with its address and contact person, and the module referencing them."""

from __future__ import annotations

from typing import TYPE_CHECKING

from acvpmeta.domain.codec.module import ModuleCodec
from acvpmeta.domain.codec.vendor import AddressCodec, PersonCodec, VendorCodec
from acvpmeta.domain.identifier import is_pending, is_usable_id
from acvpmeta.domain.model import ModuleReferences
from acvpmeta.domain.poller import poll_record

from .engine import EntityState, ReconcileOutcome

if TYPE_CHECKING:
    from acvpmeta.domain.locking import DefinitionLockManager
    from acvpmeta.domain.model import ModuleRecord, VendorRecord

    from .engine import Reconciler


async def reconcile_vendor(
    reconciler: Reconciler,
    locks: DefinitionLockManager,
    record: VendorRecord,
    outcomes: list[ReconcileOutcome] | None = None,
) -> list[ReconcileOutcome]:
    outcomes = [] if outcomes is None else outcomes
    async with locks.hold(record):
        await poll_record(reconciler.registry, record)

        vendor_outcome = await reconciler.reconcile(record.vendor, VendorCodec())
        outcomes.append(vendor_outcome)

        urls = reconciler.registry.urls
        for child, codec in ((record.address, AddressCodec()), (record.person, PersonCodec(urls))):
            if is_usable_id(record.vendor.identifier):
                outcomes.append(await reconciler.reconcile(child, codec))
            elif vendor_outcome.aborted:
                outcomes.append(
                    reconciler.skip(
                        child,
                        EntityState.ABORTED,
                        f"vendor {record.vendor.label} was not reconciled",
                    )
                )
            else:
                outcomes.append(
                    reconciler.skip(
                        child,
                        EntityState.UNRESOLVED,
                        f"waiting for vendor {record.vendor.label}",
                    )
                )
    return outcomes


async def reconcile_module(
    reconciler: Reconciler,
    locks: DefinitionLockManager,
    record: ModuleRecord,
    vendor: VendorRecord,
    outcomes: list[ReconcileOutcome] | None = None,
) -> list[ReconcileOutcome]:
    """Reconcile the module against a snapshot of its vendor's identifiers."""

    outcomes = [] if outcomes is None else outcomes
    async with locks.hold(vendor):
        references = ModuleReferences(
            vendor_id=vendor.vendor.identifier,
            address_id=vendor.address.identifier,
            person_id=vendor.person.identifier,
        )

    module = record.module
    async with locks.hold(record):
        await poll_record(reconciler.registry, record)
        module.references = references

        if not is_usable_id(references.vendor_id):
            outcomes.append(
                reconciler.skip(
                    module,
                    EntityState.UNRESOLVED,
                    f"waiting for vendor {vendor.vendor.label}",
                )
            )
        elif is_pending(references.address_id) or is_pending(references.person_id):
            outcomes.append(
                reconciler.skip(
                    module,
                    EntityState.UNRESOLVED,
                    "waiting for vendor address or contact",
                )
            )
        else:
            codec = ModuleCodec(reconciler.registry.urls)
            outcomes.append(await reconciler.reconcile(module, codec))
    return outcomes
