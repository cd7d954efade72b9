"""Application orchestration entry points."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING, Protocol

from acvpmeta.adapters.definitions import JsonDefinitionStore
from acvpmeta.adapters.registry import RegistryClient
from acvpmeta.config import CacheConfig, get_registry_config, get_storage_config
from acvpmeta.domain.locking import DefinitionLockManager
from acvpmeta.domain.poller import DEFAULT_POLL_ATTEMPTS, poll_until_settled
from acvpmeta.domain.policy import ReconcileOptions
from acvpmeta.domain.reconciliation import Reconciler, reconcile_definitions

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence
    from pathlib import Path
    from types import TracebackType

    from acvpmeta.config import RegistryConfig
    from acvpmeta.domain.model import DefinitionRecord
    from acvpmeta.domain.ports import Confirm, RegistryGateway
    from acvpmeta.domain.reconciliation import DefinitionReport

log = getLogger(__name__)


class RegistrySession(Protocol):
    async def __aenter__(self) -> RegistryGateway: ...

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None: ...


type RegistryFactory = Callable[[RegistryConfig], RegistrySession]


def _default_registry_factory(config: RegistryConfig) -> RegistrySession:
    return RegistryClient(config=config)


@dataclass(slots=True)
class SyncResult:
    reports: list[DefinitionReport] = field(default_factory=list)

    @property
    def failed(self) -> bool:
        return any(report.failed for report in self.reports)

    @property
    def mutations(self) -> int:
        return sum(report.mutations for report in self.reports)


@dataclass(slots=True)
class PollSummary:
    polled: int = 0
    waiting: list[str] = field(default_factory=list)

    @property
    def settled(self) -> bool:
        return not self.waiting


def sync_definitions(
    *,
    definitions_dir: Path | None = None,
    modules: Sequence[str] | None = None,
    options: ReconcileOptions | None = None,
    confirm: Confirm | None = None,
    registry_config: RegistryConfig | None = None,
    registry_factory: RegistryFactory | None = None,
) -> SyncResult:
    """Reconcile the selected module definitions with the registry."""

    return asyncio.run(
        _sync_definitions_async(
            definitions_dir=definitions_dir,
            modules=modules,
            options=options or ReconcileOptions(),
            confirm=confirm,
            registry_config=registry_config,
            registry_factory=registry_factory or _default_registry_factory,
        )
    )


def poll_requests(
    *,
    definitions_dir: Path | None = None,
    modules: Sequence[str] | None = None,
    wait: float | None = None,
    attempts: int = DEFAULT_POLL_ATTEMPTS,
    registry_config: RegistryConfig | None = None,
    registry_factory: RegistryFactory | None = None,
) -> PollSummary:
    """Ask the registry about open requests; with ``wait`` keep asking until settled."""

    return asyncio.run(
        _poll_requests_async(
            definitions_dir=definitions_dir,
            modules=modules,
            wait=wait,
            attempts=attempts,
            registry_config=registry_config,
            registry_factory=registry_factory or _default_registry_factory,
        )
    )


async def _sync_definitions_async(
    *,
    definitions_dir: Path | None,
    modules: Sequence[str] | None,
    options: ReconcileOptions,
    confirm: Confirm | None,
    registry_config: RegistryConfig | None,
    registry_factory: RegistryFactory,
) -> SyncResult:
    store = JsonDefinitionStore(get_storage_config(definitions_dir).resolve_definitions_dir())
    definitions = store.load(modules)
    config = registry_config or get_registry_config()
    if options.show_only:
        config = config.with_cache(CacheConfig())

    log.info(
        "Starting reconciliation of %s definitions: register=%s, delete=%s, "
        "show_only=%s, revalidate=%s",
        len(definitions),
        options.auto_register,
        options.auto_delete_on_mismatch,
        options.show_only,
        options.revalidate,
    )
    locks = DefinitionLockManager(store)
    async with registry_factory(config) as registry:
        reconciler = Reconciler(registry, options, confirm)
        reports = await reconcile_definitions(reconciler, locks, definitions)

    result = SyncResult(reports=reports)
    log.info(
        "Finished reconciliation: mutations=%s, failed=%s",
        result.mutations,
        [report.label for report in reports if report.failed],
    )
    return result


async def _poll_requests_async(
    *,
    definitions_dir: Path | None,
    modules: Sequence[str] | None,
    wait: float | None,
    attempts: int,
    registry_config: RegistryConfig | None,
    registry_factory: RegistryFactory,
) -> PollSummary:
    store = JsonDefinitionStore(get_storage_config(definitions_dir).resolve_definitions_dir())
    definitions = store.load(modules)
    records: list[DefinitionRecord] = []
    for definition in definitions:
        for record in definition.records():
            if all(record is not known for known in records):
                records.append(record)

    config = registry_config or get_registry_config()
    locks = DefinitionLockManager(store)
    async with registry_factory(config) as registry:
        waiting = await poll_until_settled(
            registry,
            locks,
            records,
            interval=wait or 0.0,
            attempts=attempts if wait is not None else 1,
        )
    return PollSummary(
        polled=len(records),
        waiting=[record.record_key or "<memory>" for record in waiting],
    )
