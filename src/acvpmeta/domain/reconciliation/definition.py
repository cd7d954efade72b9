"""One job per module definition: vendor tree, environment tree, module."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

from acvpmeta.domain.errors import ConfigError, PersistError, ReconciliationError

from .environment import reconcile_environment
from .vendor import reconcile_module, reconcile_vendor

if TYPE_CHECKING:
    from collections.abc import Iterable

    from acvpmeta.domain.locking import DefinitionLockManager
    from acvpmeta.domain.model import ModuleDefinition

    from .engine import ReconcileOutcome, Reconciler

log = getLogger(__name__)


@dataclass(slots=True, kw_only=True)
class DefinitionReport:
    label: str
    outcomes: list[ReconcileOutcome] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def aborted(self) -> bool:
        return any(outcome.aborted for outcome in self.outcomes)

    @property
    def failed(self) -> bool:
        return self.aborted or bool(self.errors)

    @property
    def mutations(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.mutated)


async def reconcile_definition(
    reconciler: Reconciler,
    locks: DefinitionLockManager,
    definition: ModuleDefinition,
) -> DefinitionReport:
    """Reconcile one module definition.

    A failure to persist is reported and the job continues with the next record;
    a record that cannot be located ends the job.
    """

    report = DefinitionReport(label=definition.label)
    stages = (
        lambda: reconcile_vendor(reconciler, locks, definition.vendor, report.outcomes),
        lambda: reconcile_environment(reconciler, locks, definition.environment, report.outcomes),
        lambda: reconcile_module(
            reconciler, locks, definition.module, definition.vendor, report.outcomes
        ),
    )
    for stage in stages:
        try:
            await stage()
        except PersistError as exc:
            report.errors.append(str(exc))
        except ConfigError as exc:
            log.error("Definition %s: %s", definition.label, exc)
            report.errors.append(str(exc))
            break

    for outcome in report.outcomes:
        log.info("%s: %s", definition.label, outcome.describe())
    return report


async def reconcile_definitions(
    reconciler: Reconciler,
    locks: DefinitionLockManager,
    definitions: Iterable[ModuleDefinition],
) -> list[DefinitionReport]:
    """Run one job per definition concurrently; one failing job leaves the others be."""

    definitions = list(definitions)
    results = await asyncio.gather(
        *(reconcile_definition(reconciler, locks, definition) for definition in definitions),
        return_exceptions=True,
    )

    reports: list[DefinitionReport] = []
    unexpected: list[BaseException] = []
    for definition, result in zip(definitions, results, strict=True):
        if isinstance(result, ReconciliationError):
            reports.append(DefinitionReport(label=definition.label, errors=[str(result)]))
        elif isinstance(result, BaseException):
            unexpected.append(result)
        else:
            reports.append(result)
    if unexpected:
        raise unexpected[0]
    return reports
