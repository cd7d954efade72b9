"""Operational environment: dependencies first, then the environment itself."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from acvpmeta.domain.codec.base import MatchResult, get_string
from acvpmeta.domain.codec.dependency import DEPENDENCY_COLLECTION, codec_for
from acvpmeta.domain.codec.environment import EnvironmentCodec, has_inconsistent_software
from acvpmeta.domain.errors import RegistryAPIError
from acvpmeta.domain.identifier import is_open_request
from acvpmeta.domain.model import ProcessorDependency
from acvpmeta.domain.policy import Verb
from acvpmeta.domain.poller import poll_record

from .engine import EntityState, ReconcileOutcome

if TYPE_CHECKING:
    from acvpmeta.domain.locking import DefinitionLockManager
    from acvpmeta.domain.model import EnvironmentRecord, OperationalEnvironment
    from acvpmeta.domain.ports import Document

    from .engine import Matcher, Reconciler

log = getLogger(__name__)


def environment_matcher(
    reconciler: Reconciler,
    codec: EnvironmentCodec,
    environment: OperationalEnvironment,
) -> Matcher:
    """Matcher that resolves ``dependencyUrls`` we do not know locally.

    Candidates whose name already differs are rejected without network traffic.
    """

    async def matcher(document: Document) -> MatchResult:
        name = get_string(document, "name")
        if name is None:
            return MatchResult.MISSING
        if name != environment.name:
            return MatchResult.MISMATCH

        resolved: dict[int, Document] = {}
        for dep_id in codec.unresolved_references(environment, document):
            try:
                resolved[dep_id] = await reconciler.fetch_cached(DEPENDENCY_COLLECTION, dep_id)
            except RegistryAPIError as exc:
                if not exc.not_found:
                    raise
                log.debug("Referenced dependency %s does not exist", dep_id)
        return codec.compare(environment, document, resolved)

    return matcher


async def reconcile_environment(
    reconciler: Reconciler,
    locks: DefinitionLockManager,
    record: EnvironmentRecord,
    outcomes: list[ReconcileOutcome] | None = None,
) -> list[ReconcileOutcome]:
    """Reconcile processor, software and the environment under the record lock.

    Outcomes are appended to ``outcomes`` as they are decided, so they survive a
    failure to persist on release.
    """

    outcomes = [] if outcomes is None else outcomes
    environment = record.environment
    async with locks.hold(record):
        await poll_record(reconciler.registry, record)

        if has_inconsistent_software(environment):
            log.warning(
                "Software dependency id %s is set but no environment name is declared; "
                "ignoring the software dependency of %s",
                environment.software.identifier if environment.software else 0,
                environment.label,
            )

        children: list[ReconcileOutcome] = []
        for dep in (environment.processor, environment.software):
            if dep is None:
                continue
            child = await reconciler.reconcile(dep, codec_for(dep))
            children.append(child)
            outcomes.append(child)
            if isinstance(dep, ProcessorDependency) and child.verb is Verb.UPDATE and child.mutated:
                log.info(
                    "Processor dependency %s was updated; run the reconciliation of %s "
                    "again once the update is approved",
                    dep.label,
                    environment.label,
                )

        outcomes.append(await _reconcile_parent(reconciler, environment, children))
    return outcomes


async def _reconcile_parent(
    reconciler: Reconciler,
    environment: OperationalEnvironment,
    children: list[ReconcileOutcome],
) -> ReconcileOutcome:
    aborted = [child for child in children if child.aborted]
    if aborted:
        return reconciler.skip(
            environment,
            EntityState.ABORTED,
            f"dependency {aborted[0].label} was not reconciled",
        )

    waiting = [
        dep
        for dep in environment.dependencies()
        if is_open_request(dep.identifier) and codec_for(dep).build(dep) is not None
    ]
    if waiting:
        return reconciler.skip(
            environment,
            EntityState.UNRESOLVED,
            f"waiting for dependency {waiting[0].label}",
        )

    unsettled = [child for child in children if not child.settled]
    if unsettled:
        return reconciler.skip(
            environment,
            EntityState.UNRESOLVED,
            f"dependency {unsettled[0].label} is not registered",
        )

    codec = EnvironmentCodec(reconciler.registry.urls)
    return await reconciler.reconcile(
        environment,
        codec,
        matcher=environment_matcher(reconciler, codec, environment),
    )
