"""Follow up on registration requests the registry processes asynchronously.

A create/update answer may only name a request (``/acvp/v1/requests/17``). The
entity then stores the request id tagged with a status flag until a later poll
reports the final registry id.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from .errors import NetworkError, SchemaError
from .identifier import (
    PENDING_PROCESSING,
    PENDING_SUBMISSION,
    REJECTED,
    describe,
    id_from_url,
    is_open_request,
    is_usable_id,
    mark,
    strip_status,
)
from .ports import RequestStatus

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from .locking import DefinitionLockManager
    from .model import DefinitionRecord, Entity
    from .ports import RegistryGateway, Submission

log = getLogger(__name__)

DEFAULT_POLL_INTERVAL = 30.0
DEFAULT_POLL_ATTEMPTS = 10


@dataclass(slots=True, frozen=True)
class PollResult:
    label: str
    before: int
    after: int

    @property
    def changed(self) -> bool:
        return self.before != self.after


def identifier_from_submission(submission: Submission, *, current: int = 0) -> int:
    """Translate a registry answer into the identifier to store.

    ``current`` is kept for approved answers without ``approvedUrl``, which the
    registry sends for updates of an existing entry.
    """

    if submission.status is RequestStatus.APPROVED:
        if submission.approved_url is not None:
            return id_from_url(submission.approved_url)
        if is_usable_id(current):
            return current
        raise SchemaError("Approved request lacks approvedUrl", field="approvedUrl")

    if submission.request_url is not None:
        request_id = id_from_url(submission.request_url)
    elif current and not is_usable_id(current):
        request_id = strip_status(current)
    else:
        raise SchemaError("Request answer lacks url", field="url")

    match submission.status:
        case RequestStatus.INITIAL:
            return mark(request_id, PENDING_SUBMISSION)
        case RequestStatus.PROCESSING:
            return mark(request_id, PENDING_PROCESSING)
        case _:
            if submission.message:
                log.warning("Request %s rejected: %s", request_id, submission.message)
            return mark(request_id, REJECTED)


async def poll_identifier(registry: RegistryGateway, identifier: int) -> int:
    """Ask the registry about the request behind ``identifier``.

    Identifiers without an open request are returned as they are, without any
    network traffic.
    """

    if not is_open_request(identifier):
        return identifier
    request_id = strip_status(identifier)
    submission = await registry.request_status(request_id)
    return identifier_from_submission(submission, current=identifier)


async def poll_entity(registry: RegistryGateway, entity: Entity) -> PollResult:
    before = entity.identifier
    after = await poll_identifier(registry, before)
    if after != before:
        log.info("%s %s: %s -> %s", entity.kind, entity.label, describe(before), describe(after))
        entity.identifier = after
    return PollResult(label=entity.label, before=before, after=after)


async def poll_record(registry: RegistryGateway, record: DefinitionRecord) -> list[PollResult]:
    """Poll every open request of ``record``; the caller holds the record lock.

    A failing status request leaves that identifier untouched for the next run.
    """

    results: list[PollResult] = []
    for entity in record.entities():
        if not is_open_request(entity.identifier):
            continue
        try:
            results.append(await poll_entity(registry, entity))
        except (NetworkError, SchemaError) as exc:
            log.warning("Could not poll %s %s: %s", entity.kind, entity.label, exc)
    return results


def has_open_requests(record: DefinitionRecord) -> bool:
    return any(is_open_request(entity.identifier) for entity in record.entities())


async def poll_until_settled(
    registry: RegistryGateway,
    locks: DefinitionLockManager,
    records: Iterable[DefinitionRecord],
    *,
    interval: float = DEFAULT_POLL_INTERVAL,
    attempts: int = DEFAULT_POLL_ATTEMPTS,
) -> Sequence[DefinitionRecord]:
    """Poll until no record has an open request or ``attempts`` rounds are used up.

    Returns the records still waiting. The caller may cancel while sleeping between
    rounds; a round that already started runs to completion and persists.
    """

    waiting = [record for record in records if has_open_requests(record)]
    for attempt in range(1, attempts + 1):
        if not waiting:
            break
        log.debug("Poll round %s/%s for %s definitions", attempt, attempts, len(waiting))
        await asyncio.shield(_poll_round(registry, locks, waiting))
        waiting = [record for record in waiting if has_open_requests(record)]
        if waiting and attempt < attempts:
            await asyncio.sleep(interval)
    if waiting:
        log.info("%s definitions still wait for the registry", len(waiting))
    return waiting


async def _poll_round(
    registry: RegistryGateway,
    locks: DefinitionLockManager,
    records: Sequence[DefinitionRecord],
) -> None:
    for record in records:
        async with locks.hold(record):
            await poll_record(registry, record)
