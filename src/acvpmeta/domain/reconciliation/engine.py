"""Per-entity reconciliation: locate, decide, execute, write the identifier back.

The caller holds the lock of the record owning the entity for the whole call.
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import StrEnum
from logging import getLogger
from typing import TYPE_CHECKING

from acvpmeta.domain.codec.base import MatchResult, url_id
from acvpmeta.domain.codec.base import match as match_document
from acvpmeta.domain.errors import (
    NetworkError,
    ReconciliationAborted,
    RegistryAPIError,
    SchemaError,
)
from acvpmeta.domain.identifier import (
    describe,
    is_open_request,
    is_rejected,
    is_usable_id,
    strip_status,
)
from acvpmeta.domain.poller import identifier_from_submission
from acvpmeta.domain.policy import (
    ReconcileOptions,
    SearchOutcome,
    Verb,
    requires_confirmation,
    resolve_verb,
)
from acvpmeta.domain.search import search

if TYPE_CHECKING:
    from acvpmeta.domain.codec.base import EntityCodec
    from acvpmeta.domain.model import Entity, EntityKind
    from acvpmeta.domain.ports import Confirm, Document, RegistryGateway

log = getLogger(__name__)

type Matcher = Callable[[Document], MatchResult | Awaitable[MatchResult]]


class EntityState(StrEnum):
    UNRESOLVED = "unresolved"
    SEARCHING = "searching"
    DECIDING = "deciding"
    EXECUTING = "executing"
    RESOLVED = "resolved"
    ABORTED = "aborted"
    ABSENT = "absent"


@dataclass(slots=True, kw_only=True)
class ReconcileOutcome:
    kind: EntityKind
    label: str
    state: EntityState = EntityState.UNRESOLVED
    verb: Verb = Verb.NONE
    identifier: int = 0
    reason: str | None = None
    history: list[EntityState] = field(default_factory=lambda: [EntityState.UNRESOLVED])

    def advance(self, state: EntityState) -> None:
        self.state = state
        self.history.append(state)

    @property
    def aborted(self) -> bool:
        return self.state is EntityState.ABORTED

    @property
    def settled(self) -> bool:
        """Resolved with a usable id, or nothing to register."""

        if self.state is EntityState.ABSENT:
            return True
        return self.state is EntityState.RESOLVED and is_usable_id(self.identifier)

    @property
    def mutated(self) -> bool:
        return self.verb is not Verb.NONE and self.state is EntityState.RESOLVED

    def describe(self) -> str:
        text = f"{self.kind} {self.label}: {self.state}"
        if self.verb is not Verb.NONE:
            text += f" ({self.verb})"
        if self.identifier:
            text += f", id {describe(self.identifier)}"
        if self.reason:
            text += f" - {self.reason}"
        return text


def _deny(prompt: str) -> bool:  # noqa: ARG001
    return False


class Reconciler:
    """Runs one entity through the state machine against ``registry``."""

    def __init__(
        self,
        registry: RegistryGateway,
        options: ReconcileOptions | None = None,
        confirm: Confirm | None = None,
    ) -> None:
        self.registry = registry
        self.options = options or ReconcileOptions()
        self._confirm = confirm or _deny
        self._prompt_lock = asyncio.Lock()
        self._documents: dict[tuple[str, int], Document] = {}

    async def fetch_cached(self, collection: str, identifier: int) -> Document:
        """Fetch a registry document once per run."""

        key = (collection, identifier)
        document = self._documents.get(key)
        if document is None:
            document = await self.registry.fetch(collection, identifier)
            self._documents[key] = document
        return document

    def skip(self, entity: Entity, state: EntityState, reason: str) -> ReconcileOutcome:
        outcome = ReconcileOutcome(
            kind=entity.kind,
            label=entity.label,
            identifier=entity.identifier,
        )
        if state is not EntityState.UNRESOLVED:
            outcome.advance(state)
        outcome.reason = reason
        log.info("Skipping %s %s: %s", entity.kind, entity.label, reason)
        return outcome

    async def reconcile[E: Entity](
        self,
        entity: E,
        codec: EntityCodec[E],
        matcher: Matcher | None = None,
    ) -> ReconcileOutcome:
        outcome = ReconcileOutcome(
            kind=entity.kind,
            label=entity.label,
            identifier=entity.identifier,
        )

        document = codec.build(entity)
        if document is None:
            outcome.advance(EntityState.ABSENT)
            outcome.reason = "nothing to register"
            log.debug("No %s declared", entity.kind)
            return outcome

        if is_open_request(entity.identifier):
            outcome.reason = f"waiting for {describe(entity.identifier)}"
            log.info("%s %s is %s", entity.kind, entity.label, outcome.reason)
            return outcome

        if is_rejected(entity.identifier):
            log.info(
                "Registration of %s %s was rejected (%s), starting over",
                entity.kind,
                entity.label,
                describe(entity.identifier),
            )
            entity.identifier = 0

        if is_usable_id(entity.identifier) and not self.options.revalidate:
            outcome.advance(EntityState.RESOLVED)
            outcome.identifier = entity.identifier
            log.debug("%s %s known as %s", entity.kind, entity.label, entity.identifier)
            return outcome

        try:
            outcome.advance(EntityState.SEARCHING)
            found, mismatch = await self._locate(entity, codec, matcher)

            outcome.advance(EntityState.DECIDING)
            verb = await self._decide(
                SearchOutcome.FOUND if found else SearchOutcome.NOT_FOUND,
                mismatch=mismatch,
                label=f"{entity.kind} {entity.label}",
            )
            outcome.verb = verb
            if verb is Verb.NONE:
                return self._finish_unchanged(entity, outcome, found=found, mismatch=mismatch)

            outcome.advance(EntityState.EXECUTING)
            await self._execute(entity, codec, verb, document)
        except ReconciliationAborted as exc:
            outcome.advance(EntityState.ABORTED)
            outcome.reason = str(exc)
            log.info("%s", exc)
        except NetworkError as exc:
            outcome.advance(EntityState.ABORTED)
            outcome.reason = f"registry unavailable: {exc}"
            log.warning("Reconciling %s %s failed: %s", entity.kind, entity.label, exc)
        except SchemaError as exc:
            outcome.advance(EntityState.ABORTED)
            outcome.reason = f"unexpected registry data: {exc}"
            log.warning("Reconciling %s %s failed: %s", entity.kind, entity.label, exc)
        else:
            outcome.advance(EntityState.RESOLVED)
        outcome.identifier = entity.identifier
        return outcome

    async def _decide(self, search_outcome: SearchOutcome, *, mismatch: bool, label: str) -> Verb:
        if not requires_confirmation(search_outcome, mismatch=mismatch, options=self.options):
            return resolve_verb(
                search_outcome,
                mismatch=mismatch,
                options=self.options,
                confirm=self._confirm,
                label=label,
            )
        # Prompts block on the terminal; one at a time, off the event loop.
        async with self._prompt_lock:
            return await asyncio.to_thread(
                resolve_verb,
                search_outcome,
                mismatch=mismatch,
                options=self.options,
                confirm=self._confirm,
                label=label,
            )

    async def _locate[E: Entity](
        self,
        entity: E,
        codec: EntityCodec[E],
        matcher: Matcher | None,
    ) -> tuple[bool, bool]:
        """Return ``(found, mismatch)``; a match writes the registry id into ``entity``."""

        collection = codec.collection(entity)
        if is_usable_id(entity.identifier):
            try:
                document = await self.registry.fetch(collection, entity.identifier)
            except RegistryAPIError as exc:
                if not exc.not_found:
                    raise
                log.info(
                    "%s %s no longer exists in the registry, searching again",
                    entity.kind,
                    entity.label,
                )
                entity.identifier = 0
            else:
                verdict = await _evaluate(matcher, codec, entity, document)
                log.debug("%s %s revalidated: %s", entity.kind, entity.label, verdict)
                return True, verdict is not MatchResult.MATCH

        async def match_fn(document: Document) -> MatchResult:
            if matcher is None:
                return match_document(codec, entity, document)
            verdict = await _evaluate(matcher, codec, entity, document)
            if verdict is MatchResult.MATCH:
                entity.identifier = url_id(document)
            return verdict

        result = await search(self.registry, collection, codec.search_filter(entity), match_fn)
        if result.found:
            log.info("Found %s %s as %s", entity.kind, entity.label, entity.identifier)
        return result.found, False

    async def _execute[E: Entity](
        self,
        entity: E,
        codec: EntityCodec[E],
        verb: Verb,
        document: Document,
    ) -> None:
        collection = codec.collection(entity)
        log.debug("%s %s document: %s", verb, entity.kind, document)
        match verb:
            case Verb.CREATE:
                submission = await self.registry.create(collection, document)
                entity.identifier = identifier_from_submission(submission)
            case Verb.UPDATE:
                current = strip_status(entity.identifier)
                submission = await self.registry.update(collection, current, document)
                entity.identifier = identifier_from_submission(submission, current=current)
            case Verb.DELETE:
                await self.registry.delete(collection, strip_status(entity.identifier))
                entity.identifier = 0
            case _:
                raise ValueError(f"Nothing to execute for {verb}")
        log.info(
            "%s %s: %s, identifier now %s",
            entity.kind,
            entity.label,
            verb,
            describe(entity.identifier),
        )

    @staticmethod
    def _finish_unchanged(
        entity: Entity,
        outcome: ReconcileOutcome,
        *,
        found: bool,
        mismatch: bool,
    ) -> ReconcileOutcome:
        outcome.identifier = entity.identifier
        if found:
            outcome.advance(EntityState.RESOLVED)
            if mismatch:
                outcome.reason = "differs from registry (show only)"
        else:
            outcome.advance(EntityState.UNRESOLVED)
            outcome.reason = "not registered (show only)"
        return outcome


async def _evaluate[E: Entity](
    matcher: Matcher | None,
    codec: EntityCodec[E],
    entity: E,
    document: Document,
) -> MatchResult:
    verdict = matcher(document) if matcher is not None else codec.compare(entity, document)
    if inspect.isawaitable(verdict):
        verdict = await verdict
    return verdict
