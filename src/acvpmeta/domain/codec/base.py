"""Shared builder/matcher machinery.

A codec turns a local entity into the canonical registry document (``build``) and
compares a registry document back against the entity (``compare``). ``match``
combines the comparison with the identifier hand-over: only a full match writes the
registry id into the entity.
"""

from __future__ import annotations

from enum import StrEnum
from logging import getLogger
from typing import TYPE_CHECKING, Protocol

from acvpmeta.domain.errors import SchemaError
from acvpmeta.domain.identifier import id_from_url

if TYPE_CHECKING:
    from collections.abc import Iterable

    from acvpmeta.domain.model import EntityKind
    from acvpmeta.domain.ports import Document

log = getLogger(__name__)


class MatchResult(StrEnum):
    MATCH = "match"
    MISMATCH = "mismatch"
    MISSING = "missing"


class EntityCodec[E](Protocol):
    kind: EntityKind

    def collection(self, entity: E) -> str: ...

    def build(self, entity: E) -> Document | None: ...

    def compare(self, entity: E, document: Document) -> MatchResult: ...

    def search_filter(self, entity: E) -> dict[str, str] | None: ...


class Identified(Protocol):
    identifier: int


def get_string(document: Document, name: str) -> str | None:
    """Return a string field; ``None`` when absent or JSON null."""

    value = document.get(name)
    if value is None:
        return None
    if not isinstance(value, str):
        raise SchemaError(
            f"Field {name} has type {type(value).__name__}, expected string",
            field=name,
        )
    return value


def get_list(document: Document, name: str) -> list[object] | None:
    value = document.get(name)
    if value is None:
        return None
    if not isinstance(value, list):
        raise SchemaError(
            f"Field {name} has type {type(value).__name__}, expected array",
            field=name,
        )
    return value


def compare_fields(
    document: Document,
    expected: Iterable[tuple[str, str | None]],
) -> MatchResult:
    """Compare ``(field, local value)`` pairs in order, stopping at the first difference.

    Local ``None`` means the field is not declared and is skipped.
    """

    for name, local in expected:
        if local is None:
            continue
        remote = get_string(document, name)
        if remote is None:
            log.debug("Registry document lacks field %s", name)
            return MatchResult.MISSING
        if remote != local:
            log.debug("Field %s differs: local %r, registry %r", name, local, remote)
            return MatchResult.MISMATCH
    return MatchResult.MATCH


def url_id(document: Document, name: str = "url") -> int:
    url = get_string(document, name)
    if url is None:
        raise SchemaError(f"Registry document lacks {name}", field=name)
    return id_from_url(url)


def match[E: Identified](codec: EntityCodec[E], entity: E, document: Document) -> MatchResult:
    """Compare and, on a match, adopt the registry id from the document's ``url``."""

    result = codec.compare(entity, document)
    if result is MatchResult.MATCH:
        entity.identifier = url_id(document)
    return result
