"""Ports the reconciliation core consumes from adapters."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .model import DefinitionRecord

type Document = dict[str, object]
type Confirm = Callable[[str], bool]


class RequestStatus(StrEnum):
    INITIAL = "initial"
    PROCESSING = "processing"
    APPROVED = "approved"
    REJECTED = "rejected"


@dataclass(slots=True, frozen=True)
class RegistryPage:
    """One page of a registry collection listing."""

    items: tuple[Document, ...]
    continuation: str | None = None


@dataclass(slots=True, frozen=True)
class Submission:
    """Registry answer to a create/update/delete or request-status call."""

    status: RequestStatus
    request_url: str | None = None
    approved_url: str | None = None
    message: str | None = None


@dataclass(slots=True, frozen=True)
class UrlScheme:
    """Builds the reference URLs embedded in documents, e.g. ``/acvp/v1/oes/3``."""

    api_prefix: str = "/acvp/v1"

    def collection(self, collection: str) -> str:
        return f"{self.api_prefix.rstrip('/')}/{collection.strip('/')}"

    def reference(self, collection: str, identifier: int) -> str:
        return f"{self.collection(collection)}/{identifier}"


@runtime_checkable
class RegistryGateway(Protocol):
    """Network surface of the validation registry."""

    urls: UrlScheme

    async def list_page(
        self,
        collection: str,
        *,
        filters: Mapping[str, str] | None = None,
        continuation: str | None = None,
    ) -> RegistryPage: ...

    async def fetch(self, collection: str, identifier: int) -> Document: ...

    async def create(self, collection: str, document: Document) -> Submission: ...

    async def update(self, collection: str, identifier: int, document: Document) -> Submission: ...

    async def delete(self, collection: str, identifier: int) -> Submission: ...

    async def request_status(self, request_id: int) -> Submission: ...


@runtime_checkable
class DefinitionStore(Protocol):
    """Durable home of definition records."""

    def locate(self, record: DefinitionRecord) -> str:
        """Return a stable key for ``record`` or raise ``ConfigError``."""
        ...

    def persist(self, record: DefinitionRecord) -> None:
        """Write the record's identifiers back; raises ``OSError`` on failure."""
        ...
