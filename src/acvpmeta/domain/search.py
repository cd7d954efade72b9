"""Paginated scan of a registry collection for the first matching element."""

from __future__ import annotations

import inspect
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from .codec.base import MatchResult
from .policy import SearchOutcome

if TYPE_CHECKING:
    from .ports import Document, RegistryGateway

log = getLogger(__name__)

type MatchFn = Callable[[Document], MatchResult | Awaitable[MatchResult]]


@dataclass(slots=True, frozen=True)
class SearchResult:
    outcome: SearchOutcome
    document: Document | None = None
    pages: int = 0
    inspected: int = 0

    @property
    def found(self) -> bool:
        return self.outcome is SearchOutcome.FOUND


async def search(
    registry: RegistryGateway,
    collection: str,
    filters: Mapping[str, str] | None,
    match_fn: MatchFn,
) -> SearchResult:
    """Walk ``collection`` page by page until ``match_fn`` reports a match.

    The server-side ``filters`` only shrink the candidate set; ``match_fn`` decides.
    The continuation handed out by each page is forwarded verbatim. Any
    ``NetworkError`` aborts the whole search.
    """

    continuation: str | None = None
    pages = 0
    inspected = 0
    while True:
        page = await registry.list_page(
            collection,
            filters=filters if continuation is None else None,
            continuation=continuation,
        )
        pages += 1
        for document in page.items:
            inspected += 1
            verdict = match_fn(document)
            if inspect.isawaitable(verdict):
                verdict = await verdict
            if verdict is MatchResult.MATCH:
                log.debug("Match in %s after %s candidates", collection, inspected)
                return SearchResult(
                    outcome=SearchOutcome.FOUND,
                    document=document,
                    pages=pages,
                    inspected=inspected,
                )
        if page.continuation is None:
            break
        continuation = page.continuation

    log.debug("No match in %s (%s pages, %s candidates)", collection, pages, inspected)
    return SearchResult(outcome=SearchOutcome.NOT_FOUND, pages=pages, inspected=inspected)
