"""HTTP client for the validation registry."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING, Unpack

import httpx

from acvpmeta.adapters.http_resilience import ResilientClient
from acvpmeta.domain.errors import NetworkError, RegistryAPIError, SchemaError
from acvpmeta.domain.ports import RegistryPage, RequestStatus, Submission, UrlScheme

from .schema import envelope, parse_document, parse_error, parse_page, parse_submission

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping
    from types import TracebackType

    from acvpmeta.adapters.http_resilience import RequestOptions
    from acvpmeta.config.http_resilience import ResilienceConfig
    from acvpmeta.config.registry import RegistryConfig
    from acvpmeta.domain.ports import Document

log = getLogger(__name__)

REQUEST_COLLECTION = "requests"


class RegistryClient:
    """Registry gateway over one resilient HTTP session.

    Use as an async context manager; the session is opened on enter and closed on
    exit.
    """

    def __init__(
        self,
        *,
        config: RegistryConfig,
        client_factory: Callable[[ResilienceConfig], ResilientClient] | None = None,
    ) -> None:
        self._config = config
        self._client_factory = client_factory or ResilientClient
        self._client: ResilientClient | None = None
        self.urls = UrlScheme(api_prefix=config.api_prefix)

    async def __aenter__(self) -> RegistryClient:
        self._client = self._client_factory(self._config.resilience)
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def list_page(
        self,
        collection: str,
        *,
        filters: Mapping[str, str] | None = None,
        continuation: str | None = None,
    ) -> RegistryPage:
        if continuation is not None:
            payload = await self._request("GET", continuation)
        else:
            params = dict(filters) if filters else None
            payload = await self._request("GET", self.urls.collection(collection), params=params)
        return parse_page(payload)

    async def fetch(self, collection: str, identifier: int) -> Document:
        payload = await self._request("GET", self.urls.reference(collection, identifier))
        return parse_document(payload)

    async def create(self, collection: str, document: Document) -> Submission:
        payload = await self._request(
            "POST",
            self.urls.collection(collection),
            json=envelope(document),
        )
        return parse_submission(payload)

    async def update(self, collection: str, identifier: int, document: Document) -> Submission:
        payload = await self._request(
            "PUT",
            self.urls.reference(collection, identifier),
            json=envelope(document),
        )
        return parse_submission(payload)

    async def delete(self, collection: str, identifier: int) -> Submission:
        payload = await self._request("DELETE", self.urls.reference(collection, identifier))
        if payload is None:
            return Submission(status=RequestStatus.APPROVED)
        return parse_submission(payload)

    async def request_status(self, request_id: int) -> Submission:
        payload = await self._request("GET", self.urls.reference(REQUEST_COLLECTION, request_id))
        return parse_submission(payload)

    async def _request(
        self,
        method: str,
        url: str,
        **kwargs: Unpack[RequestOptions],
    ) -> object | None:
        if self._client is None:
            raise RuntimeError("RegistryClient used outside of its async context")

        headers = {"Authorization": f"Bearer {self._config.access_token}"}
        log.debug("%s %s", method, url)
        try:
            response = await self._client.request(method, url, headers=headers, **kwargs)
        except httpx.HTTPError as exc:
            raise NetworkError(f"{method} {url} failed: {exc}") from exc

        if response.is_error:
            payload = _json_or_none(response)
            detail = parse_error(payload) if payload is not None else None
            message = f"{method} {url} answered {response.status_code}"
            if detail:
                message = f"{message}: {detail}"
            log.debug("Registry error: %s", message)
            raise RegistryAPIError(message, status_code=response.status_code)

        if not response.content:
            return None
        payload = _json_or_none(response)
        if payload is None:
            raise SchemaError(f"{method} {url} returned a body that is not JSON")
        return payload


def _json_or_none(response: httpx.Response) -> object | None:
    try:
        return response.json()
    except ValueError:
        return None
