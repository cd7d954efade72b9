"""Pydantic models describing the registry payloads.

Every payload travels inside a version envelope::

    [{"acvVersion": "1.0"}, {...payload...}]
"""

from __future__ import annotations

from typing import cast

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from acvpmeta.domain.errors import SchemaError
from acvpmeta.domain.ports import RegistryPage, RequestStatus, Submission

ACV_VERSION = "1.0"


def _blank_to_none(value: object) -> object:
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    return value


class RegistryBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class VersionMarker(RegistryBaseModel):
    acv_version: str = Field(alias="acvVersion")


class PageLinks(RegistryBaseModel):
    first: str | None = None
    next: str | None = None
    prev: str | None = None
    last: str | None = None

    _normalize_next = field_validator("next", mode="before")(_blank_to_none)


class PagePayload(RegistryBaseModel):
    total_count: int | None = Field(default=None, alias="totalCount")
    incomplete: bool = False
    links: PageLinks = Field(default_factory=PageLinks)
    data: list[dict[str, object]] = Field(default_factory=list)

    @property
    def continuation(self) -> str | None:
        return self.links.next if self.incomplete else None

    def to_page(self) -> RegistryPage:
        return RegistryPage(items=tuple(self.data), continuation=self.continuation)


class SubmissionPayload(RegistryBaseModel):
    url: str | None = None
    status: RequestStatus
    approved_url: str | None = Field(default=None, alias="approvedUrl")
    message: str | None = None

    _normalize_urls = field_validator("url", "approved_url", mode="before")(_blank_to_none)

    def to_submission(self) -> Submission:
        return Submission(
            status=self.status,
            request_url=self.url,
            approved_url=self.approved_url,
            message=self.message,
        )


class ErrorPayload(RegistryBaseModel):
    error: str | None = None
    message: str | None = None

    def describe(self) -> str | None:
        return self.error or self.message


def envelope(document: dict[str, object]) -> list[object]:
    return [{"acvVersion": ACV_VERSION}, document]


def unwrap_envelope(payload: object) -> object:
    """Strip the version marker; a bare object is returned as it is."""

    if isinstance(payload, dict):
        return cast(dict[str, object], payload)
    if not isinstance(payload, list) or not payload:
        raise SchemaError("Registry response is neither an object nor an envelope")

    items = cast(list[object], payload)
    try:
        VersionMarker.model_validate(items[0])
    except ValidationError as exc:
        raise SchemaError("Registry envelope lacks acvVersion", field="acvVersion") from exc
    if len(items) == 1:
        return {}
    if len(items) > 2:
        raise SchemaError(f"Registry envelope has {len(items)} elements, expected 2")
    return items[1]


def parse_document(payload: object) -> dict[str, object]:
    body = unwrap_envelope(payload)
    if not isinstance(body, dict):
        raise SchemaError("Registry document is not an object")
    return cast(dict[str, object], body)


def parse_page(payload: object) -> RegistryPage:
    body = unwrap_envelope(payload)
    try:
        return PagePayload.model_validate(body).to_page()
    except ValidationError as exc:
        raise SchemaError(f"Malformed registry page: {exc}", field=_first_field(exc)) from exc


def parse_submission(payload: object) -> Submission:
    body = unwrap_envelope(payload)
    try:
        return SubmissionPayload.model_validate(body).to_submission()
    except ValidationError as exc:
        raise SchemaError(f"Malformed request status: {exc}", field=_first_field(exc)) from exc


def parse_error(payload: object) -> str | None:
    try:
        body = unwrap_envelope(payload)
        return ErrorPayload.model_validate(body).describe()
    except (SchemaError, ValidationError):
        return None


def _first_field(exc: ValidationError) -> str | None:
    errors = exc.errors()
    if not errors or not errors[0]["loc"]:
        return None
    return str(errors[0]["loc"][0])
