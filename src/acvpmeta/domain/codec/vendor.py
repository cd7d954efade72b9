"""Builders and matchers for vendors, their addresses and contact persons."""

from __future__ import annotations

from typing import TYPE_CHECKING

from acvpmeta.domain.errors import SchemaError
from acvpmeta.domain.identifier import id_from_url, is_usable_id
from acvpmeta.domain.model import Address, EntityKind, Person, Vendor

from .base import MatchResult, compare_fields, get_list, get_string

if TYPE_CHECKING:
    from acvpmeta.domain.ports import Document, UrlScheme

VENDOR_COLLECTION = "vendors"
PERSON_COLLECTION = "persons"


class VendorCodec:
    kind = EntityKind.VENDOR

    def collection(self, entity: Vendor) -> str:  # noqa: ARG002
        return VENDOR_COLLECTION

    def build(self, entity: Vendor) -> Document | None:
        if not entity.name:
            return None
        document: Document = {"name": entity.name}
        if entity.website:
            document["website"] = entity.website
        return document

    def compare(self, entity: Vendor, document: Document) -> MatchResult:
        return compare_fields(document, (("name", entity.name), ("website", entity.website)))

    def search_filter(self, entity: Vendor) -> dict[str, str] | None:
        return {"name[0]": f"contains:{entity.name}"}


class AddressCodec:
    """Addresses live below their vendor: ``vendors/{vendorId}/addresses``."""

    kind = EntityKind.ADDRESS

    def collection(self, entity: Address) -> str:
        return f"{VENDOR_COLLECTION}/{entity.vendor.identifier}/addresses"

    def build(self, entity: Address) -> Document | None:
        fields = self._fields(entity)
        if all(value is None for _, value in fields):
            return None
        return {name: value for name, value in fields if value is not None}

    def compare(self, entity: Address, document: Document) -> MatchResult:
        return compare_fields(document, self._fields(entity))

    def search_filter(self, entity: Address) -> dict[str, str] | None:  # noqa: ARG002
        return None

    @staticmethod
    def _fields(entity: Address) -> tuple[tuple[str, str | None], ...]:
        return (
            ("street1", entity.street),
            ("locality", entity.locality),
            ("region", entity.region),
            ("country", entity.country),
            ("postalCode", entity.postal_code),
        )


class PersonCodec:
    kind = EntityKind.PERSON

    def __init__(self, urls: UrlScheme) -> None:
        self._urls = urls

    def collection(self, entity: Person) -> str:  # noqa: ARG002
        return PERSON_COLLECTION

    def build(self, entity: Person) -> Document | None:
        if not entity.full_name or not is_usable_id(entity.vendor.identifier):
            return None
        document: Document = {
            "fullName": entity.full_name,
            "vendorUrl": self._urls.reference(VENDOR_COLLECTION, entity.vendor.identifier),
        }
        if entity.email:
            document["emails"] = [entity.email]
        if entity.phone:
            document["phoneNumbers"] = [{"number": entity.phone, "type": "voice"}]
        return document

    def compare(self, entity: Person, document: Document) -> MatchResult:
        result = compare_fields(document, (("fullName", entity.full_name),))
        if result is not MatchResult.MATCH:
            return result

        vendor_url = get_string(document, "vendorUrl")
        if vendor_url is None:
            return MatchResult.MISSING
        if id_from_url(vendor_url) != entity.vendor.identifier:
            return MatchResult.MISMATCH

        if entity.email and entity.email not in _strings(document, "emails"):
            return MatchResult.MISMATCH
        if entity.phone and entity.phone not in _phone_numbers(document):
            return MatchResult.MISMATCH
        return MatchResult.MATCH

    def search_filter(self, entity: Person) -> dict[str, str] | None:
        return {"fullName[0]": f"contains:{entity.full_name}"}


def _strings(document: Document, name: str) -> list[str]:
    values = get_list(document, name) or []
    if not all(isinstance(value, str) for value in values):
        raise SchemaError(f"{name} entries must be strings", field=name)
    return [str(value) for value in values]


def _phone_numbers(document: Document) -> list[str]:
    numbers: list[str] = []
    for entry in get_list(document, "phoneNumbers") or []:
        if not isinstance(entry, dict):
            raise SchemaError("phoneNumbers entries must be objects", field="phoneNumbers")
        number = get_string(entry, "number")
        if number is not None:
            numbers.append(number)
    return numbers
