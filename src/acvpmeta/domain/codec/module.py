"""Builder and matcher for module descriptions."""

from __future__ import annotations

from typing import TYPE_CHECKING

from acvpmeta.domain.identifier import id_from_url, is_usable_id
from acvpmeta.domain.model import EntityKind, Module

from .base import MatchResult, compare_fields, get_string
from .vendor import PERSON_COLLECTION, VENDOR_COLLECTION

if TYPE_CHECKING:
    from acvpmeta.domain.ports import Document, UrlScheme

MODULE_COLLECTION = "modules"


class ModuleCodec:
    kind = EntityKind.MODULE

    def __init__(self, urls: UrlScheme) -> None:
        self._urls = urls

    def collection(self, entity: Module) -> str:  # noqa: ARG002
        return MODULE_COLLECTION

    def build(self, entity: Module) -> Document | None:
        refs = entity.references
        if not is_usable_id(refs.vendor_id):
            return None
        document: Document = {"name": entity.name}
        if entity.version:
            document["version"] = entity.version
        document["type"] = entity.module_type.value
        if entity.description:
            document["description"] = entity.description
        document["vendorUrl"] = self._urls.reference(VENDOR_COLLECTION, refs.vendor_id)
        if is_usable_id(refs.address_id):
            document["addressUrl"] = self._urls.reference(
                f"{VENDOR_COLLECTION}/{refs.vendor_id}/addresses", refs.address_id
            )
        if is_usable_id(refs.person_id):
            document["contactUrls"] = [self._urls.reference(PERSON_COLLECTION, refs.person_id)]
        return document

    def compare(self, entity: Module, document: Document) -> MatchResult:
        result = compare_fields(
            document,
            (
                ("name", entity.name),
                ("version", entity.version),
                ("type", entity.module_type.value),
                ("description", entity.description),
            ),
        )
        if result is not MatchResult.MATCH:
            return result

        vendor_url = get_string(document, "vendorUrl")
        if vendor_url is None:
            return MatchResult.MISSING
        if id_from_url(vendor_url) != entity.references.vendor_id:
            return MatchResult.MISMATCH
        return MatchResult.MATCH

    def search_filter(self, entity: Module) -> dict[str, str] | None:
        return {"name[0]": f"contains:{entity.name}"}
