"""Builders and matchers for software and processor dependencies.

Registry documents look like::

    {"type": "software", "name": "Linux 5.4", "cpe": "cpe:2.3:o:linux:...",
     "description": "Linux 5.4"}

    {"type": "processor", "manufacturer": "Intel", "family": "X86",
     "name": "Xeon E5-2620", "series": "Broadwell",
     "description": "Processor Xeon E5-2620 (processor family X86) from Intel"}
"""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from acvpmeta.domain.model import (
    Dependency,
    DependencyType,
    EntityKind,
    ProcessorDependency,
    SoftwareDependency,
)

from .base import MatchResult, compare_fields, get_string

if TYPE_CHECKING:
    from acvpmeta.domain.ports import Document

log = getLogger(__name__)

DEPENDENCY_COLLECTION = "dependencies"


def processor_description(dep: ProcessorDependency) -> str:
    text = f"Processor {dep.name}"
    if dep.family:
        text += f" (processor family {dep.family})"
    if dep.manufacturer:
        text += f" from {dep.manufacturer}"
    return text


def software_description(dep: SoftwareDependency) -> str | None:
    return dep.description or dep.name


def software_tag(dep: SoftwareDependency) -> tuple[str, str] | None:
    """The one identifying tag sent to the registry; CPE wins over SWID."""

    if dep.cpe:
        return "cpe", dep.cpe
    if dep.swid:
        return "swid", dep.swid
    return None


class SoftwareDependencyCodec:
    kind = EntityKind.SOFTWARE

    def collection(self, entity: SoftwareDependency) -> str:  # noqa: ARG002
        return DEPENDENCY_COLLECTION

    def build(self, entity: SoftwareDependency) -> Document | None:
        if not entity.name:
            return None
        document: Document = {"type": DependencyType.SOFTWARE.value, "name": entity.name}
        tag = software_tag(entity)
        if tag is not None:
            document[tag[0]] = tag[1]
        else:
            log.debug("No CPE or SWID declared for %s", entity.name)
        document["description"] = software_description(entity)
        return document

    def compare(self, entity: SoftwareDependency, document: Document) -> MatchResult:
        type_result = _check_type(document, DependencyType.SOFTWARE)
        if type_result is not MatchResult.MATCH:
            return type_result
        tag = software_tag(entity)
        expected: list[tuple[str, str | None]] = [("name", entity.name)]
        if tag is not None:
            expected.append(tag)
        result = compare_fields(document, expected)
        if result is not MatchResult.MATCH:
            return result

        # A tag on the registry side that we do not declare is a difference.
        if tag is None:
            if get_string(document, "swid") is not None or get_string(document, "cpe") is not None:
                log.debug("Registry carries a CPE/SWID tag not declared for %s", entity.name)
                return MatchResult.MISMATCH

        return compare_fields(document, (("description", software_description(entity)),))

    def search_filter(self, entity: SoftwareDependency) -> dict[str, str] | None:
        return {"name[0]": f"contains:{entity.name}"} if entity.name else None


class ProcessorDependencyCodec:
    kind = EntityKind.PROCESSOR

    def collection(self, entity: ProcessorDependency) -> str:  # noqa: ARG002
        return DEPENDENCY_COLLECTION

    def build(self, entity: ProcessorDependency) -> Document | None:
        if not entity.name:
            return None
        document: Document = {"type": DependencyType.PROCESSOR.value}
        for name, value in (
            ("manufacturer", entity.manufacturer),
            ("family", entity.family),
            ("name", entity.name),
            ("series", entity.series),
        ):
            if value is not None:
                document[name] = value
        document["description"] = processor_description(entity)
        return document

    def compare(self, entity: ProcessorDependency, document: Document) -> MatchResult:
        type_result = _check_type(document, DependencyType.PROCESSOR)
        if type_result is not MatchResult.MATCH:
            return type_result
        return compare_fields(
            document,
            (
                ("manufacturer", entity.manufacturer),
                ("family", entity.family),
                ("name", entity.name),
                ("series", entity.series),
            ),
        )

    def search_filter(self, entity: ProcessorDependency) -> dict[str, str] | None:
        return {"name[0]": f"contains:{entity.name}"} if entity.name else None


SOFTWARE_CODEC = SoftwareDependencyCodec()
PROCESSOR_CODEC = ProcessorDependencyCodec()


def codec_for(dep: Dependency) -> SoftwareDependencyCodec | ProcessorDependencyCodec:
    if isinstance(dep, SoftwareDependency):
        return SOFTWARE_CODEC
    return PROCESSOR_CODEC


def _check_type(document: Document, expected: DependencyType) -> MatchResult:
    remote_type = get_string(document, "type")
    if remote_type is None:
        return MatchResult.MISSING
    if remote_type == expected.value:
        return MatchResult.MATCH
    if remote_type not in {t.value for t in DependencyType}:
        log.debug("Dependency type %s unknown", remote_type)
    return MatchResult.MISMATCH


def compare_dependency(dep: Dependency, document: Document) -> MatchResult:
    """Compare ``document`` against the local dependency of the same kind."""

    if isinstance(dep, SoftwareDependency):
        return SOFTWARE_CODEC.compare(dep, document)
    return PROCESSOR_CODEC.compare(dep, document)
