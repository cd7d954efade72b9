"""Builder and matcher for operational environments.

An environment document names the environment and lists its dependencies, either
by reference (``dependencyUrls``) once a dependency has a registry id, or embedded
in full (``dependencies``) while it has none::

    {"name": "Linux 5.4 on Intel Broadwell Xeon E5",
     "dependencyUrls": ["/acvp/v1/dependencies/12"],
     "dependencies": [{"type": "software", "name": "Linux 5.4", ...}]}
"""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from acvpmeta.domain.errors import SchemaError
from acvpmeta.domain.identifier import id_from_url, is_usable_id
from acvpmeta.domain.model import (
    Dependency,
    DependencyType,
    EntityKind,
    OperationalEnvironment,
)

from .base import MatchResult, get_list, get_string
from .dependency import DEPENDENCY_COLLECTION, codec_for, compare_dependency

if TYPE_CHECKING:
    from collections.abc import Mapping

    from acvpmeta.domain.ports import Document, UrlScheme

log = getLogger(__name__)

ENVIRONMENT_COLLECTION = "oes"


def reported_dependencies(env: OperationalEnvironment) -> tuple[Dependency, ...]:
    """Dependencies that take part in the environment document.

    A software dependency without a name is not reported even if it still carries
    an identifier from an earlier configuration.
    """

    return tuple(dep for dep in env.dependencies() if codec_for(dep).build(dep) is not None)


def has_inconsistent_software(env: OperationalEnvironment) -> bool:
    software = env.software
    return software is not None and not software.name and software.identifier != 0


def dependency_references(document: Document) -> list[int]:
    urls = get_list(document, "dependencyUrls") or []
    ids: list[int] = []
    for url in urls:
        if not isinstance(url, str):
            raise SchemaError("dependencyUrls entries must be strings", field="dependencyUrls")
        ids.append(id_from_url(url))
    return ids


def embedded_dependencies(document: Document) -> list[Document]:
    entries = get_list(document, "dependencies") or []
    embedded: list[Document] = []
    for entry in entries:
        if not isinstance(entry, dict):
            raise SchemaError("dependencies entries must be objects", field="dependencies")
        embedded.append(entry)
    return embedded


class EnvironmentCodec:
    kind = EntityKind.ENVIRONMENT

    def __init__(self, urls: UrlScheme) -> None:
        self._urls = urls

    def collection(self, entity: OperationalEnvironment) -> str:  # noqa: ARG002
        return ENVIRONMENT_COLLECTION

    def build(self, entity: OperationalEnvironment) -> Document | None:
        name = entity.name
        if not name:
            return None

        urls: list[str] = []
        embedded: list[Document] = []
        for dep in reported_dependencies(entity):
            if is_usable_id(dep.identifier):
                urls.append(self._urls.reference(DEPENDENCY_COLLECTION, dep.identifier))
                continue
            dep_document = codec_for(dep).build(dep)
            if dep_document is not None:
                embedded.append(dep_document)

        document: Document = {"name": name}
        if urls:
            document["dependencyUrls"] = urls
        if embedded:
            document["dependencies"] = embedded
        if not urls and not embedded:
            log.warning("No dependencies found for operational environment %s", name)
        return document

    def unresolved_references(
        self,
        entity: OperationalEnvironment,
        document: Document,
    ) -> list[int]:
        """Referenced dependency ids that are not already known locally."""

        local_ids = _local_ids(entity)
        return [dep_id for dep_id in dependency_references(document) if dep_id not in local_ids]

    def compare(
        self,
        entity: OperationalEnvironment,
        document: Document,
        resolved: Mapping[int, Document] | None = None,
    ) -> MatchResult:
        """Compare name and dependencies.

        ``resolved`` maps referenced dependency ids to their registry documents. A
        reference to one of our own dependency ids counts as that dependency; any
        other reference must be resolvable, or the environment does not match.
        """

        remote_name = get_string(document, "name")
        if remote_name is None:
            return MatchResult.MISSING
        if remote_name != entity.name:
            return MatchResult.MISMATCH

        local = {dep.dependency_type: dep for dep in reported_dependencies(entity)}
        local_ids = {dep.identifier: dep.dependency_type for dep in local.values()}
        covered: set[DependencyType] = set()

        remote_documents = embedded_dependencies(document)
        for dep_id in dependency_references(document):
            if is_usable_id(dep_id) and dep_id in local_ids:
                covered.add(local_ids[dep_id])
            elif resolved is not None and dep_id in resolved:
                remote_documents.append(resolved[dep_id])
            else:
                log.debug("Dependency reference %s cannot be verified", dep_id)
                return MatchResult.MISMATCH

        for remote in remote_documents:
            remote_type = get_string(remote, "type")
            dep = local.get(DependencyType(remote_type)) if remote_type in _TYPES else None
            if dep is None:
                log.debug("Registry lists a %s dependency not declared locally", remote_type)
                return MatchResult.MISMATCH
            result = compare_dependency(dep, remote)
            if result is not MatchResult.MATCH:
                return result
            covered.add(dep.dependency_type)

        if covered != set(local):
            log.debug("Registry environment lacks dependencies: %s", set(local) - covered)
            return MatchResult.MISMATCH
        return MatchResult.MATCH

    def search_filter(self, entity: OperationalEnvironment) -> dict[str, str] | None:
        return {"name[0]": f"contains:{entity.name}"} if entity.name else None


_TYPES = frozenset(t.value for t in DependencyType)


def _local_ids(entity: OperationalEnvironment) -> set[int]:
    return {
        dep.identifier for dep in reported_dependencies(entity) if is_usable_id(dep.identifier)
    }
