"""Locally declared definition entities and the records that persist them.

Entities carry their registry identifier in ``identifier`` (see
:mod:`acvpmeta.domain.identifier`). Records group the entities stored in one
definition file; a record is the unit of locking and persistence.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pathlib import Path


class EntityKind(StrEnum):
    VENDOR = "vendor"
    ADDRESS = "address"
    PERSON = "person"
    MODULE = "module"
    ENVIRONMENT = "operational environment"
    SOFTWARE = "software dependency"
    PROCESSOR = "processor dependency"


class DependencyType(StrEnum):
    SOFTWARE = "software"
    PROCESSOR = "processor"


class ModuleType(StrEnum):
    SOFTWARE = "Software"
    HARDWARE = "Hardware"
    FIRMWARE = "Firmware"


@dataclass(slots=True, kw_only=True)
class SoftwareDependency:
    """Operating system or other software the module runs on."""

    name: str | None
    cpe: str | None = None
    swid: str | None = None
    description: str | None = None
    identifier: int = 0

    kind = EntityKind.SOFTWARE
    dependency_type = DependencyType.SOFTWARE

    @property
    def label(self) -> str:
        return self.name or "<no software environment>"


@dataclass(slots=True, kw_only=True)
class ProcessorDependency:
    manufacturer: str | None
    family: str | None
    name: str | None
    series: str | None = None
    identifier: int = 0

    kind = EntityKind.PROCESSOR
    dependency_type = DependencyType.PROCESSOR

    @property
    def label(self) -> str:
        return self.name or "<no processor>"


type Dependency = SoftwareDependency | ProcessorDependency


@dataclass(slots=True, kw_only=True)
class OperationalEnvironment:
    """Aggregate of an optional software and an optional processor dependency."""

    software: SoftwareDependency | None = None
    processor: ProcessorDependency | None = None
    identifier: int = 0

    kind = EntityKind.ENVIRONMENT

    @property
    def name(self) -> str:
        """Human readable name the registry shows for this environment.

        It reads like ``Linux 5.4 on Intel Broadwell Xeon E5``; the processor name is
        left out when the series already starts with it.
        """

        parts: list[str] = []
        env_name = self.software.name if self.software else None
        proc = self.processor
        manufacturer = proc.manufacturer if proc else None
        series = proc.series if proc else None
        proc_name = proc.name if proc else None

        if env_name:
            parts.append(env_name)
            if manufacturer or series or proc_name:
                parts.append("on")
        if manufacturer:
            parts.append(manufacturer)
        if series:
            parts.append(series)
            if proc_name and not series.startswith(proc_name):
                parts.append(proc_name)
        elif proc_name:
            parts.append(proc_name)
        return " ".join(parts)

    @property
    def label(self) -> str:
        return self.name or "<empty environment>"

    def dependencies(self) -> tuple[Dependency, ...]:
        return tuple(dep for dep in (self.processor, self.software) if dep is not None)


@dataclass(slots=True, kw_only=True)
class Vendor:
    name: str
    website: str | None = None
    identifier: int = 0

    kind = EntityKind.VENDOR

    @property
    def label(self) -> str:
        return self.name


@dataclass(slots=True, kw_only=True)
class Address:
    vendor: Vendor
    street: str | None = None
    locality: str | None = None
    region: str | None = None
    country: str | None = None
    postal_code: str | None = None
    identifier: int = 0

    kind = EntityKind.ADDRESS

    @property
    def label(self) -> str:
        return ", ".join(part for part in (self.street, self.locality, self.country) if part)


@dataclass(slots=True, kw_only=True)
class Person:
    vendor: Vendor
    full_name: str
    email: str | None = None
    phone: str | None = None
    identifier: int = 0

    kind = EntityKind.PERSON

    @property
    def label(self) -> str:
        return self.full_name


@dataclass(slots=True, frozen=True)
class ModuleReferences:
    """Snapshot of the vendor-side identifiers a module document points at."""

    vendor_id: int = 0
    address_id: int = 0
    person_id: int = 0


@dataclass(slots=True, kw_only=True)
class Module:
    name: str
    version: str | None = None
    module_type: ModuleType = ModuleType.SOFTWARE
    description: str | None = None
    identifier: int = 0
    references: ModuleReferences = field(default_factory=ModuleReferences)

    kind = EntityKind.MODULE

    @property
    def label(self) -> str:
        return f"{self.name} {self.version}" if self.version else self.name


type Entity = (
    SoftwareDependency
    | ProcessorDependency
    | OperationalEnvironment
    | Vendor
    | Address
    | Person
    | Module
)


@dataclass(eq=False, kw_only=True)
class DefinitionRecord(ABC):
    """One definition file; identity is the resolved path, or ``key`` when in memory."""

    source: Path | None = None
    key: str | None = None

    @property
    def record_key(self) -> str | None:
        if self.key is not None:
            return self.key
        return str(self.source) if self.source is not None else None

    @abstractmethod
    def entities(self) -> tuple[Entity, ...]: ...


@dataclass(eq=False, kw_only=True)
class VendorRecord(DefinitionRecord):
    vendor: Vendor
    address: Address
    person: Person

    def entities(self) -> tuple[Entity, ...]:
        return (self.vendor, self.address, self.person)


@dataclass(eq=False, kw_only=True)
class EnvironmentRecord(DefinitionRecord):
    environment: OperationalEnvironment

    def entities(self) -> tuple[Entity, ...]:
        return (self.environment, *self.environment.dependencies())


@dataclass(eq=False, kw_only=True)
class ModuleRecord(DefinitionRecord):
    module: Module

    def entities(self) -> tuple[Entity, ...]:
        return (self.module,)


@dataclass(eq=False, kw_only=True)
class ModuleDefinition:
    """Everything one test session needs registered: module, vendor and environment."""

    module: ModuleRecord
    vendor: VendorRecord
    environment: EnvironmentRecord

    @property
    def label(self) -> str:
        return self.module.module.label

    def records(self) -> tuple[DefinitionRecord, ...]:
        return (self.vendor, self.environment, self.module)
