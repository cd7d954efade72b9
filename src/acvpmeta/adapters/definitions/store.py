"""Definitions kept as JSON files below one directory per module::

    <root>/<module>/module_info/module_info.json
    <root>/<module>/oe/oe.json
    <root>/<module>/vendor/vendor.json

Modules may share an ``oe`` or ``vendor`` directory (e.g. through a symlink); files
with the same resolved path are loaded once and become one record.
"""

from __future__ import annotations

import json
import os
from logging import getLogger
from pathlib import Path
from typing import TYPE_CHECKING

from pydantic import ValidationError

from acvpmeta.domain.errors import ConfigError
from acvpmeta.domain.model import (
    Address,
    DefinitionRecord,
    EnvironmentRecord,
    Module,
    ModuleDefinition,
    ModuleRecord,
    OperationalEnvironment,
    Person,
    ProcessorDependency,
    SoftwareDependency,
    Vendor,
    VendorRecord,
)
from acvpmeta.domain.ports import DefinitionStore

from .schema import EnvironmentFile, ModuleFile, VendorFile

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

log = getLogger(__name__)

MODULE_FILE = Path("module_info") / "module_info.json"
ENVIRONMENT_FILE = Path("oe") / "oe.json"
VENDOR_FILE = Path("vendor") / "vendor.json"


def identifier_keys(record: DefinitionRecord) -> dict[str, int]:
    """The identifier keys a record owns in its file."""

    match record:
        case EnvironmentRecord(environment=environment):
            return {
                "acvpOeId": environment.identifier,
                "acvpOeDepProcId": environment.processor.identifier
                if environment.processor
                else 0,
                "acvpOeDepSwId": environment.software.identifier if environment.software else 0,
            }
        case VendorRecord(vendor=vendor, address=address, person=person):
            return {
                "acvpVendorId": vendor.identifier,
                "acvpAddressId": address.identifier,
                "acvpPersonId": person.identifier,
            }
        case ModuleRecord(module=module):
            return {"acvpModuleId": module.identifier}
        case _:
            raise TypeError(f"Unsupported definition record: {type(record).__name__}")


class JsonDefinitionStore:
    def __init__(self, root: Path) -> None:
        self.root = root
        self._records: dict[Path, DefinitionRecord] = {}

    def load(self, names: Iterable[str] | None = None) -> list[ModuleDefinition]:
        """Load every module directory below the root, or only those in ``names``.

        ``names`` match either the directory name or the declared module name.
        """

        root = self.root.expanduser().resolve()
        if not root.is_dir():
            raise ConfigError(f"Definitions directory {root} does not exist")

        wanted = set(names) if names else None
        definitions: list[ModuleDefinition] = []
        for directory in sorted(path for path in root.iterdir() if path.is_dir()):
            if not (directory / MODULE_FILE).is_file():
                log.debug("Skipping %s: no %s", directory, MODULE_FILE)
                continue
            definition = self._load_definition(directory)
            if wanted is None or {directory.name, definition.module.module.name} & wanted:
                definitions.append(definition)

        if wanted is not None and not definitions:
            raise ConfigError(f"No module definitions named {', '.join(sorted(wanted))}")
        log.info("Loaded %s module definitions from %s", len(definitions), root)
        return definitions

    def locate(self, record: DefinitionRecord) -> str:
        if record.source is None:
            raise ConfigError("Definition record has no backing file")
        path = record.source
        if not path.is_file():
            raise ConfigError(f"Definition file {path} does not exist")
        return str(path.resolve())

    def persist(self, record: DefinitionRecord) -> None:
        """Write the identifiers of ``record`` into its file, leaving other keys alone."""

        if record.source is None:
            raise OSError("Definition record has no backing file")
        path = record.source
        try:
            content = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise OSError(f"{path} no longer holds valid JSON") from exc
        if not isinstance(content, dict):
            raise OSError(f"{path} no longer holds a JSON object")

        updates = identifier_keys(record)
        if all(content.get(key, 0) == value for key, value in updates.items()):
            return
        content.update(updates)

        tmp_path = path.with_name(f".{path.name}.tmp")
        try:
            tmp_path.write_text(json.dumps(content, indent=4) + "\n", encoding="utf-8")
            os.replace(tmp_path, path)
        finally:
            tmp_path.unlink(missing_ok=True)
        log.debug("Persisted %s to %s", updates, path)

    def _load_definition(self, directory: Path) -> ModuleDefinition:
        return ModuleDefinition(
            module=self._record(directory / MODULE_FILE, ModuleRecord, _load_module),
            vendor=self._record(directory / VENDOR_FILE, VendorRecord, _load_vendor),
            environment=self._record(
                directory / ENVIRONMENT_FILE, EnvironmentRecord, _load_environment
            ),
        )

    def _record[R: DefinitionRecord](
        self,
        path: Path,
        record_type: type[R],
        loader: Callable[[bytes, Path], R],
    ) -> R:
        resolved = path.resolve()
        cached = self._records.get(resolved)
        if cached is not None:
            if not isinstance(cached, record_type):
                raise ConfigError(f"{resolved} is used for different kinds of definitions")
            return cached
        if not resolved.is_file():
            raise ConfigError(f"Definition file {path} does not exist")

        try:
            record = loader(resolved.read_bytes(), resolved)
        except ValidationError as exc:
            raise ConfigError(f"Invalid definition file {resolved}: {exc}") from exc
        except OSError as exc:
            raise ConfigError(f"Cannot read definition file {resolved}: {exc}") from exc

        self._records[resolved] = record
        return record


def _load_environment(raw: bytes, source: Path) -> EnvironmentRecord:
    data = EnvironmentFile.model_validate_json(raw)
    software = SoftwareDependency(
        name=data.env_name,
        cpe=data.cpe,
        swid=data.swid,
        description=data.description,
        identifier=data.software_id,
    )
    processor = (
        ProcessorDependency(
            manufacturer=data.manufacturer,
            family=data.proc_family,
            name=data.proc_name,
            series=data.proc_series,
            identifier=data.processor_id,
        )
        if data.declares_processor
        else None
    )
    environment = OperationalEnvironment(
        software=software,
        processor=processor,
        identifier=data.oe_id,
    )
    return EnvironmentRecord(source=source, environment=environment)


def _load_vendor(raw: bytes, source: Path) -> VendorRecord:
    data = VendorFile.model_validate_json(raw)
    vendor = Vendor(name=data.vendor_name, website=data.vendor_url, identifier=data.vendor_id)
    address = Address(
        vendor=vendor,
        street=data.street,
        locality=data.city,
        region=data.state,
        country=data.country,
        postal_code=data.zip_code,
        identifier=data.address_id,
    )
    person = Person(
        vendor=vendor,
        full_name=data.contact_name or "",
        email=data.contact_email,
        phone=data.contact_phone,
        identifier=data.person_id,
    )
    return VendorRecord(source=source, vendor=vendor, address=address, person=person)


def _load_module(raw: bytes, source: Path) -> ModuleRecord:
    data = ModuleFile.model_validate_json(raw)
    module = Module(
        name=data.module_name,
        version=data.module_version,
        module_type=data.module_type,
        description=data.module_description,
        identifier=data.module_id,
    )
    return ModuleRecord(source=source, module=module)


if TYPE_CHECKING:
    _store_check: DefinitionStore = JsonDefinitionStore(Path())
