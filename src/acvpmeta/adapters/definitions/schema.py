"""Pydantic models describing the definition files."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator

from acvpmeta.domain.model import ModuleType

MAX_IDENTIFIER = 0xFFFFFFFF


def _blank_to_none(value: object) -> object:
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    return value


class DefinitionFileModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class EnvironmentFile(DefinitionFileModel):
    """``oe/oe.json``"""

    env_name: str | None = Field(default=None, alias="oeEnvName")
    cpe: str | None = None
    swid: str | None = None
    description: str | None = Field(default=None, alias="oe_description")
    manufacturer: str | None = None
    proc_family: str | None = Field(default=None, alias="procFamily")
    proc_name: str | None = Field(default=None, alias="procName")
    proc_series: str | None = Field(default=None, alias="procSeries")
    oe_id: int = Field(default=0, alias="acvpOeId", ge=0, le=MAX_IDENTIFIER)
    processor_id: int = Field(default=0, alias="acvpOeDepProcId", ge=0, le=MAX_IDENTIFIER)
    software_id: int = Field(default=0, alias="acvpOeDepSwId", ge=0, le=MAX_IDENTIFIER)

    _normalize_strings = field_validator(
        "env_name",
        "cpe",
        "swid",
        "description",
        "manufacturer",
        "proc_family",
        "proc_name",
        "proc_series",
        mode="before",
    )(_blank_to_none)

    @property
    def declares_processor(self) -> bool:
        return self.processor_id != 0 or any(
            (self.manufacturer, self.proc_family, self.proc_name, self.proc_series)
        )


class VendorFile(DefinitionFileModel):
    """``vendor/vendor.json``"""

    vendor_name: str = Field(alias="vendorName", min_length=1)
    vendor_url: str | None = Field(default=None, alias="vendorUrl")
    contact_name: str | None = Field(default=None, alias="contactName")
    contact_email: str | None = Field(default=None, alias="contactEmail")
    contact_phone: str | None = Field(default=None, alias="contactPhone")
    street: str | None = Field(default=None, alias="addressStreet")
    city: str | None = Field(default=None, alias="addressCity")
    state: str | None = Field(default=None, alias="addressState")
    country: str | None = Field(default=None, alias="addressCountry")
    zip_code: str | None = Field(default=None, alias="addressZip")
    vendor_id: int = Field(default=0, alias="acvpVendorId", ge=0, le=MAX_IDENTIFIER)
    address_id: int = Field(default=0, alias="acvpAddressId", ge=0, le=MAX_IDENTIFIER)
    person_id: int = Field(default=0, alias="acvpPersonId", ge=0, le=MAX_IDENTIFIER)

    _normalize_strings = field_validator(
        "vendor_url",
        "contact_name",
        "contact_email",
        "contact_phone",
        "street",
        "city",
        "state",
        "country",
        "zip_code",
        mode="before",
    )(_blank_to_none)


class ModuleFile(DefinitionFileModel):
    """``module_info/module_info.json``"""

    module_name: str = Field(alias="moduleName", min_length=1)
    module_version: str | None = Field(default=None, alias="moduleVersion")
    module_type: ModuleType = Field(default=ModuleType.SOFTWARE, alias="moduleType")
    module_description: str | None = Field(default=None, alias="moduleDescription")
    module_id: int = Field(default=0, alias="acvpModuleId", ge=0, le=MAX_IDENTIFIER)

    _normalize_strings = field_validator(
        "module_version",
        "module_description",
        mode="before",
    )(_blank_to_none)

    @field_validator("module_type", mode="before")
    @classmethod
    def _normalize_module_type(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().capitalize()
        return value
