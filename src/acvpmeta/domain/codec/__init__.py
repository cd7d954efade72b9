"""Per-kind builders and matchers for registry documents."""

from __future__ import annotations

from .base import EntityCodec, MatchResult, compare_fields, match, url_id
from .dependency import (
    DEPENDENCY_COLLECTION,
    PROCESSOR_CODEC,
    SOFTWARE_CODEC,
    ProcessorDependencyCodec,
    SoftwareDependencyCodec,
    codec_for,
    compare_dependency,
)
from .environment import ENVIRONMENT_COLLECTION, EnvironmentCodec
from .module import MODULE_COLLECTION, ModuleCodec
from .vendor import PERSON_COLLECTION, VENDOR_COLLECTION, AddressCodec, PersonCodec, VendorCodec

__all__ = [
    "DEPENDENCY_COLLECTION",
    "ENVIRONMENT_COLLECTION",
    "MODULE_COLLECTION",
    "PERSON_COLLECTION",
    "PROCESSOR_CODEC",
    "SOFTWARE_CODEC",
    "VENDOR_COLLECTION",
    "AddressCodec",
    "EntityCodec",
    "EnvironmentCodec",
    "MatchResult",
    "ModuleCodec",
    "PersonCodec",
    "ProcessorDependencyCodec",
    "SoftwareDependencyCodec",
    "VendorCodec",
    "codec_for",
    "compare_dependency",
    "compare_fields",
    "match",
    "url_id",
]
