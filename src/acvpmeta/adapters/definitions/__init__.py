"""Definition store backed by JSON files."""

from __future__ import annotations

from .store import (
    ENVIRONMENT_FILE,
    MODULE_FILE,
    VENDOR_FILE,
    JsonDefinitionStore,
    identifier_keys,
)

__all__ = [
    "ENVIRONMENT_FILE",
    "MODULE_FILE",
    "VENDOR_FILE",
    "JsonDefinitionStore",
    "identifier_keys",
]
