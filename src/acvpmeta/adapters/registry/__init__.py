"""Registry adapter: HTTP client and payload schemas."""

from __future__ import annotations

from .client import RegistryClient
from .schema import envelope, parse_document, parse_page, parse_submission, unwrap_envelope

__all__ = [
    "RegistryClient",
    "envelope",
    "parse_document",
    "parse_page",
    "parse_submission",
    "unwrap_envelope",
]
