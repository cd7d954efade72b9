"""Registry identifiers with request status flags.

Identifiers are 32-bit unsigned values. The registry hands out plain numeric ids;
while an asynchronous registration request is open we store the request id instead,
tagged with exactly one of the status flags below. Bit 31 is never used.
"""

from __future__ import annotations

from typing import Final

from .errors import SchemaError

PENDING_SUBMISSION: Final[int] = 1 << 30
PENDING_PROCESSING: Final[int] = 1 << 29
REJECTED: Final[int] = 1 << 28
RESERVED_BITS: Final[int] = PENDING_SUBMISSION | PENDING_PROCESSING | REJECTED

UNSET: Final[int] = 0

_STATUS_FLAGS: Final[tuple[int, ...]] = (PENDING_SUBMISSION, PENDING_PROCESSING, REJECTED)


def strip_status(identifier: int) -> int:
    return identifier & ~RESERVED_BITS


def is_usable_id(identifier: int) -> bool:
    return identifier != UNSET and not identifier & RESERVED_BITS


def is_pending(identifier: int) -> bool:
    return bool(identifier & RESERVED_BITS)


def is_open_request(identifier: int) -> bool:
    """Return True while the registry may still be working on the request."""

    return bool(identifier & (PENDING_SUBMISSION | PENDING_PROCESSING))


def is_rejected(identifier: int) -> bool:
    return bool(identifier & REJECTED)


def mark(identifier: int, flag: int) -> int:
    """Tag ``identifier`` with one status flag, dropping any previous flag."""

    if flag not in _STATUS_FLAGS:
        raise ValueError(f"Unknown identifier status flag: {flag:#x}")
    return strip_status(identifier) | flag


def describe(identifier: int) -> str:
    if identifier == UNSET:
        return "unset"
    base = strip_status(identifier)
    if identifier & PENDING_SUBMISSION:
        return f"request {base} (submitted)"
    if identifier & PENDING_PROCESSING:
        return f"request {base} (processing)"
    if identifier & REJECTED:
        return f"request {base} (rejected)"
    return str(identifier)


def id_from_url(url: str) -> int:
    """Extract the trailing numeric id from a registry URL such as ``/acvp/v1/oes/12``."""

    tail = url.rstrip("/").rsplit("/", 1)[-1]
    if not tail.isdigit():
        raise SchemaError(f"URL does not end in a numeric id: {url}", field="url")
    identifier = int(tail)
    if identifier == UNSET or identifier & ~0x7FFFFFFF or is_pending(identifier):
        raise SchemaError(f"URL carries an id outside the usable range: {url}", field="url")
    return identifier
