"""Verb resolution: turn a search outcome plus user intent into one registry operation.

The policy is deterministic given its inputs; the only outside influence is the
``confirm`` callable, asked at most once per question.

| outcome   | mismatch | show_only | auto_register | auto_delete | verb                 |
|-----------|----------|-----------|---------------|-------------|----------------------|
| not found | -        | yes       | -             | -           | none                 |
| not found | -        | no        | yes           | -           | create               |
| not found | -        | no        | no            | -           | ask: create or abort |
| found     | no       | -         | -             | -           | none                 |
| found     | yes      | no        | -             | yes         | delete               |
| found     | yes      | no        | -             | no          | ask: update, delete  |
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from logging import getLogger
from typing import TYPE_CHECKING

from .errors import ReconciliationAborted

if TYPE_CHECKING:
    from .ports import Confirm

log = getLogger(__name__)


class Verb(StrEnum):
    NONE = "none"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class SearchOutcome(StrEnum):
    FOUND = "found"
    NOT_FOUND = "not_found"


@dataclass(slots=True, frozen=True)
class ReconcileOptions:
    """User intent for one run."""

    auto_register: bool = False
    auto_delete_on_mismatch: bool = False
    show_only: bool = False
    revalidate: bool = False


def register_prompt(label: str) -> str:
    return f"No registry entry found for {label} - shall it be registered"


def update_prompt(label: str) -> str:
    return f"Local data for {label} differs from the registry - shall the registry entry be UPDATED"


def delete_prompt(label: str) -> str:
    return f"Shall the registry entry for {label} be DELETED"


def requires_confirmation(
    outcome: SearchOutcome,
    *,
    mismatch: bool,
    options: ReconcileOptions,
) -> bool:
    """Whether ``resolve_verb`` may have to ask the user for this outcome."""

    if options.show_only or (outcome is SearchOutcome.FOUND and not mismatch):
        return False
    if outcome is SearchOutcome.NOT_FOUND:
        return not options.auto_register
    return not options.auto_delete_on_mismatch


def resolve_verb(
    outcome: SearchOutcome,
    *,
    mismatch: bool,
    options: ReconcileOptions,
    confirm: Confirm,
    label: str,
) -> Verb:
    """Pick exactly one verb or raise ``ReconciliationAborted`` if the user declines."""

    if outcome is SearchOutcome.FOUND and not mismatch:
        return Verb.NONE

    if options.show_only:
        log.info("Show-only mode: leaving %s untouched", label)
        return Verb.NONE

    if outcome is SearchOutcome.NOT_FOUND:
        if options.auto_register:
            return Verb.CREATE
        if confirm(register_prompt(label)):
            return Verb.CREATE
        raise ReconciliationAborted(f"Registration of {label} declined")

    if options.auto_delete_on_mismatch:
        return Verb.DELETE
    if confirm(update_prompt(label)):
        return Verb.UPDATE
    if confirm(delete_prompt(label)):
        return Verb.DELETE
    raise ReconciliationAborted(f"Update and deletion of {label} declined")
