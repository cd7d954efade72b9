from __future__ import annotations

import asyncio

import pytest

from acvpmeta.domain.errors import SchemaError
from acvpmeta.domain.identifier import (
    PENDING_PROCESSING,
    PENDING_SUBMISSION,
    REJECTED,
    is_usable_id,
    mark,
)
from acvpmeta.domain.locking import DefinitionLockManager
from acvpmeta.domain.poller import (
    has_open_requests,
    identifier_from_submission,
    poll_identifier,
    poll_record,
    poll_until_settled,
)
from acvpmeta.domain.ports import RequestStatus, Submission
from tests.helpers.registry import FakeRegistry, MemoryStore, make_definition


def test_approved_answer_yields_registry_id() -> None:
    submission = Submission(
        status=RequestStatus.APPROVED,
        request_url="/acvp/v1/requests/17",
        approved_url="/acvp/v1/dependencies/5",
    )

    assert identifier_from_submission(submission) == 5


def test_approved_update_without_url_keeps_current_id() -> None:
    submission = Submission(status=RequestStatus.APPROVED)

    assert identifier_from_submission(submission, current=9) == 9
    with pytest.raises(SchemaError):
        identifier_from_submission(submission)


@pytest.mark.parametrize(
    ("status", "flag"),
    [
        (RequestStatus.INITIAL, PENDING_SUBMISSION),
        (RequestStatus.PROCESSING, PENDING_PROCESSING),
        (RequestStatus.REJECTED, REJECTED),
    ],
)
def test_open_answers_store_flagged_request_id(status: RequestStatus, flag: int) -> None:
    submission = Submission(status=status, request_url="/acvp/v1/requests/17")

    assert identifier_from_submission(submission) == 17 | flag


def test_answer_without_any_url_is_malformed() -> None:
    with pytest.raises(SchemaError):
        identifier_from_submission(Submission(status=RequestStatus.PROCESSING))


def test_polling_settled_identifier_needs_no_request(registry: FakeRegistry) -> None:
    assert asyncio.run(poll_identifier(registry, 12)) == 12
    assert asyncio.run(poll_identifier(registry, mark(12, REJECTED))) == mark(12, REJECTED)
    assert registry.calls == []


def test_polling_completed_request_yields_final_id(registry: FakeRegistry) -> None:
    registry.requests[5] = Submission(
        status=RequestStatus.APPROVED,
        request_url="/acvp/v1/requests/5",
        approved_url="/acvp/v1/dependencies/5",
    )

    identifier = asyncio.run(poll_identifier(registry, 0x20000005))

    assert identifier == 5
    assert is_usable_id(identifier)
    assert registry.calls == [("GET", "requests/5")]


def test_poll_record_updates_open_entities_only(registry: FakeRegistry) -> None:
    record = make_definition().vendor
    record.vendor.identifier = mark(40, PENDING_SUBMISSION)
    record.address.identifier = 8
    record.person.identifier = mark(41, PENDING_PROCESSING)
    registry.requests[40] = Submission(
        status=RequestStatus.APPROVED,
        approved_url="/acvp/v1/vendors/3",
    )

    results = asyncio.run(poll_record(registry, record))

    assert [result.changed for result in results] == [True]
    assert record.vendor.identifier == 3
    assert record.address.identifier == 8
    assert record.person.identifier == mark(41, PENDING_PROCESSING)


def test_poll_until_settled_stops_once_approved(
    registry: FakeRegistry,
    locks: DefinitionLockManager,
    store: MemoryStore,
) -> None:
    record = make_definition().module
    record.module.identifier = mark(50, PENDING_PROCESSING)
    registry.requests[50] = Submission(
        status=RequestStatus.APPROVED,
        approved_url="/acvp/v1/modules/11",
    )

    waiting = asyncio.run(poll_until_settled(registry, locks, [record], interval=0, attempts=3))

    assert waiting == []
    assert record.module.identifier == 11
    assert not has_open_requests(record)
    assert store.persisted == ["module-libcrypto"]


def test_poll_until_settled_gives_up_after_attempts(
    registry: FakeRegistry,
    locks: DefinitionLockManager,
) -> None:
    record = make_definition().module
    record.module.identifier = mark(50, PENDING_PROCESSING)
    registry.requests[50] = Submission(
        status=RequestStatus.PROCESSING,
        request_url="/acvp/v1/requests/50",
    )

    waiting = asyncio.run(poll_until_settled(registry, locks, [record], interval=0, attempts=2))

    assert waiting == [record]
    assert registry.calls == [("GET", "requests/50"), ("GET", "requests/50")]
