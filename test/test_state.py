from types import SimpleNamespace

import pytest

from signfast.signing.exceptions import (
    SignatureAlreadySignedException, SignatureNotFoundException,
    SignatureRequestConflictException, SignatureRequestDeletedException,
    SignatureRequestLockedException, SignatureRequestNotFoundException,
)
from signfast.signing.state import (
    RequestStatus, aggregate_status, can_delete_document, ensure_can_delete_request,
    ensure_can_send, ensure_can_submit, has_signed,
)


def sig(status, signature_id=1, request_id="req-1"):
    return SimpleNamespace(id=signature_id, request_id=request_id, status=status)


def test_pending_signature_can_be_submitted():
    pending = sig("pending")
    assert ensure_can_submit(pending) is pending


@pytest.mark.parametrize("signature, exc, status_code", [
    (None, SignatureNotFoundException, 404),
    (sig("deleted"), SignatureRequestDeletedException, 410),
    (sig("signed"), SignatureAlreadySignedException, 409),
])
def test_terminal_or_missing_signatures_are_refused(signature, exc, status_code):
    with pytest.raises(exc) as exc_info:
        ensure_can_submit(signature)
    assert exc_info.value.status_code == status_code


def test_aggregate_status():
    assert aggregate_status([]) == RequestStatus.INCOMPLETE
    assert aggregate_status([sig("signed"), sig("pending")]) == RequestStatus.INCOMPLETE
    assert aggregate_status([sig("signed"), sig("signed")]) == RequestStatus.COMPLETE


def test_request_with_only_pending_members_can_be_deleted():
    ensure_can_delete_request("req-1", [sig("pending"), sig("pending")])


def test_request_delete_refused_once_anyone_signed():
    with pytest.raises(SignatureRequestLockedException) as exc_info:
        ensure_can_delete_request("req-1", [sig("pending"), sig("signed")])
    assert exc_info.value.signed_count == 1
    assert exc_info.value.status_code == 409


def test_request_delete_without_members_is_not_found():
    with pytest.raises(SignatureRequestNotFoundException):
        ensure_can_delete_request("req-1", [])


def test_deleting_a_withdrawn_request_is_gone():
    with pytest.raises(SignatureRequestDeletedException) as exc_info:
        ensure_can_delete_request("req-1", [sig("deleted"), sig("deleted")])
    assert exc_info.value.status_code == 410


def test_only_draft_documents_can_be_sent():
    ensure_can_send(SimpleNamespace(id=1, status="draft"))
    for status in ("sent", "completed"):
        with pytest.raises(SignatureRequestConflictException):
            ensure_can_send(SimpleNamespace(id=1, status=status))


@pytest.mark.parametrize("document_status, statuses, expected", [
    ("draft", ["pending"], True),
    ("completed", [], True),
    ("sent", ["signed", "signed"], True),
    ("sent", ["signed", "pending"], False),
    ("sent", [], False),
])
def test_can_delete_document(document_status, statuses, expected):
    assert can_delete_document(document_status, [sig(s) for s in statuses]) is expected


def test_has_signed():
    assert has_signed([sig("pending"), sig("signed")])
    assert not has_signed([sig("pending"), sig("deleted")])
