# signfast/signing/state.py

"""
Signing session state machine.

A Signature moves pending -> signed (signer submits) or pending -> deleted
(owner withdraws the request). Both targets are terminal. A request is the set
of Signatures sharing a request_id and is complete once every member is signed.
There is no ordering between signers.
"""

from enum import Enum
from typing import Iterable, Optional, Sequence

from signfast.signing.exceptions import (
    SignatureAlreadySignedException, SignatureNotFoundException,
    SignatureRequestConflictException, SignatureRequestDeletedException,
    SignatureRequestLockedException, SignatureRequestNotFoundException,
)


class SignatureStatus(str, Enum):
    PENDING = "pending"
    SIGNED = "signed"
    DELETED = "deleted"


class RequestStatus(str, Enum):
    INCOMPLETE = "incomplete"
    COMPLETE = "complete"


class DocumentStatus(str, Enum):
    DRAFT = "draft"
    SENT = "sent"
    COMPLETED = "completed"


def ensure_can_submit(signature: Optional[object]) -> object:
    """Return the signature if it can accept a submission, otherwise raise."""
    if signature is None:
        raise SignatureNotFoundException()
    if signature.status == SignatureStatus.DELETED.value:
        raise SignatureRequestDeletedException(signature.request_id)
    if signature.status == SignatureStatus.SIGNED.value:
        raise SignatureAlreadySignedException(signature.id)
    return signature


def aggregate_status(signatures: Sequence[object]) -> RequestStatus:
    """Complete iff the request has members and all of them are signed."""
    if signatures and all(s.status == SignatureStatus.SIGNED.value for s in signatures):
        return RequestStatus.COMPLETE
    return RequestStatus.INCOMPLETE


def ensure_can_delete_request(request_id: str, signatures: Sequence[object]) -> None:
    if not signatures:
        raise SignatureRequestNotFoundException(request_id)
    if all(s.status == SignatureStatus.DELETED.value for s in signatures):
        raise SignatureRequestDeletedException(request_id)
    signed = [s for s in signatures if s.status == SignatureStatus.SIGNED.value]
    if signed:
        raise SignatureRequestLockedException(request_id, len(signed))


def ensure_can_send(document) -> None:
    if document.status != DocumentStatus.DRAFT.value:
        raise SignatureRequestConflictException(document.id, document.status)


def can_delete_document(document_status: str, signatures: Iterable[object]) -> bool:
    """
    Draft and completed documents can always be deleted. Otherwise every
    signature must be signed, and there must be at least one.
    """
    if document_status in (DocumentStatus.DRAFT.value, DocumentStatus.COMPLETED.value):
        return True
    signatures = list(signatures)
    return bool(signatures) and all(s.status == SignatureStatus.SIGNED.value for s in signatures)


def has_signed(signatures: Iterable[object]) -> bool:
    return any(s.status == SignatureStatus.SIGNED.value for s in signatures)
