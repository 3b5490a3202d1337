# signfast/signing/exceptions.py

"""
Custom exceptions for the Signing module.
"""

from signfast.core.exceptions import (
    AuthorizationException, CollaboratorException, GoneException,
    NotFoundException, StateConflictException, ValidationException,
)


class SignatureNotFoundException(NotFoundException):
    """Raised when a signing token does not resolve to a signature"""
    def __init__(self):
        super().__init__("Invalid or expired signing link")


class SignatureRequestNotFoundException(NotFoundException):
    """Raised when a request ID has no active members"""
    def __init__(self, request_id: str):
        self.request_id = request_id
        super().__init__(f"Signature request {request_id} not found")


class SignatureAlreadySignedException(StateConflictException):
    """Raised when a signer submits twice"""
    def __init__(self, signature_id: int):
        self.signature_id = signature_id
        super().__init__("Document has already been signed")


class SignatureRequestDeletedException(GoneException):
    """Raised when the owner withdrew the request this signature belongs to"""
    def __init__(self, request_id: str):
        self.request_id = request_id
        super().__init__("This signature request has been cancelled by the sender")


class SignatureRequestLockedException(StateConflictException):
    """Raised when deleting a request that already has signed members"""
    def __init__(self, request_id: str, signed_count: int):
        self.request_id = request_id
        self.signed_count = signed_count
        super().__init__(
            f"Cannot delete signature request {request_id}: "
            f"{signed_count} signer(s) have already signed"
        )


class SignatureRequestConflictException(StateConflictException):
    """Raised when sending a document that is not in draft"""
    def __init__(self, document_id: int, current_status: str):
        self.document_id = document_id
        self.current_status = current_status
        super().__init__(
            f"Document {document_id} has status '{current_status}'; "
            f"only draft documents can be sent for signature"
        )


class SignatureRequestValidationException(ValidationException):
    """Raised when a signature request is malformed"""
    def __init__(self, reason: str):
        super().__init__(reason)


class SignatureSubmissionValidationException(ValidationException):
    """Raised when a signer's submission is malformed"""
    def __init__(self, reason: str):
        super().__init__(reason)


class SignatureRequestAccessDeniedException(AuthorizationException):
    """Raised when a non-owner acts on a request"""
    def __init__(self, request_id: str):
        self.request_id = request_id
        super().__init__("You do not have permission to modify this signature request")


class ArtifactStorageException(CollaboratorException):
    """Raised when a rendered artifact cannot be stored or the source fetched"""
    def __init__(self, key: str, operation: str = "store"):
        self.key = key
        super().__init__(f"Failed to {operation} document artifact")


class SignatureRequestIncompleteException(StateConflictException):
    """Raised when finalizing a request that still has pending signers"""
    def __init__(self, request_id: str):
        self.request_id = request_id
        super().__init__(f"Signature request {request_id} is not fully signed yet")
