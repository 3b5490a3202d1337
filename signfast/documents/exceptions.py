# signfast/documents/exceptions.py

"""
Custom exceptions for the Documents module.
"""

from signfast.core.exceptions import (
    AuthorizationException, CollaboratorException, NotFoundException,
    StateConflictException, ValidationException,
)


class DocumentNotFoundException(NotFoundException):
    """Raised when a document is not found"""
    def __init__(self, document_id: int):
        self.document_id = document_id
        super().__init__(f"Document with ID {document_id} not found")


class DocumentAccessDeniedException(AuthorizationException):
    """Raised when a user acts on a document they do not own"""
    def __init__(self, document_id: int):
        self.document_id = document_id
        super().__init__(f"You do not have access to document {document_id}")


class InvalidDocumentFileException(ValidationException):
    """Raised when an upload fails type or size checks"""
    def __init__(self, reason: str):
        super().__init__(f"Invalid document file: {reason}")


class DocumentDeletionBlockedException(StateConflictException):
    """Raised when deleting a document with outstanding signers"""
    def __init__(self, document_id: int, current_status: str):
        self.document_id = document_id
        self.current_status = current_status
        super().__init__(
            f"Document {document_id} cannot be deleted while signatures are pending "
            f"(status '{current_status}'). Cancel the signature request first."
        )


class DocumentLayoutLockedException(StateConflictException):
    """Raised when reconfiguring regions after someone has signed"""
    def __init__(self, document_id: int):
        self.document_id = document_id
        super().__init__(
            f"Signature areas of document {document_id} cannot be changed after it has been signed"
        )


class SignedDocumentUnavailableException(NotFoundException):
    """Raised when the final signed artifact has not been produced"""
    def __init__(self, document_id: int):
        self.document_id = document_id
        super().__init__(f"Signed copy of document {document_id} is not available")


class DocumentStorageException(CollaboratorException):
    """Raised when the object store rejects an upload or download"""
    def __init__(self, key: str, operation: str):
        self.key = key
        super().__init__(f"Failed to {operation} document file")
