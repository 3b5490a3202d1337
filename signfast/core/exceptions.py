# signfast/core/exceptions.py

"""
Base error taxonomy shared by every SignFast module.

Each domain module defines concrete subclasses in its own exceptions.py.
Routers translate these families to HTTP status codes via `status_code`.
"""

from fastapi import status


class SignFastBaseException(Exception):
    """Base exception for all SignFast errors"""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class ValidationException(SignFastBaseException):
    """Malformed input, wrong signer count, empty submission"""
    status_code = status.HTTP_400_BAD_REQUEST


class AuthorizationException(SignFastBaseException):
    """Caller is not allowed to act on the resource"""
    status_code = status.HTTP_403_FORBIDDEN


class NotFoundException(SignFastBaseException):
    """Unknown token, request or document"""
    status_code = status.HTTP_404_NOT_FOUND


class StateConflictException(SignFastBaseException):
    """Operation not allowed in the current state"""
    status_code = status.HTTP_409_CONFLICT


class GoneException(StateConflictException):
    """The resource existed but has been withdrawn"""
    status_code = status.HTTP_410_GONE


class PaymentRequiredException(SignFastBaseException):
    """Owner has no free signatures left and no active plan"""
    status_code = status.HTTP_402_PAYMENT_REQUIRED


class CollaboratorException(SignFastBaseException):
    """Object store, renderer, notifier or payment provider failed"""
    status_code = status.HTTP_502_BAD_GATEWAY
