# signfast/compositor/exceptions.py

"""
Custom exceptions for the Document Compositor.
"""

from signfast.core.exceptions import CollaboratorException


class RenderException(CollaboratorException):
    """Raised when the source PDF cannot be read or the output cannot be written"""
    def __init__(self, reason: str):
        super().__init__(f"Failed to render document: {reason}")
