# signfast/regions/exceptions.py

"""
Custom exceptions for the Regions module.
"""

from signfast.core.exceptions import ValidationException


class RegionValidationException(ValidationException):
    """Raised when a region's geometry, type or signer binding is invalid"""
    def __init__(self, reason: str, index: int = None):
        self.index = index
        prefix = f"Region {index}: " if index is not None else "Invalid region: "
        super().__init__(f"{prefix}{reason}")


class SignerCountException(ValidationException):
    """Raised when a document's signer count is out of range"""
    def __init__(self, count: int, maximum: int):
        self.count = count
        super().__init__(f"Number of signers must be between 1 and {maximum}, got {count}")
