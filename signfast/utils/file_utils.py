# signfast/utils/file_utils.py

import os
from typing import Tuple, Optional

from signfast.core.config import settings

PDF_MAGIC = b"%PDF-"


def validate_file(filename: Optional[str], data: bytes) -> Tuple[bool, Optional[str]]:
    """
    Validates an uploaded file's type and size based on application settings.

    Args:
        filename: Original client-side file name.
        data: Raw file content.

    Returns:
        A tuple containing a boolean (True if valid) and an optional error message string.
    """
    # 1. Extension must be in the allowed list
    allowed_types = {ext.strip().lower() for ext in settings.allowed_file_types.split(',')}
    file_ext = os.path.splitext(filename or "")[1].lower().lstrip('.')

    if not file_ext:
        return False, "File must have an extension."

    if file_ext not in allowed_types:
        return False, f"File type '.{file_ext}' is not allowed. The allowed types are: {', '.join(sorted(allowed_types))}."

    # 2. Size limit is configured in KB
    max_size_in_bytes = settings.allowed_file_size * 1024
    if not data:
        return False, "File is empty."
    if len(data) > max_size_in_bytes:
        return False, f"File size of {len(data) / 1024:.2f} KB exceeds the maximum allowed size of {settings.allowed_file_size} KB."

    # 3. Only PDFs can be composited
    if file_ext == "pdf" and not data.startswith(PDF_MAGIC):
        return False, "File content is not a valid PDF."

    return True, None
