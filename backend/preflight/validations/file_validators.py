"""
file_validators.py
- Purpose: Upload-level validation before a file is written to scratch space.
- Design: Raise AppError with stable error codes for UI + logs. Content checks
  (format, size, DPI...) are preflight checks, not validation errors.
"""

import re
from pathlib import PurePath

from fastapi import UploadFile

from preflight.core import AppError, ErrorCode, ErrorReason

_SAFE_SUFFIX = re.compile(r"^\.[A-Za-z0-9]{1,8}$")


def validate_upload(upload: UploadFile) -> None:
    if not upload or not upload.filename:
        raise AppError(
            code=ErrorCode.FILE_MISSING,
            reason=ErrorReason.INVALID_INPUT.value,
            message="No file was uploaded",
            status_code=422,
        )


def safe_suffix(filename: str | None) -> str:
    """Extension of the client's filename, if harmless; used only for labels."""
    suffix = PurePath(filename or "").suffix
    return suffix.lower() if _SAFE_SUFFIX.match(suffix) else ""
