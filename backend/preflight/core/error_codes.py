# preflight/core/error_codes.py
from enum import Enum

class ErrorCode(str, Enum):
    UNKNOWN = "UNKNOWN"
    INTERNAL_ERROR = "INTERNAL_ERROR"

    # Upload
    FILE_MISSING = "FILE_MISSING"

    # Rendering
    FILE_UNREADABLE = "FILE_UNREADABLE"
