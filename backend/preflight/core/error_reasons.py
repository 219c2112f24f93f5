"""
error_reasons.py
- Purpose: Human-friendly "reason" strings.
- Keep these stable; they may be surfaced in UI and emails.
"""

from enum import Enum


class ErrorReason(str, Enum):
    UNKNOWN = "Unknown error"

    INVALID_INPUT = "Invalid input"

    FILE_UNREADABLE = "File unreadable or corrupt"
    INTERNAL_ERROR = "Internal server error"
