"""
statuses.py
- Purpose: Central source of truth for preflight verdicts.
- Design: Keep consumer-facing values stable ("ok" | "warning" | "error").
"""

from enum import Enum


class CheckStatus(str, Enum):
    OK = "ok"
    WARNING = "warning"
    ERROR = "error"

    @property
    def severity(self) -> int:
        return _SEVERITY[self]


_SEVERITY = {
    CheckStatus.OK: 0,
    CheckStatus.WARNING: 1,
    CheckStatus.ERROR: 2,
}


class UploadStatus(str, Enum):
    """Roll-up of every item in one upload, once none is still pending."""
    BLOCKED = "blocked"
    NEEDS_REVIEW = "needs_review"
