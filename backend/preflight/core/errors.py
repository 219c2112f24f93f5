"""
errors.py
- Purpose: AppError used by services and routers for consistent API errors.
- Pattern: raise AppError(...) in a service, handler converts to JSON response.
"""



from dataclasses import dataclass
from typing import Any

from fastapi import status as http_status
from preflight.core.error_codes import ErrorCode
from preflight.core.error_reasons import ErrorReason



@dataclass
class AppError(Exception):
    code: ErrorCode
    reason: str
    status_code: int = http_status.HTTP_400_BAD_REQUEST
    details: dict[str, Any] | None = None
    message: str | None = None  # Optional human-readable message

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "error": {
                "code": self.code,
                "reason": self.reason,
                "message": self.message if self.message else self.reason,
            }
        }
        if self.details:
            payload["error"]["details"] = self.details
        return payload



def unprocessable(reason: str = ErrorReason.FILE_UNREADABLE.value, *, code: ErrorCode = ErrorCode.FILE_UNREADABLE, details: dict | None = None, message: str | None = None) -> AppError:
    return AppError(code=code, reason=str(reason), status_code=422, details=details, message=message)
