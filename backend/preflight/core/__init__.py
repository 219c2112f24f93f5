# preflight/core/__init__.py
from preflight.core.errors import AppError
from preflight.core.error_codes import ErrorCode
from preflight.core.error_reasons import ErrorReason

__all__ = ["AppError", "ErrorCode", "ErrorReason"]
