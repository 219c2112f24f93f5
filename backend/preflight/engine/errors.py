# preflight/engine/errors.py
from __future__ import annotations


class PreflightError(Exception):
    """Base preflight engine error."""


class ToolError(PreflightError):
    """An external tool could not produce a usable result."""

    def __init__(self, message: str, *, cmd: list[str] | None = None):
        super().__init__(message)
        self.cmd = list(cmd) if cmd else []


class ToolNotInstalled(ToolError):
    """Binary missing from PATH."""


class ToolTimeout(ToolError):
    """Tool exceeded its hard timeout and was killed."""

    def __init__(self, message: str, *, cmd: list[str] | None = None, timeout_s: float | None = None):
        super().__init__(message, cmd=cmd)
        self.timeout_s = timeout_s


class ToolExitError(ToolError):
    """Tool exited non-zero."""

    def __init__(self, message: str, *, cmd: list[str] | None = None, returncode: int | None = None, stderr: str = ""):
        super().__init__(message, cmd=cmd)
        self.returncode = returncode
        self.stderr = stderr


class AnalysisFailed(PreflightError):
    """Image metadata could not be read; surfaces as an error check, never as zeroed metadata."""


class AttemptsExhausted(PreflightError):
    """Every attempt in a chain failed."""

    def __init__(self, message: str, *, attempts: list[str], last_error: BaseException | None = None):
        super().__init__(message)
        self.attempts = list(attempts)
        self.last_error = last_error


class ConversionFailed(AttemptsExhausted):
    """No strategy could rasterize the source file."""


class ThumbnailFailed(AttemptsExhausted):
    """Both the normal thumbnail and the placeholder failed."""
