"""
preflight.py (schemas)
- Purpose: Response DTOs for the preflight API.
- Design: Keep API DTOs stable; include helper constructors for DRY mapping.
"""

from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from preflight.engine.types import PolicyConfig, PreflightResult

Status = Literal["ok", "warning", "error"]


class CheckResultOut(BaseModel):
    name: str
    status: Status
    value: Any = None
    message: Optional[str] = None
    details: Optional[dict[str, Any]] = None


class PreflightResponse(BaseModel):
    """
    Check report for one uploaded file. Artifact paths are not exposed: the
    HTTP endpoint deletes its scratch directory after responding.
    """
    model_config = ConfigDict(populate_by_name=True)

    overall: Status
    tier: str
    detected_format: str = Field(alias="detectedFormat")
    checks: list[CheckResultOut]
    converted: bool = False
    thumbnail: bool = False

    @classmethod
    def from_result(cls, result: PreflightResult, *, tier: str, detected_format: str) -> "PreflightResponse":
        return cls(
            overall=result.overall.value,
            tier=tier,
            detected_format=detected_format,
            checks=[CheckResultOut(**c.to_dict()) for c in result.checks],
            converted=bool(result.converted_path),
            thumbnail=bool(result.thumbnail_path),
        )


class PolicyOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    tier: str
    max_file_size_bytes: int = Field(alias="maxFileSizeBytes")
    min_dpi: int = Field(alias="minDPI")
    required_dpi: int = Field(alias="requiredDPI")
    max_pages: int = Field(alias="maxPages")
    allowed_formats: list[str] = Field(alias="allowedFormats")
    require_transparency: bool = Field(alias="requireTransparency")

    @classmethod
    def from_policy(cls, policy: PolicyConfig) -> "PolicyOut":
        return cls(
            tier=policy.tier,
            max_file_size_bytes=policy.max_file_size_bytes,
            min_dpi=policy.min_dpi,
            required_dpi=policy.required_dpi,
            max_pages=policy.max_pages,
            allowed_formats=sorted(policy.allowed_formats),
            require_transparency=policy.require_transparency,
        )
