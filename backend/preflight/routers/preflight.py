"""
preflight.py
- Purpose: API routes for running preflight on an uploaded file and reading plan limits.
- Design: Keep router thin. Delegate the pipeline to PreflightService.
"""

import logging
import shutil

from fastapi import APIRouter, Depends, File, Form, UploadFile

from preflight.api.deps import get_policy_table, get_preflight_service
from preflight.core.errors import unprocessable
from preflight.engine.errors import ConversionFailed
from preflight.engine.policy import PolicyTable
from preflight.schemas.preflight import PolicyOut, PreflightResponse
from preflight.services.preflight_service import PreflightService
from preflight.validations.file_validators import safe_suffix, validate_upload

logger = logging.getLogger("preflight.routers.preflight")

router = APIRouter(prefix="/api", tags=["Preflight"])


@router.post("/preflight", response_model=PreflightResponse, response_model_by_alias=True)
def run_preflight(
    file: UploadFile = File(...),
    tier: str = Form("free"),
    thumbnail: bool = Form(True),
    svc: PreflightService = Depends(get_preflight_service),
):
    validate_upload(file)

    work_dir = svc.new_work_dir()
    try:
        local = work_dir / f"original{safe_suffix(file.filename)}"
        with open(local, "wb") as fh:
            shutil.copyfileobj(file.file, fh)

        try:
            run = svc.run(
                local,
                tier=tier,
                declared_mime=file.content_type,
                work_dir=work_dir,
                make_thumbnail=thumbnail,
            )
        except ConversionFailed as e:
            raise unprocessable(
                message="File could not be rendered; it may be corrupt",
                details={"attempts": e.attempts},
            ) from e

        return PreflightResponse.from_result(run.result, tier=run.policy.tier, detected_format=run.detected.value)
    finally:
        shutil.rmtree(work_dir, ignore_errors=True)


@router.get("/policies/{tier}", response_model=PolicyOut, response_model_by_alias=True)
def get_policy(tier: str, table: PolicyTable = Depends(get_policy_table)):
    """Resolved limits for a tier; unknown tiers show the fallback tier."""
    return PolicyOut.from_policy(table.resolve(tier))
