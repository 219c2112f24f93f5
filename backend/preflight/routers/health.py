import shutil

from fastapi import APIRouter

from preflight.core.config import settings

router = APIRouter(prefix="/api", tags=["health"])


@router.get("/health")
def health():
    return {"status": "ok"}


@router.get("/tools/health")
def tools_health():
    """Which external tools are resolvable on PATH (no tool is executed)."""
    tools = {
        "identify": settings.IDENTIFY_BIN,
        "pdfinfo": settings.PDFINFO_BIN,
        "ghostscript": settings.GHOSTSCRIPT_BIN,
        "pdftoppm": settings.PDFTOPPM_BIN,
        "convert": settings.CONVERT_BIN,
    }
    found = {name: shutil.which(binary) is not None for name, binary in tools.items()}
    return {"status": "ok" if all(found.values()) else "degraded", "tools": found}
