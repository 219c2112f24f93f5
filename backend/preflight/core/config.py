# preflight/core/config.py
import os
from pathlib import Path
from pydantic_settings import BaseSettings, SettingsConfigDict

PROJECT_ROOT = Path(__file__).parent.parent.parent

class Settings(BaseSettings):
    app_name: str = "PrintPreflight"
    env: str = "local"
    LOG_LEVEL: str = "INFO"

    # =========================
    # External tools
    # =========================
    IDENTIFY_BIN: str = "identify"
    PDFINFO_BIN: str = "pdfinfo"
    GHOSTSCRIPT_BIN: str = "gs"
    PDFTOPPM_BIN: str = "pdftoppm"
    CONVERT_BIN: str = "convert"

    IDENTIFY_TIMEOUT_SECONDS: int = 30
    PDFINFO_TIMEOUT_SECONDS: int = 10

    # =========================
    # Rendering
    # =========================
    RENDER_DPI: int = 300
    FALLBACK_RENDER_DPI: int = 150
    MIN_OUTPUT_BYTES: int = 100   # anything smaller is treated as a failed render

    THUMBNAIL_MAX_DIMENSION: int = 400
    THUMBNAIL_FORMAT: str = "webp"

    # Per-run scratch dirs are created under this (system temp dir if unset)
    PREFLIGHT_WORK_DIR: str | None = None
    # Optional JSON file replacing the built-in plan table
    PREFLIGHT_POLICY_FILE: str | None = None

    # =========================
    # Worker
    # =========================
    REDIS_BROKER_URL: str = "redis://localhost:6379/0"
    CELERY_RESULT_BACKEND: str | None = None
    WORKER_CONCURRENCY: int = 3
    TASK_SOFT_TIME_LIMIT_SECONDS: int = 600

    # HTTP
    CORS_ALLOW_ORIGINS: str | None = None

    model_config = SettingsConfigDict(
        env_file=os.path.join(PROJECT_ROOT, ".env"),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

settings = Settings()
