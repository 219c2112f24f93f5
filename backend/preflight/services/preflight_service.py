# preflight/services/preflight_service.py
"""
preflight_service.py
- Purpose: Runs one file through the preflight pipeline end-to-end.
- Owns: work dir, sniff -> convert -> checks -> thumbnail sequencing.
- Design: Thick service; router and worker task stay thin.

Artifacts are left on local disk in the run's work dir. Relocating them and
deleting the dir afterwards is the caller's job.
"""

from __future__ import annotations

import logging
import os
import re
import shutil
import tempfile
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from preflight.constants.formats import DetectedFormat
from preflight.core.config import Settings
from preflight.engine.checks import PreflightChecker
from preflight.engine.convert import Converter, needs_conversion
from preflight.engine.errors import ConversionFailed, ThumbnailFailed
from preflight.engine.metadata import MetadataExtractor
from preflight.engine.policy import DEFAULT_ALIASES, DEFAULT_POLICY_TABLE, MimeAliases, PolicyTable
from preflight.engine.sniffer import detect
from preflight.engine.thumbnail import ThumbnailGenerator, placeholder
from preflight.engine.types import PolicyConfig, PreflightResult

logger = logging.getLogger("preflight.service")

CONVERTED_NAME = "converted.png"

_UNSAFE_PREFIX_CHARS = re.compile(r"[^A-Za-z0-9_-]")

# Stage percentages reported through `on_progress`; the caller reports 100
PROGRESS_STARTED = 10
PROGRESS_STAGED = 20
PROGRESS_DETECTED = 30
PROGRESS_CONVERTED = 50
PROGRESS_CHECKED = 70
PROGRESS_THUMBNAILED = 90
PROGRESS_DONE = 100

ProgressCallback = Callable[[int], None]


def _no_progress(_percent: int) -> None:
    return None


@dataclass(frozen=True)
class PreflightRun:
    result: PreflightResult
    policy: PolicyConfig
    detected: DetectedFormat
    work_dir: Path
    conversion_strategy: str | None = None
    thumbnail_strategy: str | None = None

    def cleanup(self) -> None:
        shutil.rmtree(self.work_dir, ignore_errors=True)


class PreflightService:
    def __init__(
        self,
        *,
        settings: Settings,
        policies: PolicyTable = DEFAULT_POLICY_TABLE,
        extractor: MetadataExtractor | None = None,
        converter: Converter | None = None,
        thumbnailer: ThumbnailGenerator | None = None,
        aliases: MimeAliases = DEFAULT_ALIASES,
    ):
        self.settings = settings
        self.policies = policies
        self.aliases = aliases
        self.extractor = extractor or MetadataExtractor.from_settings(settings)
        self.converter = converter or Converter.from_settings(settings)
        self.thumbnailer = thumbnailer or ThumbnailGenerator.from_settings(settings)
        self.checker = PreflightChecker(self.extractor, aliases=aliases)

    @classmethod
    def from_settings(cls, settings: Settings) -> "PreflightService":
        policies = DEFAULT_POLICY_TABLE
        if settings.PREFLIGHT_POLICY_FILE:
            policies = PolicyTable.from_json_file(settings.PREFLIGHT_POLICY_FILE)
        return cls(settings=settings, policies=policies)

    def new_work_dir(self, item_id: str | None = None) -> Path:
        base = self.settings.PREFLIGHT_WORK_DIR
        if base:
            os.makedirs(base, exist_ok=True)
        # item ids are caller-supplied; only a safe slug reaches the path
        slug = _UNSAFE_PREFIX_CHARS.sub("_", item_id or "")[:40] or "run"
        # unique per call, even for the same item validated twice concurrently
        return Path(tempfile.mkdtemp(prefix=f"preflight-{slug}-", dir=base))

    def run(
        self,
        file_path: str | Path,
        *,
        tier: str | None,
        declared_mime: str | None = None,
        work_dir: str | Path | None = None,
        make_thumbnail: bool = True,
        item_id: str | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> PreflightRun:
        """
        Raises ConversionFailed when the file is allowed but no raster could be
        produced at all (file unreadable/corrupt). Every other outcome,
        including "all checks failed", is a PreflightRun.

        `on_progress(percent)` is called at each stage (see PROGRESS_*).
        """
        progress = on_progress or _no_progress
        t0 = time.time()
        source = Path(file_path)
        policy = self.policies.resolve(tier)
        progress(PROGRESS_STARTED)

        file_size = source.stat().st_size

        out_dir = Path(work_dir) if work_dir else self.new_work_dir(item_id)
        out_dir.mkdir(parents=True, exist_ok=True)
        progress(PROGRESS_STAGED)

        detected = detect(source)
        allowed = self.aliases.is_allowed(detected, policy.allowed_formats)
        logger.info(
            "preflight.start",
            extra={"tier": policy.tier, "detected": detected.value, "allowed": allowed, "size": file_size},
        )
        progress(PROGRESS_DETECTED)

        raster: Path | None = None
        conversion_strategy = None
        if allowed and needs_conversion(detected):
            raster = out_dir / CONVERTED_NAME
            try:
                conversion_strategy = self.converter.convert(detected, source, raster, self.settings.RENDER_DPI)
            except ConversionFailed as e:
                logger.error(
                    "preflight.conversion_failed",
                    extra={"detected": detected.value, "attempts": e.attempts, "error": str(e.last_error)},
                )
                if work_dir is None:
                    shutil.rmtree(out_dir, ignore_errors=True)
                raise
        progress(PROGRESS_CONVERTED)

        result = self.checker.run_checks(
            source,
            declared_mime,
            file_size,
            policy,
            raster_path=raster,
            detected=detected,
        )
        if raster is not None:
            result = result.with_artifacts(converted_path=str(raster))
        progress(PROGRESS_CHECKED)

        thumbnail_strategy = None
        if make_thumbnail:
            thumb = out_dir / f"thumbnail.{self.settings.THUMBNAIL_FORMAT}"
            thumbnail_strategy = self._thumbnail(source, raster, thumb, detected=detected, allowed=allowed)
            if thumbnail_strategy:
                result = result.with_artifacts(thumbnail_path=str(thumb))
        progress(PROGRESS_THUMBNAILED)

        logger.info(
            "preflight.done",
            extra={
                "tier": policy.tier,
                "overall": result.overall.value,
                "conversion": conversion_strategy,
                "thumbnail": thumbnail_strategy,
                "duration_ms": int((time.time() - t0) * 1000),
            },
        )
        return PreflightRun(
            result=result,
            policy=policy,
            detected=detected,
            work_dir=out_dir,
            conversion_strategy=conversion_strategy,
            thumbnail_strategy=thumbnail_strategy,
        )

    def _thumbnail(
        self,
        source: Path,
        raster: Path | None,
        target: Path,
        *,
        detected: DetectedFormat,
        allowed: bool,
    ) -> str | None:
        max_dim = self.settings.THUMBNAIL_MAX_DIMENSION
        label = source.suffix.lstrip(".").upper() or "FILE"

        # Rejected bytes never reach ImageMagick
        if not allowed:
            try:
                placeholder(target, max_dim, label)
                return "placeholder"
            except (OSError, ValueError):
                logger.exception("thumbnail.placeholder_failed")
                return None

        try:
            fmt = DetectedFormat.PNG if raster is not None else detected
            return self.thumbnailer.generate(raster or source, target, max_dim, label=label, fmt=fmt)
        except ThumbnailFailed as e:
            # preview is cosmetic; the check report still stands
            logger.error("thumbnail.failed", extra={"attempts": e.attempts, "error": str(e.last_error)})
            return None
