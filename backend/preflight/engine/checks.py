"""preflight/engine/checks.py

Individual preflight checks and the aggregator that runs them.

Order is fixed: fileSize, format, pageCount (PDF only), dpi, dimensions,
transparency, colorProfile. Only a failed format check stops the run early.
The overall verdict is always fold_overall(checks).
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable

from preflight.constants.formats import DetectedFormat
from preflight.constants.statuses import CheckStatus
from preflight.engine.errors import AnalysisFailed
from preflight.engine.metadata import MetadataExtractor
from preflight.engine.policy import DEFAULT_ALIASES, MimeAliases
from preflight.engine.sniffer import detect
from preflight.engine.types import CheckResult, ImageMetadata, PdfInfo, PolicyConfig, PreflightResult

logger = logging.getLogger("preflight.checks")

# Below min_dpi * this factor a file is unusable; between it and required_dpi it is a warning
DPI_HARD_FLOOR_FACTOR = 0.7

GOOD_COLORSPACES = ("srgb", "rgb", "cmyk")


def check_file_size(file_size: int, policy: PolicyConfig) -> CheckResult:
    size_mb = f"{file_size / (1024 * 1024):.2f}"
    if file_size > policy.max_file_size_bytes:
        return CheckResult(
            name="fileSize",
            status=CheckStatus.ERROR,
            value=size_mb,
            message=f"File size ({size_mb}MB) exceeds limit ({policy.max_file_size_mb:g}MB)",
        )
    return CheckResult(
        name="fileSize",
        status=CheckStatus.OK,
        value=size_mb,
        message=f"File size: {size_mb}MB",
    )


def check_format(
    detected: DetectedFormat,
    policy: PolicyConfig,
    *,
    declared_mime: str | None = None,
    aliases: MimeAliases = DEFAULT_ALIASES,
) -> CheckResult:
    details: dict = {"detected": detected.value}
    if declared_mime:
        details["declared"] = declared_mime
        details["declaredMatches"] = detected != DetectedFormat.UNKNOWN and aliases.same_format(detected.value, declared_mime)

    if not aliases.is_allowed(detected, policy.allowed_formats):
        return CheckResult(
            name="format",
            status=CheckStatus.ERROR,
            value=detected.value,
            message=f"Unsupported file format: {detected.value}",
            details=details,
        )
    return CheckResult(
        name="format",
        status=CheckStatus.OK,
        value=detected.value,
        message=f"Format: {detected.value}",
        details=details,
    )


def check_page_count(pdf: PdfInfo, policy: PolicyConfig) -> CheckResult:
    pages = pdf.page_count
    details = {"estimatedWidth": pdf.width, "estimatedHeight": pdf.height, "source": pdf.strategy}
    if pages > policy.max_pages:
        return CheckResult(
            name="pageCount",
            status=CheckStatus.ERROR,
            value=pages,
            message=f"PDF has {pages} pages (max: {policy.max_pages})",
            details=details,
        )
    if pages > 1:
        return CheckResult(
            name="pageCount",
            status=CheckStatus.WARNING,
            value=pages,
            message=f"PDF has {pages} pages. Only first page will be used.",
            details=details,
        )
    return CheckResult(
        name="pageCount",
        status=CheckStatus.OK,
        value=pages,
        message="Single page PDF",
        details=details,
    )


def check_dpi(dpi: int, policy: PolicyConfig) -> CheckResult:
    if dpi < policy.min_dpi * DPI_HARD_FLOOR_FACTOR:
        return CheckResult(
            name="dpi",
            status=CheckStatus.ERROR,
            value=dpi,
            message=f"DPI ({dpi}) is too low. Minimum: {policy.min_dpi}",
        )
    if dpi < policy.required_dpi:
        return CheckResult(
            name="dpi",
            status=CheckStatus.WARNING,
            value=dpi,
            message=f"DPI ({dpi}) is below recommended ({policy.required_dpi})",
        )
    return CheckResult(name="dpi", status=CheckStatus.OK, value=dpi, message=f"DPI: {dpi}")


def check_dimensions(meta: ImageMetadata) -> CheckResult:
    return CheckResult(
        name="dimensions",
        status=CheckStatus.OK,
        value=f"{meta.width}x{meta.height}",
        message=f"Dimensions: {meta.width} x {meta.height} px",
        details={"width": meta.width, "height": meta.height},
    )


def check_transparency(meta: ImageMetadata, policy: PolicyConfig) -> CheckResult:
    details = {"required": policy.require_transparency}
    if meta.has_alpha:
        return CheckResult(
            name="transparency",
            status=CheckStatus.OK,
            value=True,
            message="Has transparency (alpha channel)",
            details=details,
        )
    message = "No transparency detected"
    if policy.require_transparency:
        message = "No transparency detected; this plan requires a transparent background"
    return CheckResult(
        name="transparency",
        status=CheckStatus.WARNING,
        value=False,
        message=message,
        details=details,
    )


def check_color_profile(meta: ImageMetadata) -> CheckResult:
    cs = meta.colorspace or "unknown"
    ok = any(good in cs.lower() for good in GOOD_COLORSPACES)
    return CheckResult(
        name="colorProfile",
        status=CheckStatus.OK if ok else CheckStatus.WARNING,
        value=cs,
        message=f"Color profile: {cs}",
    )


def analysis_failed_check() -> CheckResult:
    return CheckResult(
        name="imageAnalysis",
        status=CheckStatus.ERROR,
        message="Failed to analyze image properties",
    )


class PreflightChecker:
    """Runs the ordered checks for one file against one policy."""

    def __init__(
        self,
        extractor: MetadataExtractor,
        *,
        aliases: MimeAliases = DEFAULT_ALIASES,
        sniff: Callable[[str | Path], DetectedFormat] = detect,
    ):
        self.extractor = extractor
        self.aliases = aliases
        self.sniff = sniff

    def run_checks(
        self,
        file_path: str | Path,
        declared_mime: str | None,
        file_size: int,
        policy: PolicyConfig,
        *,
        raster_path: str | Path | None = None,
        detected: DetectedFormat | None = None,
    ) -> PreflightResult:
        """
        Never raises. `raster_path` is the converted PNG for PDF/vector/layered
        sources; image properties are read from it when given.
        """
        checks: list[CheckResult] = []
        try:
            checks.append(check_file_size(file_size, policy))

            if detected is None:
                detected = self.sniff(file_path)
            fmt = check_format(detected, policy, declared_mime=declared_mime, aliases=self.aliases)
            checks.append(fmt)
            if fmt.status == CheckStatus.ERROR:
                return PreflightResult(checks=tuple(checks))

            try:
                # a converted raster is always PNG
                image_fmt = DetectedFormat.PNG if raster_path else detected
                meta = self.extractor.extract_image(raster_path or file_path, image_fmt)
            except AnalysisFailed:
                checks.append(analysis_failed_check())
                return PreflightResult(checks=tuple(checks))

            if detected == DetectedFormat.PDF:
                checks.append(check_page_count(self.extractor.extract_pdf(file_path), policy))

            checks.append(check_dpi(meta.dpi, policy))
            checks.append(check_dimensions(meta))
            checks.append(check_transparency(meta, policy))
            checks.append(check_color_profile(meta))
        except Exception:
            logger.exception("checks.internal_error", extra={"path": str(file_path)})
            checks.append(
                CheckResult(
                    name="internal",
                    status=CheckStatus.ERROR,
                    message="Preflight checks could not be completed",
                )
            )

        return PreflightResult(checks=tuple(checks))
