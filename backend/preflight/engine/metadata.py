"""preflight/engine/metadata.py

Image / PDF metadata via external inspection tools.

Image strategy:
  ImageMagick `identify` on the first frame. Any failure (missing binary,
  timeout, non-zero exit, unparseable output) is AnalysisFailed.

PDF strategy (lenient, first hit wins):
  1) poppler `pdfinfo`
  2) pypdf
  3) default of one page, zero size
"""

from __future__ import annotations

import logging
import math
import re
from pathlib import Path

from preflight.constants.formats import DetectedFormat
from preflight.engine.convert import imagemagick_input
from preflight.engine.errors import AnalysisFailed, ToolError
from preflight.engine.tools import ToolRunner, run_tool
from preflight.engine.types import DEFAULT_SCREEN_DPI, ImageMetadata, PdfInfo

logger = logging.getLogger("preflight.metadata")

IDENTIFY_FORMAT = "%w|%h|%x|%y|%U|%[colorspace]|%[channels]|%m"
_IDENTIFY_FIELDS = 8

CM_PER_INCH = 2.54

_LEADING_NUMBER = re.compile(r"^\s*([0-9]*\.?[0-9]+)")
_PAGES = re.compile(r"^Pages:\s+(\d+)", re.MULTILINE)
_PAGE_SIZE = re.compile(r"^Page size:\s+([\d.]+)\s+x\s+([\d.]+)", re.MULTILINE)


def _leading_float(raw: str) -> float:
    # identify may print "300", "300.0" or "300 PixelsPerInch" depending on version
    m = _LEADING_NUMBER.match(raw or "")
    return float(m.group(1)) if m else 0.0


def _has_alpha(channels: str) -> bool:
    desc = (channels or "").strip().lower()
    if "alpha" in desc:
        return True
    token = desc.split()[0] if desc else ""
    return token.endswith("a")


def parse_identify_output(stdout: str) -> ImageMetadata:
    """Normalize one line of `identify -format IDENTIFY_FORMAT` output."""
    line = (stdout or "").strip().splitlines()[0] if (stdout or "").strip() else ""
    parts = line.split("|")
    if len(parts) < _IDENTIFY_FIELDS:
        raise AnalysisFailed(f"Unexpected identify output: {line[:200]!r}")

    width_raw, height_raw, x_raw, y_raw, units, colorspace, channels, fmt = parts[:_IDENTIFY_FIELDS]
    try:
        width = int(width_raw)
        height = int(height_raw)
    except ValueError as e:
        raise AnalysisFailed(f"Unparseable image size: {width_raw!r}x{height_raw!r}") from e
    if width <= 0 or height <= 0:
        raise AnalysisFailed(f"Invalid image size: {width}x{height}")

    x_res = _leading_float(x_raw) or DEFAULT_SCREEN_DPI
    y_res = _leading_float(y_raw) or DEFAULT_SCREEN_DPI
    if "centimeter" in units.lower():
        x_res *= CM_PER_INCH
        y_res *= CM_PER_INCH

    # half-up, not banker's rounding
    dpi = int(math.floor((x_res + y_res) / 2 + 0.5))

    return ImageMetadata(
        width=width,
        height=height,
        dpi=dpi,
        colorspace=colorspace.strip() or "unknown",
        has_alpha=_has_alpha(channels),
        page_count=1,
        source_format=fmt.strip() or "unknown",
    )


def parse_pdfinfo_output(stdout: str) -> PdfInfo:
    pages_match = _PAGES.search(stdout or "")
    size_match = _PAGE_SIZE.search(stdout or "")
    if not pages_match:
        raise ValueError("pdfinfo output has no page count")

    pages = int(pages_match.group(1))
    if size_match:
        return PdfInfo.from_points(pages, float(size_match.group(1)), float(size_match.group(2)), strategy="pdfinfo")
    return PdfInfo(page_count=pages, width=0, height=0, strategy="pdfinfo")


class MetadataExtractor:
    def __init__(
        self,
        runner: ToolRunner = run_tool,
        *,
        identify_bin: str = "identify",
        pdfinfo_bin: str = "pdfinfo",
        identify_timeout_s: float = 30,
        pdfinfo_timeout_s: float = 10,
    ):
        self.runner = runner
        self.identify_bin = identify_bin
        self.pdfinfo_bin = pdfinfo_bin
        self.identify_timeout_s = identify_timeout_s
        self.pdfinfo_timeout_s = pdfinfo_timeout_s

    @classmethod
    def from_settings(cls, settings, runner: ToolRunner = run_tool) -> "MetadataExtractor":
        return cls(
            runner,
            identify_bin=settings.IDENTIFY_BIN,
            pdfinfo_bin=settings.PDFINFO_BIN,
            identify_timeout_s=settings.IDENTIFY_TIMEOUT_SECONDS,
            pdfinfo_timeout_s=settings.PDFINFO_TIMEOUT_SECONDS,
        )

    def extract_image(self, file_path: str | Path, fmt: DetectedFormat | None = None) -> ImageMetadata:
        """`fmt` pins the ImageMagick decoder; without it identify guesses from the bytes."""
        cmd = [self.identify_bin, "-format", IDENTIFY_FORMAT, imagemagick_input(file_path, fmt)]
        try:
            proc = self.runner(cmd, timeout_s=self.identify_timeout_s)
        except ToolError as e:
            logger.warning("identify.failed", extra={"path": str(file_path), "error": str(e)})
            raise AnalysisFailed("Failed to analyze image") from e

        meta = parse_identify_output(proc.stdout)
        logger.info(
            "identify.done",
            extra={"width": meta.width, "height": meta.height, "dpi": meta.dpi, "colorspace": meta.colorspace},
        )
        return meta

    def extract_pdf(self, file_path: str | Path) -> PdfInfo:
        # 1) pdfinfo
        try:
            proc = self.runner([self.pdfinfo_bin, str(file_path)], timeout_s=self.pdfinfo_timeout_s)
            return parse_pdfinfo_output(proc.stdout)
        except (ToolError, ValueError) as e:
            logger.warning("pdfinfo.failed", extra={"path": str(file_path), "error": str(e)})

        # 2) pypdf
        try:
            from pypdf import PdfReader

            reader = PdfReader(str(file_path))
            pages = len(reader.pages)
            if pages > 0:
                box = reader.pages[0].mediabox
                return PdfInfo.from_points(pages, float(box.width), float(box.height), strategy="pypdf")
        except Exception as e:
            logger.warning("pypdf.failed", extra={"path": str(file_path), "error": str(e)})

        # 3) page count is advisory; never fail the run over it
        return PdfInfo(page_count=1, width=0, height=0)
