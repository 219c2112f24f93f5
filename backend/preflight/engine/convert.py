"""preflight/engine/convert.py

Rasterize non-simple formats (PDF, PostScript/EPS/AI, TIFF, PSD) to a PNG.

Each format has an ordered list of strategies, most faithful first:

  PDF         ghostscript @ requested dpi -> ghostscript @ fallback dpi -> pdftoppm @ fallback dpi
  PostScript  ghostscript eps-crop @ requested -> eps-crop @ fallback -> full page @ fallback
  TIFF        imagemagick sRGB flattened -> imagemagick plain
  PSD         imagemagick merged composite -> imagemagick all layers flattened

Only the first page/frame is rendered. Every Ghostscript call goes through
ghostscript_cmd(), which always applies the sandbox flags: PDF and
PostScript can carry active content and are untrusted input.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Mapping, Sequence

from preflight.constants.formats import CONVERTIBLE_FORMATS, IMAGEMAGICK_CODERS, DetectedFormat
from preflight.engine.attempts import plausible_output, run_attempts
from preflight.engine.errors import ConversionFailed
from preflight.engine.tools import ToolRunner, run_tool
from preflight.engine.types import Attempt, ConversionStrategy

logger = logging.getLogger("preflight.convert")

# No file-system, font or device access from inside the document
GS_SAFETY_FLAGS = (
    "-dSAFER",
    "-dBATCH",
    "-dNOPAUSE",
    "-dNOCACHE",
    "-dNOPLATFONTS",
    "-dPARANOIDSAFER",
)

_GS_RESOURCE_LIMITS = ("-dMaxBitmap=500000000", "-dBufferSpace=1000000")


def ghostscript_cmd(gs_bin: str, source: Path, target: Path, dpi: int, *extra: str) -> list[str]:
    # gs reads "%d" in -sOutputFile as a page template; "%%" is a literal percent
    output = str(target).replace("%", "%%")
    return [
        gs_bin,
        *GS_SAFETY_FLAGS,
        "-sDEVICE=png16m",
        f"-r{dpi}",
        "-dFirstPage=1",
        "-dLastPage=1",
        *_GS_RESOURCE_LIMITS,
        *extra,
        f"-sOutputFile={output}",
        str(source),
    ]


def pdftoppm_cmd(pdftoppm_bin: str, source: Path, target: Path, dpi: int) -> list[str]:
    # pdftoppm appends ".png" to the output root itself
    return [
        pdftoppm_bin,
        "-png",
        "-r",
        str(dpi),
        "-f",
        "1",
        "-l",
        "1",
        "-singlefile",
        str(source),
        str(target.with_suffix("")),
    ]


def imagemagick_input(path: str | Path, fmt: DetectedFormat | None = None, frame: int = 0) -> str:
    """`coder:path[frame]`, or a bare `path[frame]` when the format has no pinned coder."""
    coder = IMAGEMAGICK_CODERS.get(fmt) if fmt is not None else None
    prefix = f"{coder}:" if coder else ""
    return f"{prefix}{path}[{frame}]"


def imagemagick_cmd(convert_bin: str, coder: str, source: Path, target: Path, *ops: str, frame: str | None = "0") -> list[str]:
    # Explicit coder prefixes stop ImageMagick from guessing a different decoder
    src = f"{coder}:{source}" + (f"[{frame}]" if frame is not None else "")
    return [convert_bin, src, *ops, f"png:{target}"]


def default_strategies(
    *,
    gs_bin: str = "gs",
    pdftoppm_bin: str = "pdftoppm",
    convert_bin: str = "convert",
    fallback_dpi: int = 150,
) -> dict[DetectedFormat, tuple[ConversionStrategy, ...]]:
    def reduced(dpi: int) -> int:
        return min(dpi, fallback_dpi)

    return {
        DetectedFormat.PDF: (
            ConversionStrategy(
                "ghostscript",
                60,
                lambda s, t, dpi: ghostscript_cmd(gs_bin, s, t, dpi),
            ),
            ConversionStrategy(
                "ghostscript-reduced-dpi",
                45,
                lambda s, t, dpi: ghostscript_cmd(gs_bin, s, t, reduced(dpi)),
            ),
            ConversionStrategy(
                "pdftoppm",
                45,
                lambda s, t, dpi: pdftoppm_cmd(pdftoppm_bin, s, t, reduced(dpi)),
            ),
        ),
        DetectedFormat.POSTSCRIPT: (
            ConversionStrategy(
                "ghostscript-eps",
                60,
                lambda s, t, dpi: ghostscript_cmd(gs_bin, s, t, dpi, "-dEPSCrop"),
            ),
            ConversionStrategy(
                "ghostscript-eps-reduced-dpi",
                45,
                lambda s, t, dpi: ghostscript_cmd(gs_bin, s, t, reduced(dpi), "-dEPSCrop"),
            ),
            ConversionStrategy(
                "ghostscript-page-reduced-dpi",
                45,
                lambda s, t, dpi: ghostscript_cmd(gs_bin, s, t, reduced(dpi)),
            ),
        ),
        DetectedFormat.TIFF: (
            ConversionStrategy(
                "imagemagick-srgb",
                60,
                lambda s, t, dpi: imagemagick_cmd(convert_bin, "tiff", s, t, "-colorspace", "sRGB", "-flatten"),
            ),
            ConversionStrategy(
                "imagemagick",
                30,
                lambda s, t, dpi: imagemagick_cmd(convert_bin, "tiff", s, t),
            ),
        ),
        DetectedFormat.PSD: (
            ConversionStrategy(
                "imagemagick-composite",
                120,
                lambda s, t, dpi: imagemagick_cmd(convert_bin, "psd", s, t),
            ),
            ConversionStrategy(
                "imagemagick-flatten",
                120,
                lambda s, t, dpi: imagemagick_cmd(convert_bin, "psd", s, t, "-flatten", frame=None),
            ),
        ),
    }


def needs_conversion(fmt: DetectedFormat) -> bool:
    return fmt in CONVERTIBLE_FORMATS


class Converter:
    def __init__(
        self,
        runner: ToolRunner = run_tool,
        *,
        strategies: Mapping[DetectedFormat, Sequence[ConversionStrategy]] | None = None,
        min_output_bytes: int = 100,
    ):
        self.runner = runner
        self.strategies = dict(strategies) if strategies is not None else default_strategies()
        self.min_output_bytes = min_output_bytes

    @classmethod
    def from_settings(cls, settings, runner: ToolRunner = run_tool) -> "Converter":
        return cls(
            runner,
            strategies=default_strategies(
                gs_bin=settings.GHOSTSCRIPT_BIN,
                pdftoppm_bin=settings.PDFTOPPM_BIN,
                convert_bin=settings.CONVERT_BIN,
                fallback_dpi=settings.FALLBACK_RENDER_DPI,
            ),
            min_output_bytes=settings.MIN_OUTPUT_BYTES,
        )

    def _attempt(self, strategy: ConversionStrategy, source: Path, target: Path, dpi: int) -> Attempt:
        cmd = strategy.build(source, target, dpi)

        def invoke(timeout_s: float) -> None:
            self.runner(cmd, timeout_s=timeout_s)

        return Attempt(
            name=strategy.name,
            invoke=invoke,
            timeout_s=strategy.timeout_s,
            succeeded=plausible_output(target, self.min_output_bytes),
        )

    def convert(
        self,
        source_format: DetectedFormat,
        file_path: str | Path,
        target_path: str | Path,
        requested_dpi: int = 300,
    ) -> str:
        """Write a PNG rendering of `file_path` to `target_path`; return the strategy used."""
        source = Path(file_path)
        target = Path(target_path)
        plan = self.strategies.get(source_format, ())
        if not plan:
            raise ConversionFailed(f"No conversion strategies for {source_format.value}", attempts=[])

        target.parent.mkdir(parents=True, exist_ok=True)
        logger.info(
            "convert.start",
            extra={"format": source_format.value, "dpi": requested_dpi, "strategies": [s.name for s in plan]},
        )
        attempts = [self._attempt(s, source, target, requested_dpi) for s in plan]
        used = run_attempts(attempts, target=target, purpose="convert", error_cls=ConversionFailed)
        logger.info("convert.done", extra={"format": source_format.value, "strategy": used})
        return used
