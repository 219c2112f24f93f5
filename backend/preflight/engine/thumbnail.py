"""preflight/engine/thumbnail.py

Preview generation. Cosmetic, so it degrades instead of failing:

1) ImageMagick downscale of the first frame (aspect ratio kept, never upscaled)
2) Pillow placeholder: flat tile labelled with the file extension

ThumbnailFailed only escapes when both fail.
"""

from __future__ import annotations

import logging
from pathlib import Path

from PIL import Image, ImageDraw, ImageFont

from preflight.constants.formats import DetectedFormat
from preflight.engine.attempts import plausible_output, run_attempts
from preflight.engine.convert import imagemagick_input
from preflight.engine.errors import ThumbnailFailed
from preflight.engine.tools import ToolRunner, run_tool
from preflight.engine.types import Attempt

logger = logging.getLogger("preflight.thumbnail")

PLACEHOLDER_BACKGROUND = (229, 231, 235)
PLACEHOLDER_FOREGROUND = (75, 85, 99)

_PIL_FORMATS = {
    ".png": "PNG",
    ".webp": "WEBP",
    ".jpg": "JPEG",
    ".jpeg": "JPEG",
}


def _label_for(source_path: Path) -> str:
    ext = source_path.suffix.lstrip(".").upper()
    return ext[:6] if ext else "FILE"


def _load_font(size: int):
    try:
        return ImageFont.load_default(size=size)
    except TypeError:
        # Pillow < 10.1 has no sized default font
        return ImageFont.load_default()


def placeholder(target_path: str | Path, max_dimension: int, label: str) -> None:
    """Write a flat placeholder tile of max_dimension x max_dimension."""
    target = Path(target_path)
    side = max(16, int(max_dimension))
    img = Image.new("RGB", (side, side), PLACEHOLDER_BACKGROUND)
    draw = ImageDraw.Draw(img)

    inset = max(2, side // 20)
    draw.rectangle([inset, inset, side - inset - 1, side - inset - 1], outline=PLACEHOLDER_FOREGROUND, width=max(1, side // 100))

    font = _load_font(max(10, side // 6))
    text = label or "FILE"
    left, top, right, bottom = draw.textbbox((0, 0), text, font=font)
    x = (side - (right - left)) / 2 - left
    y = (side - (bottom - top)) / 2 - top
    draw.text((x, y), text, fill=PLACEHOLDER_FOREGROUND, font=font)

    fmt = _PIL_FORMATS.get(target.suffix.lower(), "PNG")
    target.parent.mkdir(parents=True, exist_ok=True)
    img.save(target, format=fmt)


class ThumbnailGenerator:
    def __init__(
        self,
        runner: ToolRunner = run_tool,
        *,
        convert_bin: str = "convert",
        timeout_s: float = 30,
        quality: int = 85,
        min_output_bytes: int = 100,
    ):
        self.runner = runner
        self.convert_bin = convert_bin
        self.timeout_s = timeout_s
        self.quality = quality
        self.min_output_bytes = min_output_bytes

    @classmethod
    def from_settings(cls, settings, runner: ToolRunner = run_tool) -> "ThumbnailGenerator":
        return cls(runner, convert_bin=settings.CONVERT_BIN, min_output_bytes=settings.MIN_OUTPUT_BYTES)

    def thumbnail_cmd(self, source: Path, target: Path, max_dimension: int, fmt: DetectedFormat | None = None) -> list[str]:
        return [
            self.convert_bin,
            imagemagick_input(source, fmt),
            "-thumbnail",
            f"{max_dimension}x{max_dimension}>",
            "-quality",
            str(self.quality),
            str(target),
        ]

    def generate(
        self,
        source_path: str | Path,
        target_path: str | Path,
        max_dimension: int = 400,
        *,
        label: str | None = None,
        fmt: DetectedFormat | None = None,
    ) -> str:
        """Write a preview to `target_path`; return "imagemagick" or "placeholder"."""
        source = Path(source_path)
        target = Path(target_path)
        target.parent.mkdir(parents=True, exist_ok=True)
        cmd = self.thumbnail_cmd(source, target, max_dimension, fmt)

        def downscale(timeout_s: float) -> None:
            self.runner(cmd, timeout_s=timeout_s)

        def draw_placeholder(_timeout_s: float) -> None:
            placeholder(target, max_dimension, label or _label_for(source))

        # The placeholder is far smaller than a real render; only require it to exist
        attempts = [
            Attempt("imagemagick", downscale, self.timeout_s, plausible_output(target, self.min_output_bytes)),
            Attempt("placeholder", draw_placeholder, 0, plausible_output(target, 0)),
        ]
        return run_attempts(attempts, target=target, purpose="thumbnail", error_cls=ThumbnailFailed)
