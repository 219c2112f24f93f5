import os
import subprocess
from pathlib import Path
from typing import Callable

import pytest
from PIL import Image

from preflight.core.config import Settings
from preflight.engine.errors import AnalysisFailed
from preflight.engine.types import ImageMetadata, PdfInfo


class FakeRunner:
    """
    Stands in for run_tool. `handler(cmd, timeout_s)` returns stdout (str), or
    raises a ToolError, and may write output files itself.
    """

    def __init__(self, handler: Callable[[list[str], float], str | None] | None = None):
        self.handler = handler
        self.calls: list[tuple[list[str], float]] = []

    def __call__(self, cmd: list[str], *, timeout_s: float) -> subprocess.CompletedProcess:
        self.calls.append((list(cmd), timeout_s))
        stdout = self.handler(cmd, timeout_s) if self.handler else ""
        return subprocess.CompletedProcess(cmd, 0, stdout=stdout or "", stderr="")

    @property
    def commands(self) -> list[list[str]]:
        return [c for c, _ in self.calls]


class StubExtractor:
    def __init__(self, meta: ImageMetadata | None = None, pdf: PdfInfo | None = None, fail: bool = False):
        self.meta = meta
        self.pdf = pdf or PdfInfo(page_count=1, width=0, height=0)
        self.fail = fail
        self.image_paths: list[Path] = []
        self.image_formats: list = []

    def extract_image(self, file_path, fmt=None):
        self.image_paths.append(Path(file_path))
        self.image_formats.append(fmt)
        if self.fail:
            raise AnalysisFailed("Failed to analyze image")
        return self.meta

    def extract_pdf(self, file_path):
        return self.pdf


def image_meta(**overrides) -> ImageMetadata:
    base = dict(
        width=2400,
        height=3000,
        dpi=300,
        colorspace="sRGB",
        has_alpha=True,
        page_count=1,
        source_format="PNG",
    )
    base.update(overrides)
    return ImageMetadata(**base)


def write_png(path: Path, size=(64, 64), mode="RGBA", dpi=(300, 300)) -> Path:
    # noise, so the encoded file is never implausibly small
    channels = len(mode)
    Image.frombytes(mode, size, os.urandom(size[0] * size[1] * channels)).save(path, format="PNG", dpi=dpi)
    return path


@pytest.fixture
def png_file(tmp_path) -> Path:
    return write_png(tmp_path / "art.png")


@pytest.fixture
def pdf_file(tmp_path) -> Path:
    p = tmp_path / "flyer.pdf"
    p.write_bytes(b"%PDF-1.4\n%fake pdf\n" + b"0" * 64)
    return p


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(PREFLIGHT_WORK_DIR=str(tmp_path / "work"), THUMBNAIL_FORMAT="png")
