import shutil
import stat
import time

import pytest

from preflight.constants.formats import DetectedFormat
from preflight.constants.statuses import CheckStatus
from preflight.engine.checks import PreflightChecker
from preflight.engine.convert import Converter
from preflight.engine.errors import ConversionFailed, ToolExitError, ToolNotInstalled, ToolTimeout
from preflight.engine.metadata import MetadataExtractor
from preflight.engine.policy import resolve_policy
from preflight.engine.tools import run_tool
from preflight.engine.types import ConversionStrategy

pytestmark = pytest.mark.skipif(shutil.which("sh") is None, reason="needs a POSIX shell")


def test_successful_run_returns_stdout():
    proc = run_tool(["sh", "-c", "printf hello"], timeout_s=5)
    assert proc.returncode == 0
    assert proc.stdout == "hello"


def test_timeout_kills_the_tool_and_raises():
    t0 = time.monotonic()
    with pytest.raises(ToolTimeout) as exc_info:
        run_tool(["sleep", "5"], timeout_s=0.2)

    assert time.monotonic() - t0 < 3
    assert exc_info.value.timeout_s == 0.2
    assert exc_info.value.cmd == ["sleep", "5"]


def test_missing_binary_raises_not_installed():
    with pytest.raises(ToolNotInstalled):
        run_tool(["preflight-no-such-binary-xyz"], timeout_s=5)


def test_non_zero_exit_carries_code_and_stderr():
    with pytest.raises(ToolExitError) as exc_info:
        run_tool(["sh", "-c", "echo 'bad header' >&2; exit 3"], timeout_s=5)

    assert exc_info.value.returncode == 3
    assert "bad header" in exc_info.value.stderr


def test_stderr_is_truncated_to_its_tail():
    with pytest.raises(ToolExitError) as exc_info:
        run_tool(["sh", "-c", "head -c 6000 /dev/zero | tr '\\0' x >&2; printf END >&2; exit 1"], timeout_s=5)

    assert len(exc_info.value.stderr) == 4000
    assert exc_info.value.stderr.endswith("END")


def test_undecodable_stderr_does_not_fail_a_successful_run():
    proc = run_tool(["sh", "-c", "printf 'warn \\377\\376' >&2; printf ok"], timeout_s=5)

    assert proc.returncode == 0
    assert proc.stdout == "ok"
    assert proc.stderr.startswith("warn ")
    assert "\ufffd" in proc.stderr


def test_render_with_noisy_stderr_still_counts(tmp_path, pdf_file):
    # a render that works but echoes raw bytes from the document on stderr
    script = "printf 'font \\377\\376' >&2; head -c 4096 /dev/urandom > \"$1\""
    plan = {
        DetectedFormat.PDF: (
            ConversionStrategy("noisy", 5, lambda s, t, dpi: ["sh", "-c", script, "sh", str(t)]),
        )
    }
    target = tmp_path / "converted.png"

    used = Converter(run_tool, strategies=plan).convert(DetectedFormat.PDF, pdf_file, target, 300)

    assert used == "noisy"
    assert target.stat().st_size == 4096


def test_failing_render_through_real_runner_is_conversion_failed(tmp_path, pdf_file):
    plan = {
        DetectedFormat.PDF: (
            ConversionStrategy("slow", 0.2, lambda s, t, dpi: ["sleep", "5"]),
            ConversionStrategy("broken", 5, lambda s, t, dpi: ["sh", "-c", "exit 2"]),
        )
    }

    with pytest.raises(ConversionFailed) as exc_info:
        Converter(run_tool, strategies=plan).convert(DetectedFormat.PDF, pdf_file, tmp_path / "c.png", 300)

    assert exc_info.value.attempts == ["slow", "broken"]
    assert isinstance(exc_info.value.last_error, ToolExitError)


def _fake_identify(tmp_path):
    script = tmp_path / "identify"
    script.write_text(
        "#!/bin/sh\n"
        "printf '64|64|300|300|PixelsPerInch|sRGB|srgba|PNG'\n"
        "printf 'warning \\377' >&2\n",
        encoding="utf-8",
    )
    script.chmod(script.stat().st_mode | stat.S_IXUSR)
    return str(script)


def test_identify_with_noisy_stderr_gives_a_full_report(tmp_path, png_file):
    extractor = MetadataExtractor(run_tool, identify_bin=_fake_identify(tmp_path))

    result = PreflightChecker(extractor).run_checks(png_file, "image/png", 1024, resolve_policy("free"))

    assert [c.name for c in result.checks] == ["fileSize", "format", "dpi", "dimensions", "transparency", "colorProfile"]
    assert result.overall == CheckStatus.OK
