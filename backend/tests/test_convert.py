from pathlib import Path

import pytest

from conftest import FakeRunner
from preflight.constants.formats import DetectedFormat
from preflight.engine.attempts import run_attempts
from preflight.engine.convert import GS_SAFETY_FLAGS, Converter, default_strategies, ghostscript_cmd, imagemagick_input, needs_conversion
from preflight.engine.errors import AttemptsExhausted, ConversionFailed, ToolExitError, ToolTimeout
from preflight.engine.types import Attempt, ConversionStrategy


def _output_path(cmd: list[str]) -> Path:
    """Where a strategy command writes its PNG."""
    for arg in cmd:
        if arg.startswith("-sOutputFile="):
            return Path(arg.split("=", 1)[1])
        if arg.startswith("png:"):
            return Path(arg[4:])
    # pdftoppm: output root without extension
    return Path(cmd[-1] + ".png")


def writes(size: int):
    def handler(cmd, timeout_s):
        _output_path(cmd).write_bytes(b"\x89PNG\r\n\x1a\n" + b"\x00" * size)
        return ""

    return handler


def sequence(*handlers):
    calls = iter(handlers)
    return lambda cmd, t: next(calls)(cmd, t)


def fail(exc):
    def handler(cmd, timeout_s):
        raise exc

    return handler


def test_needs_conversion():
    assert needs_conversion(DetectedFormat.PDF)
    assert needs_conversion(DetectedFormat.POSTSCRIPT)
    assert needs_conversion(DetectedFormat.TIFF)
    assert needs_conversion(DetectedFormat.PSD)
    assert not needs_conversion(DetectedFormat.PNG)
    assert not needs_conversion(DetectedFormat.SVG)


def test_first_strategy_wins(tmp_path, pdf_file):
    runner = FakeRunner(writes(500))
    target = tmp_path / "out" / "converted.png"

    used = Converter(runner).convert(DetectedFormat.PDF, pdf_file, target, 300)

    assert used == "ghostscript"
    assert len(runner.calls) == 1
    assert "-r300" in runner.calls[0][0]
    assert target.stat().st_size > 100


def test_falls_through_to_last_strategy(tmp_path, pdf_file):
    target = tmp_path / "converted.png"
    runner = FakeRunner(
        sequence(
            fail(ToolTimeout("gs timed out", timeout_s=60)),
            writes(10),  # process succeeded but output is truncated
            writes(4096),
        )
    )

    used = Converter(runner).convert(DetectedFormat.PDF, pdf_file, target, 300)

    assert used == "pdftoppm"
    assert [c[0][0] for c in runner.calls] == ["gs", "gs", "pdftoppm"]
    assert target.stat().st_size == 8 + 4096


def test_reduced_dpi_strategies_use_fallback_dpi(tmp_path, pdf_file):
    runner = FakeRunner(sequence(fail(ToolExitError("gs exited with code 1", returncode=1)), writes(500)))
    Converter(runner).convert(DetectedFormat.PDF, pdf_file, tmp_path / "c.png", 600)
    assert "-r600" in runner.calls[0][0]
    assert "-r150" in runner.calls[1][0]


def test_exhausted_chain_raises_with_last_error(tmp_path, pdf_file):
    last = ToolExitError("pdftoppm exited with code 99", returncode=99)
    runner = FakeRunner(
        sequence(
            fail(ToolExitError("gs exited with code 1", returncode=1)),
            writes(0),
            fail(last),
        )
    )
    target = tmp_path / "c.png"

    with pytest.raises(ConversionFailed) as exc_info:
        Converter(runner).convert(DetectedFormat.PDF, pdf_file, target, 300)

    assert exc_info.value.last_error is last
    assert exc_info.value.attempts == ["ghostscript", "ghostscript-reduced-dpi", "pdftoppm"]
    assert not target.exists()


def test_stale_partial_output_is_removed_before_next_attempt(tmp_path, pdf_file):
    target = tmp_path / "c.png"
    seen_existing: list[bool] = []

    def first(cmd, t):
        target.write_bytes(b"partial")
        raise ToolTimeout("gs timed out", timeout_s=60)

    def second(cmd, t):
        seen_existing.append(target.exists())
        return writes(300)(cmd, t)

    Converter(FakeRunner(sequence(first, second))).convert(DetectedFormat.PDF, pdf_file, target, 300)
    assert seen_existing == [False]


def test_every_ghostscript_command_is_sandboxed(tmp_path):
    strategies = default_strategies()
    for fmt in (DetectedFormat.PDF, DetectedFormat.POSTSCRIPT):
        for strategy in strategies[fmt]:
            cmd = strategy.build(tmp_path / "in", tmp_path / "out.png", 300)
            if cmd[0] != "gs":
                continue
            for flag in GS_SAFETY_FLAGS:
                assert flag in cmd, (strategy.name, flag)
            assert cmd.index("-dSAFER") < cmd.index(str(tmp_path / "in"))


def test_postscript_uses_eps_crop_first(tmp_path):
    first = default_strategies()[DetectedFormat.POSTSCRIPT][0]
    assert "-dEPSCrop" in first.build(tmp_path / "in.eps", tmp_path / "out.png", 300)


def test_psd_strategies_pin_the_decoder_and_allow_long_runs(tmp_path):
    plan = default_strategies()[DetectedFormat.PSD]
    assert all(s.timeout_s == 120 for s in plan)
    cmd = plan[0].build(tmp_path / "in.psd", tmp_path / "out.png", 300)
    assert cmd[1] == f"psd:{tmp_path / 'in.psd'}[0]"
    assert cmd[-1] == f"png:{tmp_path / 'out.png'}"


def test_tiff_converts_with_imagemagick(tmp_path):
    runner = FakeRunner(writes(1000))
    used = Converter(runner).convert(DetectedFormat.TIFF, tmp_path / "in.tif", tmp_path / "out.png", 300)
    assert used == "imagemagick-srgb"
    assert runner.calls[0][0][0] == "convert"
    assert runner.calls[0][1] == 60


def test_unconvertible_format_raises(tmp_path):
    with pytest.raises(ConversionFailed):
        Converter(FakeRunner()).convert(DetectedFormat.PNG, tmp_path / "a.png", tmp_path / "b.png", 300)


def test_injected_strategies(tmp_path):
    plan = {
        DetectedFormat.PDF: (
            ConversionStrategy("only", 5, lambda s, t, dpi: ["render", str(s), f"png:{t}"]),
        )
    }
    runner = FakeRunner(writes(200))
    used = Converter(runner, strategies=plan).convert(DetectedFormat.PDF, tmp_path / "x.pdf", tmp_path / "y.png", 300)
    assert used == "only"
    assert runner.calls[0][1] == 5


def test_attempt_chain_passes_each_attempts_own_timeout(tmp_path):
    target = tmp_path / "t.png"
    seen: list[float] = []

    def invoke_failing(timeout_s):
        seen.append(timeout_s)
        raise ToolTimeout("slow", timeout_s=timeout_s)

    def invoke_ok(timeout_s):
        seen.append(timeout_s)
        target.write_bytes(b"x" * 200)

    attempts = [
        Attempt("slow", invoke_failing, 120, lambda: False),
        Attempt("fast", invoke_ok, 30, lambda: target.stat().st_size > 100),
    ]
    assert run_attempts(attempts, target=target, purpose="test") == "fast"
    assert seen == [120, 30]


def test_attempt_chain_exhausted(tmp_path):
    attempts = [Attempt("never", lambda t: None, 1, lambda: False)]
    with pytest.raises(AttemptsExhausted) as exc_info:
        run_attempts(attempts, target=tmp_path / "t", purpose="test")
    assert exc_info.value.attempts == ["never"]


def test_percent_in_output_path_is_literal_for_ghostscript(tmp_path):
    target = tmp_path / "job%d-100%" / "out.png"

    cmd = ghostscript_cmd("gs", tmp_path / "in.pdf", target, 300)

    assert f"-sOutputFile={tmp_path}/job%%d-100%%/out.png" in cmd
    assert cmd[-1] == str(tmp_path / "in.pdf")


@pytest.mark.parametrize(
    "fmt, expected",
    [(DetectedFormat.SVG, "svg:/x/a.svg[0]"), (DetectedFormat.PNG, "png:/x/a.svg[0]"), (None, "/x/a.svg[0]")],
)
def test_imagemagick_input_pins_the_coder(fmt, expected):
    assert imagemagick_input("/x/a.svg", fmt) == expected
