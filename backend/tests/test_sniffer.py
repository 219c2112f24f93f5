import pytest

from preflight.constants.formats import DetectedFormat
from preflight.engine.sniffer import detect, detect_bytes


@pytest.mark.parametrize(
    "prefix, expected",
    [
        (b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR", DetectedFormat.PNG),
        (b"\xff\xd8\xff\xe0\x00\x10JFIF\x00", DetectedFormat.JPEG),
        (b"RIFF\x24\x00\x00\x00WEBPVP8 ", DetectedFormat.WEBP),
        (b"II*\x00\x08\x00\x00\x00", DetectedFormat.TIFF),
        (b"MM\x00*\x00\x00\x00\x08", DetectedFormat.TIFF),
        (b"%PDF-1.7\n%\xe2\xe3\xcf\xd3", DetectedFormat.PDF),
        (b"8BPS\x00\x01\x00\x00\x00\x00\x00\x00", DetectedFormat.PSD),
        (b'<?xml version="1.0"?>', DetectedFormat.SVG),
        (b'<svg xmlns="http://www.w3.org/2000/svg">', DetectedFormat.SVG),
        (b"%!PS-Adobe-3.0 EPSF-3.0", DetectedFormat.POSTSCRIPT),
    ],
)
def test_detect_bytes_signatures(prefix, expected):
    assert detect_bytes(prefix) == expected


def test_riff_without_webp_marker_is_not_webp():
    # WAV files share the RIFF container
    assert detect_bytes(b"RIFF\x24\x00\x00\x00WAVEfmt ") == DetectedFormat.UNKNOWN


def test_big_endian_tiff_normalized_to_same_type():
    assert detect_bytes(b"MM\x00*") == detect_bytes(b"II*\x00") == DetectedFormat.TIFF


def test_detect_ignores_extension(tmp_path):
    p = tmp_path / "photo.png"
    p.write_bytes(b"%PDF-1.4\n" + b"x" * 32)
    assert detect(p) == DetectedFormat.PDF


def test_detect_unknown_bytes(tmp_path):
    p = tmp_path / "image.png"
    p.write_bytes(b"hello world, not an image at all")
    assert detect(p) == DetectedFormat.UNKNOWN


def test_detect_empty_file_is_unknown(tmp_path):
    p = tmp_path / "empty.png"
    p.write_bytes(b"")
    assert detect(p) == DetectedFormat.UNKNOWN


def test_detect_missing_file_is_unknown(tmp_path):
    assert detect(tmp_path / "nope.pdf") == DetectedFormat.UNKNOWN


@pytest.mark.parametrize("n", range(0, 17))
def test_truncated_prefixes_never_raise(n):
    for sig in (b"\x89PNG\r\n\x1a\n", b"RIFF\x00\x00\x00\x00WEBP", b"8BPS", b"<?xml", b"\xff\xd8\xff"):
        assert isinstance(detect_bytes(sig[:n]), DetectedFormat)


def test_short_png_prefix_is_unknown():
    assert detect_bytes(b"\x89PN") == DetectedFormat.UNKNOWN


def test_non_utf8_bytes_do_not_break_text_heuristics():
    assert detect_bytes(b"\xfe\xfe\xfe\xfe\xfe") == DetectedFormat.UNKNOWN
