"""preflight/engine/sniffer.py

Content-based format detection from the first bytes of a file.

The declared content-type and the file extension are never consulted.
Detection is total: anything unrecognised (including empty, short or
unreadable files) is DetectedFormat.UNKNOWN.
"""

from __future__ import annotations

import logging
from pathlib import Path

from preflight.constants.formats import DetectedFormat

logger = logging.getLogger("preflight.sniffer")

PREFIX_BYTES = 16

# (format, offset, signature), checked in order
_SIGNATURES: list[tuple[DetectedFormat, int, bytes]] = [
    (DetectedFormat.PNG, 0, b"\x89PNG\r\n\x1a\n"),
    (DetectedFormat.JPEG, 0, b"\xff\xd8\xff"),
    (DetectedFormat.TIFF, 0, b"II*\x00"),
    (DetectedFormat.TIFF, 0, b"MM\x00*"),
    (DetectedFormat.PDF, 0, b"%PDF"),
    (DetectedFormat.PSD, 0, b"8BPS"),
    (DetectedFormat.SVG, 0, b"<?xml"),
]


def _is_webp(prefix: bytes) -> bool:
    return prefix[:4] == b"RIFF" and prefix[8:12] == b"WEBP"


def detect_bytes(prefix: bytes) -> DetectedFormat:
    prefix = prefix[:PREFIX_BYTES]

    if _is_webp(prefix):
        return DetectedFormat.WEBP

    for fmt, offset, signature in _SIGNATURES:
        if prefix[offset:offset + len(signature)] == signature:
            return fmt

    head = prefix.decode("utf-8", errors="replace")
    if head[:4] in ("<svg", "<?xm"):
        return DetectedFormat.SVG
    if head[:2] == "%!":
        return DetectedFormat.POSTSCRIPT

    return DetectedFormat.UNKNOWN


def detect(file_path: str | Path) -> DetectedFormat:
    try:
        with open(file_path, "rb") as fh:
            prefix = fh.read(PREFIX_BYTES)
    except OSError as e:
        logger.warning("sniff.unreadable", extra={"path": str(file_path), "error": str(e)})
        return DetectedFormat.UNKNOWN

    return detect_bytes(prefix)
