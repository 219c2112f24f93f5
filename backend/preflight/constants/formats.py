"""
formats.py
- Purpose: Canonical MIME types produced by byte sniffing.
- Design: Values are what consumers store; never derived from a client's claim.
"""

from enum import Enum


class DetectedFormat(str, Enum):
    PNG = "image/png"
    JPEG = "image/jpeg"
    WEBP = "image/webp"
    TIFF = "image/tiff"
    PDF = "application/pdf"
    PSD = "image/vnd.adobe.photoshop"
    SVG = "image/svg+xml"
    POSTSCRIPT = "application/postscript"
    UNKNOWN = "unknown"


# Formats that must be rasterized to PNG before image checks and thumbnails
CONVERTIBLE_FORMATS = frozenset(
    {
        DetectedFormat.PDF,
        DetectedFormat.POSTSCRIPT,
        DetectedFormat.TIFF,
        DetectedFormat.PSD,
    }
)


# ImageMagick coder pinned for each format handed to identify/convert as-is
IMAGEMAGICK_CODERS = {
    DetectedFormat.PNG: "png",
    DetectedFormat.JPEG: "jpeg",
    DetectedFormat.WEBP: "webp",
    DetectedFormat.TIFF: "tiff",
    DetectedFormat.PSD: "psd",
    DetectedFormat.SVG: "svg",
}

