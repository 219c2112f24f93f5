"""preflight/engine/types.py

Frozen dataclasses shared by the preflight engine.
Design goals:
- created fresh per validation run, never mutated
- a PreflightResult's verdict is always derived from its checks
"""


from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Iterable, Sequence, Union

from preflight.constants.statuses import CheckStatus, UploadStatus

JsonDict = dict[str, Any]

# Reference scale for estimating a PDF page's pixel size from points.
# Advisory only: unrelated to the DPI a page is actually rendered at.
PDF_ESTIMATE_DPI = 300
POINTS_PER_INCH = 72

# Used when the inspection tool reports no (or zero) resolution
DEFAULT_SCREEN_DPI = 72


@dataclass(frozen=True)
class PolicyConfig:
    tier: str
    max_file_size_bytes: int
    min_dpi: int
    required_dpi: int
    max_pages: int
    allowed_formats: frozenset[str]
    require_transparency: bool = False

    @property
    def max_file_size_mb(self) -> float:
        return self.max_file_size_bytes / (1024 * 1024)

    def to_dict(self) -> JsonDict:
        return {
            "tier": self.tier,
            "maxFileSizeBytes": self.max_file_size_bytes,
            "minDPI": self.min_dpi,
            "requiredDPI": self.required_dpi,
            "maxPages": self.max_pages,
            "allowedFormats": sorted(self.allowed_formats),
            "requireTransparency": self.require_transparency,
        }


@dataclass(frozen=True)
class ImageMetadata:
    width: int
    height: int
    dpi: int
    colorspace: str
    has_alpha: bool
    page_count: int
    source_format: str  # format tag reported by the inspection tool, e.g. "PNG"


@dataclass(frozen=True)
class PdfInfo:
    page_count: int
    width: int    # estimated px at PDF_ESTIMATE_DPI
    height: int   # estimated px at PDF_ESTIMATE_DPI
    width_pts: float = 0.0
    height_pts: float = 0.0
    strategy: str = "default"  # "pdfinfo" | "pypdf" | "default"

    @classmethod
    def from_points(cls, page_count: int, width_pts: float, height_pts: float, *, strategy: str) -> "PdfInfo":
        scale = PDF_ESTIMATE_DPI / POINTS_PER_INCH
        return cls(
            page_count=page_count,
            width=round(width_pts * scale),
            height=round(height_pts * scale),
            width_pts=width_pts,
            height_pts=height_pts,
            strategy=strategy,
        )


@dataclass(frozen=True)
class ConversionStrategy:
    """One named way of rasterizing a source file into a PNG."""

    name: str
    timeout_s: float
    build: Callable[[Path, Path, int], list[str]]  # (source, target, dpi) -> argv


@dataclass(frozen=True)
class Attempt:
    name: str
    invoke: Callable[[float], None]
    timeout_s: float
    succeeded: Callable[[], bool]


@dataclass(frozen=True)
class CheckResult:
    name: str
    status: CheckStatus
    value: Any = None
    message: str | None = None
    details: JsonDict | None = None

    def to_dict(self) -> JsonDict:
        out: JsonDict = {"name": self.name, "status": self.status.value}
        if self.value is not None:
            out["value"] = self.value
        if self.message is not None:
            out["message"] = self.message
        if self.details is not None:
            out["details"] = dict(self.details)
        return out


def worst_status(statuses: Iterable[CheckStatus]) -> CheckStatus:
    """Monotonic escalation: error > warning > ok. Empty input is ok."""
    overall = CheckStatus.OK
    for status in statuses:
        if status.severity > overall.severity:
            overall = status
    return overall


def fold_overall(checks: Sequence[CheckResult]) -> CheckStatus:
    return worst_status(c.status for c in checks)


@dataclass(frozen=True)
class PreflightResult:
    checks: tuple[CheckResult, ...]
    thumbnail_path: str | None = None
    converted_path: str | None = None
    overall: CheckStatus = field(init=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "checks", tuple(self.checks))
        object.__setattr__(self, "overall", fold_overall(self.checks))

    def check(self, name: str) -> CheckResult | None:
        for c in self.checks:
            if c.name == name:
                return c
        return None

    def with_artifacts(
        self,
        *,
        thumbnail_path: str | None = None,
        converted_path: str | None = None,
    ) -> "PreflightResult":
        return replace(
            self,
            thumbnail_path=thumbnail_path if thumbnail_path is not None else self.thumbnail_path,
            converted_path=converted_path if converted_path is not None else self.converted_path,
        )

    def to_dict(self) -> JsonDict:
        out: JsonDict = {
            "overall": self.overall.value,
            "checks": [c.to_dict() for c in self.checks],
        }
        if self.thumbnail_path:
            out["thumbnailPath"] = self.thumbnail_path
        if self.converted_path:
            out["convertedPath"] = self.converted_path
        return out



# One item of an upload: its result, its overall status, or None while still pending
UploadItem = Union["PreflightResult", CheckStatus, str, None]


@dataclass(frozen=True)
class UploadSummary:
    """Roll-up of every item in one upload."""

    status: UploadStatus
    overall: CheckStatus
    item_count: int
    completed_at: datetime

    def to_dict(self) -> JsonDict:
        return {
            "status": self.status.value,
            "preflightSummary": {
                "overall": self.overall.value,
                "completedAt": self.completed_at.isoformat(),
                "itemCount": self.item_count,
            },
        }


def _item_status(item: UploadItem) -> CheckStatus | None:
    if item is None:
        return None
    if isinstance(item, PreflightResult):
        return item.overall
    if isinstance(item, CheckStatus):
        return item
    try:
        return CheckStatus(str(item).strip().lower())
    except ValueError:
        # "pending" or any status a finished item never has
        return None


def summarize_upload(items: Iterable[UploadItem], *, completed_at: datetime | None = None) -> UploadSummary | None:
    """
    Fold item verdicts into an upload verdict. Returns None while any item is
    still pending. Any `error` item blocks the upload; everything else waits
    for review, since nothing is approved automatically.
    """
    statuses: list[CheckStatus] = []
    for item in items:
        status = _item_status(item)
        if status is None:
            return None
        statuses.append(status)

    overall = worst_status(statuses)
    return UploadSummary(
        status=UploadStatus.BLOCKED if overall == CheckStatus.ERROR else UploadStatus.NEEDS_REVIEW,
        overall=overall,
        item_count=len(statuses),
        completed_at=completed_at or datetime.now(timezone.utc),
    )
