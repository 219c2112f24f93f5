"""preflight/engine/policy.py

Plan tiers -> PolicyConfig, plus the MIME alias groups used when matching a
detected format against a tier's allow-list.

Both tables are immutable and injected where they are used, so tests and
deployments can supply their own without touching the checks.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from types import MappingProxyType
from typing import Iterable, Mapping

from pydantic import BaseModel, Field

from preflight.constants.formats import DetectedFormat
from preflight.engine.types import PolicyConfig

logger = logging.getLogger("preflight.policy")

MB = 1024 * 1024

_RASTER = ("image/png", "image/jpeg", "image/webp")
_PRO = _RASTER + (
    "application/pdf",
    "application/postscript",
    "image/svg+xml",
    "image/tiff",
    "image/vnd.adobe.photoshop",
)

DEFAULT_POLICIES: Mapping[str, PolicyConfig] = MappingProxyType(
    {
        "free": PolicyConfig(
            tier="free",
            max_file_size_bytes=25 * MB,
            min_dpi=150,
            required_dpi=300,
            max_pages=1,
            allowed_formats=frozenset(_RASTER),
        ),
        "starter": PolicyConfig(
            tier="starter",
            max_file_size_bytes=50 * MB,
            min_dpi=150,
            required_dpi=300,
            max_pages=1,
            allowed_formats=frozenset(_RASTER + ("application/pdf",)),
        ),
        "pro": PolicyConfig(
            tier="pro",
            max_file_size_bytes=150 * MB,
            min_dpi=150,
            required_dpi=300,
            max_pages=5,
            allowed_formats=frozenset(_PRO),
        ),
        "enterprise": PolicyConfig(
            tier="enterprise",
            max_file_size_bytes=150 * MB,
            min_dpi=150,
            required_dpi=300,
            max_pages=10,
            allowed_formats=frozenset(_PRO),
        ),
    }
)


def _restrictiveness(p: PolicyConfig) -> tuple:
    # smaller = more restrictive
    return (len(p.allowed_formats), p.max_file_size_bytes, p.max_pages, -p.min_dpi, -p.required_dpi)


class PolicyTable:
    """Read-only tier lookup. Unknown tiers fail safe to the most restrictive tier."""

    def __init__(self, policies: Mapping[str, PolicyConfig]):
        if not policies:
            raise ValueError("PolicyTable needs at least one tier")
        self._policies = MappingProxyType({k.strip().lower(): v for k, v in policies.items()})
        self._fallback = min(self._policies.values(), key=_restrictiveness)

    @property
    def tiers(self) -> list[str]:
        return list(self._policies.keys())

    @property
    def fallback(self) -> PolicyConfig:
        return self._fallback

    def resolve(self, tier: str | None) -> PolicyConfig:
        key = (tier or "").strip().lower()
        policy = self._policies.get(key)
        if policy is None:
            logger.warning("policy.unknown_tier", extra={"tier": tier, "fallback": self._fallback.tier})
            return self._fallback
        return policy

    @classmethod
    def from_json_file(cls, path: str | Path) -> "PolicyTable":
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
        policies = {tier: PolicyIn.model_validate(body).to_policy(tier) for tier, body in raw.items()}
        logger.info("policy.loaded", extra={"path": str(path), "tiers": sorted(policies)})
        return cls(policies)


class PolicyIn(BaseModel):
    """On-disk shape of one tier in a policy file."""

    max_file_size_mb: float = Field(gt=0)
    min_dpi: int = Field(ge=0)
    required_dpi: int = Field(ge=0)
    max_pages: int = Field(ge=1)
    allowed_formats: list[str]
    require_transparency: bool = False

    def to_policy(self, tier: str) -> PolicyConfig:
        return PolicyConfig(
            tier=tier.strip().lower(),
            max_file_size_bytes=int(self.max_file_size_mb * MB),
            min_dpi=self.min_dpi,
            required_dpi=self.required_dpi,
            max_pages=self.max_pages,
            allowed_formats=frozenset(f.strip().lower() for f in self.allowed_formats),
            require_transparency=self.require_transparency,
        )


DEFAULT_POLICY_TABLE = PolicyTable(DEFAULT_POLICIES)


def resolve_policy(tier: str | None, table: PolicyTable = DEFAULT_POLICY_TABLE) -> PolicyConfig:
    return table.resolve(tier)


# =========================
# MIME aliases
# =========================

DEFAULT_ALIAS_GROUPS: tuple[frozenset[str], ...] = (
    frozenset(
        {
            "image/vnd.adobe.photoshop",
            "image/x-photoshop",
            "image/photoshop",
            "image/psd",
            "application/x-photoshop",
            "application/photoshop",
            "application/psd",
        }
    ),
    frozenset({"image/jpeg", "image/jpg", "image/pjpeg"}),
    frozenset({"image/tiff", "image/tif", "image/x-tiff"}),
    frozenset(
        {
            "application/postscript",
            "application/eps",
            "application/x-eps",
            "image/eps",
            "image/x-eps",
            "application/illustrator",
        }
    ),
    frozenset({"image/svg+xml", "image/svg"}),
    frozenset({"application/pdf", "application/x-pdf"}),
)


class MimeAliases:
    def __init__(self, groups: Iterable[Iterable[str]] = DEFAULT_ALIAS_GROUPS):
        by_mime: dict[str, frozenset[str]] = {}
        for group in groups:
            members = frozenset(m.strip().lower() for m in group)
            for m in members:
                by_mime[m] = members
        self._by_mime = MappingProxyType(by_mime)

    def family(self, mime: str) -> frozenset[str]:
        key = mime.strip().lower()
        return self._by_mime.get(key, frozenset({key}))

    def is_allowed(self, detected: DetectedFormat | str, allowed: Iterable[str]) -> bool:
        if detected == DetectedFormat.UNKNOWN:
            return False
        value = detected.value if isinstance(detected, DetectedFormat) else detected
        allowed_norm = {a.strip().lower() for a in allowed}
        return not self.family(value).isdisjoint(allowed_norm)

    def same_format(self, a: str, b: str) -> bool:
        return b.strip().lower() in self.family(a)


DEFAULT_ALIASES = MimeAliases()
