import json

import pytest

from preflight.constants.formats import DetectedFormat
from preflight.engine.policy import (
    DEFAULT_ALIASES,
    DEFAULT_POLICIES,
    MB,
    MimeAliases,
    PolicyTable,
    resolve_policy,
)
from preflight.engine.types import PolicyConfig


def test_known_tiers_resolve():
    assert resolve_policy("pro").max_pages == 5
    assert resolve_policy("enterprise").max_pages == 10
    assert resolve_policy("starter").max_file_size_bytes == 50 * MB


def test_tier_name_is_normalized():
    assert resolve_policy("  PRO ").tier == "pro"


@pytest.mark.parametrize("tier", ["platinum", "", None])
def test_unknown_tier_falls_back_to_most_restrictive(tier):
    policy = resolve_policy(tier)
    assert policy.tier == "free"
    assert policy.allowed_formats == frozenset({"image/png", "image/jpeg", "image/webp"})


def test_fallback_is_computed_not_named():
    strict = PolicyConfig("strict", 1 * MB, 300, 300, 1, frozenset({"image/png"}))
    loose = PolicyConfig("loose", 100 * MB, 72, 150, 10, frozenset({"image/png", "application/pdf"}))
    table = PolicyTable({"loose": loose, "strict": strict})
    assert table.resolve("missing") is strict


def test_policies_are_immutable():
    policy = DEFAULT_POLICIES["free"]
    with pytest.raises(AttributeError):
        policy.max_pages = 99  # type: ignore[misc]
    with pytest.raises(TypeError):
        DEFAULT_POLICIES["free"] = policy  # type: ignore[index]


def test_policy_table_from_json_file(tmp_path):
    path = tmp_path / "plans.json"
    path.write_text(
        json.dumps(
            {
                "Basic": {
                    "max_file_size_mb": 10,
                    "min_dpi": 100,
                    "required_dpi": 200,
                    "max_pages": 2,
                    "allowed_formats": ["image/PNG", "application/pdf"],
                    "require_transparency": True,
                }
            }
        )
    )
    table = PolicyTable.from_json_file(path)
    policy = table.resolve("basic")
    assert policy.max_file_size_bytes == 10 * MB
    assert policy.allowed_formats == frozenset({"image/png", "application/pdf"})
    assert policy.require_transparency is True


def test_psd_aliases_satisfy_allow_list():
    allowed = {"image/x-photoshop"}
    assert DEFAULT_ALIASES.is_allowed(DetectedFormat.PSD, allowed)


def test_canonical_psd_allowed_by_any_alias_spelling():
    for spelling in ("application/psd", "image/psd", "application/photoshop"):
        assert DEFAULT_ALIASES.is_allowed(DetectedFormat.PSD, {spelling})


def test_unknown_is_never_allowed():
    assert not DEFAULT_ALIASES.is_allowed(DetectedFormat.UNKNOWN, {"unknown", "image/png"})


def test_aliases_do_not_cross_families():
    assert not DEFAULT_ALIASES.is_allowed(DetectedFormat.PNG, {"image/jpeg", "image/jpg"})


def test_custom_alias_groups():
    aliases = MimeAliases([{"image/png", "image/x-png"}])
    assert aliases.is_allowed(DetectedFormat.PNG, {"image/x-png"})
    assert aliases.same_format("image/png", "IMAGE/X-PNG")
