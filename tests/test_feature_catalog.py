# tests/test_feature_catalog.py
from __future__ import annotations

from tool_resolution.contracts import load_assessment, load_item_ref
from tool_resolution.default_tools import create_default_tool_registry
from tool_resolution.engine import ToolResolutionEngine
from tool_resolution.feature_catalog import (
    EXAMPLE_PNP_CONFIGURATIONS,
    STANDARD_ACCESS_FEATURES,
    FeatureCategory,
    all_standard_features,
    audit_assessment_features,
    audit_feature_ids,
    category_of,
    features_in_category,
    is_custom_feature,
    is_known_feature,
)
from tool_resolution.registry import ToolDescriptor


def test_catalog_covers_every_category() -> None:
    assert set(STANDARD_ACCESS_FEATURES) == set(FeatureCategory)
    assert all(STANDARD_ACCESS_FEATURES[category] for category in FeatureCategory)


def test_lookup_of_known_and_unknown_features() -> None:
    assert is_known_feature("textToSpeech")
    assert category_of("magnification") is FeatureCategory.VISUAL
    assert category_of("calculator") is FeatureCategory.ASSESSMENT
    assert not is_known_feature("x-acme-sketchpad")
    assert category_of("x-acme-sketchpad") is None


def test_custom_features_need_a_name_after_the_prefix() -> None:
    assert is_custom_feature("x-acme-sketchpad")
    assert not is_custom_feature("x-")
    assert not is_custom_feature("sketchpad")


def test_all_standard_features_is_duplicate_free() -> None:
    features = all_standard_features()

    assert len(features) == len(set(features))
    assert "calculator" in features
    assert features_in_category("assessment") == list(STANDARD_ACCESS_FEATURES[FeatureCategory.ASSESSMENT])


def test_audit_splits_known_custom_and_unknown() -> None:
    report = audit_feature_ids(["calculator", "x-acme-sketchpad", "sketchpad", "calculator"])

    assert report.known == ("calculator",)
    assert report.custom == ("x-acme-sketchpad",)
    assert report.unknown == ("sketchpad",)
    assert not report.ok


def test_audit_assessment_walks_every_layer() -> None:
    assessment = load_assessment(
        {
            "personalNeedsProfile": {"supports": ["textToSpeech"], "prohibitedSupports": ["mysteryTool"]},
            "settings": {
                "districtPolicy": {"blockedTools": ["calculator"]},
                "testAdministration": {"toolOverrides": {"x-acme-pad": True}},
            },
        }
    )
    item_ref = load_item_ref({"settings": {"restrictedTools": ["rulerish"]}})
    assert item_ref is not None

    report = audit_assessment_features(assessment, [item_ref])

    assert report.known == ("textToSpeech", "calculator")
    assert report.custom == ("x-acme-pad",)
    assert report.unknown == ("mysteryTool", "rulerish")


def test_catalog_does_not_gate_resolution() -> None:
    registry = create_default_tool_registry()
    registry.register(ToolDescriptor(id="sketchpad", supported_levels=frozenset({"item"}), feature_ids=("x-acme-pad",)))
    engine = ToolResolutionEngine(registry)

    result = engine.resolve_tools_with_provenance({"personalNeedsProfile": {"supports": ["x-acme-pad"]}})

    assert not is_known_feature("x-acme-pad")
    assert result.tool_ids == ["sketchpad"]
    assert result.provenance.features["x-acme-pad"].category is None


def test_example_profiles_use_catalogued_features() -> None:
    for name, supports in EXAMPLE_PNP_CONFIGURATIONS.items():
        report = audit_feature_ids(supports)
        assert report.ok, f"{name}: {report.unknown}"
