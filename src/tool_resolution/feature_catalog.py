# tool_resolution/feature_catalog.py
"""
Standard accessibility feature identifiers (IMS AfA 3.0 / QTI 3.0 PNP).

The catalog is documentation and validation data. Resolution never consults
it: an identifier that is not listed here is still resolved like any other,
it simply has no category.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from enum import StrEnum
from types import MappingProxyType

from tool_resolution.contracts import Assessment, AssessmentItemRef, FeatureId

CATALOG_VERSION = "afa-3.0+qti-3.0.v1"

CUSTOM_FEATURE_PREFIX = "x-"


class FeatureCategory(StrEnum):
    VISUAL = "visual"
    AUDITORY = "auditory"
    MOTOR = "motor"
    COGNITIVE = "cognitive"
    READING = "reading"
    NAVIGATION = "navigation"
    LINGUISTIC = "linguistic"
    ASSESSMENT = "assessment"


STANDARD_ACCESS_FEATURES: Mapping[FeatureCategory, tuple[FeatureId, ...]] = MappingProxyType(
    {
        FeatureCategory.VISUAL: (
            "magnification",
            "screenMagnifier",
            "zoomable",
            "highContrastDisplay",
            "highContrastAudio",
            "colorContrast",
            "invertColors",
            "displayTransformability",
            "largePrint",
            "fontEnlargement",
            "resizeText",
            "alternativeText",
            "longDescription",
            "describedMath",
            "tactileGraphic",
            "tactileObject",
        ),
        FeatureCategory.AUDITORY: (
            "audioDescription",
            "textToSpeech",
            "readAloud",
            "humanVoice",
            "syntheticVoice",
            "speechRate",
            "speechVolume",
            "voicePitch",
            "captions",
            "closedCaptions",
            "openCaptions",
            "transcript",
            "signLanguage",
            "subtitles",
            "audioControl",
            "noBackgroundAudio",
        ),
        FeatureCategory.MOTOR: (
            "keyboardControl",
            "mouseControl",
            "touchControl",
            "voiceControl",
            "switchControl",
            "eyeGazeControl",
            "singleSwitchAccess",
            "stickyKeys",
            "keyboardShortcuts",
            "timingControl",
            "unlimitedTime",
            "extendedTime",
            "pauseControl",
        ),
        FeatureCategory.COGNITIVE: (
            "simplifiedLanguage",
            "reducedComplexity",
            "structuralNavigation",
            "tableOfContents",
            "reducedDistraction",
            "noFlashing",
            "pauseAnimation",
            "annotations",
            "bookmarking",
            "highlighting",
            "guidedNavigation",
            "calculator",
            "dictionary",
            "thesaurus",
            "spellingAssistance",
            "grammarAssistance",
        ),
        FeatureCategory.READING: (
            "lineSpacing",
            "wordSpacing",
            "letterSpacing",
            "fontFamily",
            "readingMask",
            "readingGuide",
            "readingRuler",
            "wordHighlighting",
            "lineHighlighting",
            "focusIndicator",
            "printableResource",
            "braille",
            "nemeth",
            "refreshableBraille",
        ),
        FeatureCategory.NAVIGATION: (
            "index",
            "pageNavigation",
            "skipContent",
            "breadcrumbs",
            "searchable",
            "fullTextSearch",
        ),
        FeatureCategory.LINGUISTIC: (
            "multilingualText",
            "translatedText",
            "glossary",
            "signLanguageInterpretation",
            "visualLanguage",
        ),
        FeatureCategory.ASSESSMENT: (
            "protractor",
            "ruler",
            "graph",
            "graphingCalculator",
            "periodicTable",
            "formulaSheet",
            "answerMasking",
            "answerEliminator",
            "strikethrough",
            "itemGlossary",
            "tutorialAvailable",
        ),
    }
)

# First category wins for identifiers listed twice.
_CATEGORY_BY_FEATURE: Mapping[FeatureId, FeatureCategory] = MappingProxyType(
    {
        feature_id: category
        for category in reversed(tuple(STANDARD_ACCESS_FEATURES))
        for feature_id in STANDARD_ACCESS_FEATURES[category]
    }
)


def all_standard_features() -> list[FeatureId]:
    seen: dict[FeatureId, None] = {}
    for features in STANDARD_ACCESS_FEATURES.values():
        for feature_id in features:
            seen.setdefault(feature_id, None)
    return list(seen)


def is_known_feature(feature_id: FeatureId) -> bool:
    return feature_id in _CATEGORY_BY_FEATURE


def is_custom_feature(feature_id: FeatureId) -> bool:
    """Integrator-defined features use the `x-` namespace (e.g. `x-acme-periodic-table`)."""
    return feature_id.startswith(CUSTOM_FEATURE_PREFIX) and len(feature_id) > len(CUSTOM_FEATURE_PREFIX)


def category_of(feature_id: FeatureId) -> FeatureCategory | None:
    return _CATEGORY_BY_FEATURE.get(feature_id)


def features_in_category(category: FeatureCategory | str) -> list[FeatureId]:
    return list(STANDARD_ACCESS_FEATURES[FeatureCategory(category)])


@dataclass(frozen=True)
class FeatureAuditReport:
    known: tuple[FeatureId, ...]
    custom: tuple[FeatureId, ...]
    unknown: tuple[FeatureId, ...]

    @property
    def ok(self) -> bool:
        return not self.unknown


def audit_feature_ids(feature_ids: Iterable[FeatureId]) -> FeatureAuditReport:
    """
    Classify identifiers for validation tooling.
    `unknown` holds identifiers that are neither catalogued nor `x-` namespaced.
    """
    known: list[FeatureId] = []
    custom: list[FeatureId] = []
    unknown: list[FeatureId] = []
    for feature_id in dict.fromkeys(feature_ids):
        if is_known_feature(feature_id):
            known.append(feature_id)
        elif is_custom_feature(feature_id):
            custom.append(feature_id)
        else:
            unknown.append(feature_id)
    return FeatureAuditReport(known=tuple(known), custom=tuple(custom), unknown=tuple(unknown))


def audit_assessment_features(
    assessment: Assessment,
    item_refs: Iterable[AssessmentItemRef] = (),
) -> FeatureAuditReport:
    ids: list[FeatureId] = []
    pnp = assessment.personal_needs_profile
    if pnp is not None:
        ids.extend(pnp.supports)
        ids.extend(pnp.prohibited_supports)
        ids.extend(pnp.activate_at_init)
    district = assessment.settings.district_policy
    ids.extend(district.blocked_tools)
    ids.extend(district.required_tools)
    ids.extend(assessment.settings.test_administration.tool_overrides)
    for item_ref in item_refs:
        ids.extend(item_ref.settings.required_tools)
        ids.extend(item_ref.settings.restricted_tools)
    return audit_feature_ids(ids)


# Illustrative combinations, not official profiles.
EXAMPLE_PNP_CONFIGURATIONS: Mapping[str, tuple[FeatureId, ...]] = MappingProxyType(
    {
        "lowVision": (
            "magnification",
            "screenMagnifier",
            "highContrastDisplay",
            "colorContrast",
            "fontEnlargement",
            "textToSpeech",
            "alternativeText",
            "describedMath",
        ),
        "blind": (
            "textToSpeech",
            "alternativeText",
            "longDescription",
            "describedMath",
            "braille",
            "refreshableBraille",
            "keyboardControl",
            "structuralNavigation",
        ),
        "deafHardOfHearing": (
            "captions",
            "closedCaptions",
            "signLanguage",
            "transcript",
            "visualLanguage",
            "noBackgroundAudio",
        ),
        "dyslexia": (
            "textToSpeech",
            "readAloud",
            "highlighting",
            "wordHighlighting",
            "lineHighlighting",
            "readingMask",
            "readingGuide",
            "fontFamily",
            "lineSpacing",
            "wordSpacing",
            "simplifiedLanguage",
            "dictionary",
        ),
        "adhd": (
            "reducedDistraction",
            "noFlashing",
            "pauseAnimation",
            "timingControl",
            "extendedTime",
            "highlighting",
            "annotations",
            "guidedNavigation",
            "structuralNavigation",
        ),
        "motorLimitations": (
            "keyboardControl",
            "stickyKeys",
            "keyboardShortcuts",
            "voiceControl",
            "switchControl",
            "timingControl",
            "extendedTime",
            "unlimitedTime",
        ),
        "englishLearner": (
            "textToSpeech",
            "translatedText",
            "glossary",
            "dictionary",
            "simplifiedLanguage",
            "readAloud",
            "highlighting",
        ),
    }
)
