# tool_resolution/default_tools.py
from __future__ import annotations

from collections.abc import Iterable, Mapping
from types import MappingProxyType

from tool_resolution.contracts import ContentLevel, PersonalNeedsProfile, ToolId
from tool_resolution.registry import ToolDescriptor, ToolRegistry, always_relevant
from tool_resolution.tool_context import (
    ToolContext,
    has_choice_interaction,
    has_math_content,
    has_readable_text,
    has_science_content,
)

L = ContentLevel


def _calculator_relevant(ctx: ToolContext) -> bool:
    # Section and item toolbars always offer it; narrower levels need math content.
    if ctx.level in (L.SECTION, L.ITEM):
        return True
    return has_math_content(ctx)


CALCULATOR = ToolDescriptor(
    id="calculator",
    name="Calculator",
    description="Multi-type calculator (basic, scientific, graphing)",
    supported_levels=frozenset({L.SECTION, L.ITEM, L.PASSAGE, L.RUBRIC, L.ELEMENT}),
    feature_ids=("calculator", "graphingCalculator", "basicCalculator", "scientificCalculator"),
    is_relevant=_calculator_relevant,
)

TEXT_TO_SPEECH = ToolDescriptor(
    id="textToSpeech",
    name="Text to Speech",
    description="Reads content aloud",
    supported_levels=frozenset({L.SECTION, L.ITEM, L.PASSAGE, L.RUBRIC}),
    feature_ids=("textToSpeech", "readAloud", "tts", "speechOutput"),
    is_relevant=has_readable_text,
)

RULER = ToolDescriptor(
    id="ruler",
    name="Ruler",
    description="On-screen ruler for measurement items",
    supported_levels=frozenset({L.ITEM, L.ELEMENT}),
    feature_ids=("ruler", "measurement"),
    is_relevant=has_math_content,
)

PROTRACTOR = ToolDescriptor(
    id="protractor",
    name="Protractor",
    description="On-screen protractor for angle measurement",
    supported_levels=frozenset({L.ITEM, L.ELEMENT}),
    feature_ids=("protractor", "angleMeasurement"),
    is_relevant=has_math_content,
)

ANSWER_ELIMINATOR = ToolDescriptor(
    id="answerEliminator",
    name="Answer Eliminator",
    description="Strike out answer choices",
    supported_levels=frozenset({L.ELEMENT}),
    feature_ids=("answerMasking", "answerEliminator", "strikethrough", "choiceMasking"),
    is_relevant=has_choice_interaction,
)

HIGHLIGHTER = ToolDescriptor(
    id="highlighter",
    name="Highlighter",
    description="Highlight text",
    supported_levels=frozenset({L.PASSAGE, L.RUBRIC, L.ITEM, L.ELEMENT}),
    feature_ids=("highlighter", "textHighlight", "annotation"),
    is_relevant=has_readable_text,
)

MAGNIFIER = ToolDescriptor(
    id="magnifier",
    name="Magnifier",
    description="Magnify a region of the screen",
    supported_levels=frozenset({L.ASSESSMENT, L.SECTION}),
    feature_ids=("magnification", "screenMagnifier", "zoomable", "magnifier"),
    is_relevant=always_relevant,
)

LINE_READER = ToolDescriptor(
    id="lineReader",
    name="Line Reader",
    description="Reading mask that follows the current line",
    supported_levels=frozenset({L.PASSAGE, L.RUBRIC, L.ITEM}),
    feature_ids=("readingMask", "readingGuide", "readingRuler", "lineReader", "trackingGuide"),
    is_relevant=has_readable_text,
)

COLOR_SCHEME = ToolDescriptor(
    id="colorScheme",
    name="Color Scheme",
    description="High-contrast and custom color themes",
    supported_levels=frozenset({L.ASSESSMENT, L.SECTION}),
    feature_ids=(
        "highContrastDisplay",
        "colorContrast",
        "invertColors",
        "colorScheme",
        "highContrast",
        "customColors",
    ),
    is_relevant=always_relevant,
)

ANNOTATION_TOOLBAR = ToolDescriptor(
    id="annotationToolbar",
    name="Annotations",
    description="Highlight and annotate text selections",
    supported_levels=frozenset({L.PASSAGE, L.RUBRIC, L.ITEM, L.ELEMENT}),
    feature_ids=("highlighting", "annotations", "highlighter", "textHighlight", "annotation"),
    is_relevant=has_readable_text,
)

GRAPH = ToolDescriptor(
    id="graph",
    name="Graph",
    description="Coordinate plane for plotting",
    supported_levels=frozenset({L.ITEM, L.ELEMENT}),
    feature_ids=("graph", "graphingCalculator", "coordinatePlane", "graphingTool"),
    is_relevant=has_math_content,
)

PERIODIC_TABLE = ToolDescriptor(
    id="periodicTable",
    name="Periodic Table",
    description="Periodic table of the elements",
    supported_levels=frozenset({L.ITEM, L.ELEMENT}),
    feature_ids=("periodicTable", "chemistryReference", "elementReference"),
    is_relevant=has_science_content,
)

DEFAULT_TOOLS: tuple[ToolDescriptor, ...] = (
    CALCULATOR,
    TEXT_TO_SPEECH,
    RULER,
    PROTRACTOR,
    ANSWER_ELIMINATOR,
    HIGHLIGHTER,
    MAGNIFIER,
    LINE_READER,
    COLOR_SCHEME,
    ANNOTATION_TOOLBAR,
    GRAPH,
    PERIODIC_TABLE,
)

DEFAULT_TOOL_PLACEMENT: Mapping[ContentLevel, tuple[ToolId, ...]] = MappingProxyType(
    {
        L.ASSESSMENT: ("magnifier", "colorScheme"),
        L.SECTION: ("magnifier", "colorScheme", "calculator", "textToSpeech"),
        L.ITEM: (
            "calculator",
            "textToSpeech",
            "answerEliminator",
            "highlighter",
            "annotationToolbar",
            "graph",
            "periodicTable",
        ),
        L.PASSAGE: ("textToSpeech", "highlighter", "annotationToolbar", "lineReader"),
        L.RUBRIC: ("textToSpeech", "highlighter", "annotationToolbar", "lineReader"),
        L.ELEMENT: (
            "calculator",
            "textToSpeech",
            "ruler",
            "protractor",
            "highlighter",
            "annotationToolbar",
            "graph",
            "periodicTable",
        ),
    }
)

DEFAULT_TOOL_ORDER: tuple[ToolId, ...] = (
    "magnifier",
    "colorScheme",
    "calculator",
    "textToSpeech",
    "lineReader",
    "annotationToolbar",
    "highlighter",
    "answerEliminator",
    "ruler",
    "protractor",
    "graph",
    "periodicTable",
)


def order_tool_ids(tool_ids: Iterable[ToolId], order: tuple[ToolId, ...] = DEFAULT_TOOL_ORDER) -> list[ToolId]:
    """Sort by toolbar order; tools missing from `order` keep their relative order at the end."""
    rank = {tool_id: index for index, tool_id in enumerate(order)}
    unique = list(dict.fromkeys(tool_ids))
    return sorted(unique, key=lambda tool_id: rank.get(tool_id, len(rank)))


def create_default_tool_registry(
    overrides: Mapping[ToolId, ToolDescriptor] | None = None,
) -> ToolRegistry:
    """A fresh, unsealed registry holding the built-in tools; `overrides` replace them by id."""
    replacements = dict(overrides or {})
    for tool_id, descriptor in replacements.items():
        if descriptor.id != tool_id:
            raise ValueError(f"override for {tool_id!r} carries mismatched id {descriptor.id!r}")
    return ToolRegistry(replacements.get(tool.id, tool) for tool in DEFAULT_TOOLS)


def create_default_personal_needs_profile(registry: ToolRegistry | None = None) -> PersonalNeedsProfile:
    """A profile supporting every feature id the registry knows, sorted."""
    source = registry if registry is not None else create_default_tool_registry()
    supports = sorted(source.feature_ids_for_tools(source.all_tool_ids()))
    return PersonalNeedsProfile(supports=tuple(supports))
