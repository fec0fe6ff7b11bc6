"""
Tool resolution: decide which accessibility and assessment tools a
test-taker may use, and explain why.

Pass 1 (`ToolResolutionEngine`) reconciles the student's personal needs
profile with district policy, session administration overrides and item
rules. Pass 2 (`ToolRegistry.filter_visible_in_context`) hides allowed
tools that are not relevant where they would be shown.
"""

from tool_resolution.contracts import (
    AdministrationMode,
    Assessment,
    AssessmentItemRef,
    AssessmentSettings,
    ContentLevel,
    Decision,
    DecisionSource,
    DistrictPolicy,
    DuplicateToolError,
    ItemSettings,
    PersonalNeedsProfile,
    ProvenanceEntry,
    ProvenanceSummary,
    RegistrySealedError,
    ResolutionInputError,
    ResolutionProvenance,
    ResolutionResult,
    ResolvedToolConfig,
    ResolverSettings,
    TestAdministration,
    ToolNotRegisteredError,
    ToolResolutionError,
    UnknownToolPolicy,
    UnknownToolReferenceError,
    load_assessment,
    load_item_ref,
    load_profile,
)
from tool_resolution.default_tools import (
    DEFAULT_TOOL_ORDER,
    DEFAULT_TOOL_PLACEMENT,
    create_default_personal_needs_profile,
    create_default_tool_registry,
    order_tool_ids,
)
from tool_resolution.engine import ToolResolutionEngine
from tool_resolution.feature_catalog import (
    FeatureCategory,
    audit_assessment_features,
    audit_feature_ids,
    category_of,
    is_custom_feature,
    is_known_feature,
)
from tool_resolution.provenance import (
    format_provenance_as_json,
    format_provenance_as_markdown,
    get_feature_explanation,
)
from tool_resolution.registry import ToolDescriptor, ToolRegistry
from tool_resolution.rules import DEFAULT_PRECEDENCE_CHAIN, FunctionRule, RuleContext, RuleOutcome
from tool_resolution.tool_context import ToolContext

__all__ = [
    "AdministrationMode",
    "Assessment",
    "AssessmentItemRef",
    "AssessmentSettings",
    "ContentLevel",
    "DEFAULT_PRECEDENCE_CHAIN",
    "DEFAULT_TOOL_ORDER",
    "DEFAULT_TOOL_PLACEMENT",
    "Decision",
    "DecisionSource",
    "DistrictPolicy",
    "DuplicateToolError",
    "FeatureCategory",
    "FunctionRule",
    "ItemSettings",
    "PersonalNeedsProfile",
    "ProvenanceEntry",
    "ProvenanceSummary",
    "RegistrySealedError",
    "ResolutionInputError",
    "ResolutionProvenance",
    "ResolutionResult",
    "ResolvedToolConfig",
    "ResolverSettings",
    "RuleContext",
    "RuleOutcome",
    "TestAdministration",
    "ToolContext",
    "ToolDescriptor",
    "ToolNotRegisteredError",
    "ToolRegistry",
    "ToolResolutionEngine",
    "ToolResolutionError",
    "UnknownToolPolicy",
    "UnknownToolReferenceError",
    "audit_assessment_features",
    "audit_feature_ids",
    "category_of",
    "create_default_personal_needs_profile",
    "create_default_tool_registry",
    "format_provenance_as_json",
    "format_provenance_as_markdown",
    "get_feature_explanation",
    "is_custom_feature",
    "is_known_feature",
    "load_assessment",
    "load_item_ref",
    "load_profile",
    "order_tool_ids",
]
