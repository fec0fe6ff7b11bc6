# tool_resolution/engine.py
from __future__ import annotations

import copy
import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Optional

from tool_resolution.contracts import (
    Assessment,
    AssessmentItemRef,
    Decision,
    DecisionSource,
    FeatureId,
    PersonalNeedsProfile,
    ResolutionResult,
    ResolvedToolConfig,
    ResolverSettings,
    ToolId,
    UnknownToolPolicy,
    UnknownToolReferenceError,
    load_assessment,
    load_item_ref,
    load_profile,
)
from tool_resolution.provenance import ProvenanceBuilder
from tool_resolution.registry import ToolDescriptor, ToolRegistry
from tool_resolution.rules import (
    DEFAULT_PRECEDENCE_CHAIN,
    PrecedenceRule,
    ResolutionInputs,
    RuleContext,
    evaluate_chain_with_trail,
)
from tool_resolution.tool_context import ToolContext

logger = logging.getLogger(__name__)

AssessmentLike = Assessment | Mapping[str, Any]
ItemRefLike = AssessmentItemRef | Mapping[str, Any] | None


@dataclass
class _ToolAccumulator:
    """Merges every allowed feature that enables the same tool."""

    tool_id: ToolId
    precedence: int
    source: DecisionSource
    required: bool = False
    always_available: bool = False
    feature_ids: list[FeatureId] = field(default_factory=list)
    settings: Any = None

    def absorb(
        self,
        feature_id: FeatureId,
        precedence: int,
        source: DecisionSource,
        settings: Any,
    ) -> None:
        self.feature_ids.append(feature_id)
        self.required = self.required or source in (DecisionSource.ITEM, DecisionSource.DISTRICT)
        self.always_available = self.always_available or source is DecisionSource.STUDENT
        if precedence < self.precedence:
            self.precedence = precedence
            self.source = source
        if self.settings is None and settings is not None:
            self.settings = settings

    def to_config(self) -> ResolvedToolConfig:
        return ResolvedToolConfig(
            id=self.tool_id,
            enabled=True,
            required=self.required,
            always_available=self.always_available,
            source=self.source,
            feature_ids=tuple(self.feature_ids),
            settings=self.settings,
        )


class ToolResolutionEngine:
    """
    Pass 1 of tool visibility: reconcile profile, district, session and item
    layers into an allow-list of tool ids with a per-feature provenance trail.

    The engine is a pure function of its inputs. It seals the registry it is
    given, so every resolution sees the same feature -> tool index.
    """

    def __init__(
        self,
        registry: ToolRegistry,
        *,
        settings: Optional[ResolverSettings] = None,
        chain: Sequence[PrecedenceRule] = DEFAULT_PRECEDENCE_CHAIN,
    ) -> None:
        if not chain:
            raise ValueError("precedence chain must contain at least one rule")
        self._registry = registry.seal()
        self._settings = settings or ResolverSettings()
        self._chain = tuple(chain)

    @property
    def registry(self) -> ToolRegistry:
        return self._registry

    @property
    def settings(self) -> ResolverSettings:
        return self._settings

    @property
    def chain(self) -> tuple[PrecedenceRule, ...]:
        return self._chain

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def resolve_tools_with_provenance(
        self, assessment: AssessmentLike, item_ref: ItemRefLike = None
    ) -> ResolutionResult:
        doc = load_assessment(assessment)
        return self._resolve(doc, doc.personal_needs_profile, load_item_ref(item_ref))

    def resolve_with_override(
        self,
        assessment: AssessmentLike,
        override_profile: PersonalNeedsProfile | Mapping[str, Any] | None,
        item_ref: ItemRefLike = None,
    ) -> ResolutionResult:
        """Resolve as if the student had `override_profile`; the stored profile is ignored entirely."""
        doc = load_assessment(assessment)
        return self._resolve(doc, load_profile(override_profile), load_item_ref(item_ref))

    def get_allowed_tool_ids(self, assessment: AssessmentLike, item_ref: ItemRefLike = None) -> list[ToolId]:
        return self.resolve_tools_with_provenance(assessment, item_ref).tool_ids

    # ------------------------------------------------------------------
    # Query helpers
    # ------------------------------------------------------------------

    def is_tool_enabled(self, tool_id: ToolId, assessment: AssessmentLike, item_ref: ItemRefLike = None) -> bool:
        return tool_id in self.get_allowed_tool_ids(assessment, item_ref)

    def is_tool_required(self, tool_id: ToolId, assessment: AssessmentLike, item_ref: ItemRefLike = None) -> bool:
        tool = self.resolve_tools_with_provenance(assessment, item_ref).tool(tool_id)
        return tool is not None and (tool.required or tool.always_available)

    def get_required_tools(self, assessment: AssessmentLike, item_ref: ItemRefLike = None) -> list[ToolId]:
        result = self.resolve_tools_with_provenance(assessment, item_ref)
        return [tool.id for tool in result.tools if tool.required or tool.always_available]

    def get_tool_settings(self, tool_id: ToolId, assessment: AssessmentLike, item_ref: ItemRefLike = None) -> Any:
        tool = self.resolve_tools_with_provenance(assessment, item_ref).tool(tool_id)
        return tool.settings if tool is not None else None

    def get_auto_activate_tools(self, assessment: AssessmentLike, item_ref: ItemRefLike = None) -> list[ToolId]:
        """Tools to open at start-up from the profile's `activateAtInit` features."""
        doc = load_assessment(assessment)
        pnp = doc.personal_needs_profile
        if pnp is None or not pnp.activate_at_init:
            return []

        tool_ids: dict[ToolId, None] = {}
        for feature_id in pnp.activate_at_init:
            for tool_id in self._tool_ids_for_feature(feature_id):
                tool_ids.setdefault(tool_id, None)

        if not self._settings.restrict_auto_activate_to_allowed:
            return list(tool_ids)
        allowed = set(self._resolve(doc, pnp, load_item_ref(item_ref)).tool_ids)
        return [tool_id for tool_id in tool_ids if tool_id in allowed]

    def get_visible_tools(
        self, assessment: AssessmentLike, context: ToolContext, item_ref: ItemRefLike = None
    ) -> list[ToolDescriptor]:
        """Pass 1 then Pass 2: allowed tools that are also relevant in `context`."""
        if item_ref is None and context.item_ref is not None:
            item_ref = context.item_ref
        allowed = self.get_allowed_tool_ids(assessment, item_ref)
        return self._registry.filter_visible_in_context(allowed, context)

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def _resolve(
        self,
        assessment: Assessment,
        profile: Optional[PersonalNeedsProfile],
        item_ref: Optional[AssessmentItemRef],
    ) -> ResolutionResult:
        item_settings = item_ref.settings if item_ref is not None else None
        inputs = ResolutionInputs.from_documents(profile, assessment.settings, item_settings)
        context_id = self._context_id(assessment, item_ref)
        provenance = ProvenanceBuilder(context_id)
        tools: dict[ToolId, _ToolAccumulator] = {}

        for feature_id in inputs.candidates:
            rule, outcome, overridden = evaluate_chain_with_trail(
                RuleContext(feature_id=feature_id, inputs=inputs), self._chain
            )
            provenance.record(feature_id, rule, outcome, overridden)
            if outcome.decision is not Decision.ALLOW:
                continue

            tool_ids = self._tool_ids_for_feature(feature_id)
            if not tool_ids:
                logger.debug("feature %s is allowed but enables no registered tool", feature_id)
                continue
            source = outcome.source
            for tool_id in tool_ids:
                settings = self._tool_settings(feature_id, tool_id, assessment, item_settings)
                acc = tools.get(tool_id)
                if acc is None:
                    acc = tools[tool_id] = _ToolAccumulator(tool_id=tool_id, precedence=rule.precedence, source=source)
                acc.absorb(feature_id, rule.precedence, source, settings)

        result = ResolutionResult(
            tools=tuple(acc.to_config() for acc in tools.values()),
            provenance=provenance.build(),
        )
        summary = result.provenance.summary
        logger.debug(
            "resolved %s: %d features (%d enabled, %d blocked) -> tools %s",
            context_id,
            summary.total,
            summary.enabled,
            summary.blocked,
            result.tool_ids,
        )
        return result

    def _tool_ids_for_feature(self, feature_id: FeatureId) -> list[ToolId]:
        tool_ids = self._registry.get_tool_ids_for_feature(feature_id)
        mapped = self._settings.feature_tool_mappings.get(feature_id)
        if mapped is None or mapped in tool_ids:
            return tool_ids
        if self._registry.has(mapped):
            return [*tool_ids, mapped]

        if self._settings.unknown_tool_policy is UnknownToolPolicy.RAISE:
            raise UnknownToolReferenceError(feature_id, mapped)
        logger.warning("feature %s maps to unregistered tool %s; ignoring the mapping", feature_id, mapped)
        return tool_ids

    @staticmethod
    def _tool_settings(
        feature_id: FeatureId,
        tool_id: ToolId,
        assessment: Assessment,
        item_settings: Any,
    ) -> Any:
        # Copied so that editing one result never reaches the document or later results.
        if item_settings is not None and feature_id in item_settings.tool_parameters:
            return copy.deepcopy(item_settings.tool_parameters[feature_id])
        configs = assessment.settings.tool_configs
        if feature_id in configs:
            return copy.deepcopy(configs[feature_id])
        return copy.deepcopy(configs.get(tool_id))

    def _context_id(self, assessment: Assessment, item_ref: Optional[AssessmentItemRef]) -> str:
        base = assessment.identifier or self._settings.default_context_id
        if item_ref is not None and item_ref.identifier:
            return f"{base}/{item_ref.identifier}"
        return base
