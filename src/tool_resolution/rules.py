# tool_resolution/rules.py
from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Optional, Protocol

from tool_resolution.contracts import (
    AdministrationMode,
    AssessmentSettings,
    Decision,
    DecisionSource,
    DistrictPolicy,
    FeatureId,
    ItemSettings,
    PersonalNeedsProfile,
)


@dataclass(frozen=True)
class ResolutionInputs:
    """The four policy layers of one resolution call, reduced to frozen lookup sets."""

    supports: frozenset[FeatureId]
    prohibited: frozenset[FeatureId]
    district_blocked: frozenset[FeatureId]
    district_required: frozenset[FeatureId]
    overrides: Mapping[FeatureId, bool]
    item_required: frozenset[FeatureId]
    item_restricted: frozenset[FeatureId]
    mode: AdministrationMode
    district_notes: Mapping[str, object]
    candidates: tuple[FeatureId, ...]

    @classmethod
    def from_documents(
        cls,
        profile: Optional[PersonalNeedsProfile],
        settings: AssessmentSettings,
        item: Optional[ItemSettings],
    ) -> ResolutionInputs:
        pnp = profile or PersonalNeedsProfile()
        district: DistrictPolicy = settings.district_policy
        administration = settings.test_administration
        item_settings = item or ItemSettings()

        ordered = (
            *pnp.supports,
            *pnp.prohibited_supports,
            *district.blocked_tools,
            *district.required_tools,
            *administration.tool_overrides,
            *item_settings.required_tools,
            *item_settings.restricted_tools,
        )
        return cls(
            supports=frozenset(pnp.supports),
            prohibited=frozenset(pnp.prohibited_supports),
            district_blocked=frozenset(district.blocked_tools),
            district_required=frozenset(district.required_tools),
            overrides=dict(administration.tool_overrides),
            item_required=frozenset(item_settings.required_tools),
            item_restricted=frozenset(item_settings.restricted_tools),
            mode=administration.mode,
            district_notes=dict(district.policies),
            candidates=tuple(dict.fromkeys(ordered)),
        )


@dataclass(frozen=True)
class RuleContext:
    feature_id: FeatureId
    inputs: ResolutionInputs


@dataclass(frozen=True)
class RuleOutcome:
    decision: Decision
    source: DecisionSource
    explanation: str


class PrecedenceRule(Protocol):
    name: str
    precedence: int

    def evaluate(self, ctx: RuleContext) -> Optional[RuleOutcome]: ...


@dataclass(frozen=True)
class FunctionRule:
    name: str
    precedence: int
    _evaluate: Callable[[RuleContext], Optional[RuleOutcome]]

    def evaluate(self, ctx: RuleContext) -> Optional[RuleOutcome]:
        return self._evaluate(ctx)


def _district_note(ctx: RuleContext, fallback: str) -> str:
    note = ctx.inputs.district_notes.get(ctx.feature_id)
    if isinstance(note, str) and note.strip():
        return note.strip()
    return fallback


def _district_block(ctx: RuleContext) -> Optional[RuleOutcome]:
    if ctx.feature_id not in ctx.inputs.district_blocked:
        return None
    reason = _district_note(ctx, f"{ctx.feature_id} is listed in districtPolicy.blockedTools")
    return RuleOutcome(Decision.BLOCK, DecisionSource.DISTRICT, f"blocked by district policy: {reason}")


def _session_override(ctx: RuleContext) -> Optional[RuleOutcome]:
    # Only an explicitly present key counts; absence falls through.
    if ctx.feature_id not in ctx.inputs.overrides:
        return None
    enabled = ctx.inputs.overrides[ctx.feature_id]
    verb = "enabled" if enabled else "disabled"
    flag = "true" if enabled else "false"
    return RuleOutcome(
        Decision.ALLOW if enabled else Decision.BLOCK,
        DecisionSource.SESSION,
        f"{verb} by session override ({ctx.inputs.mode.value} mode): "
        f"testAdministration.toolOverrides.{ctx.feature_id} is {flag}",
    )


def _item_restriction(ctx: RuleContext) -> Optional[RuleOutcome]:
    if ctx.feature_id not in ctx.inputs.item_restricted:
        return None
    return RuleOutcome(
        Decision.BLOCK,
        DecisionSource.ITEM,
        f"blocked by item restriction: {ctx.feature_id} is listed in the item's restrictedTools",
    )


def _item_requirement(ctx: RuleContext) -> Optional[RuleOutcome]:
    if ctx.feature_id not in ctx.inputs.item_required:
        return None
    return RuleOutcome(
        Decision.ALLOW,
        DecisionSource.ITEM,
        f"enabled by item requirement: {ctx.feature_id} is listed in the item's requiredTools",
    )


def _district_requirement(ctx: RuleContext) -> Optional[RuleOutcome]:
    if ctx.feature_id not in ctx.inputs.district_required:
        return None
    reason = _district_note(ctx, f"{ctx.feature_id} is listed in districtPolicy.requiredTools")
    return RuleOutcome(Decision.ALLOW, DecisionSource.DISTRICT, f"enabled by district requirement: {reason}")


def _pnp_support(ctx: RuleContext) -> Optional[RuleOutcome]:
    if ctx.feature_id not in ctx.inputs.supports or ctx.feature_id in ctx.inputs.prohibited:
        return None
    return RuleOutcome(
        Decision.ALLOW,
        DecisionSource.STUDENT,
        f"enabled by student profile: {ctx.feature_id} is in the personal needs profile supports",
    )


def _system_default(ctx: RuleContext) -> RuleOutcome:
    if ctx.feature_id in ctx.inputs.prohibited:
        detail = f"{ctx.feature_id} is a prohibited support in the personal needs profile and no rule grants it"
    else:
        detail = f"no policy layer grants {ctx.feature_id}"
    return RuleOutcome(Decision.BLOCK, DecisionSource.SYSTEM, f"blocked by system default: {detail}")


DISTRICT_BLOCK = FunctionRule(name="district-block", precedence=1, _evaluate=_district_block)
SESSION_OVERRIDE = FunctionRule(name="session-override", precedence=2, _evaluate=_session_override)
ITEM_RESTRICTION = FunctionRule(name="item-restriction", precedence=3, _evaluate=_item_restriction)
ITEM_REQUIREMENT = FunctionRule(name="item-requirement", precedence=4, _evaluate=_item_requirement)
DISTRICT_REQUIREMENT = FunctionRule(name="district-requirement", precedence=5, _evaluate=_district_requirement)
PNP_SUPPORT = FunctionRule(name="pnp-support", precedence=6, _evaluate=_pnp_support)
SYSTEM_DEFAULT = FunctionRule(name="system-default", precedence=7, _evaluate=_system_default)

# Blocks (1-3) outrank every requirement; item requirement (4) sits above district requirement (5).
DEFAULT_PRECEDENCE_CHAIN: tuple[PrecedenceRule, ...] = (
    DISTRICT_BLOCK,
    SESSION_OVERRIDE,
    ITEM_RESTRICTION,
    ITEM_REQUIREMENT,
    DISTRICT_REQUIREMENT,
    PNP_SUPPORT,
    SYSTEM_DEFAULT,
)

RULE_TITLES: dict[str, str] = {
    "district-block": "District Block",
    "session-override": "Session Override",
    "item-restriction": "Item Restriction",
    "item-requirement": "Item Requirement",
    "district-requirement": "District Requirement",
    "pnp-support": "Student PNP Support",
    "system-default": "System Default",
}


def evaluate_chain(ctx: RuleContext, chain: Sequence[PrecedenceRule]) -> tuple[PrecedenceRule, RuleOutcome]:
    """First rule with a definite outcome wins; a chain that never decides falls back to the system default."""
    for rule in chain:
        outcome = rule.evaluate(ctx)
        if outcome is not None:
            return rule, outcome
    return SYSTEM_DEFAULT, _system_default(ctx)


def evaluate_chain_with_trail(
    ctx: RuleContext, chain: Sequence[PrecedenceRule]
) -> tuple[PrecedenceRule, RuleOutcome, list[tuple[PrecedenceRule, RuleOutcome]]]:
    """
    Same decision as `evaluate_chain`, plus every later rule that would also have
    decided. Those are explanation only; the system default is never listed.
    """
    winner: Optional[tuple[PrecedenceRule, RuleOutcome]] = None
    overridden: list[tuple[PrecedenceRule, RuleOutcome]] = []
    for rule in chain:
        if winner is not None and rule is SYSTEM_DEFAULT:
            continue
        outcome = rule.evaluate(ctx)
        if outcome is None:
            continue
        if winner is None:
            winner = (rule, outcome)
        else:
            overridden.append((rule, outcome))
    if winner is None:
        winner = (SYSTEM_DEFAULT, _system_default(ctx))
    return winner[0], winner[1], overridden
