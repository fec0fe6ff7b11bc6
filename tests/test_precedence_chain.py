# tests/test_precedence_chain.py
from __future__ import annotations

import pytest

from tool_resolution.contracts import (
    AdministrationMode,
    AssessmentSettings,
    Decision,
    DecisionSource,
    ItemSettings,
    PersonalNeedsProfile,
)
from tool_resolution.rules import (
    DEFAULT_PRECEDENCE_CHAIN,
    DISTRICT_BLOCK,
    SYSTEM_DEFAULT,
    FunctionRule,
    ResolutionInputs,
    RuleContext,
    RuleOutcome,
    evaluate_chain,
    evaluate_chain_with_trail,
)


def _inputs(
    *,
    supports: tuple[str, ...] = (),
    prohibited: tuple[str, ...] = (),
    blocked: tuple[str, ...] = (),
    required: tuple[str, ...] = (),
    overrides: dict[str, bool] | None = None,
    item_required: tuple[str, ...] = (),
    item_restricted: tuple[str, ...] = (),
    policies: dict[str, object] | None = None,
    mode: str = "test",
) -> ResolutionInputs:
    profile = PersonalNeedsProfile(supports=supports, prohibited_supports=prohibited)
    settings = AssessmentSettings.model_validate(
        {
            "districtPolicy": {"blockedTools": blocked, "requiredTools": required, "policies": policies or {}},
            "testAdministration": {"mode": mode, "toolOverrides": overrides or {}},
        }
    )
    item = ItemSettings(required_tools=item_required, restricted_tools=item_restricted)
    return ResolutionInputs.from_documents(profile, settings, item)


def _decide(feature_id: str, inputs: ResolutionInputs) -> tuple[int, Decision, DecisionSource, str]:
    rule, outcome = evaluate_chain(RuleContext(feature_id=feature_id, inputs=inputs), DEFAULT_PRECEDENCE_CHAIN)
    return rule.precedence, outcome.decision, outcome.source, outcome.explanation


def test_default_chain_is_ordered_one_through_seven() -> None:
    assert [rule.precedence for rule in DEFAULT_PRECEDENCE_CHAIN] == [1, 2, 3, 4, 5, 6, 7]
    assert DEFAULT_PRECEDENCE_CHAIN[-1] is SYSTEM_DEFAULT


@pytest.mark.parametrize(
    ("kwargs", "expected_rule", "expected_decision", "expected_source"),
    [
        ({"supports": ("calculator",), "blocked": ("calculator",)}, 1, Decision.BLOCK, DecisionSource.DISTRICT),
        (
            {"blocked": ("calculator",), "overrides": {"calculator": True}, "item_required": ("calculator",)},
            1,
            Decision.BLOCK,
            DecisionSource.DISTRICT,
        ),
        ({"supports": ("calculator",), "overrides": {"calculator": False}}, 2, Decision.BLOCK, DecisionSource.SESSION),
        ({"overrides": {"calculator": True}}, 2, Decision.ALLOW, DecisionSource.SESSION),
        (
            {"overrides": {"calculator": True}, "item_restricted": ("calculator",)},
            2,
            Decision.ALLOW,
            DecisionSource.SESSION,
        ),
        ({"supports": ("calculator",), "item_restricted": ("calculator",)}, 3, Decision.BLOCK, DecisionSource.ITEM),
        (
            {"item_restricted": ("calculator",), "item_required": ("calculator",)},
            3,
            Decision.BLOCK,
            DecisionSource.ITEM,
        ),
        ({"item_required": ("calculator",), "required": ("calculator",)}, 4, Decision.ALLOW, DecisionSource.ITEM),
        ({"required": ("calculator",)}, 5, Decision.ALLOW, DecisionSource.DISTRICT),
        (
            {"required": ("calculator",), "prohibited": ("calculator",)},
            5,
            Decision.ALLOW,
            DecisionSource.DISTRICT,
        ),
        ({"supports": ("calculator",)}, 6, Decision.ALLOW, DecisionSource.STUDENT),
        (
            {"supports": ("calculator",), "prohibited": ("calculator",)},
            7,
            Decision.BLOCK,
            DecisionSource.SYSTEM,
        ),
        ({"prohibited": ("calculator",)}, 7, Decision.BLOCK, DecisionSource.SYSTEM),
    ],
)
def test_first_matching_rule_decides(
    kwargs: dict[str, object],
    expected_rule: int,
    expected_decision: Decision,
    expected_source: DecisionSource,
) -> None:
    rule, decision, source, _ = _decide("calculator", _inputs(**kwargs))  # type: ignore[arg-type]

    assert (rule, decision, source) == (expected_rule, expected_decision, expected_source)


def test_absent_override_key_falls_through_to_later_rules() -> None:
    rule, decision, _, _ = _decide("calculator", _inputs(supports=("calculator",), overrides={"ruler": False}))

    assert rule == 6
    assert decision is Decision.ALLOW


def test_candidates_are_ordered_union_of_every_layer() -> None:
    inputs = _inputs(
        supports=("textToSpeech", "calculator"),
        prohibited=("ruler",),
        blocked=("calculator", "graph"),
        required=("magnification",),
        overrides={"highlighter": True},
        item_required=("protractor",),
        item_restricted=("graph", "periodicTable"),
    )

    assert inputs.candidates == (
        "textToSpeech",
        "calculator",
        "ruler",
        "graph",
        "magnification",
        "highlighter",
        "protractor",
        "periodicTable",
    )


def test_missing_profile_and_item_produce_empty_layers() -> None:
    inputs = ResolutionInputs.from_documents(None, AssessmentSettings(), None)

    assert inputs.candidates == ()
    assert inputs.mode is AdministrationMode.TEST


def test_district_block_quotes_policy_note_when_present() -> None:
    inputs = _inputs(blocked=("textToSpeech",), policies={"textToSpeech": "State law prohibits TTS on ELA reading"})

    _, _, _, explanation = _decide("textToSpeech", inputs)

    assert explanation == "blocked by district policy: State law prohibits TTS on ELA reading"


def test_session_override_explanation_names_mode_and_flag() -> None:
    _, _, _, explanation = _decide("calculator", _inputs(overrides={"calculator": False}, mode="practice"))

    assert explanation == (
        "disabled by session override (practice mode): testAdministration.toolOverrides.calculator is false"
    )


def test_system_default_explains_prohibited_support() -> None:
    _, _, _, explanation = _decide("ruler", _inputs(prohibited=("ruler",)))

    assert explanation.startswith("blocked by system default:")
    assert "prohibited support" in explanation


def test_chain_without_terminal_rule_falls_back_to_system_default() -> None:
    inputs = _inputs(supports=("calculator",))

    rule, outcome = evaluate_chain(RuleContext(feature_id="calculator", inputs=inputs), (DISTRICT_BLOCK,))

    assert rule is SYSTEM_DEFAULT
    assert outcome.decision is Decision.BLOCK


def test_custom_rule_chain_is_honored() -> None:
    proctor_grant = FunctionRule(
        name="proctor-grant",
        precedence=1,
        _evaluate=lambda ctx: RuleOutcome(Decision.ALLOW, DecisionSource.SESSION, f"granted {ctx.feature_id}"),
    )

    rule, outcome = evaluate_chain(
        RuleContext(feature_id="calculator", inputs=_inputs(blocked=("calculator",))),
        (proctor_grant, SYSTEM_DEFAULT),
    )

    assert rule is proctor_grant
    assert outcome.explanation == "granted calculator"


def test_trail_keeps_the_decision_and_lists_lower_rules() -> None:
    inputs = _inputs(supports=("calculator",), blocked=("calculator",))
    ctx = RuleContext(feature_id="calculator", inputs=inputs)

    rule, outcome, overridden = evaluate_chain_with_trail(ctx, DEFAULT_PRECEDENCE_CHAIN)

    assert (rule, outcome) == evaluate_chain(ctx, DEFAULT_PRECEDENCE_CHAIN)
    assert rule is DISTRICT_BLOCK
    assert outcome.decision is Decision.BLOCK
    assert [lower.name for lower, _ in overridden] == ["pnp-support"]
    assert overridden[0][1].decision is Decision.ALLOW


def test_trail_is_empty_when_only_one_layer_decides() -> None:
    ctx = RuleContext(feature_id="ruler", inputs=_inputs(prohibited=("ruler",)))

    rule, _, overridden = evaluate_chain_with_trail(ctx, DEFAULT_PRECEDENCE_CHAIN)

    assert rule is SYSTEM_DEFAULT
    assert overridden == []


def test_trail_falls_back_to_system_default_for_partial_chain() -> None:
    ctx = RuleContext(feature_id="calculator", inputs=_inputs(supports=("calculator",)))

    rule, outcome, overridden = evaluate_chain_with_trail(ctx, (DISTRICT_BLOCK,))

    assert rule is SYSTEM_DEFAULT
    assert outcome.explanation == "blocked by system default: no policy layer grants calculator"
    assert overridden == []
