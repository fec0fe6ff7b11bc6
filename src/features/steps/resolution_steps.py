# features/steps/resolution_steps.py
from __future__ import annotations

from behave import given, then, when  # type: ignore[import-untyped]

from accessgate.step_state import get_resolution_step_state
from tool_resolution.default_tools import create_default_tool_registry
from tool_resolution.engine import ToolResolutionEngine
from tool_resolution.tool_context import ToolContext


def _append(values: dict, key: str, feature_id: str) -> None:
    values.setdefault(key, [])
    values[key] = [*values[key], feature_id]


@given("the default tool registry")
def step_default_registry(context):
    state = get_resolution_step_state(context)
    state.engine = ToolResolutionEngine(create_default_tool_registry())


@given("the student profile supports nothing")
def step_profile_empty(context):
    get_resolution_step_state(context).profile = {"supports": []}


@given('the student profile supports "{feature_id}"')
def step_profile_supports(context, feature_id):
    _append(get_resolution_step_state(context).profile, "supports", feature_id)


@given('the district blocks "{feature_id}"')
def step_district_blocks(context, feature_id):
    _append(get_resolution_step_state(context).district_policy, "blockedTools", feature_id)


@given('the district requires "{feature_id}"')
def step_district_requires(context, feature_id):
    _append(get_resolution_step_state(context).district_policy, "requiredTools", feature_id)


@given('the item restricts "{feature_id}"')
def step_item_restricts(context, feature_id):
    _append(get_resolution_step_state(context).item_settings, "restrictedTools", feature_id)


@given('the item requires "{feature_id}"')
def step_item_requires(context, feature_id):
    _append(get_resolution_step_state(context).item_settings, "requiredTools", feature_id)


@given('the session overrides "{feature_id}" to {flag}')
def step_session_override(context, feature_id, flag):
    get_resolution_step_state(context).tool_overrides[feature_id] = flag.strip().lower() == "true"


@when('the session override for "{feature_id}" is removed')
def step_remove_override(context, feature_id):
    get_resolution_step_state(context).tool_overrides.pop(feature_id, None)


@when("tools are resolved")
def step_resolve(context):
    state = get_resolution_step_state(context)
    assert state.engine is not None, "registry must be configured before resolving"
    state.result = state.engine.resolve_tools_with_provenance(state.assessment(), state.item_ref())
    if state.baseline is None:
        state.baseline = state.result
    state.allowed_ids = state.result.tool_ids


@when("tools are resolved again")
def step_resolve_again(context):
    state = get_resolution_step_state(context)
    assert state.engine is not None
    state.result = state.engine.resolve_tools_with_provenance(state.assessment(), state.item_ref())


@when('tools are resolved with a simulated profile supporting "{feature_id}"')
def step_resolve_simulated(context, feature_id):
    state = get_resolution_step_state(context)
    assert state.engine is not None
    state.result = state.engine.resolve_with_override(
        state.assessment(), {"supports": [feature_id]}, state.item_ref()
    )


@when("tools are resolved with a null simulated profile")
def step_resolve_null(context):
    state = get_resolution_step_state(context)
    assert state.engine is not None
    state.result = state.engine.resolve_with_override(state.assessment(), None, state.item_ref())
    state.allowed_ids = state.result.tool_ids


@when('the allowed tools are filtered for the "{level}" level')
def step_filter(context, level):
    state = get_resolution_step_state(context)
    assert state.engine is not None
    state.visible = state.engine.registry.filter_visible_in_context(state.allowed_ids, ToolContext(level=level))


@then('tool "{tool_id}" is allowed')
def step_tool_allowed(context, tool_id):
    state = get_resolution_step_state(context)
    assert state.result is not None
    assert tool_id in state.result.tool_ids, f"{tool_id} missing from {state.result.tool_ids}"


@then('tool "{tool_id}" is not allowed')
def step_tool_not_allowed(context, tool_id):
    state = get_resolution_step_state(context)
    assert state.result is not None
    assert tool_id not in state.result.tool_ids, f"{tool_id} unexpectedly in {state.result.tool_ids}"


@then('feature "{feature_id}" is {decision} by rule {rule:d}')
def step_feature_rule(context, feature_id, decision, rule):
    state = get_resolution_step_state(context)
    assert state.result is not None
    entry = state.result.provenance.features[feature_id]
    expected = "allow" if decision == "allowed" else "block"
    assert entry.decision.value == expected, entry.explanation
    assert entry.rule == rule, entry.explanation


@then("the result matches the first resolution")
def step_matches_baseline(context):
    state = get_resolution_step_state(context)
    assert state.result is not None and state.baseline is not None
    assert state.result == state.baseline
    assert state.result.to_payload() == state.baseline.to_payload()


@then("the visible tools are a subset of the allowed tools")
def step_visible_subset(context):
    state = get_resolution_step_state(context)
    assert len(state.visible) <= len(state.allowed_ids)
    assert all(tool.id in state.allowed_ids for tool in state.visible)


@then('the visible tools are exactly "{tool_ids}"')
def step_visible_exactly(context, tool_ids):
    state = get_resolution_step_state(context)
    expected = [tool_id.strip() for tool_id in tool_ids.split(",") if tool_id.strip()]
    assert [tool.id for tool in state.visible] == expected
