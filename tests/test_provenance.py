# tests/test_provenance.py
from __future__ import annotations

import json

import pytest

from tool_resolution.contracts import Decision, DecisionSource, ProvenanceSummary
from tool_resolution.provenance import (
    ProvenanceBuilder,
    format_provenance_as_json,
    format_provenance_as_markdown,
    get_feature_explanation,
    rule_title,
)
from tool_resolution.rules import DISTRICT_BLOCK, PNP_SUPPORT, RuleOutcome


def test_builder_records_one_entry_per_feature() -> None:
    builder = ProvenanceBuilder("ctx")
    builder.record("calculator", PNP_SUPPORT, RuleOutcome(Decision.ALLOW, DecisionSource.STUDENT, "enabled"))

    with pytest.raises(ValueError):
        builder.record("calculator", DISTRICT_BLOCK, RuleOutcome(Decision.BLOCK, DecisionSource.DISTRICT, "blocked"))


def test_builder_summary_and_categories() -> None:
    builder = ProvenanceBuilder("ctx")
    builder.record("calculator", PNP_SUPPORT, RuleOutcome(Decision.ALLOW, DecisionSource.STUDENT, "enabled"))
    builder.record("x-acme-pad", DISTRICT_BLOCK, RuleOutcome(Decision.BLOCK, DecisionSource.DISTRICT, "blocked"))

    provenance = builder.build()

    assert provenance.context_id == "ctx"
    assert provenance.summary.total == 2
    assert provenance.summary.enabled == 1
    assert provenance.summary.by_source == {"student": 1, "district": 1}
    assert provenance.features["calculator"].category == "assessment"
    assert provenance.features["calculator"].allowed
    assert provenance.features["x-acme-pad"].category is None


def test_summary_rejects_inconsistent_counts() -> None:
    with pytest.raises(ValueError):
        ProvenanceSummary(total=3, enabled=1, blocked=1)


def test_feature_explanation_lookup(engine, make_assessment) -> None:
    result = engine.resolve_tools_with_provenance(
        make_assessment(
            supports=["textToSpeech"],
            blocked=["textToSpeech"],
            policies={"textToSpeech": "No read-aloud on reading comprehension"},
        )
    )

    assert get_feature_explanation(result.provenance, "textToSpeech") == (
        "blocked by district policy: No read-aloud on reading comprehension"
    )
    assert get_feature_explanation(result.provenance, "calculator") is None


def test_markdown_report_lists_every_feature(engine, make_assessment, make_item_ref) -> None:
    result = engine.resolve_tools_with_provenance(
        make_assessment(supports=["calculator"], blocked=["ruler"]), make_item_ref(identifier="q1")
    )

    report = format_provenance_as_markdown(result.provenance)

    assert report.startswith("# Tool Resolution Report\n")
    assert "**Context**: assessment-1/q1" in report
    assert "- Total Features: 2" in report
    assert "- District Block: 1" in report
    assert "### calculator" in report
    assert "**Status**: enabled" in report
    assert "**Rule**: Student PNP Support (precedence 6)" in report
    assert "### ruler" in report
    assert "**Status**: blocked" in report


def test_markdown_report_for_empty_resolution(engine, make_assessment) -> None:
    report = format_provenance_as_markdown(engine.resolve_tools_with_provenance(make_assessment()).provenance)

    assert "- Total Features: 0" in report
    assert "_No features were referenced by any policy layer._" in report
    assert "### By Rule" not in report


def test_json_report_uses_camel_case_wire_shape(engine, make_assessment) -> None:
    result = engine.resolve_tools_with_provenance(make_assessment(supports=["calculator"]))

    payload = json.loads(format_provenance_as_json(result.provenance))

    assert payload["contextId"] == "assessment-1"
    assert payload["summary"]["byRule"] == {"pnp-support": 1}
    entry = payload["features"]["calculator"]
    assert entry["featureId"] == "calculator"
    assert entry["decision"] == "allow"
    assert entry["rule"] == 6
    assert entry["ruleName"] == "pnp-support"


def test_rule_title_falls_back_to_name() -> None:
    assert rule_title("district-block") == "District Block"
    assert rule_title("proctor-grant") == "proctor-grant"


def test_markdown_report_shows_overridden_rules(engine, make_assessment) -> None:
    result = engine.resolve_tools_with_provenance(make_assessment(supports=["calculator"], blocked=["calculator"]))

    report = format_provenance_as_markdown(result.provenance)

    assert "**Overridden rules**:" in report
    assert (
        "- Student PNP Support: enabled by student profile: calculator is in the personal needs profile supports "
        "(overridden by District Block)"
    ) in report


def test_overridden_rules_serialize_with_their_explanations() -> None:
    builder = ProvenanceBuilder("ctx")
    builder.record(
        "calculator",
        DISTRICT_BLOCK,
        RuleOutcome(Decision.BLOCK, DecisionSource.DISTRICT, "blocked"),
        [(PNP_SUPPORT, RuleOutcome(Decision.ALLOW, DecisionSource.STUDENT, "supported"))],
    )

    payload = json.loads(format_provenance_as_json(builder.build()))

    entry = payload["features"]["calculator"]
    assert entry["overridden"] == ["pnp-support"]
    assert entry["overriddenExplanations"] == {"pnp-support": "supported"}
    assert entry["decision"] == "block"
