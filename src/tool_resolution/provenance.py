# tool_resolution/provenance.py
"""
Provenance for tool resolution.

Entries are recorded by the engine in the same pass that makes each
decision, so an explanation always describes the decision actually
returned. Formatting helpers render the result for debugging and
compliance reports.
"""

from __future__ import annotations

import json
from collections import Counter
from collections.abc import Sequence
from typing import Optional

from tool_resolution.contracts import (
    Decision,
    FeatureId,
    ProvenanceEntry,
    ProvenanceSummary,
    ResolutionProvenance,
)
from tool_resolution.feature_catalog import category_of
from tool_resolution.rules import RULE_TITLES, PrecedenceRule, RuleOutcome


class ProvenanceBuilder:
    def __init__(self, context_id: str) -> None:
        self._context_id = context_id
        self._entries: dict[FeatureId, ProvenanceEntry] = {}

    def record(
        self,
        feature_id: FeatureId,
        rule: PrecedenceRule,
        outcome: RuleOutcome,
        overridden: Sequence[tuple[PrecedenceRule, RuleOutcome]] = (),
    ) -> ProvenanceEntry:
        if feature_id in self._entries:
            raise ValueError(f"feature {feature_id!r} already has a recorded decision")
        category = category_of(feature_id)
        entry = ProvenanceEntry(
            feature_id=feature_id,
            decision=outcome.decision,
            rule=rule.precedence,
            rule_name=rule.name,
            source=outcome.source,
            explanation=outcome.explanation,
            category=category.value if category is not None else None,
            overridden=tuple(lower.name for lower, _ in overridden),
            overridden_explanations={lower.name: lower_outcome.explanation for lower, lower_outcome in overridden},
        )
        self._entries[feature_id] = entry
        return entry

    def build(self) -> ResolutionProvenance:
        entries = list(self._entries.values())
        enabled = sum(1 for entry in entries if entry.decision is Decision.ALLOW)
        summary = ProvenanceSummary(
            total=len(entries),
            enabled=enabled,
            blocked=len(entries) - enabled,
            by_rule=dict(Counter(entry.rule_name for entry in entries)),
            by_source=dict(Counter(entry.source.value for entry in entries)),
        )
        return ResolutionProvenance(context_id=self._context_id, features=dict(self._entries), summary=summary)


def rule_title(rule_name: str) -> str:
    return RULE_TITLES.get(rule_name, rule_name)


def get_feature_explanation(provenance: ResolutionProvenance, feature_id: FeatureId) -> Optional[str]:
    entry = provenance.features.get(feature_id)
    return entry.explanation if entry is not None else None


def format_provenance_as_markdown(provenance: ResolutionProvenance) -> str:
    summary = provenance.summary
    lines = [
        "# Tool Resolution Report",
        "",
        f"**Context**: {provenance.context_id}",
        "",
        "## Summary",
        "",
        f"- Total Features: {summary.total}",
        f"- Enabled: {summary.enabled}",
        f"- Blocked: {summary.blocked}",
    ]
    if summary.by_rule:
        lines.extend(["", "### By Rule", ""])
        lines.extend(f"- {rule_title(name)}: {count}" for name, count in sorted(summary.by_rule.items()))

    lines.extend(["", "## Feature Resolution", ""])
    if not provenance.features:
        lines.append("_No features were referenced by any policy layer._")
    for entry in provenance.features.values():
        status = "enabled" if entry.decision is Decision.ALLOW else "blocked"
        lines.extend(
            [
                f"### {entry.feature_id}",
                "",
                f"**Status**: {status}",
                f"**Rule**: {rule_title(entry.rule_name)} (precedence {entry.rule})",
                f"**Source**: {entry.source.value}",
            ]
        )
        if entry.category:
            lines.append(f"**Category**: {entry.category}")
        lines.extend(["", entry.explanation, ""])
        if entry.overridden:
            lines.extend(["**Overridden rules**:", ""])
            winner = rule_title(entry.rule_name)
            for name in entry.overridden:
                reason = entry.overridden_explanations.get(name, "")
                lines.append(f"- {rule_title(name)}: {reason} (overridden by {winner})")
            lines.append("")
    return "\n".join(lines).rstrip() + "\n"


def format_provenance_as_json(provenance: ResolutionProvenance) -> str:
    return json.dumps(provenance.model_dump(mode="json", by_alias=True), indent=2, sort_keys=False)
