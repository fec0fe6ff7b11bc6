from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from tool_resolution.contracts import ResolutionResult
from tool_resolution.engine import ToolResolutionEngine
from tool_resolution.registry import ToolDescriptor


@dataclass
class ResolutionStepState:
    """Documents and results a behave scenario builds up across its steps."""

    profile: dict[str, Any] = field(default_factory=lambda: {"supports": []})
    district_policy: dict[str, Any] = field(default_factory=dict)
    tool_overrides: dict[str, bool] = field(default_factory=dict)
    item_settings: dict[str, Any] = field(default_factory=dict)
    engine: ToolResolutionEngine | None = None
    result: ResolutionResult | None = None
    baseline: ResolutionResult | None = None
    allowed_ids: list[str] = field(default_factory=list)
    visible: list[ToolDescriptor] = field(default_factory=list)

    def assessment(self) -> dict[str, Any]:
        return {
            "identifier": "bdd-assessment",
            "personalNeedsProfile": self.profile,
            "settings": {
                "districtPolicy": self.district_policy,
                "testAdministration": {"mode": "test", "toolOverrides": self.tool_overrides},
            },
        }

    def item_ref(self) -> dict[str, Any]:
        return {"identifier": "bdd-item", "settings": self.item_settings}


def get_resolution_step_state(context: Any) -> ResolutionStepState:
    state = getattr(context, "_resolution_step_state", None)
    if not isinstance(state, ResolutionStepState):
        state = ResolutionStepState()
        setattr(context, "_resolution_step_state", state)
    return state
