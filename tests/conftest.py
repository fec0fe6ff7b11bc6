from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import Any

import pytest

from tool_resolution.default_tools import create_default_tool_registry
from tool_resolution.engine import ToolResolutionEngine
from tool_resolution.registry import ToolRegistry


@pytest.fixture
def registry() -> ToolRegistry:
    return create_default_tool_registry()


@pytest.fixture
def engine(registry: ToolRegistry) -> ToolResolutionEngine:
    return ToolResolutionEngine(registry)


@pytest.fixture
def make_assessment() -> Callable[..., dict[str, Any]]:
    def _make_assessment(
        *,
        identifier: str | None = "assessment-1",
        supports: Sequence[str] | None = (),
        prohibited: Sequence[str] = (),
        activate_at_init: Sequence[str] = (),
        blocked: Sequence[str] = (),
        required: Sequence[str] = (),
        policies: dict[str, Any] | None = None,
        overrides: dict[str, bool] | None = None,
        mode: str = "test",
        tool_configs: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        doc: dict[str, Any] = {
            "identifier": identifier,
            "settings": {
                "districtPolicy": {
                    "blockedTools": list(blocked),
                    "requiredTools": list(required),
                    "policies": dict(policies or {}),
                },
                "testAdministration": {"mode": mode, "toolOverrides": dict(overrides or {})},
                "toolConfigs": dict(tool_configs or {}),
            },
        }
        if supports is not None:
            doc["personalNeedsProfile"] = {
                "supports": list(supports),
                "prohibitedSupports": list(prohibited),
                "activateAtInit": list(activate_at_init),
            }
        return doc

    return _make_assessment


@pytest.fixture
def make_item_ref() -> Callable[..., dict[str, Any]]:
    def _make_item_ref(
        *,
        identifier: str | None = "item-1",
        required: Sequence[str] = (),
        restricted: Sequence[str] = (),
        parameters: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        return {
            "identifier": identifier,
            "settings": {
                "requiredTools": list(required),
                "restrictedTools": list(restricted),
                "toolParameters": dict(parameters or {}),
            },
        }

    return _make_item_ref
