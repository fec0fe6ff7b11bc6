# tool_resolution/registry.py
from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any

from tool_resolution.contracts import (
    ContentLevel,
    DuplicateToolError,
    FeatureId,
    RegistrySealedError,
    ToolId,
    ToolNotRegisteredError,
)
from tool_resolution.tool_context import ToolContext

logger = logging.getLogger(__name__)

RelevancePredicate = Callable[[ToolContext], bool]


def always_relevant(_ctx: ToolContext) -> bool:
    return True


@dataclass(frozen=True)
class ToolDescriptor:
    id: ToolId
    supported_levels: frozenset[ContentLevel]
    feature_ids: tuple[FeatureId, ...] = ()
    is_relevant: RelevancePredicate = field(default=always_relevant, compare=False)
    name: str = ""
    description: str = ""

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("tool descriptor requires a non-empty id")
        object.__setattr__(
            self, "supported_levels", frozenset(ContentLevel(level) for level in self.supported_levels)
        )
        object.__setattr__(self, "feature_ids", tuple(dict.fromkeys(self.feature_ids)))

    def supports_level(self, level: ContentLevel | str) -> bool:
        return ContentLevel(level) in self.supported_levels


class ToolRegistry:
    """
    Registered tool descriptors plus the derived feature -> tool multi-map.

    The index is rebuilt on every mutation. `seal()` is the initialization
    barrier: once sealed the registry rejects mutation and can be shared by
    concurrent resolutions without locking.
    """

    def __init__(self, descriptors: Iterable[ToolDescriptor] = ()) -> None:
        self._tools: dict[ToolId, ToolDescriptor] = {}
        self._feature_index: dict[FeatureId, tuple[ToolId, ...]] = {}
        self._sealed = False
        for descriptor in descriptors:
            self.register(descriptor)

    # ------------------------------------------------------------------
    # Mutation (before seal)
    # ------------------------------------------------------------------

    def register(self, descriptor: ToolDescriptor) -> None:
        self._ensure_mutable()
        if descriptor.id in self._tools:
            raise DuplicateToolError(descriptor.id)
        self._tools[descriptor.id] = descriptor
        self._rebuild_index()
        logger.debug("registered tool %s for features %s", descriptor.id, list(descriptor.feature_ids))

    def override(self, descriptor: ToolDescriptor) -> None:
        self._ensure_mutable()
        if descriptor.id not in self._tools:
            raise ToolNotRegisteredError(descriptor.id)
        self._tools[descriptor.id] = descriptor
        self._rebuild_index()
        logger.debug("overrode tool %s", descriptor.id)

    def unregister(self, tool_id: ToolId) -> None:
        self._ensure_mutable()
        if self._tools.pop(tool_id, None) is None:
            return
        self._rebuild_index()
        logger.debug("unregistered tool %s", tool_id)

    def seal(self) -> ToolRegistry:
        if not self._sealed:
            self._sealed = True
            logger.info("tool registry sealed with %d tools", len(self._tools))
        return self

    @property
    def sealed(self) -> bool:
        return self._sealed

    def _ensure_mutable(self) -> None:
        if self._sealed:
            raise RegistrySealedError("tool registry is sealed; register all tools before resolving")

    def _rebuild_index(self) -> None:
        index: dict[FeatureId, list[ToolId]] = {}
        for tool_id, descriptor in self._tools.items():
            for feature_id in descriptor.feature_ids:
                index.setdefault(feature_id, []).append(tool_id)
        self._feature_index = {feature_id: tuple(ids) for feature_id, ids in index.items()}

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, tool_id: object) -> bool:
        return tool_id in self._tools

    def get(self, tool_id: ToolId) -> ToolDescriptor | None:
        return self._tools.get(tool_id)

    def has(self, tool_id: ToolId) -> bool:
        return tool_id in self._tools

    def all_tool_ids(self) -> list[ToolId]:
        return list(self._tools)

    def all_tools(self) -> list[ToolDescriptor]:
        return list(self._tools.values())

    def get_tool_ids_for_feature(self, feature_id: FeatureId) -> list[ToolId]:
        return list(self._feature_index.get(feature_id, ()))

    def tools_for_level(self, level: ContentLevel | str) -> list[ToolDescriptor]:
        return [tool for tool in self._tools.values() if tool.supports_level(level)]

    def feature_ids_for_tools(self, tool_ids: Iterable[ToolId]) -> list[FeatureId]:
        """Feature ids that would enable the given tools; useful when authoring profiles."""
        features: dict[FeatureId, None] = {}
        for tool_id in tool_ids:
            descriptor = self._tools.get(tool_id)
            if descriptor is None:
                continue
            for feature_id in descriptor.feature_ids:
                features.setdefault(feature_id, None)
        return list(features)

    def tool_metadata(self) -> list[dict[str, Any]]:
        return [
            {
                "id": tool.id,
                "name": tool.name,
                "description": tool.description,
                "featureIds": list(tool.feature_ids),
                "supportedLevels": sorted(level.value for level in tool.supported_levels),
            }
            for tool in self._tools.values()
        ]

    # ------------------------------------------------------------------
    # Pass 2
    # ------------------------------------------------------------------

    def filter_visible_in_context(
        self, allowed_tool_ids: Sequence[ToolId], context: ToolContext
    ) -> list[ToolDescriptor]:
        """
        Keep allowed tools that support `context.level` and report themselves relevant.

        Only ever removes ids: the output is a subset of `allowed_tool_ids`,
        in their order, without duplicates.
        """
        visible: list[ToolDescriptor] = []
        for tool_id in dict.fromkeys(allowed_tool_ids):
            descriptor = self._tools.get(tool_id)
            if descriptor is None:
                logger.warning("tool %s is allowed but not registered", tool_id)
                continue
            if context.level not in descriptor.supported_levels:
                continue
            try:
                relevant = descriptor.is_relevant(context)
            except Exception:
                logger.exception("relevance check failed for tool %s; hiding it", tool_id)
                continue
            if relevant:
                visible.append(descriptor)
        return visible
