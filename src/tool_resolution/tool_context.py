# tool_resolution/tool_context.py
from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from tool_resolution.contracts import Assessment, AssessmentItemRef, ContentLevel

_TAG = re.compile(r"<[^>]*>")

CHOICE_INTERACTION_TYPES = frozenset(
    {
        "pie-multiple-choice",
        "pie-inline-choice",
        "pie-select-text",
        "multiple-choice",
        "inline-choice",
        "select-text",
    }
)

MIN_READABLE_CHARS = 10

_MATH_INDICATORS = (
    re.compile(r"<math[>\s]", re.IGNORECASE),
    re.compile(r"\\\[([^\]]+)\\\]"),
    re.compile(r"\$\$[^$]+\$\$"),
    re.compile(r"\\\("),
    re.compile(r"[+\-*/=<>≤≥∑∫√π]"),
    re.compile(r"\d+\s*[+\-*/=]\s*\d+"),
)

_SCIENCE_INDICATORS = (
    re.compile(r"chemistry|chemical|element|atom|molecule|compound", re.IGNORECASE),
    re.compile(r"periodic\s+table", re.IGNORECASE),
    re.compile(r"H₂O|CO₂|NaCl|O₂|N₂", re.IGNORECASE),
    re.compile(r"\b[A-Z][a-z]?\d*\b"),
    re.compile(r"biology|organism|cell|DNA|RNA|protein", re.IGNORECASE),
    re.compile(r"physics|force|energy|velocity|acceleration", re.IGNORECASE),
)


@dataclass(frozen=True)
class ToolContext:
    """
    Where a tool is being evaluated for Pass 2.

    Content documents are plain mappings in the shape the player loads them:
    `item` / `passage` are entities with a `config` mapping (`markup`,
    `elements`, `models`), `rubric_block` carries `content` and optionally an
    embedded `passage`.
    """

    level: ContentLevel
    assessment: Assessment | None = None
    item_ref: AssessmentItemRef | None = None
    section: Mapping[str, Any] | None = None
    item: Mapping[str, Any] | None = None
    passage: Mapping[str, Any] | None = None
    rubric_block: Mapping[str, Any] | None = None
    element_id: str | None = None
    metadata: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "level", ContentLevel(self.level))


def strip_html(value: str) -> str:
    return _TAG.sub(" ", value).strip()


def _config(entity: Mapping[str, Any] | None) -> Mapping[str, Any]:
    if not entity:
        return {}
    config = entity.get("config")
    return config if isinstance(config, Mapping) else {}


def _models(config: Mapping[str, Any]) -> list[Any]:
    raw = config.get("models")
    if isinstance(raw, list):
        return raw
    if isinstance(raw, Mapping):
        return list(raw.values())
    return []


def _model_strings(model: Mapping[str, Any]) -> Iterable[str]:
    for value in model.values():
        if isinstance(value, str):
            yield strip_html(value)
        elif isinstance(value, list):
            for entry in value:
                if isinstance(entry, Mapping):
                    for nested in entry.values():
                        if isinstance(nested, str):
                            yield strip_html(nested)


def _element_model(config: Mapping[str, Any], element_id: str | None) -> Mapping[str, Any] | None:
    for model in _models(config):
        if isinstance(model, Mapping) and model.get("id") == element_id:
            return model
    return None


def _join(chunks: Iterable[str]) -> str:
    return " ".join(chunk for chunk in chunks if chunk).strip()


def extract_text_content(context: ToolContext) -> str:
    if context.level is ContentLevel.ELEMENT:
        config = _config(context.item)
        chunks: list[str] = []
        elements = config.get("elements")
        if isinstance(elements, Mapping):
            markup = elements.get(context.element_id)
            if isinstance(markup, str):
                chunks.append(strip_html(markup))
        # Math often lives in model prompts/labels rather than the element markup.
        model = _element_model(config, context.element_id)
        if model is not None:
            chunks.extend(_model_strings(model))
        return _join(chunks)

    if context.level is ContentLevel.ITEM:
        config = _config(context.item)
        chunks = []
        markup = config.get("markup")
        if isinstance(markup, str):
            chunks.append(strip_html(markup))
        elements = config.get("elements")
        if isinstance(elements, Mapping):
            chunks.extend(strip_html(value) for value in elements.values() if isinstance(value, str))
        for model in _models(config):
            if isinstance(model, Mapping):
                chunks.extend(_model_strings(model))
        return _join(chunks)

    if context.level is ContentLevel.PASSAGE:
        markup = _config(context.passage).get("markup") or ""
        return strip_html(str(markup))

    if context.level is ContentLevel.RUBRIC:
        rubric = context.rubric_block or {}
        embedded = rubric.get("passage")
        if isinstance(embedded, Mapping) and _config(embedded):
            return strip_html(str(_config(embedded).get("markup") or ""))
        return strip_html(str(rubric.get("content") or ""))

    return ""


def has_math_content(context: ToolContext) -> bool:
    text = extract_text_content(context)
    return any(pattern.search(text) for pattern in _MATH_INDICATORS)


def has_choice_interaction(context: ToolContext) -> bool:
    config = _config(context.item)

    if context.level is ContentLevel.ELEMENT:
        model = _element_model(config, context.element_id)
        if model is None:
            return False
        return str(model.get("element") or "") in CHOICE_INTERACTION_TYPES

    if context.level is ContentLevel.ITEM:
        for model in _models(config):
            if not isinstance(model, Mapping):
                continue
            if str(model.get("element") or "") in CHOICE_INTERACTION_TYPES:
                return True
            # Configs without canonical element names still expose choices.
            choices = model.get("choices")
            if isinstance(choices, list) and choices:
                return True
    return False


def has_readable_text(context: ToolContext) -> bool:
    return len(extract_text_content(context).strip()) >= MIN_READABLE_CHARS


def has_science_content(context: ToolContext) -> bool:
    text = extract_text_content(context)
    return any(pattern.search(text) for pattern in _SCIENCE_INDICATORS)
