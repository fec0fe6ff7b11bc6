# tool_resolution/contracts.py
from __future__ import annotations

from collections.abc import Mapping
from enum import StrEnum
from typing import Any

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)
from pydantic_core import ErrorDetails
from typing_extensions import Self

FeatureId = str
ToolId = str


# ------------------------------------------------------------------------------
# Errors
# ------------------------------------------------------------------------------


class ToolResolutionError(Exception):
    """Base class for every error raised by the tool resolution library."""


class DuplicateToolError(ToolResolutionError, ValueError):
    """Raised when a tool id is registered twice."""

    def __init__(self, tool_id: ToolId) -> None:
        super().__init__(f"tool {tool_id!r} is already registered")
        self.tool_id = tool_id


class ToolNotRegisteredError(ToolResolutionError, KeyError):
    def __init__(self, tool_id: ToolId) -> None:
        super().__init__(f"cannot override non-existent tool {tool_id!r}")
        self.tool_id = tool_id

    def __str__(self) -> str:
        return str(self.args[0])


class UnknownToolReferenceError(ToolResolutionError, LookupError):
    """Raised when a feature maps to a tool id that is absent from the registry."""

    def __init__(self, feature_id: FeatureId, tool_id: ToolId) -> None:
        super().__init__(f"feature {feature_id!r} maps to unregistered tool {tool_id!r}")
        self.feature_id = feature_id
        self.tool_id = tool_id


class RegistrySealedError(ToolResolutionError, RuntimeError):
    """Raised when a sealed registry is mutated."""


class ResolutionInputError(ToolResolutionError, ValueError):
    """Raised when an input document cannot be validated into its typed contract."""

    def __init__(self, document: str, errors: list[str]) -> None:
        joined = "; ".join(errors) if errors else "invalid document"
        super().__init__(f"malformed {document}: {joined}")
        self.document = document
        self.errors = errors


# ------------------------------------------------------------------------------
# Shared BaseModel config helpers
# ------------------------------------------------------------------------------

_DOCUMENT_CONFIG = ConfigDict(
    extra="ignore",
    frozen=True,
    use_enum_values=False,
)

_IMMUTABLE_CONTRACT_CONFIG = ConfigDict(
    extra="forbid",
    use_enum_values=False,
    frozen=True,
)


def _camel(snake: str, camel: str) -> dict[str, Any]:
    return {
        "validation_alias": AliasChoices(snake, camel),
        "serialization_alias": camel,
    }


def _feature_tuple(value: Any) -> Any:
    """Reject bare strings so that `"calculator"` is never read as a list of characters."""
    if value is None:
        return ()
    if isinstance(value, (str, bytes)) or isinstance(value, Mapping):
        raise ValueError("expected an array of feature identifiers")
    return value


# ------------------------------------------------------------------------------
# Enums
# ------------------------------------------------------------------------------


class AdministrationMode(StrEnum):
    PRACTICE = "practice"
    TEST = "test"
    BENCHMARK = "benchmark"


class ContentLevel(StrEnum):
    ASSESSMENT = "assessment"
    SECTION = "section"
    ITEM = "item"
    PASSAGE = "passage"
    RUBRIC = "rubric"
    ELEMENT = "element"


class Decision(StrEnum):
    ALLOW = "allow"
    BLOCK = "block"


class DecisionSource(StrEnum):
    DISTRICT = "district"
    SESSION = "session"
    ITEM = "item"
    STUDENT = "student"
    SYSTEM = "system"


class UnknownToolPolicy(StrEnum):
    LOG = "log"
    RAISE = "raise"


# ------------------------------------------------------------------------------
# Input documents
# ------------------------------------------------------------------------------


class PersonalNeedsProfile(BaseModel):
    """The student's documented accessibility entitlements (PNP)."""

    model_config = _DOCUMENT_CONFIG

    supports: tuple[FeatureId, ...] = ()
    prohibited_supports: tuple[FeatureId, ...] = Field(
        default=(), **_camel("prohibited_supports", "prohibitedSupports")
    )
    activate_at_init: tuple[FeatureId, ...] = Field(
        default=(), **_camel("activate_at_init", "activateAtInit")
    )

    @field_validator("supports", "prohibited_supports", "activate_at_init", mode="before")
    @classmethod
    def _require_arrays(cls, value: Any) -> Any:
        return _feature_tuple(value)


class DistrictPolicy(BaseModel):
    model_config = _DOCUMENT_CONFIG

    blocked_tools: tuple[FeatureId, ...] = Field(default=(), **_camel("blocked_tools", "blockedTools"))
    required_tools: tuple[FeatureId, ...] = Field(default=(), **_camel("required_tools", "requiredTools"))
    # Free-form per-feature policy notes; string values are quoted in provenance explanations.
    policies: dict[str, Any] = Field(default_factory=dict)

    @field_validator("blocked_tools", "required_tools", mode="before")
    @classmethod
    def _require_arrays(cls, value: Any) -> Any:
        return _feature_tuple(value)

    @field_validator("policies", mode="before")
    @classmethod
    def _null_policies(cls, value: Any) -> Any:
        return {} if value is None else value


class TestAdministration(BaseModel):
    """Session-scoped administration settings written by proctor tooling."""

    __test__ = False

    model_config = _DOCUMENT_CONFIG

    mode: AdministrationMode = AdministrationMode.TEST
    tool_overrides: dict[FeatureId, bool] = Field(
        default_factory=dict, **_camel("tool_overrides", "toolOverrides")
    )
    start_date: str | None = Field(default=None, **_camel("start_date", "startDate"))
    end_date: str | None = Field(default=None, **_camel("end_date", "endDate"))

    @field_validator("tool_overrides", mode="before")
    @classmethod
    def _require_mapping(cls, value: Any) -> Any:
        if value is None:
            return {}
        if not isinstance(value, Mapping):
            raise ValueError("toolOverrides must be an object of feature id -> bool")
        for key, flag in value.items():
            if not isinstance(flag, bool):
                raise ValueError(f"toolOverrides[{key!r}] must be a boolean")
        return value


class ItemSettings(BaseModel):
    """Per-item tool rules authored with the assessment content."""

    model_config = _DOCUMENT_CONFIG

    required_tools: tuple[FeatureId, ...] = Field(default=(), **_camel("required_tools", "requiredTools"))
    restricted_tools: tuple[FeatureId, ...] = Field(
        default=(), **_camel("restricted_tools", "restrictedTools")
    )
    tool_parameters: dict[str, Any] = Field(default_factory=dict, **_camel("tool_parameters", "toolParameters"))

    @field_validator("required_tools", "restricted_tools", mode="before")
    @classmethod
    def _require_arrays(cls, value: Any) -> Any:
        return _feature_tuple(value)

    @field_validator("tool_parameters", mode="before")
    @classmethod
    def _null_parameters(cls, value: Any) -> Any:
        return {} if value is None else value


class AssessmentSettings(BaseModel):
    model_config = _DOCUMENT_CONFIG

    district_policy: DistrictPolicy = Field(
        default_factory=DistrictPolicy, **_camel("district_policy", "districtPolicy")
    )
    test_administration: TestAdministration = Field(
        default_factory=TestAdministration, **_camel("test_administration", "testAdministration")
    )
    tool_configs: dict[str, Any] = Field(default_factory=dict, **_camel("tool_configs", "toolConfigs"))

    @model_validator(mode="before")
    @classmethod
    def _drop_null_sections(cls, data: Any) -> Any:
        if not isinstance(data, Mapping):
            return data
        return {key: value for key, value in data.items() if value is not None}


class AssessmentItemRef(BaseModel):
    model_config = _DOCUMENT_CONFIG

    identifier: str | None = None
    settings: ItemSettings = Field(default_factory=ItemSettings)

    @field_validator("settings", mode="before")
    @classmethod
    def _null_settings(cls, value: Any) -> Any:
        return {} if value is None else value


class Assessment(BaseModel):
    model_config = _DOCUMENT_CONFIG

    identifier: str | None = None
    title: str | None = None
    personal_needs_profile: PersonalNeedsProfile | None = Field(
        default=None, **_camel("personal_needs_profile", "personalNeedsProfile")
    )
    settings: AssessmentSettings = Field(default_factory=AssessmentSettings)

    @field_validator("settings", mode="before")
    @classmethod
    def _null_settings(cls, value: Any) -> Any:
        return {} if value is None else value


# ------------------------------------------------------------------------------
# Boundary validation
# ------------------------------------------------------------------------------


def _format_errors(exc: ValidationError) -> list[str]:
    def _loc(err: ErrorDetails) -> str:
        loc = err.get("loc") or ()
        return ".".join(str(part) for part in loc) or "<root>"

    return [f"{_loc(err)}: {err.get('msg', 'invalid')}" for err in exc.errors()]


def _load(model: type[BaseModel], payload: object, document: str) -> Any:
    if isinstance(payload, model):
        return payload
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        raise ResolutionInputError(document, _format_errors(exc)) from exc


def load_assessment(payload: Assessment | Mapping[str, Any]) -> Assessment:
    """Validate an assessment document (JSON shape or snake_case) at the boundary."""
    return _load(Assessment, payload, "assessment")


def load_item_ref(payload: AssessmentItemRef | Mapping[str, Any] | None) -> AssessmentItemRef | None:
    if payload is None:
        return None
    return _load(AssessmentItemRef, payload, "item reference")


def load_profile(payload: PersonalNeedsProfile | Mapping[str, Any] | None) -> PersonalNeedsProfile | None:
    if payload is None:
        return None
    return _load(PersonalNeedsProfile, payload, "personal needs profile")


# ------------------------------------------------------------------------------
# Resolver configuration
# ------------------------------------------------------------------------------


class ResolverSettings(BaseModel):
    model_config = _IMMUTABLE_CONTRACT_CONFIG

    unknown_tool_policy: UnknownToolPolicy = UnknownToolPolicy.LOG
    feature_tool_mappings: dict[FeatureId, ToolId] = Field(default_factory=dict)
    restrict_auto_activate_to_allowed: bool = True
    default_context_id: str = Field(default="tool-resolution", min_length=1)


# ------------------------------------------------------------------------------
# Resolution outputs
# ------------------------------------------------------------------------------


class ResolvedToolConfig(BaseModel):
    """Pass-1 output entry. Absent tools are disabled; they are never listed as `enabled=False`."""

    model_config = _IMMUTABLE_CONTRACT_CONFIG

    id: ToolId
    enabled: bool = True
    required: bool = False
    always_available: bool = Field(default=False, **_camel("always_available", "alwaysAvailable"))
    source: DecisionSource
    feature_ids: tuple[FeatureId, ...] = Field(default=(), **_camel("feature_ids", "featureIds"))
    settings: Any = None


class ProvenanceEntry(BaseModel):
    model_config = _IMMUTABLE_CONTRACT_CONFIG

    feature_id: FeatureId = Field(**_camel("feature_id", "featureId"))
    decision: Decision
    rule: int = Field(ge=1)
    rule_name: str = Field(min_length=1, **_camel("rule_name", "ruleName"))
    source: DecisionSource
    explanation: str = Field(min_length=1)
    category: str | None = None
    # Lower-precedence rules that would also have decided, by rule name, with their explanations.
    overridden: tuple[str, ...] = ()
    overridden_explanations: dict[str, str] = Field(
        default_factory=dict, **_camel("overridden_explanations", "overriddenExplanations")
    )

    @property
    def allowed(self) -> bool:
        return self.decision is Decision.ALLOW


class ProvenanceSummary(BaseModel):
    model_config = _IMMUTABLE_CONTRACT_CONFIG

    total: int = 0
    enabled: int = 0
    blocked: int = 0
    by_rule: dict[str, int] = Field(default_factory=dict, **_camel("by_rule", "byRule"))
    by_source: dict[str, int] = Field(default_factory=dict, **_camel("by_source", "bySource"))

    @model_validator(mode="after")
    def _validate_counts(self) -> Self:
        if self.enabled + self.blocked != self.total:
            raise ValueError("provenance summary counts must add up to total")
        return self


class ResolutionProvenance(BaseModel):
    model_config = _IMMUTABLE_CONTRACT_CONFIG

    context_id: str = Field(**_camel("context_id", "contextId"))
    features: dict[FeatureId, ProvenanceEntry] = Field(default_factory=dict)
    summary: ProvenanceSummary = Field(default_factory=ProvenanceSummary)


class ResolutionResult(BaseModel):
    model_config = _IMMUTABLE_CONTRACT_CONFIG

    tools: tuple[ResolvedToolConfig, ...] = ()
    provenance: ResolutionProvenance

    @property
    def tool_ids(self) -> list[ToolId]:
        return [tool.id for tool in self.tools if tool.enabled]

    def tool(self, tool_id: ToolId) -> ResolvedToolConfig | None:
        return next((tool for tool in self.tools if tool.id == tool_id), None)

    def to_payload(self) -> dict[str, Any]:
        """JSON-ready payload in the camelCase wire shape consumed by toolbar renderers."""
        return self.model_dump(mode="json", by_alias=True)
