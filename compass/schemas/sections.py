"""Typed views over the loosely-typed ASR section documents.

Sections are stored as open JSON. Only the fields provisioning reads are
declared here; everything else passes through untouched (``extra="allow"``).
Fields that historically came in more than one shape are declared as unions
and resolved by the normalizers in ``compass.services.metrics``.
Scalars written where a list or text is expected (a single key, a numeric
pool token) are coerced before validation.
"""

from typing import Any, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from compass.models.enums import GenerationSource


class _Section(BaseModel):
    model_config = ConfigDict(extra="allow")


def _as_list(value: Any) -> Any:
    """Accept a single value where a list is expected."""

    if value is None:
        return []
    if isinstance(value, (str, int, float)):
        return [value]
    return value


def _as_text(value: Any) -> Any:
    # Pools and stimuli are often written as bare numbers (digits, counts)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return value


def _as_text_list(value: Any) -> Any:
    value = _as_list(value)
    if isinstance(value, list):
        return [_as_text(entry) for entry in value]
    return value


class MetricDeclaration(_Section):
    """Structured metric declaration; any field may be missing."""

    metric_id: Optional[str] = None
    name: Optional[str] = None
    type: Optional[str] = None
    description: Optional[str] = None


# A metric is declared either as a bare label or as an object
MetricEntry = Union[str, MetricDeclaration]


class SampleItem(_Section):
    """Sample item listed in section D."""

    stimulus: str
    expected_response: Optional[str] = None
    item_type: Optional[str] = None
    scoring_tags: List[str] = Field(default_factory=list)

    @field_validator("stimulus", "expected_response", mode="before")
    @classmethod
    def _stimulus_as_text(cls, value: Any) -> Any:
        return _as_text(value)

    @field_validator("scoring_tags", mode="before")
    @classmethod
    def _tags_as_list(cls, value: Any) -> Any:
        return _as_text_list(value)


class SectionD(_Section):
    """Content generation settings."""

    generation_source: Optional[GenerationSource] = None
    content_model: Optional[str] = None
    item_type: Optional[str] = None
    stimulus_pool: List[str] = Field(default_factory=list)
    stimulus_rules: List[str] = Field(default_factory=list)
    sample_items: List[SampleItem] = Field(default_factory=list)

    @field_validator("stimulus_pool", "stimulus_rules", mode="before")
    @classmethod
    def _tokens_as_text(cls, value: Any) -> Any:
        return _as_text_list(value)

    @field_validator("sample_items", mode="before")
    @classmethod
    def _samples_as_list(cls, value: Any) -> Any:
        return [] if value is None else value


class SectionG(_Section):
    """Scoring rules. ``raw_metrics``/``derived_metrics`` here are the legacy location."""

    scoring_method: Optional[str] = None
    error_coding: Union[str, List[str], None] = None
    raw_metrics: Optional[List[MetricEntry]] = None
    derived_metrics: Optional[List[MetricEntry]] = None


class SectionH(_Section):
    """Metric declarations."""

    raw_metrics: Optional[List[MetricEntry]] = None
    derived_metrics: Optional[List[MetricEntry]] = None


class SectionI(_Section):
    """Form versioning and equivalence."""

    forms_available: List[str] = Field(default_factory=list)
    forms_per_level: Optional[int] = Field(default=None, ge=1)
    equivalence_sets: Any = None
    differentiation_keys: List[str] = Field(default_factory=list)

    @field_validator("forms_available", "differentiation_keys", mode="before")
    @classmethod
    def _labels_as_list(cls, value: Any) -> Any:
        return _as_text_list(value)
