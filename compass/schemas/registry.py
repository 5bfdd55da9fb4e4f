"""Result contracts returned by the registry engine.

These models are what the API hands back to the registry UI, so field names
follow the storage column names (snake_case) and serialize directly.
"""

from typing import Dict, List, Optional, Union

from pydantic import BaseModel, Field

from compass.models.enums import ChainStep, ScoringKind


class CompletenessReport(BaseModel):
    """Outcome of the ten-section completeness check."""

    valid: bool
    missing: List[str] = Field(default_factory=list)


class MetricDefinition(BaseModel):
    """Uniform metric shape stored in scoring model schemas."""

    metric_id: str
    name: str
    type: str
    description: str


class BankSummary(BaseModel):
    content_bank_id: str
    linked_assessment_id: str
    name: str
    current_size: int
    status: str


class ScoringModelSummary(BaseModel):
    scoring_model_id: str
    assessment_id: str
    raw_metrics_schema: List[MetricDefinition] = Field(default_factory=list)
    derived_metrics_schema: List[MetricDefinition] = Field(default_factory=list)


class FormSummary(BaseModel):
    form_id: str
    content_bank_id: str
    grade_or_level_tag: str
    form_number: int
    item_count: int = 0


class CreatedArtifacts(BaseModel):
    bank: Optional[BankSummary] = None
    scoring_model: Optional[ScoringModelSummary] = None
    forms: List[FormSummary] = Field(default_factory=list)


class ExistingArtifacts(BaseModel):
    banks: List[BankSummary] = Field(default_factory=list)
    scoring_models: List[ScoringModelSummary] = Field(default_factory=list)


class ProvisioningResult(BaseModel):
    """Structured outcome of one provisioning run.

    ``success`` mirrors ``errors``; warnings never affect it.
    """

    success: bool = False
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    created: CreatedArtifacts = Field(default_factory=CreatedArtifacts)
    existing: ExistingArtifacts = Field(default_factory=ExistingArtifacts)


class ChainStatus(BaseModel):
    """Five-stage dependency chain completion for one assessment."""

    has_spec: bool
    has_bank: bool
    has_forms: bool
    has_items: bool
    has_scoring: bool
    completed_steps: int
    total_steps: int = 5
    percent: int
    is_complete: bool
    missing_steps: List[ChainStep] = Field(default_factory=list)


class GateResult(BaseModel):
    allowed: bool
    reasons: List[str] = Field(default_factory=list)


class FluencyScores(BaseModel):
    """Timed scoring output (items per minute)."""

    items_correct: int
    items_incorrect: int
    items_per_minute: float
    total_time_seconds: float
    accuracy_percentage: float


class AccuracyScores(BaseModel):
    """Untimed scoring output with error-tag frequencies."""

    total_items: int
    correct: int
    incorrect: int
    accuracy_percentage: float
    error_breakdown: Dict[str, int] = Field(default_factory=dict)


class ScoredSession(BaseModel):
    session_id: str
    assessment_id: str
    scoring_type: ScoringKind
    scores: Union[FluencyScores, AccuracyScores]
