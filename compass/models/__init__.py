"""SQLAlchemy models for the assessment registry."""

from compass.models.assessment import SECTION_KEYS, Assessment, SpecificationVersion
from compass.models.content import AssessmentBank, ContentBank, Form, Item
from compass.models.enums import (
    AssessmentStatus,
    BankStatus,
    ChainStep,
    ComponentCode,
    ContentModel,
    FormStatus,
    GenerationSource,
    ItemType,
    ScoringKind,
    SessionStatus,
    ValidationStatus,
)
from compass.models.scoring import AdministrationSession, ScoringModel, SessionResponse

__all__ = [
    "SECTION_KEYS",
    "AdministrationSession",
    "Assessment",
    "AssessmentBank",
    "AssessmentStatus",
    "BankStatus",
    "ChainStep",
    "ComponentCode",
    "ContentBank",
    "ContentModel",
    "Form",
    "FormStatus",
    "GenerationSource",
    "Item",
    "ItemType",
    "ScoringKind",
    "ScoringModel",
    "SessionResponse",
    "SessionStatus",
    "SpecificationVersion",
    "ValidationStatus",
]
