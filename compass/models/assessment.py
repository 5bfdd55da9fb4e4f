"""Assessment registry and specification (ASR) version models."""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import Boolean, DateTime, Enum, ForeignKey, Index, Integer, String, text
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.types import JSON

from compass.db import Base
from compass.models.enums import (
    AssessmentStatus,
    ComponentCode,
    ContentModel,
    ScoringKind,
    ValidationStatus,
)


SECTION_KEYS = (
    "section_a",
    "section_b",
    "section_c",
    "section_d",
    "section_e",
    "section_f",
    "section_g",
    "section_h",
    "section_i",
    "section_j",
)


class Assessment(Base):
    """One registered assessment, e.g. ``FL-ORF`` or ``PH-ALPH``."""

    __tablename__ = "assessments"

    assessment_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    component_code: Mapped[ComponentCode] = mapped_column(Enum(ComponentCode), nullable=False)
    subcomponent_code: Mapped[str] = mapped_column(String(64), nullable=False)
    subcomponent_name: Mapped[str] = mapped_column(String(255), nullable=False)
    content_model: Mapped[ContentModel] = mapped_column(Enum(ContentModel), nullable=False)
    grade_range: Mapped[str] = mapped_column(String(32), nullable=False)
    status: Mapped[AssessmentStatus] = mapped_column(
        Enum(AssessmentStatus), default=AssessmentStatus.STUB, nullable=False
    )
    # Resolved once at creation, never re-derived from the id prefix
    scoring_kind: Mapped[ScoringKind] = mapped_column(
        Enum(ScoringKind), default=ScoringKind.ACCURACY, nullable=False
    )

    # Not a foreign key: a dangling pointer must read as "no specification"
    current_spec_version_id: Mapped[Optional[str]] = mapped_column(String(96))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    spec_versions: Mapped[List["SpecificationVersion"]] = relationship(
        back_populates="assessment", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<Assessment(id={self.assessment_id}, status={self.status.value})>"


class SpecificationVersion(Base):
    """A ten-section ASR document owned by one assessment.

    Sections are open JSON documents. The ones provisioning reads:

    - D: ``generation_source``, ``stimulus_pool``, ``stimulus_rules``,
      ``item_type``, ``sample_items``
    - G: ``error_coding`` (string or list), legacy metric lists
    - H: ``raw_metrics`` / ``derived_metrics`` (strings or objects)
    - I: ``differentiation_keys``, ``equivalence_sets``, ``forms_available``,
      ``forms_per_level``
    """

    __tablename__ = "specification_versions"
    __table_args__ = (
        # At most one current version per assessment
        Index(
            "uq_specification_current",
            "assessment_id",
            unique=True,
            sqlite_where=text("is_current = 1"),
            postgresql_where=text("is_current"),
        ),
    )

    spec_version_id: Mapped[str] = mapped_column(String(96), primary_key=True)
    assessment_id: Mapped[str] = mapped_column(
        ForeignKey("assessments.assessment_id", ondelete="CASCADE"), nullable=False
    )

    section_a: Mapped[Dict[str, Any]] = mapped_column(JSON, default=dict)
    section_b: Mapped[Dict[str, Any]] = mapped_column(JSON, default=dict)
    section_c: Mapped[Dict[str, Any]] = mapped_column(JSON, default=dict)
    section_d: Mapped[Dict[str, Any]] = mapped_column(JSON, default=dict)
    section_e: Mapped[Dict[str, Any]] = mapped_column(JSON, default=dict)
    section_f: Mapped[Dict[str, Any]] = mapped_column(JSON, default=dict)
    section_g: Mapped[Dict[str, Any]] = mapped_column(JSON, default=dict)
    section_h: Mapped[Dict[str, Any]] = mapped_column(JSON, default=dict)
    section_i: Mapped[Dict[str, Any]] = mapped_column(JSON, default=dict)
    section_j: Mapped[Dict[str, Any]] = mapped_column(JSON, default=dict)

    validation_status: Mapped[ValidationStatus] = mapped_column(
        Enum(ValidationStatus), default=ValidationStatus.INCOMPLETE, nullable=False
    )
    completeness_percent: Mapped[int] = mapped_column(Integer, default=0)
    # Format: [{"date": "2024-01-15", "author": "...", "description": "..."}]
    change_log: Mapped[List[Dict[str, Any]]] = mapped_column(JSON, default=list)
    is_current: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    assessment: Mapped[Assessment] = relationship(back_populates="spec_versions")

    def section(self, letter: str) -> Dict[str, Any]:
        """Return section ``letter`` (``"a"`` .. ``"j"``), empty when unset."""

        value = getattr(self, f"section_{letter.lower()}")
        return value if isinstance(value, dict) else {}

    def __repr__(self) -> str:
        return f"<SpecificationVersion(id={self.spec_version_id}, current={self.is_current})>"
