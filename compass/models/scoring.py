"""Scoring model and administration session models."""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import Boolean, DateTime, Enum, Float, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.types import JSON

from compass.db import Base
from compass.models.enums import SessionStatus


class ScoringModel(Base):
    """Metric schemas and scoring rules for one assessment.

    Formulas, flags and thresholds start empty and are curated by hand.
    """

    __tablename__ = "scoring_models"

    scoring_model_id: Mapped[str] = mapped_column(String(96), primary_key=True)
    assessment_id: Mapped[str] = mapped_column(
        ForeignKey("assessments.assessment_id", ondelete="CASCADE"), nullable=False, index=True
    )
    # Format: [{"metric_id": "...", "name": "...", "type": "number", "description": "..."}]
    raw_metrics_schema: Mapped[List[Dict[str, Any]]] = mapped_column(JSON, default=list)
    derived_metrics_schema: Mapped[List[Dict[str, Any]]] = mapped_column(JSON, default=list)
    formulas: Mapped[List[Dict[str, Any]]] = mapped_column(JSON, default=list)
    flags: Mapped[List[Dict[str, Any]]] = mapped_column(JSON, default=list)
    thresholds: Mapped[List[Dict[str, Any]]] = mapped_column(JSON, default=list)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<ScoringModel(id={self.scoring_model_id})>"


class AdministrationSession(Base):
    """One student's administration of one form."""

    __tablename__ = "sessions"

    session_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    assessment_id: Mapped[str] = mapped_column(
        ForeignKey("assessments.assessment_id"), nullable=False, index=True
    )
    form_id: Mapped[str] = mapped_column(ForeignKey("forms.form_id"), nullable=False)
    student_name: Mapped[str] = mapped_column(String(255), nullable=False)
    grade_tag: Mapped[Optional[str]] = mapped_column(String(16))
    status: Mapped[SessionStatus] = mapped_column(
        Enum(SessionStatus), default=SessionStatus.CREATED, nullable=False
    )
    current_item_index: Mapped[int] = mapped_column(Integer, default=0)
    started_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    responses: Mapped[List["SessionResponse"]] = relationship(
        back_populates="session",
        cascade="all, delete-orphan",
        order_by="SessionResponse.sequence_number",
    )


class SessionResponse(Base):
    """A recorded response to one item within a session."""

    __tablename__ = "session_responses"
    __table_args__ = (UniqueConstraint("session_id", "item_id"),)

    response_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    session_id: Mapped[str] = mapped_column(
        ForeignKey("sessions.session_id", ondelete="CASCADE"), nullable=False, index=True
    )
    item_id: Mapped[str] = mapped_column(ForeignKey("items.item_id"), nullable=False)
    sequence_number: Mapped[int] = mapped_column(Integer, nullable=False)
    is_correct: Mapped[Optional[bool]] = mapped_column(Boolean)
    error_tags: Mapped[List[str]] = mapped_column(JSON, default=list)
    response_time_ms: Mapped[Optional[int]] = mapped_column(Integer)
    elapsed_seconds: Mapped[Optional[float]] = mapped_column(Float)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    discontinue_flag: Mapped[bool] = mapped_column(Boolean, default=False)
    # Written by the scoring dispatcher on the first response only
    computed_scores: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON)

    session: Mapped[AdministrationSession] = relationship(back_populates="responses")
