"""Content bank, bank link, form and item models."""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import Boolean, DateTime, Enum, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.types import JSON

from compass.db import Base
from compass.models.enums import BankStatus, FormStatus


class ContentBank(Base):
    """Pool of content backing one assessment's forms."""

    __tablename__ = "content_banks"

    content_bank_id: Mapped[str] = mapped_column(String(96), primary_key=True)
    linked_assessment_id: Mapped[str] = mapped_column(
        ForeignKey("assessments.assessment_id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    differentiation_keys: Mapped[List[str]] = mapped_column(JSON, default=list)
    equivalence_set_required: Mapped[bool] = mapped_column(Boolean, default=False)
    target_bank_size: Mapped[int] = mapped_column(Integer, default=0)
    current_size: Mapped[int] = mapped_column(Integer, default=0)
    status: Mapped[BankStatus] = mapped_column(
        Enum(BankStatus), default=BankStatus.EMPTY, nullable=False
    )

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

    def __repr__(self) -> str:
        return f"<ContentBank(id={self.content_bank_id}, size={self.current_size})>"


class AssessmentBank(Base):
    """Assessment-to-bank link. Chain membership is decided here, not by foreign keys."""

    __tablename__ = "assessment_banks"

    assessment_id: Mapped[str] = mapped_column(
        ForeignKey("assessments.assessment_id", ondelete="CASCADE"), primary_key=True
    )
    content_bank_id: Mapped[str] = mapped_column(
        ForeignKey("content_banks.content_bank_id", ondelete="CASCADE"), primary_key=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )


class Form(Base):
    """A fixed-order assembly of items administered as a unit.

    ``form_id`` format: ``<assessment_id>.<grade tag>.form<NN>``.
    """

    __tablename__ = "forms"
    __table_args__ = (
        UniqueConstraint("assessment_id", "grade_or_level_tag", "form_number"),
    )

    form_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    content_bank_id: Mapped[str] = mapped_column(
        ForeignKey("content_banks.content_bank_id", ondelete="CASCADE"), nullable=False, index=True
    )
    assessment_id: Mapped[str] = mapped_column(
        ForeignKey("assessments.assessment_id", ondelete="CASCADE"), nullable=False, index=True
    )
    grade_or_level_tag: Mapped[str] = mapped_column(String(16), nullable=False)
    form_number: Mapped[int] = mapped_column(Integer, nullable=False)
    equivalence_set_id: Mapped[Optional[str]] = mapped_column(String(96))
    status: Mapped[FormStatus] = mapped_column(
        Enum(FormStatus), default=FormStatus.DRAFT, nullable=False
    )
    # Format: {"locked_token_order": [...], "generated_at": "...", "passage_id": "..."}
    metadata_json: Mapped[Dict[str, Any]] = mapped_column("metadata", JSON, default=dict)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    items: Mapped[List["Item"]] = relationship(
        back_populates="form", cascade="all, delete-orphan", order_by="Item.sequence_number"
    )

    def __repr__(self) -> str:
        return f"<Form(id={self.form_id}, bank={self.content_bank_id})>"


class Item(Base):
    """One scored unit inside a form."""

    __tablename__ = "items"
    __table_args__ = (UniqueConstraint("form_id", "sequence_number"),)

    item_id: Mapped[str] = mapped_column(String(160), primary_key=True)
    form_id: Mapped[str] = mapped_column(
        ForeignKey("forms.form_id", ondelete="CASCADE"), nullable=False, index=True
    )
    item_type: Mapped[str] = mapped_column(String(32), nullable=False)
    sequence_number: Mapped[int] = mapped_column(Integer, nullable=False)
    # Free-form payload, e.g. {"stimulus": "b", "expected_response": "b", "position": 3}
    content_payload: Mapped[Dict[str, Any]] = mapped_column(JSON, default=dict)
    scoring_tags: Mapped[List[str]] = mapped_column(JSON, default=list)

    form: Mapped[Form] = relationship(back_populates="items")

    def __repr__(self) -> str:
        return f"<Item(id={self.item_id}, type={self.item_type})>"
