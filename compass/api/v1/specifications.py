"""Specification (ASR) version API: create, promote, review and provision."""

from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from compass.db import get_db
from compass.errors import GateError, PersistenceError
from compass.models import ValidationStatus
from compass.schemas.registry import CompletenessReport, ProvisioningResult
from compass.services.assessments import AssessmentService
from compass.services.completeness import check_completeness
from compass.services.provisioning import ProvisioningService

router = APIRouter()


# === Schemas ===

class ChangeLogEntry(BaseModel):
    date: str
    author: str
    description: str


class SpecificationCreate(BaseModel):
    spec_version_id: str = Field(..., min_length=1, max_length=96)
    assessment_id: str
    section_a: Dict[str, Any] = Field(default_factory=dict)
    section_b: Dict[str, Any] = Field(default_factory=dict)
    section_c: Dict[str, Any] = Field(default_factory=dict)
    section_d: Dict[str, Any] = Field(default_factory=dict)
    section_e: Dict[str, Any] = Field(default_factory=dict)
    section_f: Dict[str, Any] = Field(default_factory=dict)
    section_g: Dict[str, Any] = Field(default_factory=dict)
    section_h: Dict[str, Any] = Field(default_factory=dict)
    section_i: Dict[str, Any] = Field(default_factory=dict)
    section_j: Dict[str, Any] = Field(default_factory=dict)
    change_log: List[ChangeLogEntry] = Field(default_factory=list)
    make_current: bool = False


class SpecificationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    spec_version_id: str
    assessment_id: str
    validation_status: ValidationStatus
    completeness_percent: int
    is_current: bool
    change_log: List[Dict[str, Any]] = Field(default_factory=list)
    created_at: datetime
    updated_at: Optional[datetime] = None


# === Endpoints ===

@router.post("/", response_model=SpecificationResponse, status_code=status.HTTP_201_CREATED)
def create_specification(payload: SpecificationCreate, db: Session = Depends(get_db)):
    data = payload.model_dump()
    sections = {key: data.pop(key) for key in list(data) if key.startswith("section_")}
    try:
        return AssessmentService(db).create_spec_version(
            assessment_id=data["assessment_id"],
            spec_version_id=data["spec_version_id"],
            sections=sections,
            change_log=data["change_log"],
            make_current=data["make_current"],
        )
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc


@router.get("/{spec_version_id}", response_model=SpecificationResponse)
def get_specification(spec_version_id: str, db: Session = Depends(get_db)):
    try:
        return AssessmentService(db).get_spec_version(spec_version_id)
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


@router.get("/{spec_version_id}/completeness", response_model=CompletenessReport)
def get_completeness(spec_version_id: str, db: Session = Depends(get_db)):
    try:
        spec = AssessmentService(db).get_spec_version(spec_version_id)
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return check_completeness(spec)


@router.post("/{spec_version_id}/promote", response_model=SpecificationResponse)
def promote_specification(spec_version_id: str, db: Session = Depends(get_db)):
    """Make this version the assessment's current one."""

    try:
        return AssessmentService(db).promote_specification(spec_version_id)
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except PersistenceError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc


@router.post("/{spec_version_id}/validate", response_model=SpecificationResponse)
def mark_valid(spec_version_id: str, db: Session = Depends(get_db)):
    try:
        return AssessmentService(db).mark_spec_valid(spec_version_id)
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except GateError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@router.post("/{spec_version_id}/provision", response_model=ProvisioningResult)
def provision(spec_version_id: str, db: Session = Depends(get_db)):
    """Create or reuse the bank, scoring model and forms for this version.

    Always answers 200 with the structured result; ``success`` says whether
    any step failed.
    """

    try:
        return ProvisioningService(db).provision_by_id(spec_version_id)
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
