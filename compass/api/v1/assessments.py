"""Assessment registry API: create, list, chain status and status changes."""

from datetime import datetime
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from compass.db import get_db
from compass.errors import GateError, PersistenceError
from compass.models import AssessmentStatus, ComponentCode, ContentModel, ScoringKind
from compass.schemas.registry import ChainStatus
from compass.services.assessments import AssessmentService
from compass.services.chain import (
    ChainSnapshot,
    calculate_all_chain_statuses,
    calculate_chain_status,
    eligible_forms,
)
from compass.utils.grades import get_grade_label

router = APIRouter()


# === Schemas ===

class AssessmentCreate(BaseModel):
    assessment_id: str = Field(..., min_length=1, max_length=64)
    component_code: ComponentCode
    subcomponent_code: str
    subcomponent_name: str
    content_model: ContentModel
    grade_range: str


class AssessmentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    assessment_id: str
    component_code: ComponentCode
    subcomponent_code: str
    subcomponent_name: str
    content_model: ContentModel
    grade_range: str
    status: AssessmentStatus
    scoring_kind: ScoringKind
    current_spec_version_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class AssessmentListResponse(BaseModel):
    assessments: List[AssessmentResponse]
    total: int


class StatusUpdate(BaseModel):
    status: AssessmentStatus


class EligibleFormResponse(BaseModel):
    form_id: str
    content_bank_id: str
    grade_or_level_tag: str
    grade_label: str
    form_number: int


# === Endpoints ===

@router.get("/", response_model=AssessmentListResponse)
def list_assessments(
    component_code: Optional[ComponentCode] = None, db: Session = Depends(get_db)
):
    assessments = AssessmentService(db).list_assessments(component_code)
    return {"assessments": assessments, "total": len(assessments)}


@router.post("/", response_model=AssessmentResponse, status_code=status.HTTP_201_CREATED)
def create_assessment(payload: AssessmentCreate, db: Session = Depends(get_db)):
    try:
        return AssessmentService(db).create_assessment(**payload.model_dump())
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc


@router.get("/chain-status", response_model=Dict[str, ChainStatus])
def all_chain_statuses(db: Session = Depends(get_db)):
    """Chain status for every assessment, keyed by id."""

    assessments = AssessmentService(db).list_assessments()
    return calculate_all_chain_statuses(assessments, ChainSnapshot.load(db))


@router.get("/{assessment_id}", response_model=AssessmentResponse)
def get_assessment(assessment_id: str, db: Session = Depends(get_db)):
    try:
        return AssessmentService(db).get_assessment(assessment_id)
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


@router.get("/{assessment_id}/chain-status", response_model=ChainStatus)
def chain_status(assessment_id: str, db: Session = Depends(get_db)):
    try:
        assessment = AssessmentService(db).get_assessment(assessment_id)
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return calculate_chain_status(assessment, ChainSnapshot.load(db))


@router.get("/{assessment_id}/forms", response_model=List[EligibleFormResponse])
def list_eligible_forms(assessment_id: str, db: Session = Depends(get_db)):
    """Forms that count toward the chain: their bank must be linked to the assessment."""

    try:
        AssessmentService(db).get_assessment(assessment_id)
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return [
        EligibleFormResponse(
            form_id=form.form_id,
            content_bank_id=form.content_bank_id,
            grade_or_level_tag=form.grade_or_level_tag,
            grade_label=get_grade_label(form.grade_or_level_tag),
            form_number=form.form_number,
        )
        for form in eligible_forms(db, assessment_id)
    ]


@router.patch("/{assessment_id}/status", response_model=AssessmentResponse)
def update_status(assessment_id: str, payload: StatusUpdate, db: Session = Depends(get_db)):
    """Change lifecycle status; ``active`` is refused until the chain is complete."""

    try:
        return AssessmentService(db).set_assessment_status(assessment_id, payload.status)
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except GateError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except PersistenceError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc
