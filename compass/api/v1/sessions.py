"""Administration session API: create, record responses, score."""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from compass.db import get_db
from compass.errors import PersistenceError
from compass.models import SessionStatus
from compass.schemas.registry import ScoredSession
from compass.services import sessions as session_service
from compass.services.scoring import score_and_persist_session, score_session

router = APIRouter()


# === Schemas ===

class SessionCreate(BaseModel):
    assessment_id: str
    form_id: str
    student_name: str = Field(..., min_length=1)
    grade_tag: Optional[str] = None
    session_id: Optional[str] = None


class SessionResponseModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    session_id: str
    assessment_id: str
    form_id: str
    student_name: str
    grade_tag: Optional[str] = None
    status: SessionStatus
    current_item_index: int
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


class ResponseCreate(BaseModel):
    item_id: str
    is_correct: Optional[bool] = None
    error_tags: List[str] = Field(default_factory=list)
    elapsed_seconds: Optional[float] = Field(default=None, ge=0)
    response_time_ms: Optional[int] = Field(default=None, ge=0)
    notes: Optional[str] = None
    discontinue_flag: bool = False


class RecordedResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    response_id: int
    session_id: str
    item_id: str
    sequence_number: int
    is_correct: Optional[bool] = None
    error_tags: List[str] = Field(default_factory=list)
    elapsed_seconds: Optional[float] = None


# === Endpoints ===

@router.post("/", response_model=SessionResponseModel, status_code=status.HTTP_201_CREATED)
def create_session(payload: SessionCreate, db: Session = Depends(get_db)):
    try:
        return session_service.create_session(db, **payload.model_dump())
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except PersistenceError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc


@router.post("/{session_id}/responses", response_model=RecordedResponse)
def record_response(session_id: str, payload: ResponseCreate, db: Session = Depends(get_db)):
    try:
        return session_service.record_response(db, session_id, **payload.model_dump())
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except PersistenceError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc


@router.post("/{session_id}/complete", response_model=SessionResponseModel)
def complete_session(session_id: str, db: Session = Depends(get_db)):
    try:
        return session_service.complete_session(db, session_id)
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


@router.get("/{session_id}/score", response_model=ScoredSession)
def preview_score(session_id: str, db: Session = Depends(get_db)):
    """Compute scores without storing them."""

    result = score_session(db, session_id)
    if result is None:
        raise HTTPException(status_code=404, detail=f"Session {session_id} not found")
    return result


@router.post("/{session_id}/score", response_model=ScoredSession)
def score(session_id: str, db: Session = Depends(get_db)):
    try:
        result = score_and_persist_session(db, session_id)
    except PersistenceError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    if result is None:
        raise HTTPException(status_code=404, detail=f"Session {session_id} not found")
    return result
