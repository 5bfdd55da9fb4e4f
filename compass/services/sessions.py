"""Administration sessions and their recorded responses."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from compass.errors import PersistenceError
from compass.models import (
    AdministrationSession,
    Assessment,
    Form,
    Item,
    SessionResponse,
    SessionStatus,
)


def _commit(db: Session, what: str) -> None:
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise PersistenceError(f"Failed to save {what}: {exc}") from exc


def create_session(
    db: Session,
    assessment_id: str,
    form_id: str,
    student_name: str,
    grade_tag: Optional[str] = None,
    session_id: Optional[str] = None,
) -> AdministrationSession:
    if db.get(Assessment, assessment_id) is None:
        raise LookupError(f"Assessment {assessment_id} not found")
    form = db.get(Form, form_id)
    if form is None or form.assessment_id != assessment_id:
        raise LookupError(f"Form {form_id} not found for assessment {assessment_id}")

    session = AdministrationSession(
        session_id=session_id or uuid.uuid4().hex,
        assessment_id=assessment_id,
        form_id=form_id,
        student_name=student_name,
        grade_tag=grade_tag or form.grade_or_level_tag,
        status=SessionStatus.CREATED,
    )
    db.add(session)
    _commit(db, f"session {session.session_id}")
    db.refresh(session)
    return session


def record_response(
    db: Session,
    session_id: str,
    item_id: str,
    is_correct: Optional[bool],
    error_tags: Optional[List[str]] = None,
    elapsed_seconds: Optional[float] = None,
    response_time_ms: Optional[int] = None,
    notes: Optional[str] = None,
    discontinue_flag: bool = False,
) -> SessionResponse:
    """Insert or overwrite the response to ``item_id``; one response per item."""

    session = db.get(AdministrationSession, session_id)
    if session is None:
        raise LookupError(f"Session {session_id} not found")
    item = db.get(Item, item_id)
    if item is None or item.form_id != session.form_id:
        raise LookupError(f"Item {item_id} is not on form {session.form_id}")

    response = db.scalars(
        select(SessionResponse).where(
            SessionResponse.session_id == session_id, SessionResponse.item_id == item_id
        )
    ).first()
    if response is None:
        response = SessionResponse(session_id=session_id, item_id=item_id)
        db.add(response)

    response.sequence_number = item.sequence_number
    response.is_correct = is_correct
    response.error_tags = list(error_tags or [])
    response.elapsed_seconds = elapsed_seconds
    response.response_time_ms = response_time_ms
    response.notes = notes
    response.discontinue_flag = discontinue_flag

    if session.status == SessionStatus.CREATED:
        session.status = SessionStatus.IN_PROGRESS
        session.started_at = datetime.now(timezone.utc)
    session.current_item_index = max(session.current_item_index or 0, item.sequence_number)
    if discontinue_flag:
        session.status = SessionStatus.COMPLETED
        session.completed_at = datetime.now(timezone.utc)

    _commit(db, f"response to {item_id} in session {session_id}")
    db.refresh(response)
    return response


def complete_session(db: Session, session_id: str) -> AdministrationSession:
    session = db.get(AdministrationSession, session_id)
    if session is None:
        raise LookupError(f"Session {session_id} not found")
    session.status = SessionStatus.COMPLETED
    session.completed_at = session.completed_at or datetime.now(timezone.utc)
    _commit(db, f"session {session_id}")
    db.refresh(session)
    return session
