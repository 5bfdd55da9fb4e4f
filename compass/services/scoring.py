"""Session scoring.

Timed (fluency) assessments report items per minute; everything else reports
percent correct and an error-tag breakdown. Which family applies is stored on
the assessment when it is created.
"""

from __future__ import annotations

import logging
from collections import Counter
from decimal import ROUND_HALF_UP, Decimal
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from compass.config import get_settings
from compass.errors import PersistenceError
from compass.models import AdministrationSession, Assessment, ScoringKind, SessionResponse
from compass.schemas.registry import AccuracyScores, FluencyScores, ScoredSession

logger = logging.getLogger(__name__)


def round_half_up(value: float, places: int = 1) -> float:
    """``round()`` rounds half to even; score reports round half up."""

    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def _responses(db: Session, session_id: str) -> List[SessionResponse]:
    stmt = (
        select(SessionResponse)
        .where(SessionResponse.session_id == session_id)
        .order_by(SessionResponse.sequence_number)
    )
    return list(db.scalars(stmt).all())


def calculate_fluency_score(
    responses: List[SessionResponse], default_seconds: Optional[float] = None
) -> FluencyScores:
    if not responses:
        return FluencyScores(
            items_correct=0,
            items_incorrect=0,
            items_per_minute=0.0,
            total_time_seconds=0.0,
            accuracy_percentage=0.0,
        )
    if default_seconds is None:
        default_seconds = get_settings().default_fluency_seconds

    correct = sum(1 for response in responses if response.is_correct is True)
    incorrect = sum(1 for response in responses if response.is_correct is False)
    attempted = correct + incorrect

    # The timer value on the last response is the session length
    elapsed = max((response.elapsed_seconds or 0) for response in responses)
    total_time = elapsed if elapsed > 0 else default_seconds

    return FluencyScores(
        items_correct=correct,
        items_incorrect=incorrect,
        items_per_minute=round_half_up(correct / total_time * 60),
        total_time_seconds=total_time,
        accuracy_percentage=round_half_up(correct / attempted * 100) if attempted else 0.0,
    )


def calculate_accuracy_score(responses: List[SessionResponse]) -> AccuracyScores:
    total = len(responses)
    correct = sum(1 for response in responses if response.is_correct is True)
    incorrect = sum(1 for response in responses if response.is_correct is False)

    breakdown: Counter = Counter()
    for response in responses:
        if not response.is_correct:
            breakdown.update(response.error_tags or [])

    return AccuracyScores(
        total_items=total,
        correct=correct,
        incorrect=incorrect,
        accuracy_percentage=round_half_up(correct / total * 100) if total else 0.0,
        error_breakdown=dict(breakdown),
    )


def score_session(db: Session, session_id: str) -> Optional[ScoredSession]:
    """Score ``session_id``; ``None`` when the session does not exist."""

    session = db.get(AdministrationSession, session_id)
    if session is None:
        return None

    assessment = db.get(Assessment, session.assessment_id)
    kind = (
        assessment.scoring_kind
        if assessment is not None and assessment.scoring_kind is not None
        else ScoringKind.resolve(session.assessment_id)
    )
    responses = _responses(db, session_id)
    if kind == ScoringKind.FLUENCY:
        scores = calculate_fluency_score(responses)
    else:
        scores = calculate_accuracy_score(responses)

    return ScoredSession(
        session_id=session_id,
        assessment_id=session.assessment_id,
        scoring_type=kind,
        scores=scores,
    )


def score_and_persist_session(db: Session, session_id: str) -> Optional[ScoredSession]:
    """Score the session and store the result on its first response."""

    result = score_session(db, session_id)
    if result is None:
        return None

    first = db.scalars(
        select(SessionResponse)
        .where(SessionResponse.session_id == session_id)
        .order_by(SessionResponse.sequence_number)
        .limit(1)
    ).first()
    if first is None:
        return result

    first.computed_scores = result.scores.model_dump()
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise PersistenceError(f"Failed to store scores for session {session_id}: {exc}") from exc
    logger.info("Scored session %s (%s)", session_id, result.scoring_type.value)
    return result
