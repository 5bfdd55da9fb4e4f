import pytest

from compass.models import (
    AdministrationSession,
    BankStatus,
    ComponentCode,
    ContentBank,
    Form,
    Item,
    ScoringKind,
    SessionResponse,
)
from compass.schemas.registry import AccuracyScores, FluencyScores
from compass.services.scoring import (
    calculate_accuracy_score,
    calculate_fluency_score,
    round_half_up,
    score_and_persist_session,
    score_session,
)


def _response(sequence_number, is_correct, elapsed=None, tags=None) -> SessionResponse:
    return SessionResponse(
        session_id="s1",
        item_id=f"i{sequence_number}",
        sequence_number=sequence_number,
        is_correct=is_correct,
        elapsed_seconds=elapsed,
        error_tags=tags or [],
    )


@pytest.fixture
def administered(session, make_assessment):
    """Create a three-item form and a session on it; returns a recorder."""

    def _setup(assessment_id, component_code):
        make_assessment(assessment_id, component_code)
        session.add(ContentBank(
            content_bank_id=f"{assessment_id}.bank1", linked_assessment_id=assessment_id,
            name=assessment_id, status=BankStatus.READY,
        ))
        form_id = f"{assessment_id}.2.form01"
        session.add(Form(
            form_id=form_id, content_bank_id=f"{assessment_id}.bank1",
            assessment_id=assessment_id, grade_or_level_tag="2", form_number=1,
        ))
        session.add_all([
            Item(item_id=f"{form_id}.item{n:03d}", form_id=form_id, item_type="word", sequence_number=n)
            for n in (1, 2, 3)
        ])
        session.add(AdministrationSession(
            session_id="s1", assessment_id=assessment_id, form_id=form_id, student_name="Student A",
        ))
        session.commit()
        return form_id

    return _setup


def _record(session, form_id, rows):
    for n, is_correct, elapsed, tags in rows:
        session.add(SessionResponse(
            session_id="s1", item_id=f"{form_id}.item{n:03d}", sequence_number=n,
            is_correct=is_correct, elapsed_seconds=elapsed, error_tags=tags,
        ))
    session.commit()


def test_round_half_up() -> None:
    assert round_half_up(0.25) == 0.3
    assert round_half_up(2.65) == 2.7
    assert round_half_up(66.66666) == 66.7
    assert round_half_up(12.0) == 12.0


def test_fluency_uses_max_elapsed_time() -> None:
    scores = calculate_fluency_score([
        _response(1, True, 12.0), _response(2, False, 30.5), _response(3, True, 45.0),
    ])
    assert scores == FluencyScores(
        items_correct=2,
        items_incorrect=1,
        items_per_minute=2.7,
        total_time_seconds=45.0,
        accuracy_percentage=66.7,
    )


def test_fluency_defaults_time_when_untracked() -> None:
    scores = calculate_fluency_score([_response(1, True), _response(2, True)], default_seconds=60.0)
    assert scores.total_time_seconds == 60.0
    assert scores.items_per_minute == 2.0
    assert scores.accuracy_percentage == 100.0


def test_fluency_without_responses() -> None:
    scores = calculate_fluency_score([])
    assert scores.items_per_minute == 0.0
    assert scores.total_time_seconds == 0.0


def test_unanswered_items_are_not_attempts() -> None:
    scores = calculate_fluency_score([_response(1, True, 20.0), _response(2, None, 20.0)])
    assert scores.items_incorrect == 0
    assert scores.accuracy_percentage == 100.0


def test_accuracy_breakdown_counts_tags_on_missed_items() -> None:
    scores = calculate_accuracy_score([
        _response(1, True, tags=["self_correction"]),
        _response(2, False, tags=["substitution"]),
        _response(3, False, tags=["substitution", "omission"]),
        _response(4, None, tags=["omission"]),
    ])
    assert scores == AccuracyScores(
        total_items=4,
        correct=1,
        incorrect=2,
        accuracy_percentage=25.0,
        error_breakdown={"substitution": 2, "omission": 2},
    )


def test_accuracy_without_responses() -> None:
    scores = calculate_accuracy_score([])
    assert scores.total_items == 0
    assert scores.accuracy_percentage == 0.0
    assert scores.error_breakdown == {}


def test_orf_session_is_scored_as_fluency_and_persisted(session, administered) -> None:
    form_id = administered("FL-ORF", ComponentCode.FL)
    # Recorded out of order; the first response is the lowest sequence number
    _record(session, form_id, [
        (3, True, 45.0, []),
        (1, True, 12.0, []),
        (2, False, 30.5, ["omission"]),
    ])

    result = score_and_persist_session(session, "s1")

    assert result.scoring_type == ScoringKind.FLUENCY
    assert result.scores.items_per_minute == 2.7
    assert result.scores.accuracy_percentage == 66.7
    stored = {r.sequence_number: r.computed_scores for r in session.query(SessionResponse).all()}
    assert stored[1] == result.scores.model_dump()
    assert stored[2] is None and stored[3] is None


def test_accuracy_session_routing(session, administered) -> None:
    form_id = administered("PH-ALPH", ComponentCode.PH)
    _record(session, form_id, [(1, True, None, []), (2, False, None, ["substitution"])])

    result = score_session(session, "s1")

    assert result.scoring_type == ScoringKind.ACCURACY
    assert isinstance(result.scores, AccuracyScores)
    assert result.scores.error_breakdown == {"substitution": 1}


def test_unknown_session_returns_none(session) -> None:
    assert score_session(session, "missing") is None
    assert score_and_persist_session(session, "missing") is None
