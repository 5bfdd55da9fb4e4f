"""Five-stage dependency chain status (spec -> bank -> forms -> items -> scoring).

The calculation is pure: callers load a ``ChainSnapshot`` once and can then
compute statuses for any number of assessments without further queries.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Set

from sqlalchemy import select
from sqlalchemy.orm import Session

from compass.models import (
    Assessment,
    AssessmentBank,
    ChainStep,
    Form,
    Item,
    ScoringModel,
    SpecificationVersion,
)
from compass.schemas.registry import ChainStatus

TOTAL_STEPS = len(ChainStep)


@dataclass
class ChainSnapshot:
    """Collections the chain status is computed from."""

    spec_versions: List[SpecificationVersion] = field(default_factory=list)
    assessment_banks: List[AssessmentBank] = field(default_factory=list)
    forms: List[Form] = field(default_factory=list)
    items: List[Item] = field(default_factory=list)
    scoring_models: List[ScoringModel] = field(default_factory=list)

    @classmethod
    def load(cls, db: Session) -> "ChainSnapshot":
        return cls(
            spec_versions=list(db.scalars(select(SpecificationVersion)).all()),
            assessment_banks=list(db.scalars(select(AssessmentBank)).all()),
            forms=list(db.scalars(select(Form)).all()),
            items=list(db.scalars(select(Item)).all()),
            scoring_models=list(db.scalars(select(ScoringModel)).all()),
        )


class _ChainIndex:
    """Lookup tables built once per snapshot."""

    def __init__(self, snapshot: ChainSnapshot) -> None:
        self.spec_owners: Dict[str, str] = {
            spec.spec_version_id: spec.assessment_id for spec in snapshot.spec_versions
        }
        self.banks_by_assessment: Dict[str, Set[str]] = defaultdict(set)
        for link in snapshot.assessment_banks:
            self.banks_by_assessment[link.assessment_id].add(link.content_bank_id)
        self.forms_by_assessment: Dict[str, List[Form]] = defaultdict(list)
        for form in snapshot.forms:
            self.forms_by_assessment[form.assessment_id].append(form)
        self.forms_with_items: Set[str] = {item.form_id for item in snapshot.items}
        self.scored_assessments: Set[str] = {
            model.assessment_id for model in snapshot.scoring_models
        }

    def status(self, assessment: Assessment) -> ChainStatus:
        assessment_id = assessment.assessment_id
        linked_banks = self.banks_by_assessment.get(assessment_id, set())
        # A form counts only when its bank is linked to this assessment
        chain_forms = [
            form
            for form in self.forms_by_assessment.get(assessment_id, [])
            if form.content_bank_id in linked_banks
        ]

        done = {
            ChainStep.SPEC: self.spec_owners.get(assessment.current_spec_version_id or "")
            == assessment_id,
            ChainStep.BANK: bool(linked_banks),
            ChainStep.FORMS: bool(chain_forms),
            ChainStep.ITEMS: any(form.form_id in self.forms_with_items for form in chain_forms),
            ChainStep.SCORING: assessment_id in self.scored_assessments,
        }
        completed = sum(1 for value in done.values() if value)
        return ChainStatus(
            has_spec=done[ChainStep.SPEC],
            has_bank=done[ChainStep.BANK],
            has_forms=done[ChainStep.FORMS],
            has_items=done[ChainStep.ITEMS],
            has_scoring=done[ChainStep.SCORING],
            completed_steps=completed,
            total_steps=TOTAL_STEPS,
            percent=round(completed / TOTAL_STEPS * 100),
            is_complete=completed == TOTAL_STEPS,
            missing_steps=[step for step in ChainStep if not done[step]],
        )


def calculate_chain_status(assessment: Assessment, snapshot: ChainSnapshot) -> ChainStatus:
    return _ChainIndex(snapshot).status(assessment)


def calculate_all_chain_statuses(
    assessments: Iterable[Assessment], snapshot: ChainSnapshot
) -> Dict[str, ChainStatus]:
    """Chain status keyed by assessment id, sharing one index for the whole batch."""

    index = _ChainIndex(snapshot)
    return {assessment.assessment_id: index.status(assessment) for assessment in assessments}


def eligible_forms(db: Session, assessment_id: str) -> List[Form]:
    """Forms of ``assessment_id`` whose bank is linked to it, in form order."""

    linked = select(AssessmentBank.content_bank_id).where(
        AssessmentBank.assessment_id == assessment_id
    )
    stmt = (
        select(Form)
        .where(Form.assessment_id == assessment_id, Form.content_bank_id.in_(linked))
        .order_by(Form.grade_or_level_tag, Form.form_number)
    )
    return list(db.scalars(stmt).all())
