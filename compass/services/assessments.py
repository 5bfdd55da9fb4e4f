"""Assessment and specification lifecycle.

Creation, the "promote to current" transition, review and status changes.
Gate failures raise ``GateError``; unknown ids raise ``LookupError``.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from compass.errors import GateError, PersistenceError
from compass.models import (
    SECTION_KEYS,
    Assessment,
    AssessmentStatus,
    ComponentCode,
    ContentModel,
    ScoringKind,
    SpecificationVersion,
    ValidationStatus,
)
from compass.services.chain import ChainSnapshot
from compass.services.completeness import assess_specification
from compass.services.gates import can_activate_assessment, can_activate_spec

logger = logging.getLogger(__name__)


class AssessmentService:
    """Writes that move assessments and their specification versions through their lifecycle."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def _commit(self, what: str) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise PersistenceError(f"Failed to save {what}: {exc}") from exc

    def get_assessment(self, assessment_id: str) -> Assessment:
        assessment = self.db.get(Assessment, assessment_id)
        if assessment is None:
            raise LookupError(f"Assessment {assessment_id} not found")
        return assessment

    def get_spec_version(self, spec_version_id: str) -> SpecificationVersion:
        spec = self.db.get(SpecificationVersion, spec_version_id)
        if spec is None:
            raise LookupError(f"Specification version {spec_version_id} not found")
        return spec

    def list_assessments(self, component_code: Optional[ComponentCode] = None) -> List[Assessment]:
        stmt = select(Assessment).order_by(Assessment.assessment_id)
        if component_code is not None:
            stmt = stmt.where(Assessment.component_code == component_code)
        return list(self.db.scalars(stmt).all())

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------
    def create_assessment(
        self,
        assessment_id: str,
        component_code: ComponentCode,
        subcomponent_code: str,
        subcomponent_name: str,
        content_model: ContentModel,
        grade_range: str,
    ) -> Assessment:
        if self.db.get(Assessment, assessment_id) is not None:
            raise ValueError(f"Assessment {assessment_id} already exists")
        assessment = Assessment(
            assessment_id=assessment_id,
            component_code=component_code,
            subcomponent_code=subcomponent_code,
            subcomponent_name=subcomponent_name,
            content_model=content_model,
            grade_range=grade_range,
            status=AssessmentStatus.STUB,
            scoring_kind=ScoringKind.resolve(assessment_id, component_code),
        )
        self.db.add(assessment)
        self._commit(f"assessment {assessment_id}")
        self.db.refresh(assessment)
        logger.info("Created assessment %s (%s scoring)", assessment_id, assessment.scoring_kind.value)
        return assessment

    def create_spec_version(
        self,
        assessment_id: str,
        spec_version_id: str,
        sections: Dict[str, Dict[str, Any]],
        change_log: Optional[List[Dict[str, Any]]] = None,
        make_current: bool = False,
    ) -> SpecificationVersion:
        """Store a new version; ``sections`` is keyed ``section_a`` .. ``section_j``."""

        self.get_assessment(assessment_id)
        if self.db.get(SpecificationVersion, spec_version_id) is not None:
            raise ValueError(f"Specification version {spec_version_id} already exists")
        unknown = sorted(set(sections) - set(SECTION_KEYS))
        if unknown:
            raise ValueError(f"Unknown section keys: {', '.join(unknown)}")

        spec = SpecificationVersion(
            spec_version_id=spec_version_id,
            assessment_id=assessment_id,
            change_log=list(change_log or []),
            is_current=False,
            **{key: dict(sections.get(key) or {}) for key in SECTION_KEYS},
        )
        assess_specification(spec)
        self.db.add(spec)
        self._commit(f"specification version {spec_version_id}")
        self.db.refresh(spec)
        logger.info("Created specification version %s (%d%% complete)",
                    spec_version_id, spec.completeness_percent)

        if make_current:
            spec = self.promote_specification(spec_version_id)
        return spec

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------
    def promote_specification(self, spec_version_id: str) -> SpecificationVersion:
        """Make ``spec_version_id`` the current version of its assessment.

        Clearing the old flag, setting the new one and moving the assessment's
        pointer happen in one commit.
        """

        spec = self.get_spec_version(spec_version_id)
        assessment = self.get_assessment(spec.assessment_id)

        self.db.execute(
            update(SpecificationVersion)
            .where(
                SpecificationVersion.assessment_id == spec.assessment_id,
                SpecificationVersion.spec_version_id != spec_version_id,
                SpecificationVersion.is_current.is_(True),
            )
            .values(is_current=False)
            .execution_options(synchronize_session="fetch")
        )
        # The partial unique index is checked per statement
        self.db.flush()
        spec.is_current = True
        assessment.current_spec_version_id = spec_version_id
        self._commit(f"promotion of {spec_version_id}")
        self.db.refresh(spec)
        logger.info("Promoted %s to current for %s", spec_version_id, spec.assessment_id)
        return spec

    def mark_spec_valid(self, spec_version_id: str) -> SpecificationVersion:
        """Reviewer sign-off; refused unless every section is populated."""

        spec = self.get_spec_version(spec_version_id)
        assess_specification(spec)
        gate = can_activate_spec(spec, validation_status=ValidationStatus.VALID)
        if not gate.allowed:
            self.db.rollback()
            raise GateError(gate.reasons)
        spec.validation_status = ValidationStatus.VALID
        self._commit(f"specification version {spec_version_id}")
        self.db.refresh(spec)
        return spec

    def set_assessment_status(self, assessment_id: str, status: AssessmentStatus) -> Assessment:
        assessment = self.get_assessment(assessment_id)
        if status == AssessmentStatus.ACTIVE:
            gate = can_activate_assessment(assessment, ChainSnapshot.load(self.db))
            if not gate.allowed:
                logger.info("Activation of %s refused: %s", assessment_id, "; ".join(gate.reasons))
                raise GateError(gate.reasons)
        assessment.status = status
        self._commit(f"assessment {assessment_id}")
        self.db.refresh(assessment)
        return assessment
