"""Activation gates for specification versions and assessments."""

from __future__ import annotations

from typing import Optional

from compass.errors import GateError
from compass.models import Assessment, ChainStep, SpecificationVersion, ValidationStatus
from compass.schemas.registry import GateResult
from compass.services.chain import ChainSnapshot, calculate_chain_status


def can_activate_spec(
    spec: SpecificationVersion, validation_status: Optional[ValidationStatus] = None
) -> GateResult:
    """A version is ready only when it is reviewed as valid and 100% complete.

    ``validation_status`` lets callers check a pending update before applying it.
    """

    status = validation_status or spec.validation_status
    percent = spec.completeness_percent or 0
    reasons = []
    if status != ValidationStatus.VALID:
        current = status.value if status else ValidationStatus.INCOMPLETE.value
        reasons.append(f"ASR validation_status must be 'valid' (currently: '{current}')")
    if percent < 100:
        reasons.append(f"ASR completeness_percent must be 100 (currently: {percent}%)")
    return GateResult(allowed=not reasons, reasons=reasons)


def can_activate_assessment(assessment: Assessment, snapshot: ChainSnapshot) -> GateResult:
    reasons = []
    current_id = assessment.current_spec_version_id
    if not current_id:
        reasons.append("Assessment must have a current_spec_version_id set")
    else:
        spec = next(
            (version for version in snapshot.spec_versions if version.spec_version_id == current_id),
            None,
        )
        if spec is None:
            reasons.append(f"Linked ASR version '{current_id}' not found")
        else:
            spec_gate = can_activate_spec(spec)
            if not spec_gate.allowed:
                reasons.append(f"Linked ASR is not valid: {'; '.join(spec_gate.reasons)}")

    chain = calculate_chain_status(assessment, snapshot)
    if not chain.has_bank:
        reasons.append("Assessment must have at least one linked content bank")
    if not chain.has_scoring:
        reasons.append("Assessment must have a scoring model defined")
    # Spec, bank and scoring are reported above
    other_missing = [
        step.label for step in chain.missing_steps if step in (ChainStep.FORMS, ChainStep.ITEMS)
    ]
    if other_missing:
        reasons.append(f"Dependency chain incomplete: {', '.join(other_missing)}")
    return GateResult(allowed=not reasons, reasons=reasons)


def format_gate_error(result: GateResult) -> str:
    if result.allowed:
        return ""
    return str(GateError(result.reasons))
