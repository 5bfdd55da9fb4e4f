import pytest

from compass.config import Settings
from compass.errors import GateError
from compass.models import (
    AssessmentStatus,
    ComponentCode,
    ContentModel,
    ScoringKind,
    SpecificationVersion,
    ValidationStatus,
)
from compass.services.assessments import AssessmentService
from compass.services.chain import ChainSnapshot
from compass.services.gates import can_activate_assessment, can_activate_spec, format_gate_error
from compass.services.provisioning import ProvisioningService


@pytest.fixture
def service(session) -> AssessmentService:
    return AssessmentService(session)


def _create(service, assessment_id="PH-ALPH", component=ComponentCode.PH):
    return service.create_assessment(
        assessment_id=assessment_id,
        component_code=component,
        subcomponent_code=assessment_id.split("-")[1],
        subcomponent_name=assessment_id,
        content_model=ContentModel.UNIVERSAL,
        grade_range="K-1",
    )


def test_scoring_kind_is_resolved_at_creation(service) -> None:
    assert _create(service, "FL-ORF", ComponentCode.FL).scoring_kind == ScoringKind.FLUENCY
    assert _create(service, "PH-ALPH").scoring_kind == ScoringKind.ACCURACY
    # Component wins over an id that merely looks like fluency
    assert _create(service, "FL-VOCAB", ComponentCode.VO).scoring_kind == ScoringKind.ACCURACY


def test_duplicate_assessment_is_rejected(service) -> None:
    _create(service)
    with pytest.raises(ValueError):
        _create(service)


def test_new_version_gets_completeness(service, sections) -> None:
    _create(service)
    spec = service.create_spec_version("PH-ALPH", "PH-ALPH.v1", sections(section_e={}))
    assert spec.completeness_percent == 90
    assert spec.validation_status == ValidationStatus.INCOMPLETE
    assert spec.is_current is False


def test_unknown_section_key_is_rejected(service) -> None:
    _create(service)
    with pytest.raises(ValueError):
        service.create_spec_version("PH-ALPH", "PH-ALPH.v1", {"section_k": {"x": 1}})


def test_promotion_moves_the_current_flag(service, session, sections) -> None:
    _create(service)
    service.create_spec_version("PH-ALPH", "PH-ALPH.v1", sections(), make_current=True)
    service.create_spec_version("PH-ALPH", "PH-ALPH.v2", sections())

    service.promote_specification("PH-ALPH.v2")

    v1 = session.get(SpecificationVersion, "PH-ALPH.v1")
    v2 = session.get(SpecificationVersion, "PH-ALPH.v2")
    assert v1.is_current is False
    assert v2.is_current is True
    assert service.get_assessment("PH-ALPH").current_spec_version_id == "PH-ALPH.v2"

    # Promoting again is a no-op
    service.promote_specification("PH-ALPH.v2")
    assert session.get(SpecificationVersion, "PH-ALPH.v2").is_current is True


def test_promote_unknown_version(service) -> None:
    with pytest.raises(LookupError):
        service.promote_specification("NOPE.v1")


def test_spec_gate_reasons(sections) -> None:
    spec = SpecificationVersion(
        spec_version_id="PH-ALPH.v1",
        assessment_id="PH-ALPH",
        validation_status=ValidationStatus.NEEDS_REVIEW,
        completeness_percent=80,
    )
    gate = can_activate_spec(spec)
    assert not gate.allowed
    assert gate.reasons == [
        "ASR validation_status must be 'valid' (currently: 'needs-review')",
        "ASR completeness_percent must be 100 (currently: 80%)",
    ]
    assert format_gate_error(gate).startswith("Cannot activate:\n• ASR validation_status")
    assert format_gate_error(gate) == str(GateError(gate.reasons))

    ready = SpecificationVersion(
        spec_version_id="PH-ALPH.v2",
        assessment_id="PH-ALPH",
        validation_status=ValidationStatus.VALID,
        completeness_percent=100,
    )
    assert format_gate_error(can_activate_spec(ready)) == ""


def test_mark_valid_requires_complete_version(service, sections) -> None:
    _create(service)
    service.create_spec_version("PH-ALPH", "PH-ALPH.v1", sections(section_j={}))
    with pytest.raises(GateError) as excinfo:
        service.mark_spec_valid("PH-ALPH.v1")
    assert "completeness_percent must be 100" in str(excinfo.value)

    service.create_spec_version("PH-ALPH", "PH-ALPH.v2", sections())
    assert service.mark_spec_valid("PH-ALPH.v2").validation_status == ValidationStatus.VALID


def test_activation_gate_follows_the_chain(service, session, sections) -> None:
    letters = [chr(code) for code in range(ord("a"), ord("z") + 1)]
    _create(service)
    service.create_spec_version(
        "PH-ALPH",
        "PH-ALPH.v1",
        sections(section_d={"stimulus_pool": letters}, section_i={"forms_per_level": 1}),
        make_current=True,
    )

    with pytest.raises(GateError) as excinfo:
        service.set_assessment_status("PH-ALPH", AssessmentStatus.ACTIVE)
    reasons = excinfo.value.reasons
    assert any("Linked ASR is not valid" in reason for reason in reasons)
    assert "Assessment must have at least one linked content bank" in reasons
    assert "Dependency chain incomplete: Forms, Items" in reasons

    service.mark_spec_valid("PH-ALPH.v1")
    spec = session.get(SpecificationVersion, "PH-ALPH.v1")
    result = ProvisioningService(session, Settings(default_items_per_form=26)).provision(spec)
    assert result.success, result.errors

    assessment = service.get_assessment("PH-ALPH")
    assert can_activate_assessment(assessment, ChainSnapshot.load(session)).allowed
    assert service.set_assessment_status("PH-ALPH", AssessmentStatus.ACTIVE).status == AssessmentStatus.ACTIVE


def test_non_active_transitions_are_not_gated(service) -> None:
    _create(service)
    assert service.set_assessment_status("PH-ALPH", AssessmentStatus.DRAFT).status == AssessmentStatus.DRAFT
    assert service.set_assessment_status("PH-ALPH", AssessmentStatus.DEPRECATED).status == AssessmentStatus.DEPRECATED
