"""Seed the reference PH-ALPH (Alphabet Knowledge) assessment and provision it."""
import string
import sys
from pathlib import Path

# Project root on sys.path
sys.path.insert(0, str(Path(__file__).parent.parent))

from compass.config import get_settings
from compass.db import Base, engine, session_scope
from compass.infra.logging import setup_logging
from compass.migrations import run_migrations
from compass.models import Assessment, ComponentCode, ContentModel, SpecificationVersion
from compass.services.assessments import AssessmentService
from compass.services.chain import ChainSnapshot, calculate_chain_status
from compass.services.provisioning import ProvisioningService

ASSESSMENT_ID = "PH-ALPH"
SPEC_VERSION_ID = "PH-ALPH.v1"

SECTIONS = {
    "section_a": {
        "asr_id": "ASR-001",
        "assessment_name": "Alphabet Knowledge Assessment",
        "version": "1.0",
        "owner": "Reading Assessment Team",
    },
    "section_b": {
        "component": "Phonics",
        "subcomponent": "Alphabet Knowledge",
        "skill_focus": "Letter name identification and letter-sound correspondence",
        "grade_range": "PreK-1",
        "administration_format": "Individual, 1:1 with assessor",
    },
    "section_c": {
        "purpose": "To measure student knowledge of letter names and their corresponding sounds",
        "intended_use": "Screening, diagnostic assessment, and progress monitoring for early literacy",
    },
    "section_d": {
        "generation_source": "stimulus_pool",
        "content_model": "Fixed Set",
        "item_type": "letter-name",
        "stimulus_pool": list(string.ascii_uppercase) + list(string.ascii_lowercase),
        "stimulus_rules": ["Each form presents exactly 52 letters in randomized order"],
        "stimulus_description": "Individual letters presented on cards or screen in randomized order",
    },
    "section_e": {
        "total_items": 52,
        "timing": "Untimed, approximately 3-5 minutes",
        "stopping_rule": "Complete all items; no ceiling rule",
    },
    "section_f": {
        "administration_script": 'Say: "I am going to show you some letters. Tell me the name of each letter."',
        "prompts": ["What letter is this?"],
    },
    "section_g": {
        "scoring_method": "Binary (correct/incorrect) for each item",
        "error_coding": ["Substitution", "No Response", "Self Correction"],
    },
    "section_h": {
        "raw_metrics": ["Uppercase letters correct", "Lowercase letters correct"],
        "derived_metrics": ["Total letters known", "Letter accuracy rate"],
    },
    "section_i": {
        "forms_available": ["Form A (standard randomized)", "Form B (alternate randomized)"],
        "equivalence_sets": "Forms A and B are equivalent in difficulty",
        "differentiation_keys": ["Uppercase/lowercase focus"],
    },
    "section_j": {
        "data_export_format": "CSV with student ID, date, item-level responses, and summary scores",
    },
}


def seed() -> None:
    settings = get_settings()
    setup_logging(settings.service_name, settings.log_level)
    Base.metadata.create_all(bind=engine)
    run_migrations(engine)

    with session_scope() as db:
        service = AssessmentService(db)
        if db.get(Assessment, ASSESSMENT_ID) is None:
            service.create_assessment(
                assessment_id=ASSESSMENT_ID,
                component_code=ComponentCode.PH,
                subcomponent_code="ALPH",
                subcomponent_name="Alphabet Knowledge",
                content_model=ContentModel.UNIVERSAL,
                grade_range="PreK-1",
            )
            print(f"Created assessment {ASSESSMENT_ID}")
        if db.get(SpecificationVersion, SPEC_VERSION_ID) is None:
            service.create_spec_version(
                ASSESSMENT_ID,
                SPEC_VERSION_ID,
                SECTIONS,
                change_log=[
                    {"date": "2024-01-15", "author": "Reading Assessment Team",
                     "description": "Initial validated version"},
                ],
                make_current=True,
            )
            service.mark_spec_valid(SPEC_VERSION_ID)
            print(f"Created specification {SPEC_VERSION_ID}")

        result = ProvisioningService(db, settings).provision(db.get(SpecificationVersion, SPEC_VERSION_ID))
        print(f"Provisioning success={result.success} forms={len(result.created.forms)}")
        for message in result.errors:
            print(f"  error: {message}")
        for message in result.warnings:
            print(f"  warning: {message}")

        chain = calculate_chain_status(service.get_assessment(ASSESSMENT_ID), ChainSnapshot.load(db))
        print(f"Chain {chain.completed_steps}/{chain.total_steps} ({chain.percent}%)")


if __name__ == "__main__":
    seed()
