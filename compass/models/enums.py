"""Registry enums: statuses, content models, item types, scoring kinds."""

import enum
from typing import Optional


class ComponentCode(str, enum.Enum):
    """Reading component an assessment belongs to."""
    PA = "PA"  # Phonological Awareness
    PH = "PH"  # Phonics
    FL = "FL"  # Fluency
    VO = "VO"  # Vocabulary
    RC = "RC"  # Reading Comprehension
    LK = "LK"  # Letter Knowledge


class ContentModel(str, enum.Enum):
    """How an assessment's content is differentiated."""
    UNIVERSAL = "universal"
    SKILL_BASED = "skill_based"
    GRADE_BANDED = "grade_banded"
    GRADE_LEVELED = "grade_leveled"


class AssessmentStatus(str, enum.Enum):
    """Assessment lifecycle. Only a complete chain may become ``active``."""
    STUB = "stub"
    DRAFT = "draft"
    ACTIVE = "active"
    DEPRECATED = "deprecated"


class ValidationStatus(str, enum.Enum):
    """Review state of a specification version."""
    INCOMPLETE = "incomplete"
    NEEDS_REVIEW = "needs-review"
    VALID = "valid"


class BankStatus(str, enum.Enum):
    EMPTY = "empty"
    IN_PROGRESS = "in-progress"
    READY = "ready"


class FormStatus(str, enum.Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    RETIRED = "retired"


class ItemType(str, enum.Enum):
    """Item type tags accepted by the items table."""
    PASSAGE = "passage"
    LETTER_SOUND = "letter-sound"
    LETTER_NAME = "letter-name"
    PHONEME = "phoneme"
    WORD = "word"
    SENTENCE = "sentence"
    MULTIPLE_CHOICE = "multiple-choice"
    CONSTRUCTED_RESPONSE = "constructed-response"


class GenerationSource(str, enum.Enum):
    """Where provisioning takes item content from (section D).

    - ``stimulus_pool``: sampled from a small token pool (letters, phonemes).
    - ``sample_items``: copied from the sample items listed in section D.
    - ``external_import``: imported by hand; provisioning never generates items.
    """
    STIMULUS_POOL = "stimulus_pool"
    SAMPLE_ITEMS = "sample_items"
    EXTERNAL_IMPORT = "external_import"


class SessionStatus(str, enum.Enum):
    CREATED = "created"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class ScoringKind(str, enum.Enum):
    """Scoring family, fixed when the assessment is created."""
    FLUENCY = "fluency"    # timed: items per minute
    ACCURACY = "accuracy"  # untimed: percent correct and error breakdown

    @classmethod
    def resolve(
        cls, assessment_id: str, component_code: Optional["ComponentCode"] = None
    ) -> "ScoringKind":
        if component_code is ComponentCode.FL:
            return cls.FLUENCY
        if component_code is None and assessment_id.upper().startswith("FL-"):
            return cls.FLUENCY
        return cls.ACCURACY


class ChainStep(str, enum.Enum):
    """The five dependency-chain stages, in display order."""
    SPEC = "SPEC"
    BANK = "BANK"
    FORMS = "FORMS"
    ITEMS = "ITEMS"
    SCORING = "SCORING"

    @property
    def label(self) -> str:
        return _STEP_LABELS[self]


_STEP_LABELS = {
    ChainStep.SPEC: "ASR Version",
    ChainStep.BANK: "Content Bank",
    ChainStep.FORMS: "Forms",
    ChainStep.ITEMS: "Items",
    ChainStep.SCORING: "Scoring Model",
}
