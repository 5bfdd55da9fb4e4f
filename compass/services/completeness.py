"""Ten-section completeness check for ASR specification versions."""

from __future__ import annotations

from typing import Any, Mapping

from compass.models import SECTION_KEYS, SpecificationVersion, ValidationStatus
from compass.schemas.registry import CompletenessReport


def _section_label(key: str) -> str:
    # "section_d" -> "SECTION D"
    return key.replace("_", " ").upper()


def _is_populated(value: Any) -> bool:
    return isinstance(value, Mapping) and len(value) > 0


def check_completeness(spec: SpecificationVersion) -> CompletenessReport:
    """A specification is valid only when all ten sections are non-empty documents."""

    missing = [
        _section_label(key) for key in SECTION_KEYS if not _is_populated(getattr(spec, key, None))
    ]
    return CompletenessReport(valid=not missing, missing=missing)


def completeness_percent(spec: SpecificationVersion) -> int:
    populated = sum(1 for key in SECTION_KEYS if _is_populated(getattr(spec, key, None)))
    return round(populated / len(SECTION_KEYS) * 100)


def assess_specification(spec: SpecificationVersion) -> SpecificationVersion:
    """Refresh ``completeness_percent`` and the derived review state in place.

    A fully populated version moves to ``needs-review``; marking it ``valid``
    is a reviewer decision guarded by ``can_activate_spec``. A version that
    was already valid keeps that state while it stays complete.
    """

    spec.completeness_percent = completeness_percent(spec)
    if spec.completeness_percent < 100:
        spec.validation_status = ValidationStatus.INCOMPLETE
    elif spec.validation_status != ValidationStatus.VALID:
        spec.validation_status = ValidationStatus.NEEDS_REVIEW
    return spec
