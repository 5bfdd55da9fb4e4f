"""Provisioning: derive a bank, a scoring model and forms from one ASR version.

``ProvisioningService.provision`` is the only entry point. It checks the
specification is complete, then runs the provisioners in order:

1. ``ContentBankProvisioner``: reuse or create ``<assessment_id>.bank1``
2. ``ScoringModelProvisioner``: reuse or create ``<assessment_id>.scoring1``
3. one form generator, chosen from section D:
   ``StimulusPoolFormGenerator`` / ``SampleItemFormGenerator`` when the bank has
   no forms yet, otherwise (or for imported content) ``PassageFormGenerator``.

Every step is idempotent: running the same version twice never creates a
second bank or scoring model. Failures are collected in the returned
``ProvisioningResult``; nothing raises past ``provision``.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Type, TypeVar

from pydantic import ValidationError
from sqlalchemy.orm import Session

from compass.config import Settings, get_settings
from compass.errors import (
    DependencyMissingError,
    MalformedSectionError,
    PersistenceError,
    SpecValidationError,
)
from compass.models import (
    Assessment,
    AssessmentBank,
    BankStatus,
    ContentBank,
    Form,
    FormStatus,
    GenerationSource,
    Item,
    ItemType,
    ScoringModel,
    SpecificationVersion,
)
from compass.schemas.registry import (
    BankSummary,
    FormSummary,
    ProvisioningResult,
    ScoringModelSummary,
)
from compass.schemas.sections import SectionD, SectionG, SectionH, SectionI
from compass.services.completeness import check_completeness
from compass.services.eligibility import bank_has_content, filter_eligible
from compass.services.metrics import build_metric_schemas
from compass.services.sampling import TokenCycleSampler
from compass.services.store import DuplicateArtifactError, RegistryStore
from compass.utils.grades import UNIVERSAL_GRADE, UNKNOWN_GRADE

logger = logging.getLogger(__name__)

STIMULUS_SCORING_TAGS = ["correct", "incorrect"]

# Forms whose items were sampled here rather than imported
GENERATED_SOURCES = frozenset(
    {GenerationSource.STIMULUS_POOL.value, GenerationSource.SAMPLE_ITEMS.value}
)

_EXACT_COUNT = re.compile(r"\bexactly\s+(\d+)\b", re.IGNORECASE)

S = TypeVar("S", SectionD, SectionG, SectionH, SectionI)


def build_form_id(assessment_id: str, grade: str, form_number: int) -> str:
    return f"{assessment_id}.{grade}.form{form_number:02d}"


def build_item_id(form_id: str, sequence_number: int) -> str:
    return f"{form_id}.item{sequence_number:03d}"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def _is_generated_form(form: Optional[Form]) -> bool:
    if form is None:
        return False
    return (form.metadata_json or {}).get("generation_source") in GENERATED_SOURCES


def _read_section(spec: SpecificationVersion, model: Type[S], letter: str) -> S:
    try:
        return model.model_validate(spec.section(letter))
    except ValidationError as exc:
        raise MalformedSectionError(
            f"section {letter.upper()} of {spec.spec_version_id} is malformed: "
            f"{exc.error_count()} problem(s), first: {exc.errors()[0]['msg']}"
        ) from exc


def _bank_summary(bank: ContentBank) -> BankSummary:
    return BankSummary(
        content_bank_id=bank.content_bank_id,
        linked_assessment_id=bank.linked_assessment_id,
        name=bank.name,
        current_size=bank.current_size or 0,
        status=bank.status.value,
    )


def _scoring_summary(model: ScoringModel) -> ScoringModelSummary:
    return ScoringModelSummary.model_validate(
        {
            "scoring_model_id": model.scoring_model_id,
            "assessment_id": model.assessment_id,
            "raw_metrics_schema": model.raw_metrics_schema or [],
            "derived_metrics_schema": model.derived_metrics_schema or [],
        }
    )


def _form_summary(form: Form, item_count: int = 0) -> FormSummary:
    return FormSummary(
        form_id=form.form_id,
        content_bank_id=form.content_bank_id,
        grade_or_level_tag=form.grade_or_level_tag,
        form_number=form.form_number,
        item_count=item_count,
    )


# ----------------------------------------------------------------------
# Bank and scoring model
# ----------------------------------------------------------------------
class ContentBankProvisioner:
    """Reuse the assessment's bank or create ``<assessment_id>.bank1``."""

    def __init__(self, store: RegistryStore) -> None:
        self.store = store

    def _ensure_link(self, assessment_id: str, bank: ContentBank, result: ProvisioningResult) -> None:
        link_key = (assessment_id, bank.content_bank_id)
        try:
            if self.store.get(AssessmentBank, link_key) is not None:
                return
            self.store.insert(
                AssessmentBank(assessment_id=assessment_id, content_bank_id=bank.content_bank_id)
            )
        except DuplicateArtifactError:
            return
        except PersistenceError as exc:
            message = f"Content bank {bank.content_bank_id} exists but linking to {assessment_id} failed: {exc}"
            logger.warning(message)
            result.warnings.append(message)

    def provision(
        self, assessment_id: str, section_i: SectionI, result: ProvisioningResult
    ) -> ContentBank:
        existing = self.store.list_by(ContentBank, linked_assessment_id=assessment_id)
        if existing:
            result.existing.banks.extend(_bank_summary(bank) for bank in existing)
            logger.info("Reusing content bank %s for %s", existing[0].content_bank_id, assessment_id)
            self._ensure_link(assessment_id, existing[0], result)
            return existing[0]

        bank_id = f"{assessment_id}.bank1"
        bank = ContentBank(
            content_bank_id=bank_id,
            linked_assessment_id=assessment_id,
            name=f"{assessment_id} Content Bank",
            differentiation_keys=list(section_i.differentiation_keys),
            equivalence_set_required=bool(section_i.equivalence_sets),
            target_bank_size=0,
            current_size=0,
            status=BankStatus.EMPTY,
        )
        try:
            self.store.insert(bank)
        except DuplicateArtifactError:
            # A concurrent run got there first
            concurrent = self.store.get(ContentBank, bank_id)
            if concurrent is None:
                raise
            result.existing.banks.append(_bank_summary(concurrent))
            self._ensure_link(assessment_id, concurrent, result)
            return concurrent

        logger.info("Created content bank %s", bank_id)
        result.created.bank = _bank_summary(bank)
        self._ensure_link(assessment_id, bank, result)
        return bank


class ScoringModelProvisioner:
    """Reuse the assessment's scoring model or create ``<assessment_id>.scoring1``."""

    def __init__(self, store: RegistryStore) -> None:
        self.store = store

    def provision(
        self,
        assessment_id: str,
        section_g: SectionG,
        section_h: SectionH,
        result: ProvisioningResult,
    ) -> ScoringModel:
        existing = self.store.list_by(ScoringModel, assessment_id=assessment_id)
        if existing:
            result.existing.scoring_models.extend(_scoring_summary(model) for model in existing)
            logger.info("Reusing scoring model %s for %s", existing[0].scoring_model_id, assessment_id)
            return existing[0]

        raw_metrics, derived_metrics = build_metric_schemas(section_g, section_h)
        model_id = f"{assessment_id}.scoring1"
        model = ScoringModel(
            scoring_model_id=model_id,
            assessment_id=assessment_id,
            raw_metrics_schema=[metric.model_dump() for metric in raw_metrics],
            derived_metrics_schema=[metric.model_dump() for metric in derived_metrics],
            formulas=[],
            flags=[],
            thresholds=[],
        )
        try:
            self.store.insert(model)
        except DuplicateArtifactError:
            concurrent = self.store.get(ScoringModel, model_id)
            if concurrent is None:
                raise
            result.existing.scoring_models.append(_scoring_summary(concurrent))
            return concurrent

        logger.info("Created scoring model %s (%d raw, %d derived metrics)",
                    model_id, len(raw_metrics), len(derived_metrics))
        result.created.scoring_model = _scoring_summary(model)
        return model


# ----------------------------------------------------------------------
# Form generators
# ----------------------------------------------------------------------
def items_per_form_from_rules(rules: Iterable[str], default: int) -> int:
    """First ``"... exactly N ..."`` stimulus rule wins."""

    for rule in rules:
        match = _EXACT_COUNT.search(rule or "")
        if match and int(match.group(1)) > 0:
            return int(match.group(1))
    return default


def forms_per_level(section_i: SectionI, default: int) -> int:
    if section_i.forms_per_level:
        return section_i.forms_per_level
    if section_i.forms_available:
        return len(section_i.forms_available)
    return default


class _FormWriter:
    """Shared form + item persistence for the generators that create items."""

    def __init__(self, store: RegistryStore) -> None:
        self.store = store

    def write(
        self, form: Form, items: List[Item], result: ProvisioningResult
    ) -> Optional[Form]:
        if self.store.get(Form, form.form_id) is not None:
            result.warnings.append(f"Form {form.form_id} already exists; not regenerated")
            return None
        try:
            self.store.insert(form)
        except PersistenceError as exc:
            result.errors.append(f"Failed to create form {form.form_id}: {exc}")
            return None

        item_count = len(items)
        try:
            self.store.insert_many(items)
        except PersistenceError as exc:
            # The form stays; its items can be re-imported
            item_count = 0
            message = f"Form {form.form_id} created but item insert failed: {exc}"
            logger.warning(message)
            result.warnings.append(message)
        result.created.forms.append(_form_summary(form, item_count))
        logger.info("Created form %s with %d items", form.form_id, item_count)
        return form if item_count else None

    def mark_bank_filled(
        self, bank: ContentBank, size: int, status: BankStatus, result: ProvisioningResult
    ) -> None:
        try:
            self.store.update(bank, current_size=size, target_bank_size=size, status=status)
        except PersistenceError as exc:
            result.errors.append(f"Failed to update content bank {bank.content_bank_id}: {exc}")


class StimulusPoolFormGenerator(_FormWriter):
    """Forms of N sampled tokens for pool-based assessments (e.g. letter naming).

    These assessments are not grade-differentiated, so every form is tagged
    ``all``. Each form's sampler is seeded with its form id, which makes
    regeneration reproducible.
    """

    def __init__(self, store: RegistryStore, settings: Settings) -> None:
        super().__init__(store)
        self.settings = settings

    def generate(
        self,
        assessment_id: str,
        bank: ContentBank,
        section_d: SectionD,
        section_i: SectionI,
        result: ProvisioningResult,
    ) -> None:
        per_form = items_per_form_from_rules(
            section_d.stimulus_rules, self.settings.default_items_per_form
        )
        form_count = forms_per_level(section_i, self.settings.default_forms_per_level)
        item_type = section_d.item_type or ItemType.LETTER_NAME.value

        filled = 0
        for form_number in range(1, form_count + 1):
            form_id = build_form_id(assessment_id, UNIVERSAL_GRADE, form_number)
            sampler = TokenCycleSampler.seeded(
                section_d.stimulus_pool,
                seed=form_id,
                avoid_boundary_repeats=self.settings.sampler_avoid_boundary_repeats,
            )
            tokens = sampler.sample(per_form)
            form = Form(
                form_id=form_id,
                content_bank_id=bank.content_bank_id,
                assessment_id=assessment_id,
                grade_or_level_tag=UNIVERSAL_GRADE,
                form_number=form_number,
                status=FormStatus.DRAFT,
                metadata_json={
                    "generation_source": GenerationSource.STIMULUS_POOL.value,
                    "locked_token_order": tokens,
                    "generated_at": _now_iso(),
                },
            )
            items = [
                Item(
                    item_id=build_item_id(form_id, position),
                    form_id=form_id,
                    item_type=item_type,
                    sequence_number=position,
                    content_payload={
                        "stimulus": token,
                        "expected_response": token,
                        "position": position,
                    },
                    scoring_tags=list(STIMULUS_SCORING_TAGS),
                )
                for position, token in enumerate(tokens, start=1)
            ]
            if self.write(form, items, result) is not None:
                filled += 1

        if filled:
            self.mark_bank_filled(bank, form_count * per_form, BankStatus.READY, result)


class SampleItemFormGenerator(_FormWriter):
    """One ``all`` form built from the sample items listed in section D."""

    def generate(
        self,
        assessment_id: str,
        bank: ContentBank,
        section_d: SectionD,
        result: ProvisioningResult,
    ) -> None:
        form_id = build_form_id(assessment_id, UNIVERSAL_GRADE, 1)
        form = Form(
            form_id=form_id,
            content_bank_id=bank.content_bank_id,
            assessment_id=assessment_id,
            grade_or_level_tag=UNIVERSAL_GRADE,
            form_number=1,
            status=FormStatus.DRAFT,
            metadata_json={
                "generation_source": GenerationSource.SAMPLE_ITEMS.value,
                "locked_token_order": [sample.stimulus for sample in section_d.sample_items],
                "generated_at": _now_iso(),
            },
        )
        items = [
            Item(
                item_id=build_item_id(form_id, position),
                form_id=form_id,
                item_type=sample.item_type or section_d.item_type or ItemType.WORD.value,
                sequence_number=position,
                content_payload={
                    "stimulus": sample.stimulus,
                    "expected_response": sample.expected_response,
                    "position": position,
                },
                scoring_tags=list(sample.scoring_tags or STIMULUS_SCORING_TAGS),
            )
            for position, sample in enumerate(section_d.sample_items, start=1)
        ]
        if self.write(form, items, result) is not None:
            self.mark_bank_filled(bank, len(items), BankStatus.IN_PROGRESS, result)


class PassageFormGenerator:
    """Wrap each eligible existing item into its own form, grouped by grade.

    The new form keeps the source item's word order in its metadata so
    re-rendering never reorders the passage.
    """

    def __init__(self, store: RegistryStore) -> None:
        self.store = store

    def generate(
        self,
        assessment_id: str,
        bank: ContentBank,
        existing_forms: List[Form],
        result: ProvisioningResult,
    ) -> None:
        bank_id = bank.content_bank_id
        items = self.store.items_for_bank(bank_id)

        if not bank_has_content(bank, items):
            result.warnings.append(f'Content bank "{bank_id}" is empty. Add items to generate forms.')
            return
        source_items = [item for item in items if not _is_generated_form(item.form)]
        if items and not source_items:
            logger.info("Content bank %s only holds generated forms; nothing to wrap", bank_id)
            return
        eligible = filter_eligible(source_items)
        if not eligible:
            result.warnings.append(
                f"No eligible content found in content bank {bank_id}. "
                'For passage items, ensure validation_status is set to "approved".'
            )
            return

        by_grade: Dict[str, List[Item]] = {}
        for item in eligible:
            payload = item.content_payload or {}
            grade = str(payload.get("grade_target") or payload.get("grade_level") or UNKNOWN_GRADE)
            by_grade.setdefault(grade, []).append(item)

        taken = {form.form_id for form in existing_forms}
        for grade, grade_items in by_grade.items():
            for form_number, item in enumerate(grade_items, start=1):
                form_id = build_form_id(assessment_id, grade, form_number)
                if form_id in taken or self.store.get(Form, form_id) is not None:
                    continue
                payload = item.content_payload or {}
                form = Form(
                    form_id=form_id,
                    content_bank_id=bank_id,
                    assessment_id=assessment_id,
                    grade_or_level_tag=grade,
                    form_number=form_number,
                    equivalence_set_id=payload.get("equivalence_set_id"),
                    status=FormStatus.DRAFT,
                    metadata_json={
                        "passage_id": str(payload.get("passage_id") or payload.get("item_id") or item.item_id),
                        "locked_word_token_order": list(payload.get("word_tokens") or []),
                        "generated_at": _now_iso(),
                    },
                )
                try:
                    self.store.insert(form)
                except DuplicateArtifactError:
                    continue
                except PersistenceError as exc:
                    result.errors.append(f"Failed to create form {form_id}: {exc}")
                    continue
                taken.add(form_id)
                result.created.forms.append(_form_summary(form))
                logger.info("Created form %s from item %s", form_id, item.item_id)


# ----------------------------------------------------------------------
# Orchestrator
# ----------------------------------------------------------------------
class ProvisioningService:
    """Run all provisioning steps for one specification version."""

    def __init__(self, db: Session, settings: Optional[Settings] = None) -> None:
        self.settings = settings or get_settings()
        self.store = RegistryStore(db)
        self.banks = ContentBankProvisioner(self.store)
        self.scoring = ScoringModelProvisioner(self.store)
        self.stimulus_forms = StimulusPoolFormGenerator(self.store, self.settings)
        self.sample_forms = SampleItemFormGenerator(self.store)
        self.passage_forms = PassageFormGenerator(self.store)

    def provision_by_id(self, spec_version_id: str) -> ProvisioningResult:
        spec = self.store.get(SpecificationVersion, spec_version_id)
        if spec is None:
            raise LookupError(f"Specification version {spec_version_id} not found")
        return self.provision(spec)

    def provision(self, spec: SpecificationVersion) -> ProvisioningResult:
        result = ProvisioningResult()
        try:
            self._run(spec, result)
        except SpecValidationError as exc:
            result.errors.append(str(exc))
        except Exception as exc:  # noqa: BLE001
            logger.exception("Provisioning %s failed unexpectedly", spec.spec_version_id)
            result.errors.append(f"Provisioning {spec.spec_version_id} failed: {exc}")
        result.success = not result.errors
        if result.warnings:
            logger.warning("Provisioning %s finished with %d warning(s)",
                           spec.spec_version_id, len(result.warnings))
        return result

    def _run(self, spec: SpecificationVersion, result: ProvisioningResult) -> None:
        completeness = check_completeness(spec)
        if not completeness.valid:
            raise SpecValidationError(completeness.missing)

        assessment_id = spec.assessment_id
        if self.store.get(Assessment, assessment_id) is None:
            result.errors.append(f"Assessment {assessment_id} not found")
            return

        bank: Optional[ContentBank] = None
        try:
            section_i = _read_section(spec, SectionI, "i")
            bank = self.banks.provision(assessment_id, section_i, result)
        except (MalformedSectionError, PersistenceError) as exc:
            result.errors.append(f"Failed to provision content bank for {assessment_id}: {exc}")

        try:
            section_g = _read_section(spec, SectionG, "g")
            section_h = _read_section(spec, SectionH, "h")
            self.scoring.provision(assessment_id, section_g, section_h, result)
        except (MalformedSectionError, PersistenceError, ValueError) as exc:
            result.errors.append(f"Failed to provision scoring model for {assessment_id}: {exc}")

        try:
            self._generate_forms(assessment_id, bank, spec, result)
        except DependencyMissingError as exc:
            result.errors.append(str(exc))
        except (MalformedSectionError, PersistenceError) as exc:
            result.errors.append(f"Form generation for {assessment_id} failed: {exc}")

    def _generate_forms(
        self,
        assessment_id: str,
        bank: Optional[ContentBank],
        spec: SpecificationVersion,
        result: ProvisioningResult,
    ) -> None:
        if bank is None:
            raise DependencyMissingError(
                f"No content bank available for form generation for {assessment_id}"
            )

        section_d = _read_section(spec, SectionD, "d")
        section_i = _read_section(spec, SectionI, "i")
        existing_forms = self.store.forms_for_bank(bank.content_bank_id)
        source = section_d.generation_source

        if (
            section_d.stimulus_pool
            and source in (None, GenerationSource.STIMULUS_POOL)
            and not existing_forms
        ):
            self.stimulus_forms.generate(assessment_id, bank, section_d, section_i, result)
            return
        if source == GenerationSource.SAMPLE_ITEMS and section_d.sample_items and not existing_forms:
            self.sample_forms.generate(assessment_id, bank, section_d, result)
            return
        self.passage_forms.generate(assessment_id, bank, existing_forms, result)
