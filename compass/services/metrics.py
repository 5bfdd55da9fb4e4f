"""Metric declaration normalization for scoring models.

Sections G and H declare metrics either as bare labels (``"Raw Score"``) or
as objects (``{"name": "Raw Score", "type": "count"}``). Everything that reads
them goes through ``normalize_metrics`` so the rest of the code only ever sees
``MetricDefinition``.
"""

from __future__ import annotations

import re
from typing import Iterable, List, Literal, Optional, Sequence, Tuple, Union

from compass.schemas.registry import MetricDefinition
from compass.schemas.sections import MetricEntry, SectionG, SectionH

DEFAULT_METRIC_TYPE = "number"
ERROR_COUNT_TYPE = "integer"

MetricCategory = Literal["raw", "derived"]

_WHITESPACE = re.compile(r"\s+")


def slugify_metric(label: str) -> str:
    """``"Words Correct Per Minute"`` -> ``"words_correct_per_minute"``."""

    return _WHITESPACE.sub("_", label.strip().lower())


def _default_description(category: MetricCategory, name: str) -> str:
    prefix = "Raw metric" if category == "raw" else "Derived metric"
    return f"{prefix}: {name}"


def normalize_metric(entry: MetricEntry, category: MetricCategory) -> MetricDefinition:
    if isinstance(entry, str):
        return MetricDefinition(
            metric_id=slugify_metric(entry),
            name=entry,
            type=DEFAULT_METRIC_TYPE,
            description=_default_description(category, entry),
        )

    metric_id = entry.metric_id or (slugify_metric(entry.name) if entry.name else None)
    name = entry.name or entry.metric_id
    if not metric_id or not name:
        raise ValueError("metric declaration needs a metric_id or a name")
    return MetricDefinition(
        metric_id=metric_id,
        name=name,
        type=entry.type or DEFAULT_METRIC_TYPE,
        description=entry.description or _default_description(category, name),
    )


def normalize_metrics(
    entries: Optional[Iterable[MetricEntry]], category: MetricCategory
) -> List[MetricDefinition]:
    return [normalize_metric(entry, category) for entry in entries or []]


def error_coding_labels(error_coding: Union[str, Sequence[str], None]) -> List[str]:
    if error_coding is None:
        return []
    if isinstance(error_coding, str):
        return [error_coding] if error_coding.strip() else []
    return [label for label in error_coding if isinstance(label, str) and label.strip()]


def error_count_metrics(error_coding: Union[str, Sequence[str], None]) -> List[MetricDefinition]:
    """One integer ``<label>_count`` raw metric per declared error code."""

    return [
        MetricDefinition(
            metric_id=f"{slugify_metric(label)}_count",
            name=f"{label} Count",
            type=ERROR_COUNT_TYPE,
            description=f"Count of {label} errors",
        )
        for label in error_coding_labels(error_coding)
    ]


def _declared(
    primary: Optional[List[MetricEntry]], legacy: Optional[List[MetricEntry]]
) -> List[MetricEntry]:
    # Section H wins whenever it declares the list at all; the two are never merged.
    if primary:
        return primary
    return legacy or []


def build_metric_schemas(
    section_g: SectionG, section_h: SectionH
) -> Tuple[List[MetricDefinition], List[MetricDefinition]]:
    """Return ``(raw_metrics, derived_metrics)`` for a new scoring model."""

    raw = normalize_metrics(_declared(section_h.raw_metrics, section_g.raw_metrics), "raw")
    derived = normalize_metrics(
        _declared(section_h.derived_metrics, section_g.derived_metrics), "derived"
    )
    known = {metric.metric_id for metric in raw}
    for metric in error_count_metrics(section_g.error_coding):
        if metric.metric_id not in known:
            raw.append(metric)
            known.add(metric.metric_id)
    return raw, derived
