"""Expansion of selected source data elements into assessment metadata templates.

Every assessment gets four datasets (register, summary, reported, corrected).
Each dataset carries its own copy of every selected source element, named
``"{assessment} - {abbrev} - {source name}"`` so the families stay
distinguishable, and unique across assessments, in the target system. When
nothing is selected a small generic set is used instead so that each dataset
still has something to collect.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Sequence

from dqa_setup.core.identifiers import IdGenerator
from dqa_setup.core.validation import (
    DESCRIPTION_MAX_LENGTH,
    NAME_MAX_LENGTH,
    SHORT_NAME_MAX_LENGTH,
    shorten,
    truncate,
)
from dqa_setup.domain import (
    DatasetTemplate,
    DatasetType,
    DataElementTemplate,
    ProvisioningRequest,
    SourceDataElement,
)

DEFAULT_CATEGORY_COMBO_ID = "bjDvmb4bfuf"
DEFAULT_VALUE_TYPE = "INTEGER"
DEFAULT_AGGREGATION_TYPE = "SUM"
NON_NUMERIC_VALUE_TYPES = {"TEXT", "LONG_TEXT", "LETTER", "BOOLEAN", "TRUE_ONLY", "DATE", "DATETIME"}
DATA_ELEMENT_CODE_LENGTH = 12
DATASET_CODE_LENGTH = 8

FALLBACK_ELEMENTS: tuple[SourceDataElement, ...] = (
    SourceDataElement(
        id=None,
        name="Assessment Status",
        description="Current status of the assessment",
        value_type="TEXT",
    ),
    SourceDataElement(
        id=None,
        name="Completion Rate",
        description="Percentage of completion",
        value_type="PERCENTAGE",
    ),
    SourceDataElement(
        id=None,
        name="Quality Score",
        description="Overall quality score",
        value_type="INTEGER_POSITIVE",
    ),
)

DATASET_DESCRIPTIONS: dict[DatasetType, str] = {
    DatasetType.REGISTER: "Dataset for registering and tracking data quality assessment activities",
    DatasetType.SUMMARY: "Dataset for summarizing data quality assessment results and metrics",
    DatasetType.REPORTED: "Dataset for reported data values and submission tracking",
    DatasetType.CORRECTED: "Dataset for data corrections and quality improvement actions",
}


@dataclass(frozen=True, slots=True)
class ProvisioningPlan:
    """Templates for one run, ready for the provisioning engine."""

    assessment_name: str
    category_combo: str
    data_elements: dict[DatasetType, list[DataElementTemplate]] = field(default_factory=dict)
    datasets: dict[DatasetType, DatasetTemplate] = field(default_factory=dict)

    def data_element_count(self) -> int:
        return sum(len(items) for items in self.data_elements.values())


def select_category_combo(sources: Iterable[SourceDataElement], default_id: str = DEFAULT_CATEGORY_COMBO_ID) -> str:
    """Return the first non-default category combination among ``sources``."""

    for source in sources:
        if source.category_combo_id and source.category_combo_id != default_id:
            return source.category_combo_id
    return default_id


def _aggregation_for(source: SourceDataElement, value_type: str) -> str:
    if source.aggregation_type:
        return source.aggregation_type
    if value_type.upper() in NON_NUMERIC_VALUE_TYPES:
        return "NONE"
    return DEFAULT_AGGREGATION_TYPE


def _describe(source: SourceDataElement, assessment_name: str) -> str:
    text = source.description or source.name
    if assessment_name:
        text = f"{assessment_name} - {text}"
    return truncate(text, DESCRIPTION_MAX_LENGTH)


def _element_name(assessment_name: str, label: str) -> str:
    """``"{assessment} - {label}"``, shortening the assessment part first."""

    label = truncate(label, NAME_MAX_LENGTH)
    room = NAME_MAX_LENGTH - len(label) - 3
    if not assessment_name or room <= 0:
        return label
    return f"{truncate(assessment_name, room)} - {label}"


def expand(
    sources: Sequence[SourceDataElement],
    ids: IdGenerator,
    dataset_types: Sequence[DatasetType] = tuple(DatasetType),
    *,
    category_combo: str | None = None,
    assessment_name: str = "",
    default_category_combo: str = DEFAULT_CATEGORY_COMBO_ID,
) -> dict[DatasetType, list[DataElementTemplate]]:
    """Derive one data element template per source element and dataset type.

    ``category_combo`` applies one combination to the whole batch; without it
    each template inherits the combination of its source element.
    """

    elements = tuple(sources) or FALLBACK_ELEMENTS
    expanded: dict[DatasetType, list[DataElementTemplate]] = {}
    for dataset_type in dataset_types:
        abbrev = dataset_type.abbrev
        templates: list[DataElementTemplate] = []
        for source in elements:
            value_type = source.value_type or DEFAULT_VALUE_TYPE
            label = f"{abbrev} - {source.name}"
            templates.append(
                DataElementTemplate(
                    uid=ids.new_object_id(),
                    name=_element_name(assessment_name, label),
                    code=ids.new_code(f"{abbrev}_", DATA_ELEMENT_CODE_LENGTH),
                    short_name=truncate(f"{abbrev} - {source.short_name or source.name}", SHORT_NAME_MAX_LENGTH),
                    description=_describe(source, assessment_name),
                    value_type=value_type,
                    aggregation_type=_aggregation_for(source, value_type),
                    domain_type="AGGREGATE",
                    category_combo_ref=category_combo or source.category_combo_id or default_category_combo,
                    dataset_type=dataset_type,
                    source_id=source.id,
                    label=label,
                )
            )
        expanded[dataset_type] = templates
    return expanded


def dataset_name(assessment_name: str, dataset_type: DatasetType, name_format: str = "suffix") -> str:
    if name_format == "prefix":
        return f"{dataset_type.label} - {assessment_name}"
    return f"{assessment_name} - {dataset_type.label}"


def build_dataset_templates(
    assessment_name: str,
    ids: IdGenerator,
    *,
    description: str = "",
    category_combo: str = DEFAULT_CATEGORY_COMBO_ID,
    org_unit_ids: Sequence[str] = (),
    name_format: str = "suffix",
    public_access: str = "r-------",
    dataset_types: Sequence[DatasetType] = tuple(DatasetType),
) -> dict[DatasetType, DatasetTemplate]:
    if name_format not in {"suffix", "prefix"}:
        raise ValueError("name_format must be 'suffix' or 'prefix'")

    datasets: dict[DatasetType, DatasetTemplate] = {}
    for dataset_type in dataset_types:
        name = truncate(dataset_name(assessment_name, dataset_type, name_format), NAME_MAX_LENGTH)
        datasets[dataset_type] = DatasetTemplate(
            uid=ids.new_object_id(),
            name=name,
            code=ids.new_code("", DATASET_CODE_LENGTH),
            short_name=shorten(name),
            description=truncate(
                f"{description or assessment_name} - {DATASET_DESCRIPTIONS[dataset_type]}",
                DESCRIPTION_MAX_LENGTH,
            ),
            dataset_type=dataset_type,
            category_combo_ref=category_combo,
            org_unit_ids=tuple(org_unit_ids),
            public_access=public_access,
        )
    return datasets


def build_plan(
    request: ProvisioningRequest,
    ids: IdGenerator,
    default_category_combo: str = DEFAULT_CATEGORY_COMBO_ID,
) -> ProvisioningPlan:
    category_combo = select_category_combo(request.source_elements, default_category_combo)
    data_elements = expand(
        request.source_elements,
        ids,
        category_combo=category_combo,
        assessment_name=request.assessment_name,
        default_category_combo=default_category_combo,
    )
    datasets = build_dataset_templates(
        request.assessment_name,
        ids,
        description=request.assessment_description,
        category_combo=category_combo,
        org_unit_ids=request.org_unit_ids,
        name_format=request.name_format,
        public_access=request.public_access,
    )
    return ProvisioningPlan(
        assessment_name=request.assessment_name,
        category_combo=category_combo,
        data_elements=data_elements,
        datasets=datasets,
    )
