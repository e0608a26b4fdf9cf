import dataclasses
import string

import pytest

from dqa_setup.core.identifiers import CODE_ALPHABET, UID_ALPHABET, RandomIdGenerator
from dqa_setup.core.templates import (
    DEFAULT_CATEGORY_COMBO_ID,
    FALLBACK_ELEMENTS,
    build_dataset_templates,
    build_plan,
    expand,
    select_category_combo,
)
from dqa_setup.core.validation import ValidationError, validate_template
from dqa_setup.domain import DatasetType, ProvisioningRequest, SourceDataElement


SOURCES = (
    SourceDataElement(id="s1", name="ANC 1st visit", value_type="INTEGER_ZERO_OR_POSITIVE", category_combo_id=DEFAULT_CATEGORY_COMBO_ID),
    SourceDataElement(id="s2", name="ANC 4th visit", category_combo_id="ageSexCombo"),
    SourceDataElement(id="s3", name="Facility remarks", value_type="TEXT"),
)


def test_random_ids_have_expected_shape():
    ids = RandomIdGenerator(seed=7)

    uid = ids.new_object_id()
    assert len(uid) == 11
    assert uid[0] in string.ascii_letters
    assert set(uid) <= set(UID_ALPHABET)

    code = ids.new_code("REG_", 12)
    assert code.startswith("REG_")
    assert len(code) == 12
    assert set(code[4:]) <= set(CODE_ALPHABET)

    assert ids.new_code("LONGPREFIX", 4) == "LONGPREFIX"


def test_seeded_generators_repeat():
    first = RandomIdGenerator(seed=42)
    second = RandomIdGenerator(seed=42)

    assert [first.new_object_id() for _ in range(3)] == [second.new_object_id() for _ in range(3)]


def test_category_combo_selection_prefers_first_non_default():
    assert select_category_combo(SOURCES) == "ageSexCombo"
    assert select_category_combo(SOURCES[:1]) == DEFAULT_CATEGORY_COMBO_ID
    assert select_category_combo([]) == DEFAULT_CATEGORY_COMBO_ID


def test_expand_produces_one_family_per_dataset_type(ids):
    expanded = expand(SOURCES, ids)

    assert list(expanded) == list(DatasetType)
    assert sum(len(items) for items in expanded.values()) == 12
    register = expanded[DatasetType.REGISTER]
    assert [template.name for template in register] == [
        "REG - ANC 1st visit",
        "REG - ANC 4th visit",
        "REG - Facility remarks",
    ]
    assert [template.code[:4] for template in expanded[DatasetType.CORRECTED]] == ["COR_"] * 3
    assert register[2].aggregation_type == "NONE"
    assert register[0].aggregation_type == "SUM"
    # without a batch-wide combo each template keeps its source combination
    assert [template.category_combo_ref for template in register] == [
        DEFAULT_CATEGORY_COMBO_ID,
        "ageSexCombo",
        DEFAULT_CATEGORY_COMBO_ID,
    ]


def test_expand_applies_batch_category_combo(ids):
    expanded = expand(SOURCES, ids, category_combo="ageSexCombo")

    refs = {template.category_combo_ref for items in expanded.values() for template in items}
    assert refs == {"ageSexCombo"}


def test_expand_falls_back_to_generic_indicators(ids):
    expanded = expand([], ids)

    for dataset_type, templates in expanded.items():
        assert len(templates) == len(FALLBACK_ELEMENTS) == 3
        assert templates[0].name == f"{dataset_type.abbrev} - Assessment Status"
    assert [t.value_type for t in expanded[DatasetType.SUMMARY]] == ["TEXT", "PERCENTAGE", "INTEGER_POSITIVE"]


def test_generated_templates_respect_length_ceilings(ids):
    long_source = SourceDataElement(
        id="long",
        name="N" * 400,
        short_name="S" * 120,
        description="D" * 600,
    )
    plan = build_plan(
        ProvisioningRequest(
            assessment_name="A" * 300,
            assessment_description="B" * 300,
            source_elements=(long_source,),
        ),
        ids,
    )

    templates = [t for items in plan.data_elements.values() for t in items] + list(plan.datasets.values())
    for template in templates:
        assert len(template.name) <= 230
        assert len(template.short_name) <= 50
        assert len(template.description) <= 255
        validate_template(template)
    assert plan.datasets[DatasetType.REGISTER].short_name.endswith("...")


def test_data_element_description_carries_assessment_name(ids):
    expanded = expand(SOURCES[:1], ids, assessment_name="Bo DQA 2025")

    assert expanded[DatasetType.REPORTED][0].description == "Bo DQA 2025 - ANC 1st visit"


def test_dataset_templates_follow_name_format(ids):
    suffix = build_dataset_templates("Bo DQA", ids, org_unit_ids=["ou1", "ou2"])
    prefix = build_dataset_templates("Bo DQA", ids, name_format="prefix")

    assert suffix[DatasetType.REGISTER].name == "Bo DQA - Register"
    assert suffix[DatasetType.REGISTER].org_unit_ids == ("ou1", "ou2")
    assert suffix[DatasetType.REGISTER].public_access == "r-------"
    assert prefix[DatasetType.CORRECTED].name == "Corrected - Bo DQA"

    with pytest.raises(ValueError):
        build_dataset_templates("Bo DQA", ids, name_format="middle")


def test_validate_template_rejects_oversized_names(ids):
    template = expand(SOURCES[:1], ids)[DatasetType.REGISTER][0]
    oversized = dataclasses.replace(template, name="x" * 231)

    with pytest.raises(ValidationError):
        validate_template(oversized)


def test_data_element_names_carry_assessment_and_keep_the_label(ids):
    expanded = expand(SOURCES[:1], ids, assessment_name="Bo DQA 2025")
    template = expanded[DatasetType.REGISTER][0]

    assert template.name == "Bo DQA 2025 - REG - ANC 1st visit"
    assert template.label == "REG - ANC 1st visit"

    long_named = expand(SOURCES[:1], ids, assessment_name="A" * 300)[DatasetType.CORRECTED][0]
    assert len(long_named.name) == 230
    assert long_named.name.endswith(" - COR - ANC 1st visit")
