from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from dqa_setup.domain import OrgUnit, ProvisioningRequest, SourceDataElement, SubmissionMode


class OrgUnitModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    display_name: str = Field(alias="displayName")
    level: int = 0
    parent_id: str | None = Field(default=None, alias="parentId")
    path: str = ""

    def to_domain(self) -> OrgUnit:
        return OrgUnit(
            id=self.id,
            display_name=self.display_name,
            level=self.level,
            parent_id=self.parent_id,
            path=self.path,
        )


class ReconcileRequestModel(BaseModel):
    external: list[OrgUnitModel]
    local: list[OrgUnitModel]


class MappingUpdateModel(BaseModel):
    local_id: str = Field(min_length=1)


class SourceDataElementModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str | None = None
    name: str = Field(min_length=1)
    short_name: str | None = Field(default=None, alias="shortName")
    description: str | None = None
    value_type: str | None = Field(default=None, alias="valueType")
    aggregation_type: str | None = Field(default=None, alias="aggregationType")
    category_combo_id: str | None = Field(default=None, alias="categoryComboId")

    def to_domain(self) -> SourceDataElement:
        return SourceDataElement(
            id=self.id,
            name=self.name,
            short_name=self.short_name,
            description=self.description,
            value_type=self.value_type,
            aggregation_type=self.aggregation_type,
            category_combo_id=self.category_combo_id,
        )


class ProvisionRequestModel(BaseModel):
    assessment_name: str = Field(min_length=1)
    assessment_description: str = ""
    data_elements: list[SourceDataElementModel] = Field(default_factory=list)
    org_unit_ids: list[str] = Field(default_factory=list)
    reuse_existing: bool = True
    mode: SubmissionMode = SubmissionMode.PER_OBJECT
    name_format: Literal["suffix", "prefix"] = "suffix"
    public_access: str = "r-------"

    def to_domain(self) -> ProvisioningRequest:
        return ProvisioningRequest(
            assessment_name=self.assessment_name,
            assessment_description=self.assessment_description,
            source_elements=tuple(item.to_domain() for item in self.data_elements),
            org_unit_ids=tuple(self.org_unit_ids),
            reuse_existing=self.reuse_existing,
            mode=self.mode,
            name_format=self.name_format,
            public_access=self.public_access,
        )
