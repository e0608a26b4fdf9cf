"""Domain entities for organisation-unit reconciliation."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Confidence(str, Enum):
    EXACT = "exact"
    PARTIAL = "partial"
    NONE = "none"


class MappingOrigin(str, Enum):
    AUTO = "auto"
    MANUAL = "manual"


@dataclass(frozen=True, slots=True)
class OrgUnit:
    """An organisation unit from either the external or the local hierarchy.

    The parent is referenced by id only; the unit does not own it.
    """

    id: str
    display_name: str
    level: int = 0
    parent_id: str | None = None
    path: str = ""


@dataclass(frozen=True, slots=True)
class Mapping:
    """Link between one external unit and at most one local unit."""

    external_id: str
    local_id: str | None
    confidence: Confidence = Confidence.NONE
    origin: MappingOrigin = MappingOrigin.AUTO

    @property
    def is_mapped(self) -> bool:
        return self.local_id is not None and self.confidence is not Confidence.NONE

    def to_dict(self) -> dict[str, object]:
        return {
            "external_id": self.external_id,
            "local_id": self.local_id,
            "confidence": self.confidence.value,
            "origin": self.origin.value,
            "mapped": self.is_mapped,
        }
