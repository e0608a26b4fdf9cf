"""Domain entities for assessment metadata provisioning."""
from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable


class DatasetType(str, Enum):
    REGISTER = "register"
    SUMMARY = "summary"
    REPORTED = "reported"
    CORRECTED = "corrected"

    @property
    def abbrev(self) -> str:
        return _ABBREVIATIONS[self]

    @property
    def label(self) -> str:
        return self.value.capitalize()


_ABBREVIATIONS = {
    DatasetType.REGISTER: "REG",
    DatasetType.SUMMARY: "SUM",
    DatasetType.REPORTED: "RPT",
    DatasetType.CORRECTED: "COR",
}


class MetadataKind(str, Enum):
    """Remote collection names of the objects the engine touches."""

    DATA_ELEMENT = "dataElements"
    DATASET = "dataSets"
    CATEGORY_COMBO = "categoryCombos"


class SubmissionMode(str, Enum):
    PER_OBJECT = "per_object"
    BULK = "bulk"


class ProvisionStatus(str, Enum):
    CREATED = "created"
    REUSED = "reused"
    FAILED = "failed"


class Severity(str, Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class JobStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass(frozen=True, slots=True)
class SourceDataElement:
    """A data element selected by the user as the basis for derived elements."""

    id: str | None
    name: str
    short_name: str | None = None
    description: str | None = None
    value_type: str | None = None
    aggregation_type: str | None = None
    category_combo_id: str | None = None


@dataclass(frozen=True, slots=True)
class ProvisioningRequest:
    """Everything the caller supplies for one provisioning run."""

    assessment_name: str
    assessment_description: str = ""
    source_elements: tuple[SourceDataElement, ...] = ()
    org_unit_ids: tuple[str, ...] = ()
    reuse_existing: bool = True
    mode: SubmissionMode = SubmissionMode.PER_OBJECT
    name_format: str = "suffix"
    public_access: str = "r-------"


@dataclass(frozen=True, slots=True)
class DataElementTemplate:
    uid: str
    name: str
    code: str
    short_name: str
    description: str
    value_type: str
    aggregation_type: str
    domain_type: str
    category_combo_ref: str
    dataset_type: DatasetType
    source_id: str | None = None
    label: str = ""

    def to_payload(self) -> dict[str, Any]:
        return {
            "id": self.uid,
            "name": self.name,
            "shortName": self.short_name,
            "code": self.code,
            "description": self.description,
            "valueType": self.value_type,
            "aggregationType": self.aggregation_type,
            "domainType": self.domain_type,
            "categoryCombo": {"id": self.category_combo_ref},
            "zeroIsSignificant": False,
        }


@dataclass(frozen=True, slots=True)
class DatasetTemplate:
    uid: str
    name: str
    code: str
    short_name: str
    description: str
    dataset_type: DatasetType
    category_combo_ref: str
    org_unit_ids: tuple[str, ...] = ()
    period_type: str = "Monthly"
    public_access: str = "r-------"

    def to_payload(self, data_element_ids: list[str]) -> dict[str, Any]:
        return {
            "id": self.uid,
            "name": self.name,
            "shortName": self.short_name,
            "code": self.code,
            "description": self.description,
            "periodType": self.period_type,
            "categoryCombo": {"id": self.category_combo_ref},
            "dataSetElements": [{"dataElement": {"id": de_id}} for de_id in data_element_ids],
            "organisationUnits": [{"id": ou_id} for ou_id in self.org_unit_ids],
            "publicAccess": self.public_access,
        }


@dataclass(slots=True)
class ProvisionedObject:
    """Outcome of provisioning a single template."""

    template_ref: str
    kind: MetadataKind
    dataset_type: DatasetType
    name: str
    code: str
    status: ProvisionStatus
    remote_id: str | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "template_ref": self.template_ref,
            "kind": self.kind.value,
            "dataset_type": self.dataset_type.value,
            "name": self.name,
            "code": self.code,
            "status": self.status.value,
            "remote_id": self.remote_id,
            "error": self.error,
        }


@dataclass(frozen=True, slots=True)
class ProgressEvent:
    message: str
    severity: Severity
    timestamp: datetime
    step: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "message": self.message,
            "severity": self.severity.value,
            "timestamp": self.timestamp.isoformat(),
            "step": self.step,
        }


STAGES: tuple[str, ...] = (
    "Preparing templates",
    "Checking existing metadata",
    "Creating data elements",
    "Creating datasets",
    "Importing metadata",
    "Finalizing",
)


@dataclass(slots=True)
class ProvisioningJob:
    """Aggregate root for one provisioning run.

    Holds the append-only event log, the coarse stage counter and the final
    object summary. Exists for the duration of one run only.
    """

    job_id: str
    session_id: str | None = None
    status: JobStatus = JobStatus.PENDING
    step: int = 0
    events: list[ProgressEvent] = field(default_factory=list)
    data_elements: list[ProvisionedObject] = field(default_factory=list)
    datasets: list[ProvisionedObject] = field(default_factory=list)
    category_combo: str | None = None
    import_report: dict[str, Any] | None = None
    listener: Callable[[ProgressEvent], None] | None = None
    _cancelled: threading.Event = field(default_factory=threading.Event, repr=False)

    @property
    def total_steps(self) -> int:
        return len(STAGES)

    @property
    def stage(self) -> str | None:
        if self.step == 0:
            return None
        return STAGES[self.step - 1]

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self) -> None:
        """Ask the engine to stop before the next template."""

        self._cancelled.set()

    def advance(self, step: int) -> None:
        if step < self.step:
            raise ValueError("step counter cannot move backwards")
        self.step = step

    def emit(self, message: str, severity: Severity = Severity.INFO) -> ProgressEvent:
        event = ProgressEvent(
            message=message,
            severity=severity,
            timestamp=datetime.now(timezone.utc),
            step=self.step,
        )
        self.events.append(event)
        if self.listener is not None:
            self.listener(event)
        return event

    def counts(self) -> dict[str, int]:
        counts = {status.value: 0 for status in ProvisionStatus}
        for item in [*self.data_elements, *self.datasets]:
            counts[item.status.value] += 1
        return counts

    def summary(self) -> dict[str, Any]:
        return {
            "data_elements": [item.to_dict() for item in self.data_elements],
            "datasets": [item.to_dict() for item in self.datasets],
            "category_combo": self.category_combo,
            "counts": self.counts(),
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "job_id": self.job_id,
            "session_id": self.session_id,
            "status": self.status.value,
            "step": self.step,
            "total_steps": self.total_steps,
            "stage": self.stage,
            "events": [event.to_dict() for event in self.events],
            "import_report": self.import_report,
            "summary": self.summary(),
        }
