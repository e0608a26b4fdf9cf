"""Domain layer definitions."""

from .metadata import (
    STAGES,
    DatasetTemplate,
    DatasetType,
    DataElementTemplate,
    JobStatus,
    MetadataKind,
    ProgressEvent,
    ProvisionedObject,
    ProvisioningJob,
    ProvisioningRequest,
    ProvisionStatus,
    Severity,
    SourceDataElement,
    SubmissionMode,
)
from .orgunits import Confidence, Mapping, MappingOrigin, OrgUnit
from .sessions import JobRecord, SessionState

__all__ = [
    "STAGES",
    "Confidence",
    "DataElementTemplate",
    "DatasetTemplate",
    "DatasetType",
    "JobRecord",
    "JobStatus",
    "Mapping",
    "MappingOrigin",
    "MetadataKind",
    "OrgUnit",
    "ProgressEvent",
    "ProvisionedObject",
    "ProvisioningJob",
    "ProvisioningRequest",
    "ProvisionStatus",
    "SessionState",
    "Severity",
    "SourceDataElement",
    "SubmissionMode",
]
