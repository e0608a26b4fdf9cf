"""Infrastructure layer exports."""

from .dhis2 import DHIS2Error, DHIS2MetadataClient
from .metadata import (
    BulkImportReport,
    InMemoryMetadataClient,
    MetadataClient,
    MetadataClientError,
    configure_metadata_client,
    get_metadata_client,
)
from .sessions import InMemorySessionRepository, SessionRepository

__all__ = [
    "BulkImportReport",
    "DHIS2Error",
    "DHIS2MetadataClient",
    "InMemoryMetadataClient",
    "InMemorySessionRepository",
    "MetadataClient",
    "MetadataClientError",
    "SessionRepository",
    "configure_metadata_client",
    "get_metadata_client",
]
