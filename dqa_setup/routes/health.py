from __future__ import annotations

from fastapi import APIRouter

from dqa_setup.infrastructure import DHIS2MetadataClient, get_metadata_client
from dqa_setup.workers.provisioning import get_provisioning_worker

router = APIRouter(tags=["health"])


@router.get("/health")
async def health() -> dict:
    """Report which metadata backend is installed and how many runs are in flight."""
    client = get_metadata_client()
    return {
        "status": "ok",
        "metadata_backend": "dhis2" if isinstance(client, DHIS2MetadataClient) else "in-memory",
        "active_runs": get_provisioning_worker().active_runs(),
    }
