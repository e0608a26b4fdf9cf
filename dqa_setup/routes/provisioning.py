from __future__ import annotations

from fastapi import APIRouter, HTTPException

from dqa_setup.application import get_session_service
from dqa_setup.core.schema import ProvisionRequestModel
from dqa_setup.workers.provisioning import ProvisioningInProgressError, get_provisioning_worker

router = APIRouter(tags=["provisioning"])


@router.post("/sessions/{session_id}/provision")
async def provision_metadata(session_id: str, payload: ProvisionRequestModel) -> dict:
    """Create or reuse the data elements and datasets for an assessment."""
    if not payload.assessment_name.strip():
        raise HTTPException(status_code=400, detail="assessment_name is required")

    worker = get_provisioning_worker()
    try:
        job = await worker.submit(session_id, payload.to_domain())
    except ProvisioningInProgressError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return job.to_dict()


@router.get("/sessions/{session_id}/jobs")
async def list_jobs(session_id: str) -> dict:
    service = get_session_service()
    return {"session_id": session_id, "items": service.list_jobs(session_id)}


@router.get("/jobs/{job_id}")
async def get_job(job_id: str) -> dict:
    job = get_session_service().get_job(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="job not found")
    return job.to_dict()


@router.post("/jobs/{job_id}/cancel")
async def cancel_job(job_id: str) -> dict:
    job = get_provisioning_worker().cancel(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="job not found")
    return {"job_id": job.job_id, "status": job.status.value, "cancel_requested": job.cancelled}
