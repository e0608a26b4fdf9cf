from __future__ import annotations

import asyncio
import logging

from dqa_setup.application import get_session_service
from dqa_setup.core.identifiers import IdGenerator
from dqa_setup.core.provisioning import ProvisioningEngine
from dqa_setup.core.templates import DEFAULT_CATEGORY_COMBO_ID
from dqa_setup.domain import JobStatus, ProvisioningJob, ProvisioningRequest
from dqa_setup.infrastructure import get_metadata_client

logger = logging.getLogger(__name__)


class ProvisioningInProgressError(RuntimeError):
    """Raised when a session already has a provisioning run in flight."""


class ProvisioningWorker:
    """Runs provisioning jobs off the event loop, one at a time per session."""

    def __init__(
        self,
        *,
        ids: IdGenerator | None = None,
        default_category_combo: str = DEFAULT_CATEGORY_COMBO_ID,
    ) -> None:
        self._ids = ids
        self._default_category_combo = default_category_combo
        self._active: set[str] = set()

    def configure(self, *, default_category_combo: str | None = None, ids: IdGenerator | None = None) -> None:
        if default_category_combo:
            self._default_category_combo = default_category_combo
        if ids is not None:
            self._ids = ids

    def is_running(self, session_id: str) -> bool:
        return session_id in self._active

    def active_runs(self) -> int:
        return len(self._active)

    async def submit(self, session_id: str, request: ProvisioningRequest) -> ProvisioningJob:
        if self.is_running(session_id):
            raise ProvisioningInProgressError(f"session {session_id} already has a provisioning run in progress")
        self._active.add(session_id)

        service = get_session_service()
        job = service.create_job(session_id)
        engine = ProvisioningEngine(
            get_metadata_client(),
            self._ids,
            default_category_combo=self._default_category_combo,
        )
        service.update_job_status(session_id, job.job_id, JobStatus.RUNNING)
        try:
            await asyncio.to_thread(engine.run, request, job)
        except Exception as exc:  # pragma: no cover - defensive branch
            logger.exception("Provisioning job %s failed", job.job_id)
            service.update_job_status(session_id, job.job_id, JobStatus.FAILED, error=str(exc))
            raise
        else:
            service.update_job_status(session_id, job.job_id, job.status)
        finally:
            self._active.discard(session_id)
        return job

    def cancel(self, job_id: str) -> ProvisioningJob | None:
        job = get_session_service().get_job(job_id)
        if job is None:
            return None
        if job.status in {JobStatus.PENDING, JobStatus.RUNNING}:
            job.cancel()
        return job


_worker = ProvisioningWorker()


def get_provisioning_worker() -> ProvisioningWorker:
    return _worker
