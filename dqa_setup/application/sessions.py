"""Application service layer for assessment setup sessions."""
from __future__ import annotations

from typing import Sequence

from dqa_setup.core.reconciliation import ReconciliationResult, clear_mapping, reconcile, set_mapping, tally
from dqa_setup.domain import JobStatus, Mapping, OrgUnit, ProvisioningJob
from dqa_setup.infrastructure import InMemorySessionRepository, SessionRepository


class SessionService:
    """Coordinates reconciliation and provisioning use cases per session."""

    def __init__(self, repository: SessionRepository) -> None:
        self._repository = repository

    # ------------------------------------------------------------------
    # session lifecycle
    # ------------------------------------------------------------------
    def has_session(self, session_id: str) -> bool:
        return self._repository.get_session(session_id) is not None

    # ------------------------------------------------------------------
    # organisation unit mapping
    # ------------------------------------------------------------------
    def reconcile(
        self,
        session_id: str,
        external: Sequence[OrgUnit],
        local: Sequence[OrgUnit],
    ) -> ReconciliationResult:
        prior = self._repository.list_mappings(session_id)
        result = reconcile(external, local, prior)
        self._repository.save_mappings(session_id, result.mappings, result.counts())
        return result

    def list_mappings(self, session_id: str) -> list[Mapping]:
        return self._repository.list_mappings(session_id)

    def get_counts(self, session_id: str) -> dict[str, int]:
        session = self._repository.get_session(session_id)
        return dict(session.counts) if session else {}

    def set_mapping(self, session_id: str, external_id: str, local_id: str) -> list[Mapping]:
        mappings = set_mapping(self._repository.list_mappings(session_id), external_id, local_id)
        self._repository.save_mappings(session_id, mappings, tally(mappings))
        return mappings

    def clear_mapping(self, session_id: str, external_id: str) -> list[Mapping]:
        mappings = self._repository.list_mappings(session_id)
        if not any(mapping.external_id == external_id for mapping in mappings):
            raise KeyError(external_id)
        mappings = clear_mapping(mappings, external_id)
        self._repository.save_mappings(session_id, mappings, tally(mappings))
        return mappings

    # ------------------------------------------------------------------
    # provisioning jobs
    # ------------------------------------------------------------------
    def create_job(self, session_id: str) -> ProvisioningJob:
        job = ProvisioningJob(job_id=self._repository.next_job_id(), session_id=session_id)
        self._repository.add_job(session_id, job)
        return job

    def update_job_status(self, session_id: str, job_id: str, status: JobStatus, *, error: str | None = None) -> None:
        self._repository.update_job_status(session_id, job_id, status.value, error=error)

    def get_job(self, job_id: str) -> ProvisioningJob | None:
        return self._repository.get_job(job_id)

    def list_jobs(self, session_id: str) -> list[dict[str, object]]:
        return [
            {"job_id": record.job_id, "status": record.status, "error": record.error}
            for record in self._repository.list_jobs(session_id)
        ]

    # ------------------------------------------------------------------
    # testing helpers
    # ------------------------------------------------------------------
    def reset(self) -> None:
        self._repository.reset()


_repository = InMemorySessionRepository()
_service = SessionService(_repository)


def get_session_service() -> SessionService:
    """Return the singleton session service for the process."""

    return _service


def reset_session_state() -> None:
    """Reset the in-memory store (used in tests)."""

    _service.reset()
