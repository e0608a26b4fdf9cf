"""Infrastructure layer for session persistence."""
from __future__ import annotations

from typing import Protocol

from dqa_setup.domain import JobRecord, Mapping, ProvisioningJob, SessionState


class SessionRepository(Protocol):
    """Persistence contract for assessment setup sessions."""

    def get_session(self, session_id: str) -> SessionState | None: ...

    def ensure_session(self, session_id: str) -> SessionState: ...

    def save_mappings(self, session_id: str, mappings: list[Mapping], counts: dict[str, int] | None = None) -> None: ...

    def list_mappings(self, session_id: str) -> list[Mapping]: ...

    def next_job_id(self) -> str: ...

    def add_job(self, session_id: str, job: ProvisioningJob) -> None: ...

    def update_job_status(self, session_id: str, job_id: str, status: str, *, error: str | None = None) -> None: ...

    def get_job(self, job_id: str) -> ProvisioningJob | None: ...

    def list_jobs(self, session_id: str) -> list[JobRecord]: ...

    def reset(self) -> None: ...


class InMemorySessionRepository:
    """Simple in-memory repository for fast iteration and tests."""

    def __init__(self) -> None:
        self._sessions: dict[str, SessionState] = {}
        self._jobs: dict[str, ProvisioningJob] = {}
        self._job_counter = 0

    def get_session(self, session_id: str) -> SessionState | None:
        return self._sessions.get(session_id)

    def ensure_session(self, session_id: str) -> SessionState:
        session = self._sessions.get(session_id)
        if session is None:
            session = SessionState(session_id=session_id)
            self._sessions[session_id] = session
        return session

    def save_mappings(self, session_id: str, mappings: list[Mapping], counts: dict[str, int] | None = None) -> None:
        session = self.ensure_session(session_id)
        session.mappings = list(mappings)
        if counts is not None:
            session.counts = dict(counts)

    def list_mappings(self, session_id: str) -> list[Mapping]:
        session = self._sessions.get(session_id)
        return list(session.mappings) if session else []

    def next_job_id(self) -> str:
        self._job_counter += 1
        return f"job-{self._job_counter:05d}"

    def add_job(self, session_id: str, job: ProvisioningJob) -> None:
        session = self.ensure_session(session_id)
        session.jobs.append(JobRecord(job_id=job.job_id, status=job.status.value))
        self._jobs[job.job_id] = job

    def update_job_status(self, session_id: str, job_id: str, status: str, *, error: str | None = None) -> None:
        session = self.ensure_session(session_id)
        for record in session.jobs:
            if record.job_id == job_id:
                record.status = status
                record.error = error
                break

    def get_job(self, job_id: str) -> ProvisioningJob | None:
        return self._jobs.get(job_id)

    def list_jobs(self, session_id: str) -> list[JobRecord]:
        session = self._sessions.get(session_id)
        return list(session.jobs) if session else []

    def reset(self) -> None:
        self._sessions.clear()
        self._jobs.clear()
        self._job_counter = 0
