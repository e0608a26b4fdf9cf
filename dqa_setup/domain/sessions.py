"""Domain entities for assessment setup sessions."""
from __future__ import annotations

from dataclasses import dataclass, field

from .orgunits import Mapping


@dataclass(slots=True)
class JobRecord:
    """Represents a provisioning job bound to a session."""

    job_id: str
    status: str = "pending"
    error: str | None = None


@dataclass(slots=True)
class SessionState:
    """Aggregated state for a single assessment setup session in memory."""

    session_id: str
    mappings: list[Mapping] = field(default_factory=list)
    counts: dict[str, int] = field(default_factory=dict)
    jobs: list[JobRecord] = field(default_factory=list)
