"""Remote metadata integration hooks.

The engines only depend on the :class:`MetadataClient` contract. The DHIS2
Web API client lives in :mod:`dqa_setup.infrastructure.dhis2`; when no server
is configured the service runs against :class:`InMemoryMetadataClient`, which
also backs the test suite.
"""
from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, Protocol, Sequence

DEFAULT_FIELDS = "id,name,code,shortName,description"


class MetadataClientError(RuntimeError):
    """Raised when a remote query, create or import call fails."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


@dataclass(slots=True)
class BulkImportReport:
    """Per-kind statistics returned by a metadata import."""

    status: str
    created: int = 0
    updated: int = 0
    ignored: int = 0
    errors: list[str] = field(default_factory=list)
    failed_ids: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.status.upper() in {"OK", "SUCCESS", "WARNING"}

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "created": self.created,
            "updated": self.updated,
            "ignored": self.ignored,
            "errors": list(self.errors),
            "failed_ids": list(self.failed_ids),
        }


class MetadataClient(Protocol):
    """Contract for the target metadata system."""

    def query(self, kind: str, filters: Sequence[str] = (), fields: str = DEFAULT_FIELDS) -> list[dict[str, Any]]:
        """Return objects of ``kind`` matching every ``property:operator:value`` filter."""

    def create(self, kind: str, payload: dict[str, Any]) -> str:
        """Create one object and return its remote id."""

    def bulk_import(self, payload: dict[str, list[dict[str, Any]]]) -> BulkImportReport:
        """Import several kinds of objects in one request."""


def _matches(item: dict[str, Any], expression: str) -> bool:
    try:
        prop, operator, value = expression.split(":", 2)
    except ValueError as exc:
        raise MetadataClientError(f"invalid filter {expression!r}", status_code=400) from exc
    actual = item.get(prop)
    if actual is None:
        return False
    actual = str(actual)
    if operator == "eq":
        return actual == value
    if operator == "ilike":
        return value.lower() in actual.lower()
    if operator == "like":
        return value in actual
    raise MetadataClientError(f"unsupported filter operator {operator!r}", status_code=400)


class InMemoryMetadataClient:
    """Process-local metadata store honouring the uniqueness rules of the target system."""

    UNIQUE_PROPERTIES = ("id", "code", "name")

    def __init__(self, seed: dict[str, list[dict[str, Any]]] | None = None) -> None:
        self._objects: dict[str, list[dict[str, Any]]] = {}
        self.create_calls: list[tuple[str, dict[str, Any]]] = []
        self.import_calls: list[dict[str, list[dict[str, Any]]]] = []
        for kind, items in (seed or {}).items():
            self._objects[kind] = [copy.deepcopy(item) for item in items]

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------
    def _conflict(self, kind: str, payload: dict[str, Any]) -> str | None:
        for existing in self._objects.get(kind, []):
            for prop in self.UNIQUE_PROPERTIES:
                value = payload.get(prop)
                if value and existing.get(prop) == value:
                    return f"{kind} with {prop} '{value}' already exists"
        return None

    def objects(self, kind: str) -> list[dict[str, Any]]:
        return [copy.deepcopy(item) for item in self._objects.get(kind, [])]

    # ------------------------------------------------------------------
    # public API
    # ------------------------------------------------------------------
    def query(self, kind: str, filters: Sequence[str] = (), fields: str = DEFAULT_FIELDS) -> list[dict[str, Any]]:
        wanted = [name.strip() for name in fields.split(",") if name.strip()]
        items = [item for item in self._objects.get(kind, []) if all(_matches(item, expr) for expr in filters)]
        return [{key: item[key] for key in wanted if key in item} for item in items]

    def create(self, kind: str, payload: dict[str, Any]) -> str:
        self.create_calls.append((kind, copy.deepcopy(payload)))
        conflict = self._conflict(kind, payload)
        if conflict:
            raise MetadataClientError(conflict, status_code=409)
        stored = copy.deepcopy(payload)
        stored.setdefault("id", f"mem{len(self._objects.get(kind, [])):08d}")
        self._objects.setdefault(kind, []).append(stored)
        return str(stored["id"])

    def bulk_import(self, payload: dict[str, list[dict[str, Any]]]) -> BulkImportReport:
        self.import_calls.append(copy.deepcopy(payload))
        report = BulkImportReport(status="OK")
        for kind, items in payload.items():
            for item in items:
                current = next(
                    (obj for obj in self._objects.get(kind, []) if item.get("id") and obj.get("id") == item.get("id")),
                    None,
                )
                if current is not None:
                    current.update(copy.deepcopy(item))
                    report.updated += 1
                    continue
                conflict = self._conflict(kind, item)
                if conflict:
                    report.ignored += 1
                    report.errors.append(conflict)
                    if item.get("id"):
                        report.failed_ids.append(str(item["id"]))
                    continue
                self._objects.setdefault(kind, []).append(copy.deepcopy(item))
                report.created += 1
        if report.errors:
            report.status = "WARNING"
        return report


_client: MetadataClient = InMemoryMetadataClient()


def configure_metadata_client(client: MetadataClient) -> None:
    """Install the metadata client used by provisioning runs."""

    global _client
    _client = client


def get_metadata_client() -> MetadataClient:
    """Return the currently configured metadata client."""

    return _client
