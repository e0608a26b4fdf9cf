"""Integration with the DHIS2 Web API metadata endpoints."""
from __future__ import annotations

import logging
from typing import Any, Sequence
from urllib.parse import urlparse

import httpx

from .metadata import DEFAULT_FIELDS, BulkImportReport, MetadataClientError

logger = logging.getLogger(__name__)


class DHIS2Error(MetadataClientError):
    """Raised when the DHIS2 server answers with an error web message."""


IMPORT_PARAMS: dict[str, str] = {
    "importMode": "COMMIT",
    "identifier": "UID",
    "importReportMode": "FULL",
    "importStrategy": "CREATE_AND_UPDATE",
    "atomicMode": "NONE",
    "mergeMode": "REPLACE",
    "flushMode": "AUTO",
    "skipSharing": "false",
    "skipValidation": "false",
    "async": "false",
}


class DHIS2MetadataClient:
    """Client for the DHIS2 ``/api`` metadata resources using basic auth."""

    def __init__(
        self,
        base_url: str,
        username: str,
        password: str,
        *,
        timeout: float = 30.0,
        http_client: httpx.Client | None = None,
    ) -> None:
        parsed = urlparse(base_url)
        if not parsed.scheme or not parsed.netloc:
            raise ValueError("base_url must include scheme and host")

        path = parsed.path.rstrip("/")
        if not path.endswith("/api"):
            path = f"{path}/api"
        self._api_url = f"{parsed.scheme}://{parsed.netloc}{path}"
        self._client = http_client or httpx.Client(timeout=timeout)
        self._owns_client = http_client is None
        self._auth = httpx.BasicAuth(username, password)

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------
    def _url(self, resource: str) -> str:
        return f"{self._api_url}/{resource.lstrip('/')}"

    @staticmethod
    def _json(response: httpx.Response) -> dict[str, Any]:
        try:
            data = response.json()
        except ValueError:
            return {}
        return data if isinstance(data, dict) else {}

    @staticmethod
    def _collect_error_messages(node: Any) -> list[str]:
        """Pull ``errorReports``/``conflicts`` messages out of a web message tree."""

        messages: list[str] = []

        def walk(value: Any) -> None:
            if isinstance(value, dict):
                for key in ("errorReports", "conflicts", "importConflicts"):
                    for report in value.get(key) or []:
                        if isinstance(report, dict):
                            message = report.get("message") or report.get("value")
                            if message and message not in messages:
                                messages.append(str(message))
                for child in value.values():
                    walk(child)
            elif isinstance(value, list):
                for item in value:
                    walk(item)

        walk(node)
        return messages

    def _raise_for_status(self, response: httpx.Response) -> None:
        if response.is_success:
            return
        body = self._json(response)
        messages = self._collect_error_messages(body)
        message = "; ".join(messages) or str(body.get("message") or response.reason_phrase or response.status_code)
        raise DHIS2Error(message, status_code=response.status_code)

    @staticmethod
    def _safe_int(value: Any) -> int:
        try:
            return int(value)
        except (TypeError, ValueError):
            return 0

    # ------------------------------------------------------------------
    # public API
    # ------------------------------------------------------------------
    def query(self, kind: str, filters: Sequence[str] = (), fields: str = DEFAULT_FIELDS) -> list[dict[str, Any]]:
        params: list[tuple[str, str]] = [("fields", fields), ("paging", "false")]
        params.extend(("filter", expression) for expression in filters)
        try:
            response = self._client.get(self._url(kind), params=params, auth=self._auth)
        except httpx.HTTPError as exc:
            raise DHIS2Error(f"query {kind} failed: {exc}") from exc
        self._raise_for_status(response)
        items = self._json(response).get(kind) or []
        return [item for item in items if isinstance(item, dict)]

    def create(self, kind: str, payload: dict[str, Any]) -> str:
        try:
            response = self._client.post(self._url(kind), json=payload, auth=self._auth)
        except httpx.HTTPError as exc:
            raise DHIS2Error(f"create {kind} failed: {exc}") from exc
        self._raise_for_status(response)

        body = self._json(response)
        if str(body.get("status") or "OK").upper() == "ERROR":
            messages = self._collect_error_messages(body)
            raise DHIS2Error("; ".join(messages) or str(body.get("message") or "create rejected"), status_code=response.status_code)
        uid = (body.get("response") or {}).get("uid") or payload.get("id")
        if not uid:
            raise DHIS2Error(f"create {kind} returned no identifier", status_code=response.status_code)
        return str(uid)

    def bulk_import(self, payload: dict[str, list[dict[str, Any]]]) -> BulkImportReport:
        try:
            response = self._client.post(self._url("metadata"), params=IMPORT_PARAMS, json=payload, auth=self._auth)
        except httpx.HTTPError as exc:
            raise DHIS2Error(f"metadata import failed: {exc}") from exc

        body = self._json(response)
        # 2.38+ wraps the import report in a web message
        report_body = body.get("response") if isinstance(body.get("response"), dict) and "stats" in body["response"] else body
        if not report_body.get("stats") and not response.is_success:
            self._raise_for_status(response)

        stats = report_body.get("stats") or {}
        failed_ids: list[str] = []
        for type_report in report_body.get("typeReports") or []:
            for object_report in type_report.get("objectReports") or []:
                if object_report.get("errorReports") and object_report.get("uid"):
                    failed_ids.append(str(object_report["uid"]))

        report = BulkImportReport(
            status=str(report_body.get("status") or ("OK" if response.is_success else "ERROR")),
            created=self._safe_int(stats.get("created")),
            updated=self._safe_int(stats.get("updated")),
            ignored=self._safe_int(stats.get("ignored")),
            errors=self._collect_error_messages(report_body),
            failed_ids=failed_ids,
        )
        logger.info(
            "Metadata import %s: %d created, %d updated, %d ignored",
            report.status,
            report.created,
            report.updated,
            report.ignored,
        )
        return report

    def close(self) -> None:  # pragma: no cover - best effort cleanup
        if self._owns_client:
            self._client.close()


__all__ = ["DHIS2MetadataClient", "DHIS2Error"]
