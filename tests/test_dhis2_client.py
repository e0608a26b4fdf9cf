from __future__ import annotations

import json

import httpx
import pytest

from dqa_setup.infrastructure import DHIS2Error, DHIS2MetadataClient


def _client(handler, base_url: str = "https://play.dhis2.example/dev") -> tuple[DHIS2MetadataClient, httpx.Client]:
    http_client = httpx.Client(transport=httpx.MockTransport(handler))
    return DHIS2MetadataClient(base_url, "admin", "district", http_client=http_client), http_client


def test_query_sends_fields_filters_and_basic_auth():
    captured: dict[str, object] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["path"] = request.url.path
        captured["fields"] = request.url.params["fields"]
        captured["paging"] = request.url.params["paging"]
        captured["filters"] = request.url.params.get_list("filter")
        captured["auth"] = request.headers["authorization"]
        return httpx.Response(200, json={"dataElements": [{"id": "abc12345678", "name": "REG - ANC 1st visit"}]})

    client, http_client = _client(handler)
    items = client.query("dataElements", filters=["code:eq:REG_0001", "name:ilike:ANC"])

    assert captured["path"] == "/dev/api/dataElements"
    assert captured["fields"] == "id,name,code,shortName,description"
    assert captured["paging"] == "false"
    assert captured["filters"] == ["code:eq:REG_0001", "name:ilike:ANC"]
    assert captured["auth"] == "Basic YWRtaW46ZGlzdHJpY3Q="
    assert items == [{"id": "abc12345678", "name": "REG - ANC 1st visit"}]

    http_client.close()


def test_base_url_already_pointing_at_api_is_kept():
    seen: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.url.path)
        return httpx.Response(200, json={"dataSets": []})

    client, http_client = _client(handler, "https://dhis.example.org/api/")
    assert client.query("dataSets") == []
    assert seen == ["/api/dataSets"]

    with pytest.raises(ValueError):
        DHIS2MetadataClient("dhis.example.org", "admin", "district", http_client=http_client)

    http_client.close()


def test_create_returns_server_uid():
    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content.decode("utf-8"))
        assert request.method == "POST"
        assert body["name"] == "Bo DQA - Register"
        return httpx.Response(
            201,
            json={"httpStatus": "Created", "status": "OK", "response": {"uid": "srvUid00001"}},
        )

    client, http_client = _client(handler)

    assert client.create("dataSets", {"id": "tplUid00001", "name": "Bo DQA - Register"}) == "srvUid00001"

    http_client.close()


def test_create_conflict_raises_with_error_report_message():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            409,
            json={
                "httpStatus": "Conflict",
                "status": "ERROR",
                "response": {
                    "errorReports": [
                        {
                            "message": "Property `code` with value `REG_0001` on object REG - ANC [uid] already exists",
                            "errorCode": "E5003",
                        }
                    ]
                },
            },
        )

    client, http_client = _client(handler)

    with pytest.raises(DHIS2Error) as excinfo:
        client.create("dataElements", {"name": "REG - ANC", "code": "REG_0001"})

    assert excinfo.value.status_code == 409
    assert "already exists" in str(excinfo.value)

    http_client.close()


def test_bulk_import_reads_wrapped_report():
    captured: dict[str, object] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["path"] = request.url.path
        captured["params"] = dict(request.url.params)
        captured["body"] = json.loads(request.content.decode("utf-8"))
        return httpx.Response(
            200,
            json={
                "httpStatus": "OK",
                "status": "OK",
                "response": {
                    "status": "OK",
                    "stats": {"created": 16, "updated": 0, "deleted": 0, "ignored": 0, "total": 16},
                    "typeReports": [],
                },
            },
        )

    client, http_client = _client(handler)
    report = client.bulk_import({"dataElements": [{"id": "a"}], "dataSets": []})

    assert captured["path"] == "/dev/api/metadata"
    params = captured["params"]
    assert isinstance(params, dict)
    assert params["importStrategy"] == "CREATE_AND_UPDATE"
    assert params["atomicMode"] == "NONE"
    assert params["identifier"] == "UID"
    assert captured["body"] == {"dataElements": [{"id": "a"}], "dataSets": []}
    assert report.ok
    assert report.created == 16
    assert report.errors == []

    http_client.close()


def test_bulk_import_conflict_lists_failed_objects():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            409,
            json={
                "httpStatus": "Conflict",
                "status": "ERROR",
                "response": {
                    "status": "ERROR",
                    "stats": {"created": 0, "updated": 0, "ignored": 2, "total": 2},
                    "typeReports": [
                        {
                            "klass": "org.hisp.dhis.dataelement.DataElement",
                            "objectReports": [
                                {
                                    "uid": "deUid000001",
                                    "errorReports": [{"message": "Missing required property `shortName`."}],
                                },
                                {"uid": "deUid000002", "errorReports": []},
                            ],
                        }
                    ],
                },
            },
        )

    client, http_client = _client(handler)
    report = client.bulk_import({"dataElements": [{"id": "deUid000001"}, {"id": "deUid000002"}]})

    assert report.status == "ERROR"
    assert not report.ok
    assert report.ignored == 2
    assert report.failed_ids == ["deUid000001"]
    assert report.errors == ["Missing required property `shortName`."]

    http_client.close()


def test_transport_failure_is_wrapped():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client, http_client = _client(handler)

    with pytest.raises(DHIS2Error):
        client.query("dataElements")

    http_client.close()
