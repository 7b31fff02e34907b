"""Tests for the catalog API migration clients."""

import asyncio
import json

import httpx
import pytest

from catalog_migration.schemas.migration import MigrationSessionStatus
from catalog_migration.schemas.price_guide import PriceGuideBatchImportResult
from catalog_migration.services.errors import ServiceRequestError, get_error_message
from catalog_migration.services.migration_client import (
    MigrationServiceClient,
    PriceGuideServiceClient,
)

BASE_URL = "http://catalog.test/api"

SESSION = {
    "id": "session-1",
    "status": "in_progress",
    "totalCount": 10,
    "importedCount": 2,
    "skippedCount": 1,
    "errorCount": 0,
    "createdAt": "2024-05-01T12:00:00Z",
}


def make_http_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(base_url=BASE_URL, transport=httpx.MockTransport(handler))


def call(client, method_name, *args, **kwargs):
    """Run one client call and close the client."""

    async def scenario():
        try:
            return await getattr(client, method_name)(*args, **kwargs)
        finally:
            await client.close()

    return asyncio.run(scenario())


class Recorder:
    """MockTransport handler that records requests and replays a fixed response."""

    def __init__(self, status_code=200, body=None):
        self.status_code = status_code
        self.body = body
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status_code, json=self.body)

    @property
    def last_json(self):
        return json.loads(self.requests[-1].content)


class TestMigrationServiceClient:
    """Test the per-collection endpoints."""

    def test_get_source_count(self):
        handler = Recorder(body={"data": {"count": 42}})
        client = MigrationServiceClient("offices", http_client=make_http_client(handler))

        assert call(client, "get_source_count") == 42
        assert handler.requests[0].url.path == "/api/migration/offices/source-count"

    def test_get_source_items(self):
        handler = Recorder(
            body={
                "data": [{"objectId": "o1", "name": "Denver"}],
                "meta": {"total": 1, "skip": 0, "limit": 25},
            }
        )
        client = MigrationServiceClient("offices", http_client=make_http_client(handler))

        page = call(client, "get_source_items", skip=0, limit=25)

        assert page.data[0].object_id == "o1"
        assert page.meta.total == 1
        assert handler.requests[0].url.params["limit"] == "25"

    def test_create_session(self):
        handler = Recorder(body={"data": SESSION})
        client = MigrationServiceClient("offices", http_client=make_http_client(handler))

        session = call(client, "create_session")

        assert handler.requests[0].method == "POST"
        assert handler.requests[0].url.path == "/api/migration/offices/sessions"
        assert session.id == "session-1"
        assert session.status == MigrationSessionStatus.IN_PROGRESS
        assert session.processed_count == 3

    def test_get_session(self):
        handler = Recorder(body={"data": SESSION})
        client = MigrationServiceClient("offices", http_client=make_http_client(handler))

        session = call(client, "get_session", "session-1")

        assert handler.requests[0].url.path == "/api/migration/offices/sessions/session-1"
        assert session.total_count == 10

    def test_import_batch_sends_offsets(self):
        handler = Recorder(
            body={
                "data": {
                    "importedCount": 2,
                    "skippedCount": 0,
                    "errorCount": 1,
                    "errors": [{"sourceId": "o3", "error": "Missing name"}],
                    "hasMore": True,
                    "session": SESSION,
                }
            }
        )
        client = MigrationServiceClient("offices", http_client=make_http_client(handler))

        result = call(client, "import_batch", "session-1", 50, 50)

        assert handler.requests[0].url.path == "/api/migration/offices/sessions/session-1/batch"
        assert handler.last_json == {"skip": 50, "limit": 50}
        assert result.has_more is True
        assert result.errors[0].source_id == "o3"

    def test_import_selected_items_sends_ids(self):
        handler = Recorder(
            body={"data": {"importedCount": 2, "hasMore": False, "session": SESSION}}
        )
        client = MigrationServiceClient("offices", http_client=make_http_client(handler))

        result = call(client, "import_selected_items", "session-1", ["a", "b"])

        assert handler.last_json == {"sourceIds": ["a", "b"]}
        assert result.imported_count == 2

    def test_get_imported_status(self):
        handler = Recorder(body={"data": {"importedSourceIds": ["a"]}})
        client = MigrationServiceClient("offices", http_client=make_http_client(handler))

        imported = call(client, "get_imported_status", ["a", "b"])

        assert imported == ["a"]
        assert handler.last_json == {"sourceIds": ["a", "b"]}

    def test_get_imported_status_empty_skips_request(self):
        handler = Recorder(body={"data": {"importedSourceIds": []}})
        client = MigrationServiceClient("offices", http_client=make_http_client(handler))

        assert call(client, "get_imported_status", []) == []
        assert handler.requests == []

    def test_source_items_with_status(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path.endswith("/source"):
                return httpx.Response(
                    200,
                    json={
                        "data": [
                            {"objectId": "o1", "name": "Denver"},
                            {"objectId": "o2", "name": "Boulder"},
                        ],
                        "meta": {"total": 2, "skip": 0, "limit": 100},
                    },
                )
            return httpx.Response(200, json={"data": {"importedSourceIds": ["o2"]}})

        client = MigrationServiceClient("offices", http_client=make_http_client(handler))

        page = call(client, "get_source_items_with_status")

        assert [(item.object_id, item.is_imported) for item in page.data] == [
            ("o1", False),
            ("o2", True),
        ]
        assert page.model_dump(by_alias=True)["data"][1]["isImported"] is True


class TestClientErrors:
    """Test how failures surface as ServiceRequestError."""

    def test_error_response_carries_message_and_data(self):
        handler = Recorder(status_code=400, body={"error": "Invalid collection"})
        client = MigrationServiceClient("widgets", http_client=make_http_client(handler))

        with pytest.raises(ServiceRequestError) as exc_info:
            call(client, "get_source_count")

        error = exc_info.value
        assert error.status_code == 400
        assert error.data == {"error": "Invalid collection"}
        assert get_error_message(error) == "Invalid collection"

    def test_error_response_without_body(self):
        def handler(request):
            return httpx.Response(502, text="Bad gateway")

        client = MigrationServiceClient("offices", http_client=make_http_client(handler))

        with pytest.raises(ServiceRequestError) as exc_info:
            call(client, "create_session")

        assert exc_info.value.status_code == 502
        assert "502" in exc_info.value.message

    def test_transport_failure(self):
        def handler(request):
            raise httpx.ConnectError("Connection refused", request=request)

        client = MigrationServiceClient("offices", http_client=make_http_client(handler))

        with pytest.raises(ServiceRequestError) as exc_info:
            call(client, "get_source_count")

        assert exc_info.value.status_code is None
        assert "Connection refused" in exc_info.value.message

    def test_missing_data_envelope(self):
        handler = Recorder(body={"count": 3})
        client = MigrationServiceClient("offices", http_client=make_http_client(handler))

        with pytest.raises(ServiceRequestError):
            call(client, "get_source_count")

    def test_invalid_payload(self):
        handler = Recorder(body={"data": {"status": "in_progress"}})
        client = MigrationServiceClient("offices", http_client=make_http_client(handler))

        with pytest.raises(ServiceRequestError, match="MigrationSession"):
            call(client, "create_session")


class TestPriceGuideServiceClient:
    """Test the price guide specific endpoints."""

    def test_source_counts(self):
        handler = Recorder(
            body={"data": {"categories": 4, "msis": 10, "options": 6, "upCharges": 3, "images": 2}}
        )
        client = PriceGuideServiceClient(http_client=make_http_client(handler))

        counts = call(client, "get_source_counts")

        assert handler.requests[0].url.path == "/api/migration/price-guide/source-counts"
        assert counts.up_charges == 3
        assert counts.additional_details is None
        assert counts.images == 2

    def test_connection_status(self):
        handler = Recorder(body={"data": {"connected": False, "message": "Timed out"}})
        client = PriceGuideServiceClient(http_client=make_http_client(handler))

        status = call(client, "check_source_connection")

        assert status.connected is False
        assert status.message == "Timed out"

    def test_office_mappings(self):
        handler = Recorder(
            body={
                "data": [
                    {"sourceId": "o1", "sourceName": "Denver", "targetId": "t1", "msiCount": 12},
                    {"sourceId": "o2", "sourceName": "Boulder"},
                ]
            }
        )
        client = PriceGuideServiceClient(http_client=make_http_client(handler))

        mappings = call(client, "get_office_mappings")

        assert [m.source_id for m in mappings] == ["o1", "o2"]
        assert mappings[0].msi_count == 12
        assert mappings[1].target_id is None

    def test_office_mappings_must_be_list(self):
        handler = Recorder(body={"data": {"sourceId": "o1"}})
        client = PriceGuideServiceClient(http_client=make_http_client(handler))

        with pytest.raises(ServiceRequestError):
            call(client, "get_office_mappings")

    def test_batch_result_includes_entity_counts(self):
        handler = Recorder(
            body={
                "data": {
                    "importedCount": 5,
                    "hasMore": False,
                    "session": SESSION,
                    "categoriesImported": 2,
                    "msisImported": 3,
                    "formulaWarnings": [{"msiSourceId": "m1", "unresolvedRefs": ["[qty]"]}],
                }
            }
        )
        client = PriceGuideServiceClient(http_client=make_http_client(handler))

        result = call(client, "import_batch", "session-1", 0, 100)

        assert isinstance(result, PriceGuideBatchImportResult)
        assert result.categories_imported == 2
        assert result.msis_imported == 3
        assert result.images_imported is None
        assert result.formula_warnings[0].unresolved_refs == ["[qty]"]
        assert handler.requests[0].url.path == (
            "/api/migration/price-guide/sessions/session-1/batch"
        )
