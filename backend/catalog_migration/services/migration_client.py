"""
Client for the catalog API's migration endpoints.

The catalog API owns migration sessions, reads the legacy source system and
writes the new catalog. This module only wraps its HTTP surface:

- source counts and paged source items
- session creation and lookup
- batch and selective imports
- imported-status checks
"""

from typing import Any, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from catalog_migration.core.config import get_settings
from catalog_migration.core.logging import get_logger
from catalog_migration.schemas.migration import (
    BatchImportResult,
    MigrationSession,
    SourceItemsResponse,
    SourceItemsWithStatusResponse,
    SourceItemWithStatus,
)
from catalog_migration.schemas.price_guide import (
    OfficeMapping,
    PriceGuideBatchImportResult,
    PriceGuideSourceCounts,
    SourceConnectionStatus,
)
from catalog_migration.services.errors import ServiceRequestError, response_json

settings = get_settings()
logger = get_logger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

SUPPORTED_COLLECTIONS = ("offices",)
PRICE_GUIDE_COLLECTION = "price-guide"


class MigrationServiceClient:
    """Client for one migration collection of the catalog API."""

    batch_result_model: type[BatchImportResult] = BatchImportResult

    def __init__(self, collection: str, http_client: httpx.AsyncClient | None = None):
        self.collection = collection
        if http_client is None:
            headers = {
                "Accept": "application/json",
                "User-Agent": "CatalogMigrationAdmin/1.0",
            }
            if settings.CATALOG_API_TOKEN:
                headers["Authorization"] = f"Bearer {settings.CATALOG_API_TOKEN}"
            http_client = httpx.AsyncClient(
                base_url=settings.CATALOG_API_BASE_URL,
                timeout=settings.CATALOG_API_TIMEOUT,
                headers=headers,
            )
        self.client = http_client

    async def close(self):
        await self.client.aclose()

    @property
    def prefix(self) -> str:
        return f"/migration/{self.collection}"

    async def get_source_count(self) -> int:
        """Get count of source items in the legacy database."""
        body = await self._request("GET", "/source-count")
        try:
            return int(body["data"]["count"])
        except (KeyError, TypeError, ValueError) as e:
            raise ServiceRequestError(f"Malformed source count response: {body!r}") from e

    async def get_source_items(self, skip: int = 0, limit: int = 100) -> SourceItemsResponse:
        """Get a page of source items for preview."""
        body = await self._request("GET", "/source", params={"skip": skip, "limit": limit})
        return self._parse(SourceItemsResponse, body)

    async def get_source_items_with_status(
        self, skip: int = 0, limit: int = 100
    ) -> SourceItemsWithStatusResponse:
        """Get a page of source items, each flagged with whether it was already imported."""
        page = await self.get_source_items(skip=skip, limit=limit)
        imported = set(
            await self.get_imported_status([item.object_id for item in page.data])
        )
        return SourceItemsWithStatusResponse(
            data=[
                SourceItemWithStatus(**item.model_dump(), is_imported=item.object_id in imported)
                for item in page.data
            ],
            meta=page.meta,
        )

    async def create_session(self) -> MigrationSession:
        """Create a new migration session."""
        body = await self._request("POST", "/sessions")
        return self._parse(MigrationSession, body["data"])

    async def get_session(self, session_id: str) -> MigrationSession:
        """Get migration session status."""
        body = await self._request("GET", f"/sessions/{session_id}")
        return self._parse(MigrationSession, body["data"])

    async def import_batch(self, session_id: str, skip: int, limit: int) -> BatchImportResult:
        """Import the next page of source items."""
        body = await self._request(
            "POST",
            f"/sessions/{session_id}/batch",
            json={"skip": skip, "limit": limit},
        )
        return self._parse(self.batch_result_model, body["data"])

    async def import_selected_items(
        self, session_id: str, source_ids: list[str]
    ) -> BatchImportResult:
        """Import exactly the given source items in one call."""
        body = await self._request(
            "POST",
            f"/sessions/{session_id}/batch",
            json={"sourceIds": list(source_ids)},
        )
        return self._parse(self.batch_result_model, body["data"])

    async def get_imported_status(self, source_ids: list[str]) -> list[str]:
        """Return the subset of source_ids that has already been imported."""
        if not source_ids:
            return []

        body = await self._request(
            "POST", "/imported-status", json={"sourceIds": list(source_ids)}
        )
        try:
            return list(body["data"]["importedSourceIds"])
        except (KeyError, TypeError) as e:
            raise ServiceRequestError(f"Malformed imported-status response: {body!r}") from e

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Send a request and return the decoded JSON envelope."""
        url = f"{self.prefix}{path}"
        logger.debug(f"{method} {url}", extra={"extra_fields": {"params": params}})

        try:
            response = await self.client.request(method, url, params=params, json=json)
        except httpx.HTTPError as e:
            logger.warning(f"Catalog API unreachable: {method} {url}: {e}")
            raise ServiceRequestError(f"Could not reach the catalog API: {e}") from e

        if response.is_error:
            data = response_json(response)
            message = f"{method} {url} failed with status {response.status_code}"
            if data:
                detail = data.get("message") or data.get("error")
                if isinstance(detail, str):
                    message = detail
            logger.warning(
                f"Catalog API rejected {method} {url}",
                extra={"extra_fields": {"status_code": response.status_code, "body": data}},
            )
            raise ServiceRequestError(message, status_code=response.status_code, data=data)

        body = response_json(response)
        if body is None or "data" not in body:
            raise ServiceRequestError(
                f"Unexpected response from {method} {url}",
                status_code=response.status_code,
            )
        return dict(body)

    @staticmethod
    def _parse(model: type[ModelT], payload: Any) -> ModelT:
        try:
            return model.model_validate(payload)
        except ValidationError as e:
            raise ServiceRequestError(
                f"Invalid {model.__name__} payload from the catalog API: "
                f"{e.error_count()} validation error(s)"
            ) from e


class PriceGuideServiceClient(MigrationServiceClient):
    """Client for the price guide migration, which spans several entity types."""

    batch_result_model = PriceGuideBatchImportResult

    def __init__(self, http_client: httpx.AsyncClient | None = None):
        super().__init__(PRICE_GUIDE_COLLECTION, http_client=http_client)

    async def check_source_connection(self) -> SourceConnectionStatus:
        """Check whether the catalog API can reach the legacy database."""
        body = await self._request("GET", "/connection-status")
        return self._parse(SourceConnectionStatus, body["data"])

    async def get_source_counts(self) -> PriceGuideSourceCounts:
        """Get per-entity counts from the legacy price guide."""
        body = await self._request("GET", "/source-counts")
        return self._parse(PriceGuideSourceCounts, body["data"])

    async def get_office_mappings(self) -> list[OfficeMapping]:
        """Get legacy office to catalog office mappings."""
        body = await self._request("GET", "/office-mappings")
        data = body["data"]
        if not isinstance(data, list):
            raise ServiceRequestError(f"Malformed office mappings response: {body!r}")
        return [self._parse(OfficeMapping, item) for item in data]
