"""
Price guide migration endpoints.

Covers the pre-import checks (connection, counts, office mappings, time
estimate), the import configuration and the background import run.
"""

from fastapi import APIRouter, BackgroundTasks, Body, Depends, HTTPException, Query

from catalog_migration.api.deps import get_price_guide_client, get_price_guide_coordinator
from catalog_migration.schemas.migration import (
    ImportedStatusResponse,
    ImportStarted,
    SelectedItemsRequest,
    SourceItemsWithStatusResponse,
)
from catalog_migration.schemas.price_guide import (
    OfficeMapping,
    PriceGuideImportConfigUpdate,
    PriceGuideImportState,
    PriceGuideSourceCounts,
    SourceConnectionStatus,
    TimeEstimate,
)
from catalog_migration.services.migration_client import PriceGuideServiceClient
from catalog_migration.services.price_guide_import import PriceGuideImportCoordinator
from catalog_migration.services.time_estimation import estimate_import_time

router = APIRouter()


@router.get("/connection-status", response_model=SourceConnectionStatus)
async def get_connection_status(client: PriceGuideServiceClient = Depends(get_price_guide_client)):
    """Whether the catalog API can reach the legacy price guide."""
    return await client.check_source_connection()


@router.get("/source-counts", response_model=PriceGuideSourceCounts)
async def get_source_counts(client: PriceGuideServiceClient = Depends(get_price_guide_client)):
    return await client.get_source_counts()


@router.get("/office-mappings", response_model=list[OfficeMapping])
async def get_office_mappings(client: PriceGuideServiceClient = Depends(get_price_guide_client)):
    return await client.get_office_mappings()


@router.get("/source", response_model=SourceItemsWithStatusResponse)
async def list_source_items(
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    client: PriceGuideServiceClient = Depends(get_price_guide_client),
):
    return await client.get_source_items_with_status(skip=skip, limit=limit)


@router.post("/imported-status", response_model=ImportedStatusResponse)
async def get_imported_status(
    request: SelectedItemsRequest,
    client: PriceGuideServiceClient = Depends(get_price_guide_client),
):
    imported = await client.get_imported_status(request.source_ids)
    return ImportedStatusResponse(imported_source_ids=imported)


@router.get("/estimate", response_model=TimeEstimate)
async def get_time_estimate(
    include_images: bool = Query(True, alias="includeImages"),
    client: PriceGuideServiceClient = Depends(get_price_guide_client),
):
    """Estimated duration of a full import, based on the current source counts."""
    counts = await client.get_source_counts()
    return estimate_import_time(counts, include_images=include_images)


@router.get("/import", response_model=PriceGuideImportState)
async def get_import_state(
    coordinator: PriceGuideImportCoordinator = Depends(get_price_guide_coordinator),
):
    return coordinator.state


@router.patch("/import/config", response_model=PriceGuideImportState)
async def update_import_config(
    changes: PriceGuideImportConfigUpdate,
    coordinator: PriceGuideImportCoordinator = Depends(get_price_guide_coordinator),
):
    """Merge config changes; only the fields present in the body are applied."""
    if coordinator.is_importing:
        raise HTTPException(status_code=409, detail="Cannot change config during an import")
    return coordinator.update_config(changes)


@router.post("/import", response_model=ImportStarted, status_code=202)
async def start_import(
    background_tasks: BackgroundTasks,
    source_counts: PriceGuideSourceCounts | None = Body(None),
    client: PriceGuideServiceClient = Depends(get_price_guide_client),
    coordinator: PriceGuideImportCoordinator = Depends(get_price_guide_coordinator),
):
    """
    Start a price guide import in the background.

    Source counts drive the progress totals. When the body omits them they
    are fetched from the catalog API first.
    """
    if coordinator.is_importing:
        raise HTTPException(status_code=409, detail="An import is already in progress")

    if source_counts is None:
        source_counts = await client.get_source_counts()

    background_tasks.add_task(coordinator.start_import, source_counts)
    return ImportStarted(message="Price guide import started.")


@router.post("/import/reset", response_model=PriceGuideImportState)
async def reset_import(
    coordinator: PriceGuideImportCoordinator = Depends(get_price_guide_coordinator),
):
    return coordinator.reset()
