"""
Migration endpoints for single-collection imports (offices).

Imports run in the background; the admin UI polls ``GET /import`` for the
coordinator's state.
"""

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query

from catalog_migration.api.deps import get_batch_coordinator, get_migration_client
from catalog_migration.schemas.migration import (
    BatchImportState,
    ImportedStatusResponse,
    ImportStarted,
    SelectedItemsRequest,
    SourceCount,
    SourceItemsWithStatusResponse,
)
from catalog_migration.services.batch_import import BatchImportCoordinator
from catalog_migration.services.migration_client import MigrationServiceClient

router = APIRouter()


def _ensure_idle(coordinator: BatchImportCoordinator) -> None:
    if coordinator.is_importing:
        raise HTTPException(status_code=409, detail="An import is already in progress")


@router.get("/{collection}/source-count", response_model=SourceCount)
async def get_source_count(client: MigrationServiceClient = Depends(get_migration_client)):
    """Count of items in the legacy source."""
    return SourceCount(count=await client.get_source_count())


@router.get("/{collection}/source", response_model=SourceItemsWithStatusResponse)
async def list_source_items(
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    client: MigrationServiceClient = Depends(get_migration_client),
):
    """Page through source items, flagging those already imported."""
    return await client.get_source_items_with_status(skip=skip, limit=limit)


@router.post("/{collection}/imported-status", response_model=ImportedStatusResponse)
async def get_imported_status(
    request: SelectedItemsRequest,
    client: MigrationServiceClient = Depends(get_migration_client),
):
    imported = await client.get_imported_status(request.source_ids)
    return ImportedStatusResponse(imported_source_ids=imported)


@router.get("/{collection}/import", response_model=BatchImportState)
async def get_import_state(
    coordinator: BatchImportCoordinator = Depends(get_batch_coordinator),
):
    """Current state of the collection's import run."""
    return coordinator.state


@router.post("/{collection}/import", response_model=ImportStarted, status_code=202)
async def start_import(
    background_tasks: BackgroundTasks,
    coordinator: BatchImportCoordinator = Depends(get_batch_coordinator),
):
    """Import every source item in batches."""
    _ensure_idle(coordinator)
    background_tasks.add_task(coordinator.start_import)
    return ImportStarted(message=f"Import of {coordinator.client.collection} started.")


@router.post("/{collection}/import/selected", response_model=ImportStarted, status_code=202)
async def start_selective_import(
    request: SelectedItemsRequest,
    background_tasks: BackgroundTasks,
    coordinator: BatchImportCoordinator = Depends(get_batch_coordinator),
):
    """Import only the selected source items."""
    if not request.source_ids:
        raise HTTPException(status_code=400, detail="No source items selected")

    _ensure_idle(coordinator)
    background_tasks.add_task(coordinator.start_selective_import, request.source_ids)
    return ImportStarted(
        message=f"Import of {len(request.source_ids)} selected {coordinator.client.collection} started."
    )


@router.post("/{collection}/import/reset", response_model=BatchImportState)
async def reset_import(
    coordinator: BatchImportCoordinator = Depends(get_batch_coordinator),
):
    """Discard the import state so a fresh run can start."""
    return coordinator.reset()
