"""
Request dependencies resolving the clients and coordinators created at startup.
"""

from fastapi import HTTPException, Request

from catalog_migration.services.batch_import import BatchImportCoordinator
from catalog_migration.services.migration_client import (
    SUPPORTED_COLLECTIONS,
    MigrationServiceClient,
    PriceGuideServiceClient,
)
from catalog_migration.services.price_guide_import import PriceGuideImportCoordinator


def _check_collection(collection: str) -> None:
    if collection not in SUPPORTED_COLLECTIONS:
        raise HTTPException(
            status_code=400,
            detail={
                "error": "Invalid collection",
                "message": f"Collection must be one of: {', '.join(SUPPORTED_COLLECTIONS)}",
            },
        )


def get_migration_client(collection: str, request: Request) -> MigrationServiceClient:
    _check_collection(collection)
    return request.app.state.migration_clients[collection]


def get_batch_coordinator(collection: str, request: Request) -> BatchImportCoordinator:
    _check_collection(collection)
    return request.app.state.batch_coordinators[collection]


def get_price_guide_client(request: Request) -> PriceGuideServiceClient:
    return request.app.state.price_guide_client


def get_price_guide_coordinator(request: Request) -> PriceGuideImportCoordinator:
    return request.app.state.price_guide_coordinator
