from catalog_migration.services.batch_import import BatchImportCoordinator
from catalog_migration.services.errors import ServiceRequestError, get_error_message
from catalog_migration.services.migration_client import (
    MigrationServiceClient,
    PriceGuideServiceClient,
)
from catalog_migration.services.price_guide_import import (
    PriceGuideImportCoordinator,
    ProgressTimer,
)
from catalog_migration.services.time_estimation import (
    calculate_remaining_time,
    estimate_import_time,
    format_elapsed_time,
    format_time_range,
)

__all__ = [
    # Catalog API clients
    "MigrationServiceClient",
    "PriceGuideServiceClient",
    # Errors
    "ServiceRequestError",
    "get_error_message",
    # Import coordination
    "BatchImportCoordinator",
    "PriceGuideImportCoordinator",
    "ProgressTimer",
    # Time estimation
    "estimate_import_time",
    "format_time_range",
    "format_elapsed_time",
    "calculate_remaining_time",
]
