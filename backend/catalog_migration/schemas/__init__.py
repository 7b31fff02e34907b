from catalog_migration.schemas.migration import (
    BatchImportResult,
    BatchImportState,
    ImportErrorItem,
    MigrationSession,
    MigrationSessionStatus,
    SourceItem,
    SourceItemsResponse,
    SourceItemWithStatus,
)
from catalog_migration.schemas.price_guide import (
    ImportPhase,
    PriceGuideBatchImportResult,
    PriceGuideImportConfig,
    PriceGuideImportProgress,
    PriceGuideImportResults,
    PriceGuideImportState,
    PriceGuideSourceCounts,
    TimeEstimate,
)

__all__ = [
    "MigrationSession",
    "MigrationSessionStatus",
    "ImportErrorItem",
    "BatchImportResult",
    "BatchImportState",
    "SourceItem",
    "SourceItemWithStatus",
    "SourceItemsResponse",
    "PriceGuideSourceCounts",
    "PriceGuideImportConfig",
    "PriceGuideBatchImportResult",
    "PriceGuideImportProgress",
    "PriceGuideImportResults",
    "PriceGuideImportState",
    "ImportPhase",
    "TimeEstimate",
]
