from enum import Enum
from typing import Literal

from pydantic import Field, field_validator

from catalog_migration.schemas.migration import (
    BatchImportResult,
    CamelModel,
    MigrationSession,
)


class PriceGuideSourceCounts(CamelModel):
    """Entity counts reported by the legacy price guide."""

    categories: int = Field(default=0, ge=0)
    msis: int = Field(default=0, ge=0)
    options: int = Field(default=0, ge=0)
    up_charges: int = Field(default=0, ge=0)
    additional_details: int | None = Field(default=None, ge=0)
    images: int | None = Field(default=None, ge=0)


class OfficeMapping(CamelModel):
    source_id: str
    source_name: str
    target_id: str | None = None
    target_name: str | None = None
    msi_count: int = 0


class SourceConnectionStatus(CamelModel):
    connected: bool
    message: str | None = None


class PriceTypeStrategy(str, Enum):
    MATERIALS = "materials"
    LABOR = "labor"
    COMBINED = "combined"
    CUSTOM = "custom"


class DuplicateHandling(str, Enum):
    SKIP = "skip"
    UPDATE = "update"
    CREATE = "create"


class PriceGuideImportConfig(CamelModel):
    price_type_strategy: PriceTypeStrategy = PriceTypeStrategy.COMBINED
    custom_price_type_id: str | None = None  # only used with the custom strategy
    auto_create_categories: bool = True
    duplicate_handling: DuplicateHandling = DuplicateHandling.SKIP
    include_images: bool = True


class PriceGuideImportConfigUpdate(CamelModel):
    """Partial config; only explicitly set fields are merged."""

    price_type_strategy: PriceTypeStrategy | None = None
    custom_price_type_id: str | None = None
    auto_create_categories: bool | None = None
    duplicate_handling: DuplicateHandling | None = None
    include_images: bool | None = None

    @field_validator(
        "price_type_strategy", "auto_create_categories", "duplicate_handling", "include_images"
    )
    @classmethod
    def reject_null(cls, v):
        """Omit a field to leave it unchanged; only custom_price_type_id can be cleared."""
        if v is None:
            raise ValueError("may be omitted but not null")
        return v


class FormulaWarning(CamelModel):
    msi_source_id: str
    unresolved_refs: list[str] = Field(default_factory=list)


class PriceGuideBatchImportResult(BatchImportResult):
    categories_imported: int = 0
    msis_imported: int = 0
    options_imported: int = 0
    up_charges_imported: int = 0
    additional_details_imported: int = 0
    images_imported: int | None = None
    formula_warnings: list[FormulaWarning] = Field(default_factory=list)


class ImportPhase(str, Enum):
    IDLE = "idle"
    CATEGORIES = "categories"
    ADDITIONAL_DETAILS = "additional_details"
    OPTIONS = "options"
    UPCHARGES = "upcharges"
    MSIS = "msis"
    IMAGES = "images"
    COMPLETE = "complete"


class EntityProgress(CamelModel):
    done: int = 0
    total: int = 0


class PriceGuideImportProgress(CamelModel):
    phase: ImportPhase = ImportPhase.IDLE
    overall_progress: int = 0  # 0-100
    categories: EntityProgress = Field(default_factory=EntityProgress)
    additional_details: EntityProgress = Field(default_factory=EntityProgress)
    options: EntityProgress = Field(default_factory=EntityProgress)
    up_charges: EntityProgress = Field(default_factory=EntityProgress)
    msis: EntityProgress = Field(default_factory=EntityProgress)
    images: EntityProgress = Field(default_factory=EntityProgress)
    elapsed_time: float = 0.0  # seconds
    estimated_remaining: float = 0.0  # seconds


class EntitySummary(CamelModel):
    imported: int = 0
    skipped: int = 0
    errors: int = 0


class PriceGuideImportSummary(CamelModel):
    categories: EntitySummary = Field(default_factory=EntitySummary)
    options: EntitySummary = Field(default_factory=EntitySummary)
    up_charges: EntitySummary = Field(default_factory=EntitySummary)
    msis: EntitySummary = Field(default_factory=EntitySummary)
    images: EntitySummary = Field(default_factory=EntitySummary)


class ActionItem(CamelModel):
    type: Literal["office_assignment", "formula_issue", "image_error"]
    message: str
    count: int


class PriceGuideImportResults(CamelModel):
    success: bool
    duration: float  # seconds
    summary: PriceGuideImportSummary
    totals: EntitySummary = Field(default_factory=EntitySummary)
    action_items: list[ActionItem] = Field(default_factory=list)
    formula_warnings: list[FormulaWarning] = Field(default_factory=list)


class TimeEstimate(CamelModel):
    min_minutes: int
    max_minutes: int
    display_text: str


class PriceGuideImportState(CamelModel):
    """Snapshot of a PriceGuideImportCoordinator, as seen by the admin UI."""

    is_importing: bool = False
    session: MigrationSession | None = None
    config: PriceGuideImportConfig = Field(default_factory=PriceGuideImportConfig)
    progress: PriceGuideImportProgress = Field(default_factory=PriceGuideImportProgress)
    results: PriceGuideImportResults | None = None
    import_error: str | None = None
    has_failed: bool = False
    is_complete: bool = False
