from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base for models exchanged with the catalog API and the admin UI (camelCase JSON)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class MigrationSessionStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


class ImportErrorItem(CamelModel):
    source_id: str
    error: str


class MigrationSession(CamelModel):
    id: str
    status: MigrationSessionStatus = MigrationSessionStatus.PENDING
    source_company_id: str | None = None
    total_count: int = Field(default=0, ge=0)
    imported_count: int = Field(default=0, ge=0)
    skipped_count: int = Field(default=0, ge=0)
    error_count: int = Field(default=0, ge=0)
    errors: list[ImportErrorItem] | None = None
    created_at: datetime | None = None
    completed_at: datetime | None = None

    @property
    def processed_count(self) -> int:
        return self.imported_count + self.skipped_count + self.error_count

    @classmethod
    def failed_placeholder(cls, total_count: int = 0) -> "MigrationSession":
        """Stand-in for a run that failed before the service assigned a session."""
        return cls(
            id="",
            status=MigrationSessionStatus.FAILED,
            total_count=total_count,
            created_at=datetime.now(timezone.utc),
        )


class BatchImportResult(CamelModel):
    imported_count: int = 0
    skipped_count: int = 0
    error_count: int = 0
    errors: list[ImportErrorItem] = Field(default_factory=list)
    has_more: bool = False
    session: MigrationSession


class SourceItem(CamelModel):
    object_id: str
    name: str


class SourceItemWithStatus(SourceItem):
    is_imported: bool = False


class SourceItemsMeta(CamelModel):
    total: int
    skip: int
    limit: int


class SourceItemsResponse(CamelModel):
    data: list[SourceItem]
    meta: SourceItemsMeta


class SourceItemsWithStatusResponse(CamelModel):
    data: list[SourceItemWithStatus]
    meta: SourceItemsMeta


class SourceCount(CamelModel):
    count: int


class SelectedItemsRequest(CamelModel):
    source_ids: list[str] = Field(default_factory=list)


class ImportedStatusResponse(CamelModel):
    imported_source_ids: list[str]


class BatchImportState(CamelModel):
    """Snapshot of a BatchImportCoordinator, as seen by the admin UI."""

    is_importing: bool = False
    progress: int = 0  # 0-100
    session: MigrationSession | None = None
    imported_count: int = 0
    skipped_count: int = 0
    error_count: int = 0
    total_count: int = 0
    errors: list[ImportErrorItem] = Field(default_factory=list)
    import_error: str | None = None
    has_failed: bool = False
    is_complete: bool = False


class ImportStarted(CamelModel):
    """Acknowledgement for a run scheduled in the background; poll the import state."""

    status: str = "processing"
    message: str | None = None
