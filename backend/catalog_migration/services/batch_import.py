"""
Batch import coordination for legacy data migrations.

A coordinator drives one migration run at a time against the catalog API:

1. Create a migration session
2. Request batches (or one selective import) until the source is exhausted
3. Accumulate counts and per-item errors, recompute progress
4. Finish in a completed or failed state

State is owned by the coordinator and exposed as immutable snapshots, either
through the ``state`` property or pushed to subscribers after every change.
"""

import math
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Callable, Generic, TypeVar

from pydantic import BaseModel

from catalog_migration.core.logging import (
    get_context_logger,
    get_logger,
    migration_session_var,
)
from catalog_migration.schemas.migration import (
    BatchImportState,
    ImportErrorItem,
    MigrationSession,
    MigrationSessionStatus,
)
from catalog_migration.services.errors import get_error_message
from catalog_migration.services.migration_client import MigrationServiceClient

logger = get_logger(__name__)

DEFAULT_BATCH_SIZE = 50

StateT = TypeVar("StateT", bound=BaseModel)
Listener = Callable[[StateT], None]

TERMINAL_STATUSES = (MigrationSessionStatus.COMPLETED, MigrationSessionStatus.FAILED)


def percent_of(done: int, total: int) -> int:
    """Whole percentage of done/total, rounding halves up, clamped to 0-100."""
    if total <= 0:
        return 0
    return max(0, min(100, math.floor(done / total * 100 + 0.5)))


def completed(session: MigrationSession, **overrides) -> MigrationSession:
    """Copy of session marked completed, stamping completed_at if the service didn't."""
    update = {
        "status": MigrationSessionStatus.COMPLETED,
        "completed_at": session.completed_at or datetime.now(timezone.utc),
    }
    update.update(overrides)
    return session.model_copy(update=update)


class BaseImportCoordinator(ABC, Generic[StateT]):
    """
    Run bookkeeping shared by the import coordinators.

    Every run takes a generation number. ``reset()`` and each new run bump
    the generation, so a response that arrives for an abandoned run is
    recognised as stale and dropped instead of overwriting newer state.
    """

    def __init__(self):
        self._listeners: list[Listener] = []
        self._generation = 0
        self.is_importing = False
        self.session: MigrationSession | None = None
        self.import_error: str | None = None
        self.has_failed = False

    @property
    def is_complete(self) -> bool:
        return self.session is not None and self.session.status == MigrationSessionStatus.COMPLETED

    @property
    @abstractmethod
    def state(self) -> StateT:
        """Immutable snapshot of the coordinator."""

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a callback for state snapshots; returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _publish(self) -> StateT:
        snapshot = self.state
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("Import state listener failed")
        return snapshot

    def _begin_run(self) -> int | None:
        """Enter the importing state; returns the run's generation, or None if busy."""
        if self.is_importing:
            logger.warning(
                f"{type(self).__name__}: import already in progress, ignoring start request"
            )
            return None

        self._generation += 1
        self.is_importing = True
        self.session = None
        self.import_error = None
        self.has_failed = False
        return self._generation

    def _is_current(self, generation: int) -> bool:
        return generation == self._generation

    def _record_failure(self, error: Exception, total_count: int = 0) -> None:
        self.import_error = get_error_message(error)
        self.has_failed = True
        if self.session is not None:
            self.session = self.session.model_copy(
                update={"status": MigrationSessionStatus.FAILED}
            )
        else:
            self.session = MigrationSession.failed_placeholder(total_count=total_count)

    def _track_session(self, session: MigrationSession) -> None:
        self.session = session
        migration_session_var.set(session.id or None)


class BatchImportCoordinator(BaseImportCoordinator[BatchImportState]):
    """
    Imports one collection (e.g. offices) from the legacy source.

    Supports two modes:
    - Bulk import: all source items, in fixed-size batches
    - Selective import: only the given source ids, in a single call
    """

    def __init__(self, client: MigrationServiceClient, batch_size: int = DEFAULT_BATCH_SIZE):
        super().__init__()
        self.client = client
        self.batch_size = batch_size
        self.progress = 0
        self.log = get_context_logger(__name__, collection=client.collection)
        self.errors: list[ImportErrorItem] = []

    @property
    def state(self) -> BatchImportState:
        session = self.session
        return BatchImportState(
            is_importing=self.is_importing,
            progress=self.progress,
            session=session,
            imported_count=session.imported_count if session else 0,
            skipped_count=session.skipped_count if session else 0,
            error_count=session.error_count if session else 0,
            total_count=session.total_count if session else 0,
            errors=list(self.errors),
            import_error=self.import_error,
            has_failed=self.has_failed,
            is_complete=self.is_complete,
        )

    def _begin_run(self) -> int | None:
        generation = super()._begin_run()
        if generation is not None:
            self.progress = 0
            self.errors = []
            self._publish()
        return generation

    async def start_import(self) -> BatchImportState:
        """Import every source item in batches. Never raises for service failures."""
        generation = self._begin_run()
        if generation is None:
            return self.state

        try:
            await self._run_bulk(generation)
        except Exception as e:
            if self._is_current(generation):
                self.log.error(f"Import of {self.client.collection} failed", exc_info=True)
                self._record_failure(e)
            else:
                self.log.info(f"Discarding failure from an abandoned {self.client.collection} import")
        finally:
            if self._is_current(generation):
                self.is_importing = False
                self._publish()

        return self.state

    async def _run_bulk(self, generation: int) -> None:
        session = await self.client.create_session()
        if not self._is_current(generation):
            return
        self._track_session(session)
        self._publish()

        if session.total_count == 0:
            self.log.info(f"No {self.client.collection} to import, session {session.id} completed")
            self.session = completed(session)
            return

        self.log.info(
            f"Importing {session.total_count} {self.client.collection} "
            f"in batches of {self.batch_size}"
        )

        skip = 0
        has_more = True
        while has_more:
            result = await self.client.import_batch(session.id, skip, self.batch_size)
            if not self._is_current(generation):
                return

            self.session = result.session
            if result.errors:
                self.errors = [*self.errors, *result.errors]

            # Progress comes from the session's cumulative counts
            self.progress = percent_of(
                result.session.processed_count, result.session.total_count
            )
            self.log.debug(
                f"Batch at offset {skip}: imported={result.imported_count} "
                f"skipped={result.skipped_count} errors={result.error_count} "
                f"progress={self.progress}%"
            )
            self._publish()

            has_more = result.has_more
            skip += self.batch_size

        if self.session.status not in TERMINAL_STATUSES:
            self.session = completed(self.session)

        self.log.info(
            f"Import of {self.client.collection} finished: "
            f"imported={self.session.imported_count} skipped={self.session.skipped_count} "
            f"errors={self.session.error_count}"
        )

    async def start_selective_import(self, source_ids: list[str]) -> BatchImportState:
        """
        Import only the given source items in one call.

        An empty selection is a no-op: no session is created. The session's
        total_count is the selection size, not the size of the source collection.
        """
        if not source_ids:
            return self.state

        generation = self._begin_run()
        if generation is None:
            return self.state

        try:
            await self._run_selective(generation, list(source_ids))
        except Exception as e:
            if self._is_current(generation):
                self.log.error(
                    f"Selective import of {len(source_ids)} {self.client.collection} failed",
                    exc_info=True,
                )
                self._record_failure(e, total_count=len(source_ids))
            else:
                self.log.info(f"Discarding failure from an abandoned {self.client.collection} import")
        finally:
            if self._is_current(generation):
                self.is_importing = False
                self._publish()

        return self.state

    async def _run_selective(self, generation: int, source_ids: list[str]) -> None:
        session = await self.client.create_session()
        if not self._is_current(generation):
            return
        self._track_session(session.model_copy(update={"total_count": len(source_ids)}))
        self._publish()

        result = await self.client.import_selected_items(session.id, source_ids)
        if not self._is_current(generation):
            return

        self.session = completed(result.session, total_count=len(source_ids))
        self.progress = 100
        if result.errors:
            self.errors = list(result.errors)

        self.log.info(
            f"Selective import of {self.client.collection} finished: "
            f"imported={result.imported_count} skipped={result.skipped_count} "
            f"errors={result.error_count}"
        )

    def reset(self) -> BatchImportState:
        """Discard all local state. An in-flight run's late results are ignored."""
        self._generation += 1
        self.is_importing = False
        self.progress = 0
        self.session = None
        self.errors = []
        self.import_error = None
        self.has_failed = False
        return self._publish()
