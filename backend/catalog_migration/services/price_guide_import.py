"""
Price guide import coordination.

The price guide migration spans several entity types (categories,
additional details, options, upcharges, MSIs and images) that the catalog
API imports in dependency order within each batch. On top of the batch run
this coordinator tracks:

- per-entity progress and the current phase
- elapsed time and an extrapolated remaining time, refreshed by a timer
- import configuration chosen before the run
- a results summary with action items once the run completes
"""

import asyncio
import time
from typing import Callable

from catalog_migration.core.logging import get_logger
from catalog_migration.schemas.price_guide import (
    ActionItem,
    EntityProgress,
    EntitySummary,
    FormulaWarning,
    ImportPhase,
    PriceGuideBatchImportResult,
    PriceGuideImportConfig,
    PriceGuideImportConfigUpdate,
    PriceGuideImportProgress,
    PriceGuideImportResults,
    PriceGuideImportState,
    PriceGuideImportSummary,
    PriceGuideSourceCounts,
)
from catalog_migration.services.batch_import import (
    TERMINAL_STATUSES,
    BaseImportCoordinator,
    completed,
    percent_of,
)
from catalog_migration.services.migration_client import PriceGuideServiceClient
from catalog_migration.services.time_estimation import (
    calculate_remaining_time,
    estimate_import_time,
    format_elapsed_time,
)

logger = get_logger(__name__)

DEFAULT_BATCH_SIZE = 100
DEFAULT_TICK_INTERVAL = 1.0

# Later entries win when several entity types advance in one batch
PHASE_PRIORITY = (
    ("categories_imported", ImportPhase.CATEGORIES),
    ("options_imported", ImportPhase.OPTIONS),
    ("up_charges_imported", ImportPhase.UPCHARGES),
    ("msis_imported", ImportPhase.MSIS),
    ("images_imported", ImportPhase.IMAGES),
)


class ProgressTimer:
    """Calls on_tick with the elapsed seconds every interval until stopped."""

    def __init__(
        self,
        interval: float,
        on_tick: Callable[[float], None],
        clock: Callable[[], float] = time.monotonic,
    ):
        self.interval = interval
        self.on_tick = on_tick
        self.clock = clock
        self.started_at: float | None = None
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def elapsed(self) -> float:
        if self.started_at is None:
            return 0.0
        return self.clock() - self.started_at

    def start(self) -> None:
        self.started_at = self.clock()
        self._task = asyncio.get_running_loop().create_task(self._run())

    def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                self.on_tick(self.elapsed)
            except Exception:
                logger.exception("Progress timer tick failed")


def current_phase(result: PriceGuideBatchImportResult) -> ImportPhase:
    phase = ImportPhase.CATEGORIES
    for field, candidate in PHASE_PRIORITY:
        if (getattr(result, field) or 0) > 0:
            phase = candidate
    return phase


def advance(progress: EntityProgress, count: int | None) -> EntityProgress:
    return progress.model_copy(update={"done": progress.done + (count or 0)})


class PriceGuideImportCoordinator(BaseImportCoordinator[PriceGuideImportState]):
    """Drives a price guide migration run and builds its results summary."""

    def __init__(
        self,
        client: PriceGuideServiceClient,
        batch_size: int = DEFAULT_BATCH_SIZE,
        tick_interval: float = DEFAULT_TICK_INTERVAL,
    ):
        super().__init__()
        self.client = client
        self.batch_size = batch_size
        self.tick_interval = tick_interval
        self.config = PriceGuideImportConfig()
        self.progress = PriceGuideImportProgress()
        self.results: PriceGuideImportResults | None = None
        self._timer: ProgressTimer | None = None

    @property
    def state(self) -> PriceGuideImportState:
        return PriceGuideImportState(
            is_importing=self.is_importing,
            session=self.session,
            config=self.config,
            progress=self.progress,
            results=self.results,
            import_error=self.import_error,
            has_failed=self.has_failed,
            is_complete=self.is_complete,
        )

    def update_config(
        self, changes: PriceGuideImportConfigUpdate | dict
    ) -> PriceGuideImportState:
        """Merge the explicitly provided fields into the current config."""
        if isinstance(changes, dict):
            changes = PriceGuideImportConfigUpdate.model_validate(changes)
        update = changes.model_dump(exclude_unset=True)
        self.config = PriceGuideImportConfig.model_validate({**self.config.model_dump(), **update})
        logger.debug(f"Price guide import config updated: {sorted(update)}")
        return self._publish()

    async def start_import(self, source_counts: PriceGuideSourceCounts) -> PriceGuideImportState:
        """Run a full price guide import. Never raises for service failures."""
        generation = self._begin_run()
        if generation is None:
            return self.state

        estimate = estimate_import_time(source_counts, include_images=self.config.include_images)
        self.results = None
        self.progress = PriceGuideImportProgress(
            phase=ImportPhase.CATEGORIES,
            categories=EntityProgress(total=source_counts.categories),
            additional_details=EntityProgress(total=source_counts.additional_details or 0),
            options=EntityProgress(total=source_counts.options),
            up_charges=EntityProgress(total=source_counts.up_charges),
            msis=EntityProgress(total=source_counts.msis),
            images=EntityProgress(total=source_counts.images or 0),
            estimated_remaining=estimate.max_minutes * 60,
        )
        self._start_timer(generation)
        self._publish()

        logger.info(f"Starting price guide import, estimated {estimate.display_text}")

        try:
            await self._run(generation, source_counts)
        except Exception as e:
            if self._is_current(generation):
                self._stop_timer()
                logger.error("Price guide import failed", exc_info=True)
                self._record_failure(e)
            else:
                logger.info("Discarding failure from an abandoned price guide import")
        finally:
            if self._is_current(generation):
                self.is_importing = False
                self._publish()

        return self.state

    async def _run(self, generation: int, source_counts: PriceGuideSourceCounts) -> None:
        session = await self.client.create_session()
        if not self._is_current(generation):
            return
        self._track_session(session)
        self._publish()

        total_items = (
            source_counts.categories
            + source_counts.options
            + source_counts.up_charges
            + source_counts.msis
            + ((source_counts.images or 0) if self.config.include_images else 0)
        )

        if total_items == 0:
            self._stop_timer()
            logger.info(f"Price guide is empty, session {session.id} completed")
            self.session = completed(session)
            self.progress = self.progress.model_copy(
                update={"phase": ImportPhase.COMPLETE, "overall_progress": 100}
            )
            return

        totals = EntitySummary()
        warnings: list[FormulaWarning] = []
        skip = 0
        has_more = True

        while has_more:
            result = await self.client.import_batch(session.id, skip, self.batch_size)
            if not self._is_current(generation):
                return

            self.session = result.session
            warnings.extend(result.formula_warnings)
            totals = EntitySummary(
                imported=totals.imported + result.imported_count,
                skipped=totals.skipped + result.skipped_count,
                errors=totals.errors + result.error_count,
            )
            processed = totals.imported + totals.skipped + totals.errors

            progress = self.progress
            self.progress = progress.model_copy(
                update={
                    "phase": current_phase(result),
                    "overall_progress": percent_of(processed, total_items),
                    "categories": advance(progress.categories, result.categories_imported),
                    "additional_details": advance(
                        progress.additional_details, result.additional_details_imported
                    ),
                    "options": advance(progress.options, result.options_imported),
                    "up_charges": advance(progress.up_charges, result.up_charges_imported),
                    "msis": advance(progress.msis, result.msis_imported),
                    "images": advance(progress.images, result.images_imported),
                }
            )
            logger.debug(
                f"Price guide batch at offset {skip}: phase={self.progress.phase.value} "
                f"progress={self.progress.overall_progress}%"
            )
            self._publish()

            has_more = result.has_more
            skip += self.batch_size

        duration = self._timer.elapsed if self._timer else self.progress.elapsed_time
        self._stop_timer()

        if self.session.status not in TERMINAL_STATUSES:
            self.session = completed(self.session)
        self.progress = self.progress.model_copy(
            update={
                "phase": ImportPhase.COMPLETE,
                "overall_progress": 100,
                "elapsed_time": duration,
                "estimated_remaining": 0,
            }
        )
        self.results = self._build_results(duration, totals, warnings)

        logger.info(
            f"Price guide import finished in {format_elapsed_time(duration)}: "
            f"imported={totals.imported} skipped={totals.skipped} errors={totals.errors}"
        )

    def _build_results(
        self,
        duration: float,
        totals: EntitySummary,
        warnings: list[FormulaWarning],
    ) -> PriceGuideImportResults:
        # The service only reports skips and errors in aggregate
        progress = self.progress
        summary = PriceGuideImportSummary(
            categories=EntitySummary(imported=progress.categories.done),
            options=EntitySummary(imported=progress.options.done),
            up_charges=EntitySummary(imported=progress.up_charges.done),
            msis=EntitySummary(imported=progress.msis.done),
            images=EntitySummary(imported=progress.images.done),
        )

        action_items = []
        if warnings:
            action_items.append(
                ActionItem(
                    type="formula_issue",
                    message=f"{len(warnings)} MSIs have unresolved formula references",
                    count=len(warnings),
                )
            )

        return PriceGuideImportResults(
            success=True,
            duration=duration,
            summary=summary,
            totals=totals,
            action_items=action_items,
            formula_warnings=warnings,
        )

    def _start_timer(self, generation: int) -> None:
        self._stop_timer()

        def on_tick(elapsed: float) -> None:
            if not self._is_current(generation):
                return
            self.progress = self.progress.model_copy(
                update={
                    "elapsed_time": elapsed,
                    "estimated_remaining": calculate_remaining_time(
                        elapsed, self.progress.overall_progress
                    ),
                }
            )
            self._publish()

        self._timer = ProgressTimer(self.tick_interval, on_tick)
        self._timer.start()

    def _stop_timer(self) -> None:
        if self._timer is not None:
            self._timer.stop()

    def reset(self) -> PriceGuideImportState:
        """Stop the timer and restore defaults, including the config."""
        self._generation += 1
        self._stop_timer()
        self._timer = None
        self.is_importing = False
        self.config = PriceGuideImportConfig()
        self.progress = PriceGuideImportProgress()
        self.results = None
        self.session = None
        self.import_error = None
        self.has_failed = False
        return self._publish()
