"""Tests for the price guide import coordinator and its progress timer."""

import asyncio
import itertools

import pytest
from pydantic import ValidationError

from catalog_migration.schemas.migration import MigrationSessionStatus
from catalog_migration.schemas.price_guide import (
    DuplicateHandling,
    ImportPhase,
    PriceGuideImportConfigUpdate,
    PriceTypeStrategy,
)
from catalog_migration.services.errors import ServiceRequestError
from catalog_migration.services.price_guide_import import ProgressTimer
from factories import make_counts, make_price_guide_batch, make_session


def run(coro):
    return asyncio.run(coro)


def distinct_phases(snapshots):
    phases = []
    for snapshot in snapshots:
        phase = snapshot.progress.phase
        if not phases or phases[-1] != phase:
            phases.append(phase)
    return phases


class TestProgressTimer:
    """Test the repeating elapsed-time timer."""

    def test_ticks_with_elapsed_seconds(self):
        clock = itertools.count(100, 5)
        ticks = []

        async def scenario():
            timer = ProgressTimer(0.001, ticks.append, clock=lambda: next(clock))
            timer.start()
            await asyncio.sleep(0.05)
            timer.stop()
            return timer

        timer = run(scenario())

        assert ticks[:2] == [5, 10]
        assert timer.running is False

    def test_elapsed_is_zero_before_start(self):
        timer = ProgressTimer(1.0, lambda elapsed: None)
        assert timer.elapsed == 0.0
        assert timer.running is False


class TestImportConfig:
    """Test config merging."""

    def test_default_config(self, price_guide_coordinator):
        config = price_guide_coordinator.config

        assert config.price_type_strategy == PriceTypeStrategy.COMBINED
        assert config.custom_price_type_id is None
        assert config.auto_create_categories is True
        assert config.duplicate_handling == DuplicateHandling.SKIP
        assert config.include_images is True

    def test_partial_update_keeps_other_fields(self, price_guide_coordinator):
        state = price_guide_coordinator.update_config({"includeImages": False})

        assert state.config.include_images is False
        assert state.config.price_type_strategy == PriceTypeStrategy.COMBINED
        assert state.config.duplicate_handling == DuplicateHandling.SKIP

    def test_update_from_model(self, price_guide_coordinator):
        price_guide_coordinator.update_config(
            PriceGuideImportConfigUpdate(
                price_type_strategy=PriceTypeStrategy.CUSTOM,
                custom_price_type_id="pt-1",
            )
        )

        config = price_guide_coordinator.config
        assert config.price_type_strategy == PriceTypeStrategy.CUSTOM
        assert config.custom_price_type_id == "pt-1"
        assert config.include_images is True

    def test_null_update_leaves_config_valid(self, price_guide_coordinator):
        with pytest.raises(ValidationError):
            price_guide_coordinator.update_config({"include_images": None})

        assert price_guide_coordinator.config.include_images is True

    def test_update_does_not_touch_run_state(self, price_guide_coordinator):
        before = price_guide_coordinator.state

        after = price_guide_coordinator.update_config({"duplicateHandling": "update"})

        assert after.progress == before.progress
        assert after.session is None
        assert after.config.duplicate_handling == DuplicateHandling.UPDATE


class TestPriceGuideImport:
    """Test a full price guide import run."""

    def test_successful_import_builds_results(self, price_guide_client, price_guide_coordinator):
        price_guide_client.create_session.return_value = make_session(total=5)
        price_guide_client.import_batch.side_effect = [
            make_price_guide_batch(
                make_session(total=5, imported=3),
                has_more=True,
                warnings=["msi-1"],
                categories=2,
                options=1,
            ),
            make_price_guide_batch(
                make_session(total=5, imported=5), warnings=["msi-2"], msis=2
            ),
        ]
        snapshots = []
        price_guide_coordinator.subscribe(snapshots.append)

        state = run(price_guide_coordinator.start_import(make_counts(categories=2, options=1, msis=2)))

        assert state.is_importing is False
        assert state.is_complete is True
        assert state.progress.phase == ImportPhase.COMPLETE
        assert state.progress.overall_progress == 100
        assert state.progress.estimated_remaining == 0
        assert state.progress.categories.done == 2
        assert state.progress.msis.done == 2

        results = state.results
        assert results.success is True
        assert results.summary.categories.imported == 2
        assert results.summary.options.imported == 1
        assert results.summary.msis.imported == 2
        assert results.summary.up_charges.imported == 0
        assert results.totals.imported == 5
        assert [w.msi_source_id for w in results.formula_warnings] == ["msi-1", "msi-2"]
        assert len(results.action_items) == 1
        assert results.action_items[0].type == "formula_issue"
        assert results.action_items[0].count == 2

        assert distinct_phases(snapshots) == [
            ImportPhase.CATEGORIES,
            ImportPhase.OPTIONS,
            ImportPhase.MSIS,
            ImportPhase.COMPLETE,
        ]
        assert 60 in [s.progress.overall_progress for s in snapshots]
        assert price_guide_coordinator._timer.running is False

    def test_initial_estimate_uses_max_minutes(self, price_guide_client, price_guide_coordinator):
        price_guide_client.create_session.return_value = make_session(total=600)
        price_guide_client.import_batch.return_value = make_price_guide_batch(
            make_session(total=600, imported=600), categories=600
        )
        snapshots = []
        price_guide_coordinator.subscribe(snapshots.append)

        run(price_guide_coordinator.start_import(make_counts(categories=600)))

        # 600 categories at 0.1s each is one minute; the upper band rounds up to two
        assert snapshots[0].progress.estimated_remaining == 120
        assert snapshots[0].progress.categories.total == 600

    def test_no_action_items_without_warnings(self, price_guide_client, price_guide_coordinator):
        price_guide_client.create_session.return_value = make_session(total=1)
        price_guide_client.import_batch.return_value = make_price_guide_batch(
            make_session(total=1, imported=1), categories=1
        )

        state = run(price_guide_coordinator.start_import(make_counts(categories=1)))

        assert state.results.action_items == []

    def test_images_advance_last_phase(self, price_guide_client, price_guide_coordinator):
        price_guide_client.create_session.return_value = make_session(total=4)
        price_guide_client.import_batch.return_value = make_price_guide_batch(
            make_session(total=4, imported=4), msis=1, images=3
        )
        snapshots = []
        price_guide_coordinator.subscribe(snapshots.append)

        state = run(price_guide_coordinator.start_import(make_counts(msis=1, images=3)))

        assert ImportPhase.IMAGES in distinct_phases(snapshots)
        assert state.results.summary.images.imported == 3

    def test_empty_source_completes_immediately(self, price_guide_client, price_guide_coordinator):
        price_guide_client.create_session.return_value = make_session(total=0)

        state = run(price_guide_coordinator.start_import(make_counts()))

        price_guide_client.import_batch.assert_not_awaited()
        assert state.is_complete is True
        assert state.progress.phase == ImportPhase.COMPLETE
        assert state.progress.overall_progress == 100
        assert state.results is None

    def test_images_excluded_when_disabled(self, price_guide_client, price_guide_coordinator):
        """Images do not count toward the total when the config leaves them out."""
        price_guide_client.create_session.return_value = make_session(total=0)
        price_guide_coordinator.update_config({"include_images": False})

        state = run(price_guide_coordinator.start_import(make_counts(images=10)))

        price_guide_client.import_batch.assert_not_awaited()
        assert state.is_complete is True

    def test_failure_stops_timer(self, price_guide_client, price_guide_coordinator):
        price_guide_client.create_session.return_value = make_session(total=2)
        price_guide_client.import_batch.side_effect = ServiceRequestError("Batch exploded")

        state = run(price_guide_coordinator.start_import(make_counts(categories=2)))

        assert state.has_failed is True
        assert state.import_error == "Batch exploded"
        assert state.session.status == MigrationSessionStatus.FAILED
        assert state.results is None
        assert price_guide_coordinator._timer.running is False

    def test_timer_updates_elapsed_while_running(
        self, price_guide_client, price_guide_coordinator
    ):
        async def scenario():
            gate = asyncio.Event()

            async def import_batch(session_id, skip, limit):
                await gate.wait()
                return make_price_guide_batch(make_session(total=1, imported=1), categories=1)

            price_guide_client.create_session.return_value = make_session(total=1)
            price_guide_client.import_batch.side_effect = import_batch

            task = asyncio.create_task(
                price_guide_coordinator.start_import(make_counts(categories=1))
            )
            await asyncio.sleep(0.05)
            mid_run = price_guide_coordinator.state
            gate.set()
            return mid_run, await task

        mid_run, final = run(scenario())

        assert mid_run.is_importing is True
        assert mid_run.progress.elapsed_time > 0
        assert final.results.duration >= mid_run.progress.elapsed_time


class TestPriceGuideReset:
    """Test resetting the price guide coordinator."""

    def test_reset_restores_defaults(self, price_guide_client, price_guide_coordinator):
        price_guide_client.create_session.return_value = make_session(total=1)
        price_guide_client.import_batch.return_value = make_price_guide_batch(
            make_session(total=1, imported=1), categories=1
        )
        price_guide_coordinator.update_config({"include_images": False})
        run(price_guide_coordinator.start_import(make_counts(categories=1)))

        state = price_guide_coordinator.reset()

        assert state.config.include_images is True
        assert state.progress.phase == ImportPhase.IDLE
        assert state.results is None
        assert state.session is None
        assert state.is_complete is False

    def test_reset_during_run_stops_timer_and_ignores_results(
        self, price_guide_client, price_guide_coordinator
    ):
        async def scenario():
            gate = asyncio.Event()

            async def create_session():
                await gate.wait()
                return make_session(total=1)

            price_guide_client.create_session.side_effect = create_session

            task = asyncio.create_task(
                price_guide_coordinator.start_import(make_counts(categories=1))
            )
            await asyncio.sleep(0)
            price_guide_coordinator.reset()
            gate.set()
            return await task

        state = run(scenario())

        price_guide_client.import_batch.assert_not_awaited()
        assert state.session is None
        assert state.progress.phase == ImportPhase.IDLE
        assert price_guide_coordinator._timer is None
