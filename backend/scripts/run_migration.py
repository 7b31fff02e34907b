#!/usr/bin/env python3
"""
Run an office or price guide migration from the command line.

Drives the same coordinators the admin API uses, printing progress as
batches complete. Useful for large migrations and for re-running an import
outside the admin UI.

Usage:
    python scripts/run_migration.py offices
    python scripts/run_migration.py offices --ids abc123 def456
    python scripts/run_migration.py price-guide --no-images
"""

import argparse
import asyncio
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from catalog_migration.core.config import get_settings
from catalog_migration.core.logging import setup_logging
from catalog_migration.services.batch_import import BatchImportCoordinator
from catalog_migration.services.migration_client import (
    MigrationServiceClient,
    PriceGuideServiceClient,
)
from catalog_migration.services.price_guide_import import PriceGuideImportCoordinator
from catalog_migration.services.time_estimation import format_elapsed_time


def print_batch_state(state):
    if state.is_importing and state.session:
        print(
            f"  {state.progress:3d}%  imported={state.imported_count} "
            f"skipped={state.skipped_count} errors={state.error_count}"
        )


def print_price_guide_state(state):
    progress = state.progress
    if state.is_importing and progress.overall_progress:
        print(
            f"  {progress.overall_progress:3d}%  phase={progress.phase.value} "
            f"elapsed={format_elapsed_time(progress.elapsed_time)}"
        )


async def run_collection(collection: str, source_ids: list[str], batch_size: int) -> bool:
    client = MigrationServiceClient(collection)
    coordinator = BatchImportCoordinator(client, batch_size=batch_size)
    coordinator.subscribe(print_batch_state)

    try:
        if source_ids:
            print(f"Importing {len(source_ids)} selected {collection}...")
            state = await coordinator.start_selective_import(source_ids)
        else:
            print(f"Importing all {collection}...")
            state = await coordinator.start_import()
    finally:
        await client.close()

    if state.has_failed:
        print(f"Import failed: {state.import_error}")
        return False

    print(
        f"Done: {state.imported_count} imported, {state.skipped_count} skipped, "
        f"{state.error_count} errors"
    )
    for item in state.errors:
        print(f"  {item.source_id}: {item.error}")
    return True


async def run_price_guide(include_images: bool, batch_size: int, tick: float) -> bool:
    client = PriceGuideServiceClient()
    coordinator = PriceGuideImportCoordinator(client, batch_size=batch_size, tick_interval=tick)
    coordinator.update_config({"include_images": include_images})
    coordinator.subscribe(print_price_guide_state)

    try:
        counts = await client.get_source_counts()
        print(
            f"Source: {counts.categories} categories, {counts.options} options, "
            f"{counts.up_charges} upcharges, {counts.msis} MSIs"
        )
        state = await coordinator.start_import(counts)
    finally:
        await client.close()

    if state.has_failed:
        print(f"Import failed: {state.import_error}")
        return False

    results = state.results
    if results:
        print(f"Done in {format_elapsed_time(results.duration)}")
        print(f"  MSIs imported: {results.summary.msis.imported}")
        for item in results.action_items:
            print(f"  [{item.type}] {item.message}")
    return True


def main():
    settings = get_settings()

    parser = argparse.ArgumentParser(description="Run a legacy data migration")
    parser.add_argument("collection", choices=["offices", "price-guide"])
    parser.add_argument("--ids", nargs="+", default=[], help="Import only these source ids")
    parser.add_argument("--batch-size", type=int, default=None)
    parser.add_argument("--no-images", action="store_true", help="Skip price guide images")

    args = parser.parse_args()
    setup_logging()

    if args.collection == "price-guide":
        ok = asyncio.run(
            run_price_guide(
                include_images=not args.no_images,
                batch_size=args.batch_size or settings.PRICE_GUIDE_IMPORT_BATCH_SIZE,
                tick=settings.PROGRESS_TICK_SECONDS,
            )
        )
    else:
        ok = asyncio.run(
            run_collection(
                args.collection,
                args.ids,
                batch_size=args.batch_size or settings.OFFICE_IMPORT_BATCH_SIZE,
            )
        )

    sys.exit(0 if ok else 1)


if __name__ == "__main__":
    main()
