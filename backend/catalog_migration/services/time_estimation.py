"""
Import duration estimates for the price guide migration.

Estimates are derived from entity counts and per-item benchmarks measured
on test imports, then widened by a variance band.
"""

import math

from catalog_migration.schemas.price_guide import PriceGuideSourceCounts, TimeEstimate

# Estimated seconds per item for each entity type
SECONDS_PER_ITEM = {
    "categories": 0.1,
    "additional_details": 0.05,
    "options": 0.1,
    "upcharges": 0.15,
    "msis": 0.2,
    "images": 1.0,
}

# +/- 30% around the base estimate
MIN_VARIANCE = 0.7
MAX_VARIANCE = 1.3


def estimate_import_time(
    counts: PriceGuideSourceCounts,
    include_images: bool,
    image_count: int | None = None,
) -> TimeEstimate:
    """
    Estimate import time based on entity counts.

    Args:
        counts: Entity counts from the source database
        include_images: Whether image migration is part of the run
        image_count: Unique images to process; defaults to counts.images

    Returns:
        TimeEstimate with min/max minutes and display text
    """
    total_seconds = 0.0

    total_seconds += counts.categories * SECONDS_PER_ITEM["categories"]
    total_seconds += counts.options * SECONDS_PER_ITEM["options"]
    total_seconds += counts.up_charges * SECONDS_PER_ITEM["upcharges"]
    total_seconds += counts.msis * SECONDS_PER_ITEM["msis"]

    if counts.additional_details:
        total_seconds += counts.additional_details * SECONDS_PER_ITEM["additional_details"]

    if include_images:
        if image_count is None:
            image_count = counts.images or 0
        total_seconds += image_count * SECONDS_PER_ITEM["images"]

    base_minutes = total_seconds / 60

    # Round outward so the band never understates the spread
    min_minutes = math.ceil(base_minutes * MIN_VARIANCE)
    max_minutes = math.ceil(base_minutes * MAX_VARIANCE)

    return TimeEstimate(
        min_minutes=min_minutes,
        max_minutes=max_minutes,
        display_text=format_time_range(min_minutes, max_minutes),
    )


def format_time_range(min_minutes: int, max_minutes: int) -> str:
    """
    Format a time range for display.

    Returns strings like "less than a minute", "~1 minute", "5-10 minutes",
    "~2 hours" or "1-3 hours".
    """
    if max_minutes < 1:
        return "less than a minute"

    if max_minutes < 60:
        if min_minutes == max_minutes:
            return f"~{min_minutes} minute{'s' if min_minutes != 1 else ''}"
        return f"{min_minutes}-{max_minutes} minutes"

    min_hours = math.floor(min_minutes / 60)
    max_hours = math.ceil(max_minutes / 60)

    if min_hours == max_hours:
        return f"~{min_hours} hour{'s' if min_hours != 1 else ''}"

    return f"{min_hours}-{max_hours} hours"


def format_elapsed_time(seconds: float) -> str:
    """Format elapsed seconds like "45s", "5m 30s" or "1h 15m"."""
    if seconds < 60:
        return f"{math.floor(seconds)}s"

    minutes = math.floor(seconds / 60)
    remaining_seconds = math.floor(seconds % 60)

    if minutes < 60:
        return f"{minutes}m {remaining_seconds}s" if remaining_seconds > 0 else f"{minutes}m"

    hours = minutes // 60
    remaining_minutes = minutes % 60

    return f"{hours}h {remaining_minutes}m" if remaining_minutes > 0 else f"{hours}h"


def calculate_remaining_time(elapsed_seconds: float, progress_percent: float) -> float:
    """
    Extrapolate remaining seconds from the current rate of progress.

    Returns 0 when no progress has been made yet (rate unknown) or the run
    is already done.
    """
    if progress_percent <= 0 or progress_percent >= 100:
        return 0

    rate = elapsed_seconds / progress_percent
    total_estimate = rate * 100
    remaining = total_estimate - elapsed_seconds

    return max(0, remaining)
