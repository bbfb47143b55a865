"""Weekly aggregation of daily progress entries."""

import logging
import math
from dataclasses import dataclass
from typing import Iterable, Optional

from multitracker.store.models import DateWindow, ProgressEntry, StepStatus, WeeklyAggregate

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StepCredits:
    """Step credit per day for each 10k steps status.

    The store has no pedometer data, so weekly "total steps" is a proxy
    derived from the daily status.
    """

    completed: int = 10000
    partial: int = 5000
    not_completed: int = 0
    not_tracked: int = 0

    def __post_init__(self):
        for name, credit in vars(self).items():
            if credit < 0:
                raise ValueError(f"Step credit for {name} must not be negative, got {credit}")

    def for_status(self, status: StepStatus) -> int:
        return getattr(self, status.value)


DEFAULT_STEP_CREDITS = StepCredits()


def aggregate(
    entries: Iterable[ProgressEntry],
    window: DateWindow,
    user_id: Optional[int] = None,
    step_credits: StepCredits = DEFAULT_STEP_CREDITS,
) -> WeeklyAggregate:
    """
    Roll entries up into a weekly aggregate.

    The result depends only on the arguments: "today" enters through `window`.

    Args:
        entries: Daily entries (any order, may extend beyond the window)
        window: Inclusive date window to aggregate over
        user_id: Restrict to this user's entries; inferred from entries if omitted
        step_credits: Status to step credit mapping

    Returns:
        WeeklyAggregate
    """
    selected = [entry for entry in entries if window.contains(entry.date)]
    if user_id is not None:
        selected = [entry for entry in selected if entry.user_id == user_id]
    elif selected:
        user_id = selected[0].user_id

    # fsum is exactly rounded, so the totals do not depend on input order
    total_water = math.fsum(entry.water_intake_liters or 0.0 for entry in selected)
    total_sleep = math.fsum(entry.total_sleep_hours or 0.0 for entry in selected)
    total_steps = sum(step_credits.for_status(entry.walk_10k_steps) for entry in selected)

    completed_days = {
        entry.date for entry in selected if entry.walk_10k_steps == StepStatus.COMPLETED
    }
    percentage = progress_percentage(len(completed_days), window.days)

    logger.debug(
        f"Aggregated {len(selected)} entries for user {user_id} "
        f"({window.start} to {window.end}): {percentage}%"
    )

    return WeeklyAggregate(
        user_id=user_id,
        window_start=window.start,
        window_end=window.end,
        total_steps=total_steps,
        total_water_liters=total_water,
        total_sleep_hours=total_sleep,
        progress_percentage=percentage,
    )


def progress_percentage(completed_days: int, window_days: int) -> int:
    """
    Share of window days with the steps goal completed, 0-100.

    Example:
        5 completed days in a 7 day window = round(71.43) = 71
    """
    ratio = 100 * completed_days / max(1, window_days)
    # Round half up, not to even
    return min(100, max(0, math.floor(ratio + 0.5)))
