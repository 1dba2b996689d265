"""Distribution of a work item's hours across week buckets.

Buckets are immutable; every function returns a new tuple and leaves its input intact.
Hours are expected to be validated (> 0, finite) by the caller.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import date
from typing import Sequence

from capacityplan.core.hours import round1
from capacityplan.core.models import AllocationMode, WeekBucket


def week_index_for_date(buckets: Sequence[WeekBucket], day: date) -> int:
    """Index of the bucket containing ``day``; dates outside the horizon clamp to the edges."""
    if not buckets:
        return 0
    for idx, bucket in enumerate(buckets):
        if bucket.contains(day):
            return idx
    if day < buckets[0].start_date:
        return 0
    return len(buckets) - 1


def resolve_range(buckets: Sequence[WeekBucket], start_date: date, deadline: date | None) -> tuple[int, int]:
    """(start_idx, end_idx), inclusive. A missing deadline runs to the last bucket."""
    last = len(buckets) - 1
    start_idx = min(max(week_index_for_date(buckets, start_date), 0), last)
    end_raw = week_index_for_date(buckets, deadline) if deadline is not None else last
    end_idx = min(max(end_raw, start_idx), last)
    return start_idx, end_idx


def _add(bucket: WeekBucket, hours: float) -> WeekBucket:
    return replace(bucket, committed_hours=round1(bucket.committed_hours + hours))


def allocate_even(
    buckets: Sequence[WeekBucket], total_hours: float, start_idx: int, end_idx: int
) -> tuple[WeekBucket, ...]:
    """Same share for every week in range; weeks may end above capacity."""
    per_week = total_hours / (end_idx - start_idx + 1)
    return tuple(_add(b, per_week) if start_idx <= i <= end_idx else b for i, b in enumerate(buckets))


def allocate_fill_capacity(
    buckets: Sequence[WeekBucket], total_hours: float, start_idx: int, end_idx: int
) -> tuple[WeekBucket, ...]:
    """Fill free headroom week by week, then spread whatever is left evenly over the range."""
    result = list(buckets)
    remaining = total_hours

    i = start_idx
    while i <= end_idx and remaining > 0:
        week = result[i]
        available = max(0.0, week.capacity_hours - week.committed_hours)
        to_add = min(remaining, available)
        if to_add > 0:
            result[i] = _add(week, to_add)
            remaining -= to_add
        i += 1

    # Every week in range is full: overflow goes to all of them, not just the ones with room.
    if remaining > 0:
        return allocate_even(result, remaining, start_idx, end_idx)
    return tuple(result)


def apply_work(
    buckets: Sequence[WeekBucket],
    *,
    total_hours: float,
    start_date: date,
    deadline: date | None = None,
    allocation_mode: AllocationMode | str | None = AllocationMode.FILL_CAPACITY,
) -> tuple[WeekBucket, ...]:
    """Allocate one item across ``buckets`` and return the updated horizon."""
    if not buckets:
        return tuple(buckets)
    mode = AllocationMode.parse(allocation_mode)
    start_idx, end_idx = resolve_range(buckets, start_date, deadline)
    if mode is AllocationMode.EVEN:
        return allocate_even(buckets, total_hours, start_idx, end_idx)
    return allocate_fill_capacity(buckets, total_hours, start_idx, end_idx)
