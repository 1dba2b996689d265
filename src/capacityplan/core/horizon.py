from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date
from typing import Iterable, Sequence

from capacityplan.core.allocation import apply_work
from capacityplan.core.capacity import resolve_buffer, resolve_cycle_capacity, resolve_weekly_capacity
from capacityplan.core.dates import DEFAULT_TZ, MAX_WEEK_COUNT, build_week_buckets, parse_ymd, today_in_tz
from capacityplan.core.hours import is_finite_number, round1, round_int
from capacityplan.core.models import (
    ExposureLevel,
    HorizonOptions,
    HorizonSnapshot,
    TeamCapacityInput,
    WeekBucket,
    WorkItem,
)

logger = logging.getLogger(__name__)

AT_RISK_THRESHOLD_PCT = 90
DEFAULT_WEEK_COUNT = 4


def bucket_utilization_pct(bucket: WeekBucket) -> int:
    return round_int(bucket.utilization_pct)


def exposure_label(level: ExposureLevel | str) -> str:
    return ExposureLevel(level).label


def resolve_week_count(options: HorizonOptions) -> tuple[int, int]:
    """(week_count, max_week_count) with the requested count clamped into ``[1, max]``."""
    max_weeks = options.max_week_count
    if not isinstance(max_weeks, int) or max_weeks < 1:
        max_weeks = MAX_WEEK_COUNT
    requested = options.week_count if is_finite_number(options.week_count) else DEFAULT_WEEK_COUNT
    return min(max(int(requested), 1), max_weeks), max_weeks


def compute_snapshot(
    week_buckets: Sequence[WeekBucket],
    *,
    weekly_capacity_hours: float,
    cycle_capacity_hours: int,
    buffer_hours_per_week: float,
) -> HorizonSnapshot:
    """Derive every KPI from the bucket list. Same buckets in, same snapshot out."""
    buckets = tuple(week_buckets)
    total_committed = round_int(sum(b.committed_hours for b in buckets))
    total_capacity = round_int(sum(b.capacity_hours for b in buckets))
    max_util = round_int(max((b.utilization_pct for b in buckets), default=0.0))
    overall_util = round_int(total_committed / total_capacity * 100) if total_capacity > 0 else 0
    weeks_equivalent = round1(total_committed / weekly_capacity_hours) if weekly_capacity_hours > 0 else 0.0

    return HorizonSnapshot(
        week_buckets=buckets,
        total_committed_hours=total_committed,
        total_capacity_hours=total_capacity,
        cycle_capacity_hours=cycle_capacity_hours,
        overall_utilization_pct=overall_util,
        max_utilization_pct=max_util,
        exposure_level=ExposureLevel.from_utilization(max_util),
        weeks_equivalent=weeks_equivalent,
        buffer_hours_per_week=buffer_hours_per_week,
        weekly_capacity_hours=weekly_capacity_hours,
    )


def recompute_snapshot(base: HorizonSnapshot, week_buckets: Sequence[WeekBucket]) -> HorizonSnapshot:
    """KPIs for a modified horizon, keeping the team-level figures of ``base``."""
    return compute_snapshot(
        week_buckets,
        weekly_capacity_hours=base.weekly_capacity_hours,
        cycle_capacity_hours=base.cycle_capacity_hours,
        buffer_hours_per_week=base.buffer_hours_per_week,
    )


def seed_buffer(buckets: Sequence[WeekBucket], buffer_hours_per_week: float) -> tuple[WeekBucket, ...]:
    if buffer_hours_per_week <= 0:
        return tuple(buckets)
    return tuple(replace(b, committed_hours=round1(b.committed_hours + buffer_hours_per_week)) for b in buckets)


def allocate_items(buckets: Sequence[WeekBucket], work_items: Iterable[WorkItem]) -> tuple[WeekBucket, ...]:
    """Fold every overlapping work item into the horizon.

    Items entirely outside the horizon are skipped; partial overlaps are clamped to it.
    """
    result = tuple(buckets)
    if not result:
        return result
    horizon_start = result[0].start_date
    horizon_end = result[-1].end_date

    for item in work_items:
        if not is_finite_number(item.estimated_hours) or item.estimated_hours <= 0:
            logger.warning("Skipping work item %s: invalid estimated hours %r", item.item_id, item.estimated_hours)
            continue

        start = item.start_date
        end = item.deadline if item.deadline is not None else horizon_end
        if end < horizon_start or start > horizon_end:
            logger.debug("Work item %s (%s..%s) outside horizon", item.item_id, start, end)
            continue

        clamped_start = max(start, horizon_start)
        clamped_end = min(end, horizon_end)
        result = apply_work(
            result,
            total_hours=float(item.estimated_hours),
            start_date=clamped_start,
            deadline=clamped_end,
            allocation_mode=item.allocation_mode,
        )
    return result


def build_horizon_snapshot(
    capacity: TeamCapacityInput,
    work_items: Iterable[WorkItem],
    options: HorizonOptions | None = None,
    *,
    tz: str = DEFAULT_TZ,
) -> HorizonSnapshot:
    """Populate a fresh horizon from stored capacity and work items.

    A missing ``options.reference_date`` resolves to today in ``tz``.
    """
    options = options or HorizonOptions()
    reference: date = (
        parse_ymd(options.reference_date, field="reference_date")
        if options.reference_date is not None
        else today_in_tz(tz)
    )
    week_count, max_weeks = resolve_week_count(options)

    weekly_capacity = resolve_weekly_capacity(capacity)
    cycle_capacity = resolve_cycle_capacity(capacity)
    buffer = resolve_buffer(capacity)

    buckets = build_week_buckets(
        reference,
        week_count,
        capacity_hours=round1(weekly_capacity),
        max_week_count=max_weeks,
        locale=options.locale,
    )
    buckets = seed_buffer(buckets, buffer)
    buckets = allocate_items(buckets, work_items)

    snapshot = compute_snapshot(
        buckets,
        weekly_capacity_hours=weekly_capacity,
        cycle_capacity_hours=cycle_capacity,
        buffer_hours_per_week=buffer,
    )
    logger.debug(
        "Horizon %s: %s weeks, committed=%sh capacity=%sh max=%s%%",
        snapshot.horizon_hint,
        week_count,
        snapshot.total_committed_hours,
        snapshot.total_capacity_hours,
        snapshot.max_utilization_pct,
    )
    return snapshot


def at_risk_weeks(snapshot: HorizonSnapshot, threshold: int = AT_RISK_THRESHOLD_PCT) -> list[dict]:
    """Weeks above ``threshold`` percent utilization, as display rows."""
    rows: list[dict] = []
    for bucket in snapshot.week_buckets:
        pct = bucket_utilization_pct(bucket)
        if pct > threshold:
            rows.append(
                {
                    "week_start": bucket.start_ymd,
                    "week_end": bucket.end_ymd,
                    "label": bucket.label,
                    "utilization_pct": pct,
                    "exposure": ExposureLevel.from_utilization(pct).value,
                }
            )
    return rows


def snapshot_rows(snapshot: HorizonSnapshot) -> list[dict]:
    """One row per week for tables and charts."""
    rows: list[dict] = []
    for bucket in snapshot.week_buckets:
        pct = bucket_utilization_pct(bucket)
        rows.append(
            {
                "week_start": bucket.start_ymd,
                "week_end": bucket.end_ymd,
                "label": bucket.label,
                "capacity_hours": bucket.capacity_hours,
                "committed_hours": bucket.committed_hours,
                "buffer_hours": snapshot.buffer_hours_per_week,
                "utilization_pct": pct,
                "over_pct": max(0, pct - 100),
                "exposure": ExposureLevel.from_utilization(pct).value,
            }
        )
    return rows
