from __future__ import annotations

from capacityplan.core.allocation import apply_work, resolve_range
from capacityplan.core.horizon import recompute_snapshot
from capacityplan.core.hours import round1
from capacityplan.core.models import (
    AllocationMode,
    AppliedRange,
    EvaluateDeltas,
    EvaluateResult,
    HorizonSnapshot,
    NewWorkInput,
)


def evaluate_new_work(before: HorizonSnapshot, work: NewWorkInput) -> EvaluateResult:
    """Preview the impact of ``work`` on ``before`` without touching it.

    Dates outside the horizon clamp to its first/last week (expand the view first if
    that is not what the planner wants). ``work`` is assumed validated.
    """
    mode = AllocationMode.parse(work.allocation_mode)
    after_buckets = apply_work(
        before.week_buckets,
        total_hours=work.total_hours,
        start_date=work.start_date,
        deadline=work.deadline,
        allocation_mode=mode,
    )
    after = recompute_snapshot(before, after_buckets)

    if before.week_buckets:
        start_idx, end_idx = resolve_range(before.week_buckets, work.start_date, work.deadline)
        weeks_count = end_idx - start_idx + 1
        label = f"{before.week_buckets[start_idx].start_ymd} → {before.week_buckets[end_idx].end_ymd}"
    else:
        start_idx, end_idx, weeks_count, label = 0, 0, 0, ""

    per_week = round1(work.total_hours / weeks_count) if mode is AllocationMode.EVEN and weeks_count else None

    return EvaluateResult(
        before=before,
        after=after,
        deltas=EvaluateDeltas(
            total_committed_hours=after.total_committed_hours - before.total_committed_hours,
            max_utilization_pct=after.max_utilization_pct - before.max_utilization_pct,
            overall_utilization_pct=after.overall_utilization_pct - before.overall_utilization_pct,
        ),
        applied=AppliedRange(
            start_idx=start_idx,
            end_idx=end_idx,
            weeks_count=weeks_count,
            per_week_hours=per_week,
            week_range_label=label,
            allocation_mode=mode,
        ),
    )
