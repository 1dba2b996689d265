from __future__ import annotations

from dataclasses import replace
from datetime import date

import pytest

from capacityplan.core import horizon
from capacityplan.core.dates import build_week_buckets
from capacityplan.core.horizon import (
    at_risk_weeks,
    build_horizon_snapshot,
    compute_snapshot,
    exposure_label,
    recompute_snapshot,
    resolve_week_count,
    snapshot_rows,
)
from capacityplan.core.models import (
    AllocationMode,
    ExposureLevel,
    HorizonOptions,
    TeamCapacityInput,
    WorkItem,
)

TEAM = TeamCapacityInput(hours_per_cycle=(80.0, 80.0))  # 40h/week
WEDNESDAY = date(2026, 2, 18)


def opts(weeks: int = 4, **kw) -> HorizonOptions:
    return HorizonOptions(reference_date=WEDNESDAY, week_count=weeks, **kw)


def item(item_id: str, hours: float, start: date, deadline: date | None = None, mode=AllocationMode.FILL_CAPACITY):
    return WorkItem(
        item_id=item_id,
        name=f"Work {item_id}",
        estimated_hours=hours,
        start_date=start,
        deadline=deadline,
        allocation_mode=mode,
    )


@pytest.mark.parametrize(
    "pct, level",
    [(0, ExposureLevel.LOW), (79, ExposureLevel.LOW), (80, ExposureLevel.MEDIUM), (90, ExposureLevel.MEDIUM), (91, ExposureLevel.HIGH)],
)
def test_exposure_thresholds(pct, level):
    assert ExposureLevel.from_utilization(pct) is level


def test_exposure_label_is_upper_case():
    assert exposure_label("medium") == "MEDIUM"
    assert exposure_label(ExposureLevel.HIGH) == "HIGH"


def test_empty_team_and_no_work():
    snap = build_horizon_snapshot(TeamCapacityInput(hours_per_cycle=()), [], opts())

    assert len(snap.week_buckets) == 4
    assert snap.total_committed_hours == 0
    assert snap.total_capacity_hours == 0
    assert snap.max_utilization_pct == 0
    assert snap.overall_utilization_pct == 0
    assert snap.weeks_equivalent == 0.0
    assert snap.exposure_level is ExposureLevel.LOW


def test_buffer_is_booked_as_committed_load():
    cap = TeamCapacityInput(hours_per_cycle=(160.0,), buffer_hours_per_week=5)
    snap = build_horizon_snapshot(cap, [], opts(3))

    assert [b.committed_hours for b in snap.week_buckets] == [5.0, 5.0, 5.0]
    assert snap.total_committed_hours == 15
    assert snap.total_capacity_hours == 120
    assert snap.max_utilization_pct == 13
    assert snap.overall_utilization_pct == 13
    assert snap.exposure_level is ExposureLevel.LOW


def test_overflowing_item_snapshot():
    snap = build_horizon_snapshot(TEAM, [item("1", 200, date(2026, 2, 16))], opts())

    assert [b.committed_hours for b in snap.week_buckets] == [50.0, 50.0, 50.0, 50.0]
    assert snap.total_committed_hours == 200
    assert snap.total_capacity_hours == 160
    assert snap.cycle_capacity_hours == 160
    assert snap.max_utilization_pct == 125
    assert snap.overall_utilization_pct == 125
    assert snap.weeks_equivalent == 5.0
    assert snap.exposure_level is ExposureLevel.HIGH


def test_overall_utilization_rounds_half_up():
    snap = build_horizon_snapshot(TEAM, [item("1", 60, date(2026, 2, 16))], opts())

    assert [b.committed_hours for b in snap.week_buckets] == [40.0, 20.0, 0.0, 0.0]
    assert snap.overall_utilization_pct == 38  # 37.5
    assert snap.max_utilization_pct == 100


def test_cycle_and_view_capacity_stay_distinct():
    snap = build_horizon_snapshot(TEAM, [], opts(12))
    assert snap.total_capacity_hours == 480
    assert snap.cycle_capacity_hours == 160


def test_reference_date_snaps_to_monday():
    snap = build_horizon_snapshot(TEAM, [], opts())
    assert snap.horizon_start == date(2026, 2, 16)
    assert snap.horizon_end == date(2026, 3, 15)
    assert snap.horizon_hint == "2026-02-16 → 2026-03-15"


def test_missing_reference_date_uses_today(monkeypatch):
    monkeypatch.setattr(horizon, "today_in_tz", lambda tz: date(2026, 2, 18))
    snap = build_horizon_snapshot(TEAM, [], HorizonOptions(), tz="Europe/Madrid")
    assert snap.horizon_start == date(2026, 2, 16)
    assert len(snap.week_buckets) == 4


def test_items_outside_horizon_are_skipped():
    items = [
        item("past", 40, date(2025, 1, 6), date(2025, 1, 31)),
        item("future", 40, date(2026, 6, 1)),
    ]
    snap = build_horizon_snapshot(TEAM, items, opts())
    assert snap.total_committed_hours == 0


def test_partial_overlap_is_clamped():
    items = [item("1", 40, date(2026, 2, 1), date(2026, 2, 22), AllocationMode.EVEN)]
    snap = build_horizon_snapshot(TEAM, items, opts())
    assert [b.committed_hours for b in snap.week_buckets] == [40.0, 0.0, 0.0, 0.0]


def test_items_with_invalid_hours_are_skipped():
    items = [item("zero", 0, date(2026, 2, 16)), item("nan", float("nan"), date(2026, 2, 16))]
    snap = build_horizon_snapshot(TEAM, items, opts())
    assert snap.total_committed_hours == 0


def test_same_inputs_give_same_snapshot():
    items = [item("1", 50, date(2026, 2, 16)), item("2", 30, date(2026, 3, 2), mode=AllocationMode.EVEN)]
    assert build_horizon_snapshot(TEAM, items, opts()) == build_horizon_snapshot(TEAM, items, opts())


def test_item_order_does_not_change_totals():
    items = [
        item("1", 50, date(2026, 2, 16)),
        item("2", 30, date(2026, 3, 2)),
        item("3", 25, date(2026, 2, 23), date(2026, 3, 8), AllocationMode.EVEN),
    ]
    a = build_horizon_snapshot(TEAM, items, opts())
    b = build_horizon_snapshot(TEAM, list(reversed(items)), opts())

    assert a.total_committed_hours == b.total_committed_hours == 105
    assert sum(x.committed_hours for x in a.week_buckets) == pytest.approx(
        sum(x.committed_hours for x in b.week_buckets)
    )


def test_independent_items_in_either_order_give_same_kpis():
    a_first = [
        item("a", 60, date(2026, 2, 16), date(2026, 2, 22)),
        item("b", 30, date(2026, 3, 2), date(2026, 3, 15), AllocationMode.EVEN),
    ]
    forward = build_horizon_snapshot(TEAM, a_first, opts())
    backward = build_horizon_snapshot(TEAM, list(reversed(a_first)), opts())

    assert [b.committed_hours for b in forward.week_buckets] == [60.0, 0.0, 15.0, 15.0]
    assert forward.week_buckets == backward.week_buckets
    assert forward.total_committed_hours == backward.total_committed_hours == 90
    assert forward.max_utilization_pct == backward.max_utilization_pct == 150


def test_week_count_is_clamped():
    assert resolve_week_count(HorizonOptions(week_count=100)) == (52, 52)
    assert resolve_week_count(HorizonOptions(week_count=0)) == (1, 52)
    assert resolve_week_count(HorizonOptions(week_count=6, max_week_count=0)) == (6, 52)
    assert len(build_horizon_snapshot(TEAM, [], opts(100)).week_buckets) == 52


def test_compute_snapshot_medium_at_ninety_percent():
    buckets = build_week_buckets(date(2026, 2, 16), 2, capacity_hours=40.0)
    buckets = (replace(buckets[0], committed_hours=36.0), buckets[1])
    snap = compute_snapshot(buckets, weekly_capacity_hours=40.0, cycle_capacity_hours=160, buffer_hours_per_week=0.0)

    assert snap.max_utilization_pct == 90
    assert snap.exposure_level is ExposureLevel.MEDIUM
    assert snap.overall_utilization_pct == 45


def test_recompute_keeps_team_figures():
    base = build_horizon_snapshot(TeamCapacityInput(hours_per_cycle=(160.0,), buffer_hours_per_week=4), [], opts(2))
    bumped = tuple(replace(b, committed_hours=b.committed_hours + 10) for b in base.week_buckets)
    after = recompute_snapshot(base, bumped)

    assert after.total_committed_hours == 28
    assert after.cycle_capacity_hours == base.cycle_capacity_hours
    assert after.buffer_hours_per_week == 4.0
    assert after.weekly_capacity_hours == 40.0


def test_at_risk_weeks_lists_weeks_above_ninety():
    snap = build_horizon_snapshot(TEAM, [item("1", 78, date(2026, 2, 16))], opts())
    rows = at_risk_weeks(snap)

    # 40h (100%) then 38h (95%)
    assert [r["week_start"] for r in rows] == ["2026-02-16", "2026-02-23"]
    assert [r["utilization_pct"] for r in rows] == [100, 95]
    assert all(r["exposure"] == "high" for r in rows)


def test_snapshot_rows_report_overload():
    snap = build_horizon_snapshot(TEAM, [item("1", 200, date(2026, 2, 16))], opts())
    rows = snapshot_rows(snap)

    assert len(rows) == 4
    assert rows[0]["label"] == "16 Feb - 22 Feb"
    assert rows[0]["utilization_pct"] == 125
    assert rows[0]["over_pct"] == 25
    assert rows[0]["capacity_hours"] == 40.0
