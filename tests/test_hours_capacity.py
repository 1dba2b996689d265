from __future__ import annotations

import pytest

from capacityplan.core.capacity import (
    capacity_summary,
    cycle_to_weekly,
    resolve_buffer,
    resolve_cycle_capacity,
    resolve_weekly_capacity,
    total_capacity_for_weeks,
    weekly_available_capacity,
    weekly_to_cycle,
)
from capacityplan.core.hours import (
    format_hours_for_display,
    is_finite_number,
    round1,
    round_half_up,
    round_int,
    round_to_half_hour,
    sanitize_hours_input,
    sanitize_hours_input_allow_zero,
)
from capacityplan.core.models import TeamCapacityInput


def test_rounding_sends_halves_up():
    assert round_int(12.5) == 13
    assert round_int(2.5) == 3
    assert round_int(2.4) == 2
    assert round1(0.25) == 0.3
    assert round_half_up(37.5) == 38


def test_is_finite_number():
    assert is_finite_number(3)
    assert is_finite_number("4.5")
    assert not is_finite_number(float("nan"))
    assert not is_finite_number(float("inf"))
    assert not is_finite_number(None)
    assert not is_finite_number(True)
    assert not is_finite_number("abc")


@pytest.mark.parametrize(
    "raw, expected",
    [(3.2, 3.0), (3.25, 3.5), (3.74, 3.5), (3.75, 4.0), (-1.0, 0.0)],
)
def test_round_to_half_hour(raw, expected):
    assert round_to_half_hour(raw) == expected


def test_sanitize_hours_input_clamps_to_minimum():
    assert sanitize_hours_input("7.3") == 7.5
    assert sanitize_hours_input("0") == 0.5
    assert sanitize_hours_input("abc") == 0.5
    assert sanitize_hours_input("") == 0.5


def test_sanitize_hours_input_allow_zero():
    assert sanitize_hours_input_allow_zero("0") == 0.0
    assert sanitize_hours_input_allow_zero("-3") == 0.0
    assert sanitize_hours_input_allow_zero("2.2") == 2.0


def test_format_hours_for_display():
    assert format_hours_for_display(3.0) == "3"
    assert format_hours_for_display(3.5) == "3.5"
    assert format_hours_for_display(float("nan")) == "0"


def test_cycle_weekly_conversion():
    assert cycle_to_weekly(160) == 40.0
    assert weekly_to_cycle(40) == 160.0
    assert cycle_to_weekly(-20) == 0.0


def test_weekly_capacity_is_cycle_sum_over_four():
    cap = TeamCapacityInput(hours_per_cycle=(80.0, 80.0, 10.0))
    assert resolve_weekly_capacity(cap) == 42.5
    assert resolve_cycle_capacity(cap) == 170


def test_invalid_member_hours_count_as_zero():
    cap = TeamCapacityInput(hours_per_cycle=(160.0, -20.0, float("nan")))
    assert resolve_weekly_capacity(cap) == 40.0
    assert resolve_cycle_capacity(cap) == 160


def test_cycle_capacity_is_whole_hours():
    cap = TeamCapacityInput(hours_per_cycle=(80.4, 80.3))
    assert resolve_cycle_capacity(cap) == 161


def test_empty_team_has_no_capacity():
    cap = TeamCapacityInput(hours_per_cycle=())
    assert resolve_weekly_capacity(cap) == 0.0
    assert resolve_cycle_capacity(cap) == 0


def test_resolve_buffer():
    assert resolve_buffer(TeamCapacityInput(hours_per_cycle=(), buffer_hours_per_week=5)) == 5.0
    assert resolve_buffer(TeamCapacityInput(hours_per_cycle=(), buffer_hours_per_week=-5)) == 0.0


def test_weekly_available_capacity():
    assert weekly_available_capacity(40, 5, True) == 35.0
    assert weekly_available_capacity(40, 5, False) == 40.0
    assert weekly_available_capacity(4, 10, True) == 0.0


def test_total_capacity_for_weeks():
    assert total_capacity_for_weeks(35, 4) == 140.0
    assert total_capacity_for_weeks(35, -1) == 0.0


def test_capacity_summary_takes_reserved_hours_out():
    cap = TeamCapacityInput(hours_per_cycle=(80.0, 80.0), buffer_hours_per_week=5)
    assert capacity_summary(cap, weeks=4) == {
        "weekly_hours": 40.0,
        "cycle_hours": 160,
        "reserved_weekly_hours": 5.0,
        "reserved_cycle_hours": 20.0,
        "available_weekly_hours": 35.0,
        "available_hours_in_view": 140.0,
    }


def test_capacity_summary_without_reserved_hours():
    summary = capacity_summary(TeamCapacityInput(hours_per_cycle=(160.0,)), weeks=12)
    assert summary["available_weekly_hours"] == 40.0
    assert summary["available_hours_in_view"] == 480.0
    assert summary["reserved_cycle_hours"] == 0.0
