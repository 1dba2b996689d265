"""Capacity units.

Members store capacity as hours per 4-week cycle; the engine works in hours per week.
Reserved (buffer) capacity is not subtracted here: the snapshot builder books it as
committed load in every week.
"""

from __future__ import annotations

from capacityplan.core.hours import is_finite_number, round_half_up, round_int
from capacityplan.core.models import TeamCapacityInput

BASE_WEEKS_PER_CYCLE = 4


def normalize_hours(value: float) -> float:
    """Two decimals; non-finite values become 0."""
    if not is_finite_number(value):
        return 0.0
    return round_half_up(float(value), 2)


def _clean(value) -> float:
    if not is_finite_number(value) or float(value) < 0:
        return 0.0
    return float(value)


def cycle_to_weekly(hours_per_cycle: float) -> float:
    return normalize_hours(_clean(hours_per_cycle) / BASE_WEEKS_PER_CYCLE)


def weekly_to_cycle(hours_per_week: float) -> float:
    return normalize_hours(_clean(hours_per_week) * BASE_WEEKS_PER_CYCLE)


def resolve_weekly_capacity(capacity: TeamCapacityInput) -> float:
    """Team capacity in hours/week: ``sum(hours_per_cycle) / 4``."""
    return cycle_to_weekly(sum(normalize_hours(_clean(h)) for h in capacity.hours_per_cycle))


def resolve_cycle_capacity(capacity: TeamCapacityInput) -> int:
    """Team capacity per 4-week cycle, whole hours."""
    return round_int(sum(normalize_hours(_clean(h)) for h in capacity.hours_per_cycle))


def resolve_buffer(capacity: TeamCapacityInput) -> float:
    return normalize_hours(_clean(capacity.buffer_hours_per_week))


def weekly_available_capacity(total_weekly: float, reserved_weekly: float, enabled: bool) -> float:
    """Weekly capacity left after reserved capacity (when reserved capacity is enabled)."""
    if not enabled or reserved_weekly <= 0:
        return normalize_hours(total_weekly)
    return normalize_hours(max(0.0, total_weekly - reserved_weekly))


def total_capacity_for_weeks(weekly_available: float, weeks: int) -> float:
    if not is_finite_number(weeks) or weeks < 0:
        return 0.0
    return normalize_hours(weekly_available * weeks)


def capacity_summary(capacity: TeamCapacityInput, *, weeks: int) -> dict:
    """Team capacity figures for the settings page, with reserved hours taken out."""
    weekly = resolve_weekly_capacity(capacity)
    reserved = resolve_buffer(capacity)
    available = weekly_available_capacity(weekly, reserved, reserved > 0)
    return {
        "weekly_hours": weekly,
        "cycle_hours": resolve_cycle_capacity(capacity),
        "reserved_weekly_hours": reserved,
        "reserved_cycle_hours": weekly_to_cycle(reserved),
        "available_weekly_hours": available,
        "available_hours_in_view": total_capacity_for_weeks(available, weeks),
    }
