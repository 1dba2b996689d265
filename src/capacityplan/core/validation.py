"""Caller-level validation, run before anything reaches the engine."""

from __future__ import annotations

from datetime import date

from capacityplan.core.dates import parse_optional_ymd, parse_ymd
from capacityplan.core.errors import CapacityPlanError, InvalidQuantityError, InvalidRangeError
from capacityplan.core.hours import is_finite_number, round_int, sanitize_hours_input
from capacityplan.core.models import AllocationMode, NewWorkInput


def validate_hours(value, *, field: str = "Estimated hours") -> float:
    if not is_finite_number(value) or float(value) <= 0:
        raise InvalidQuantityError(f"{field} must be greater than 0.")
    return float(value)


def validate_range(start: date, deadline: date | None) -> None:
    if deadline is not None and deadline < start:
        raise InvalidRangeError("Deadline cannot be before start date.")


def validate_new_work(
    *,
    name: str | None,
    total_hours,
    start_date: str | date,
    deadline: str | date | None = None,
    allocation_mode: str | AllocationMode | None = None,
    require_name: bool = True,
) -> NewWorkInput:
    """Build a :class:`NewWorkInput` from raw form/import values or raise a typed error."""
    clean_name = str(name or "").strip()
    if require_name and not clean_name:
        raise CapacityPlanError("Work name is required.")

    hours = validate_hours(total_hours)
    start = parse_ymd(start_date, field="Start date")
    end = parse_optional_ymd(deadline, field="Deadline")
    validate_range(start, end)

    return NewWorkInput(
        name=clean_name,
        total_hours=hours,
        start_date=start,
        deadline=end,
        allocation_mode=AllocationMode.parse(allocation_mode),
    )


def validate_buffer(buffer_hours_per_week, *, weekly_capacity_hours: float) -> int:
    """Whole hours, 0 <= buffer <= weekly capacity."""
    if not is_finite_number(buffer_hours_per_week) or float(buffer_hours_per_week) < 0:
        raise InvalidQuantityError("Buffer must be a non-negative number.")
    buf = round_int(float(buffer_hours_per_week))
    if buf > weekly_capacity_hours:
        raise InvalidQuantityError(f"Buffer cannot exceed weekly capacity ({round_int(weekly_capacity_hours)}h).")
    return buf


def validate_member_hours(hours_per_cycle) -> float:
    if not is_finite_number(hours_per_cycle) or float(hours_per_cycle) < 0:
        raise InvalidQuantityError("Hours per cycle must be a non-negative number.")
    return float(hours_per_cycle)


def validate_hours_input(raw, *, field: str = "Estimated hours") -> float:
    """Form input: reject non-positive values, then snap to the half-hour step."""
    return sanitize_hours_input(validate_hours(raw, field=field))
