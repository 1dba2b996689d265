"""Hour arithmetic shared by the engine, the repository and the UI.

Every display rounding in the app rounds halves away from zero (12.5 -> 13), which is
not what the builtin ``round`` does, so the helpers below go through ``math.floor``.
"""

from __future__ import annotations

import math

# Product disallows zero-hour work items.
MIN_HOURS = 0.5

# All hour inputs move in half-hour steps.
HOURS_STEP = 0.5


def round_half_up(value: float, digits: int = 0) -> float:
    """Round to ``digits`` decimals with ties going up (towards +inf)."""
    factor = 10**digits
    return math.floor(value * factor + 0.5) / factor


def round1(value: float) -> float:
    return round_half_up(value, 1)


def round_int(value: float) -> int:
    return int(round_half_up(value, 0))


def is_finite_number(value) -> bool:
    if isinstance(value, bool):
        return False
    try:
        return math.isfinite(float(value))
    except (TypeError, ValueError):
        return False


def round_to_half_hour(value: float) -> float:
    """Round to the nearest 0.5h; exact quarters (3.25) go up (3.5)."""
    if not is_finite_number(value):
        return MIN_HOURS
    half_units = math.floor(float(value) * 2 + 0.5)
    return max(0.0, half_units / 2)


def _to_number(raw) -> float | None:
    if isinstance(raw, str):
        s = raw.strip()
        if not s:
            return None
        try:
            num = float(s)
        except ValueError:
            return None
    else:
        try:
            num = float(raw)
        except (TypeError, ValueError):
            return None
    return num if math.isfinite(num) else None


def sanitize_hours_input(raw: str | float) -> float:
    """Parse raw input, round to 0.5h and clamp to ``MIN_HOURS``."""
    num = _to_number(raw)
    if num is None:
        return MIN_HOURS
    return max(MIN_HOURS, round_to_half_hour(num))


def sanitize_hours_input_allow_zero(raw: str | float) -> float:
    """Like :func:`sanitize_hours_input` but 0 is allowed (disabled capacity/buffer)."""
    num = _to_number(raw)
    if num is None or num < 0:
        return 0.0
    return round_to_half_hour(num)


def format_hours_for_display(hours: float) -> str:
    """3.5 -> "3.5", 3.0 -> "3"."""
    if not is_finite_number(hours):
        return "0"
    rounded = round_to_half_hour(hours)
    if rounded % 1 == 0:
        return str(int(rounded))
    return str(rounded)
