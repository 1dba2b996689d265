"""Date-only helpers and the week-bucket calendar.

Dates are plain ``datetime.date`` values (or ``YYYY-MM-DD`` strings at the edges).
Nothing here does timezone arithmetic except resolving "today".
"""

from __future__ import annotations

import re
from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo

from capacityplan.core.errors import InvalidDateError, InvalidQuantityError
from capacityplan.core.models import WeekBucket

DEFAULT_TZ = "Europe/Madrid"
DEFAULT_LOCALE = "en-GB"
MAX_WEEK_COUNT = 52

_YMD_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

# Fixed English abbreviations; labels must not depend on the process locale.
_MONTH_ABBR = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")

VIEW_LABELS: dict[str, str] = {
    "month": "Current month",
    "4w": "Next 4 weeks",
    "12w": "Next 12 weeks",
    "quarter": "Current Quarter",
    "6m": "6 months",
}
DEFAULT_VIEW = "4w"


def today_in_tz(tz: str = DEFAULT_TZ, *, now: datetime | None = None) -> date:
    """Today's calendar date in ``tz``."""
    zone = ZoneInfo(tz)
    moment = now.astimezone(zone) if now is not None else datetime.now(zone)
    return moment.date()


def is_valid_ymd(value: str) -> bool:
    """True for real calendar dates in YYYY-MM-DD (rejects 2026-02-31)."""
    if not isinstance(value, str) or not _YMD_RE.match(value):
        return False
    try:
        date.fromisoformat(value)
    except ValueError:
        return False
    return True


def parse_ymd(value: str | date, *, field: str = "date") -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    s = str(value or "").strip()
    if not is_valid_ymd(s):
        raise InvalidDateError(f"{field} must be a valid date in YYYY-MM-DD format (got {value!r}).")
    return date.fromisoformat(s)


def parse_optional_ymd(value: str | date | None, *, field: str = "date") -> date | None:
    if value is None:
        return None
    if isinstance(value, str) and not value.strip():
        return None
    return parse_ymd(value, field=field)


def format_date_ddmmyyyy(value: str | date) -> str:
    """Frontend display format; unparseable input is returned unchanged."""
    try:
        d = value if isinstance(value, date) else date.fromisoformat(str(value).strip()[:10])
    except ValueError:
        return str(value)
    return d.strftime("%d/%m/%Y")


def start_of_iso_week(day: date) -> date:
    return day - timedelta(days=day.weekday())


def end_of_iso_week(day: date) -> date:
    return start_of_iso_week(day) + timedelta(days=6)


def weeks_between_iso_weeks_inclusive(start: date, end: date) -> int:
    days = (start_of_iso_week(end) - start_of_iso_week(start)).days
    return days // 7 + 1


def _format_day(day: date, locale: str) -> str:
    month = _MONTH_ABBR[day.month - 1]
    if locale.lower().startswith("en-us"):
        return f"{month} {day.day}"
    return f"{day.day} {month}"


def week_label(start: date, end: date, locale: str = DEFAULT_LOCALE) -> str:
    return f"{_format_day(start, locale)} - {_format_day(end, locale)}"


def build_week_buckets(
    reference_date: str | date,
    week_count: int,
    *,
    capacity_hours: float = 0.0,
    max_week_count: int = MAX_WEEK_COUNT,
    locale: str = DEFAULT_LOCALE,
) -> tuple[WeekBucket, ...]:
    """Contiguous ISO-week buckets starting on the Monday on/before ``reference_date``."""
    ref = parse_ymd(reference_date, field="reference_date")
    if not isinstance(week_count, int) or week_count < 1 or week_count > max_week_count:
        raise InvalidQuantityError(f"week_count must be between 1 and {max_week_count} (got {week_count!r}).")

    first_monday = start_of_iso_week(ref)
    buckets = []
    for i in range(week_count):
        ws = first_monday + timedelta(weeks=i)
        we = ws + timedelta(days=6)
        buckets.append(
            WeekBucket(
                start_date=ws,
                end_date=we,
                label=week_label(ws, we, locale),
                capacity_hours=capacity_hours,
                committed_hours=0.0,
            )
        )
    return tuple(buckets)


def _last_day_of_month(day: date) -> date:
    first_next = date(day.year + (day.month // 12), day.month % 12 + 1, 1)
    return first_next - timedelta(days=1)


def _last_day_of_quarter(day: date) -> date:
    quarter_end_month = ((day.month - 1) // 3 + 1) * 3
    return _last_day_of_month(date(day.year, quarter_end_month, 1))


def normalize_view(raw) -> str:
    if isinstance(raw, (list, tuple)):
        raw = raw[0] if raw else ""
    v = str(raw or "").strip()
    return v if v in VIEW_LABELS else DEFAULT_VIEW


def weeks_for_view(view: str, today: date) -> int:
    """Number of ISO weeks a dashboard view spans, counted from today's week."""
    view = normalize_view(view)
    if view == "4w":
        return 4
    if view == "12w":
        return 12
    if view == "6m":
        return 26
    if view == "quarter":
        return weeks_between_iso_weeks_inclusive(today, end_of_iso_week(_last_day_of_quarter(today)))
    # month: until the week holding the month's last day
    return weeks_between_iso_weeks_inclusive(today, end_of_iso_week(_last_day_of_month(today)))


def view_for_needed_weeks(needed_weeks: int, today: date) -> str:
    """Shortest view spanning ``needed_weeks`` from today's week; 6 months at most."""
    for view in sorted(VIEW_LABELS, key=lambda v: weeks_for_view(v, today)):
        if weeks_for_view(view, today) >= needed_weeks:
            return view
    return "6m"


def expand_view_for_deadline(view: str, deadline: str | date, today: date) -> tuple[str, bool]:
    """(view to show, deadline still past it) for a deadline typed into the evaluate form.

    Views never shrink: a deadline already inside ``view`` keeps it.
    """
    view = normalize_view(view)
    needed = weeks_between_iso_weeks_inclusive(today, parse_ymd(deadline, field="Deadline"))
    if needed <= weeks_for_view(view, today):
        return view, False
    next_view = view_for_needed_weeks(needed, today)
    return next_view, needed > weeks_for_view(next_view, today)
