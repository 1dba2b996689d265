from __future__ import annotations

from datetime import date

from capacityplan.core.dates import format_date_ddmmyyyy
from capacityplan.core.hours import round1, round_int
from capacityplan.core.models import WorkItem

IMPACT_LABELS: dict[str, str] = {"low": "Low", "medium": "Medium", "high": "High"}


def item_span_weeks(item: WorkItem, view_end: date) -> float:
    """Weeks between start and deadline (or the end of the view), at least one day."""
    end = item.deadline if item.deadline is not None else view_end
    days = (end - item.start_date).days + 1
    return max(1 / 7, days / 7)


def weekly_load_in_window(item: WorkItem, view_end: date) -> float:
    """Hours per week the item asks for inside its own window."""
    weeks = item_span_weeks(item, view_end)
    return item.estimated_hours / weeks if weeks > 0 else 0.0


def pct_weekly_capacity(weekly_load: float, weekly_capacity_hours: float) -> float:
    if weekly_capacity_hours <= 0:
        return 0.0
    return weekly_load / weekly_capacity_hours * 100


def impact_from_pct(pct: float) -> str:
    # Low < 20%, Medium 20-50%, High > 50%
    if pct < 20:
        return "low"
    if pct <= 50:
        return "medium"
    return "high"


def work_item_rows(items: list[WorkItem], *, view_end: date, weekly_capacity_hours: float) -> list[dict]:
    rows: list[dict] = []
    for item in items:
        load = weekly_load_in_window(item, view_end)
        pct = pct_weekly_capacity(load, weekly_capacity_hours)
        impact = impact_from_pct(pct)
        rows.append(
            {
                "_row_id": item.item_id,
                "item_id": item.item_id,
                "name": item.name,
                "estimated_hours": item.estimated_hours,
                "start_date": item.start_date.isoformat(),
                "deadline": item.deadline.isoformat() if item.deadline else None,
                "start_display": format_date_ddmmyyyy(item.start_date),
                "deadline_display": format_date_ddmmyyyy(item.deadline) if item.deadline else "-",
                "allocation_mode": item.allocation_mode.value,
                "weekly_load": round1(load),
                "pct_weekly_capacity": round_int(pct),
                "impact": impact,
                "impact_label": IMPACT_LABELS[impact],
            }
        )
    return rows
