from __future__ import annotations

from contextlib import contextmanager

from nicegui import ui

from capacityplan.core.horizon import exposure_label, snapshot_rows
from capacityplan.core.hours import round1, round_int
from capacityplan.core.models import ExposureLevel, HorizonSnapshot

# Bar/badge colours per exposure level.
EXPOSURE_COLORS: dict[str, str] = {
    "low": "#059669",  # emerald-600
    "medium": "#d97706",  # amber-600
    "high": "#e11d48",  # rose-600
}
BUFFER_COLOR = "#94a3b8"  # slate-400


def apply_theme() -> None:
    """Apply a lightweight global theme."""
    ui.colors(
        primary="#2563eb",  # blue-600
        secondary="#0ea5e9",  # sky-500
        positive="#16a34a",  # green-600
        negative="#dc2626",  # red-600
        warning="#f59e0b",  # amber-500
    )

    ui.add_css(
        """
        body { background: #f8fafc; }
        .cp-container { max-width: 1200px; margin: 0 auto; padding: 16px; }
        .cp-subtitle { color: #475569; }
        .cp-header { border-bottom: 1px solid rgba(15, 23, 42, 0.08); }
        .cp-kpi.q-card { border: 1px solid rgba(15, 23, 42, 0.08); border-radius: 16px; }
        .cp-table .q-table th, .cp-table .q-table td { padding: 6px 8px; }
        """
    )


@contextmanager
def page_container():
    with ui.element("div").classes("cp-container"):
        yield


def render_nav(active: str | None = None, *, team_name: str = "Team") -> None:
    # ui.colors and ui.add_css are per client, so every page applies them.
    apply_theme()
    active_key = active or "dashboard"
    sections: list[tuple[str, str, str]] = [
        ("dashboard", "Dashboard", "/"),
        ("evaluate", "Evaluate", "/evaluate"),
        ("work_items", "Committed work", "/work-items"),
        ("actualizar", "Data", "/actualizar"),
    ]

    with ui.header().classes("cp-header bg-white text-slate-900"):
        with ui.row().classes("w-full items-center justify-between gap-4 px-4 py-2"):
            ui.label(f"{team_name} · Capacity").classes("text-xl md:text-2xl font-semibold leading-none")
            with ui.row().classes("items-center gap-1"):
                for key, label, path in sections:
                    props = "dense no-caps color=primary" + (" unelevated" if key == active_key else " flat")
                    ui.button(label, on_click=lambda p=path: ui.navigate.to(p)).props(props)


def exposure_badge(level: ExposureLevel | str, text: str | None = None) -> None:
    level = ExposureLevel(level)
    color = EXPOSURE_COLORS[level.value]
    ui.badge(text or exposure_label(level)).props("outline").style(f"color: {color}; border-color: {color}")


def render_kpi_cards(snapshot: HorizonSnapshot) -> None:
    with ui.row().classes("w-full gap-4 items-stretch"):
        with ui.card().classes("cp-kpi p-4 min-w-[220px] flex-1"):
            ui.label("Exposure").classes("text-sm text-slate-500")
            with ui.row().classes("w-full items-center justify-between"):
                ui.label(exposure_label(snapshot.exposure_level)).classes("text-2xl font-semibold")
                exposure_badge(snapshot.exposure_level, f"{snapshot.max_utilization_pct}% max")

        with ui.card().classes("cp-kpi p-4 min-w-[180px] flex-1"):
            ui.label("Max utilization").classes("text-sm text-slate-500")
            ui.label(f"{snapshot.max_utilization_pct}%").classes("text-2xl font-semibold")
            ui.label("Peak load").classes("text-xs text-slate-500").tooltip(
                "Highest weekly utilization in this window. Where your team is most constrained."
            )

        with ui.card().classes("cp-kpi p-4 min-w-[180px] flex-1"):
            ui.label("Committed hours").classes("text-sm text-slate-500")
            ui.label(f"{snapshot.total_committed_hours}h").classes("text-2xl font-semibold")
            ui.label(f"of {snapshot.total_capacity_hours}h in view · {snapshot.overall_utilization_pct}%").classes(
                "text-xs text-slate-500"
            )

        with ui.card().classes("cp-kpi p-4 min-w-[180px] flex-1"):
            ui.label("Weeks equivalent").classes("text-sm text-slate-500")
            ui.label(f"{snapshot.weeks_equivalent}w").classes("text-2xl font-semibold")
            ui.label(f"{snapshot.cycle_capacity_hours}h per 4-week cycle").classes("text-xs text-slate-500")


def horizon_chart_options(snapshot: HorizonSnapshot, *, compare_to: HorizonSnapshot | None = None) -> dict:
    """ECharts options: buffer + work stacked per week, with an optional "after" line."""
    rows = snapshot_rows(snapshot)
    labels = [r["label"] for r in rows]
    buffer_pct = [
        round1(min(100.0, r["buffer_hours"] / r["capacity_hours"] * 100)) if r["capacity_hours"] > 0 else 0
        for r in rows
    ]
    work = [
        {
            "value": max(0, r["utilization_pct"] - b),
            "itemStyle": {"color": EXPOSURE_COLORS[r["exposure"]]},
        }
        for r, b in zip(rows, buffer_pct)
    ]
    series: list[dict] = [
        {"name": "Reserved", "type": "bar", "stack": "util", "data": buffer_pct, "itemStyle": {"color": BUFFER_COLOR}},
        {"name": "Work", "type": "bar", "stack": "util", "data": work},
    ]
    if compare_to is not None:
        series.append(
            {
                "name": "After",
                "type": "line",
                "data": [r["utilization_pct"] for r in snapshot_rows(compare_to)],
                "lineStyle": {"type": "dashed"},
            }
        )
    series[-1]["markLine"] = {"symbol": "none", "data": [{"yAxis": 100}], "lineStyle": {"color": "#dc2626"}}
    return {
        "tooltip": {"trigger": "axis"},
        "legend": {"top": 0},
        "grid": {"left": 45, "right": 20, "top": 30, "bottom": 45},
        "xAxis": {"type": "category", "data": labels},
        "yAxis": {"type": "value", "name": "%"},
        "series": series,
    }


def render_horizon_chart(snapshot: HorizonSnapshot, *, compare_to: HorizonSnapshot | None = None) -> None:
    ui.echart(horizon_chart_options(snapshot, compare_to=compare_to)).classes("w-full h-72")


def render_week_rows(snapshot: HorizonSnapshot) -> None:
    for r in snapshot_rows(snapshot):
        with ui.column().classes("w-full gap-1"):
            with ui.row().classes("w-full items-center justify-between text-sm"):
                ui.label(r["label"]).classes("font-medium")
                text = f"{round_int(r['committed_hours'])}h / {round_int(r['capacity_hours'])}h · {r['utilization_pct']}%"
                if r["over_pct"] > 0:
                    text += f"  (+{r['over_pct']}% over)"
                ui.label(text).classes("text-slate-600")
            ui.linear_progress(value=min(r["utilization_pct"], 100) / 100, show_value=False).props(
                f"color={'positive' if r['exposure'] == 'low' else ('warning' if r['exposure'] == 'medium' else 'negative')}"
            )


def render_at_risk(rows: list[dict]) -> None:
    ui.label("At risk weeks").classes("text-lg font-semibold")
    if not rows:
        ui.label("No weeks above 90% utilization.").classes("text-sm text-slate-500")
        return
    for r in rows:
        with ui.row().classes("w-full items-center justify-between text-sm"):
            ui.label(r["label"]).classes("font-medium")
            exposure_badge(r["exposure"], f"{r['utilization_pct']}%")
