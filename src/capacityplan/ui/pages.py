from __future__ import annotations

import asyncio
import logging
from urllib.parse import urlencode

from nicegui import ui

from capacityplan.core.dates import (
    VIEW_LABELS,
    expand_view_for_deadline,
    is_valid_ymd,
    normalize_view,
    start_of_iso_week,
    today_in_tz,
    weeks_for_view,
)
from capacityplan.core.errors import CapacityPlanError
from capacityplan.core.horizon import at_risk_weeks
from capacityplan.core.capacity import capacity_summary, cycle_to_weekly
from capacityplan.core.hours import HOURS_STEP, format_hours_for_display, sanitize_hours_input_allow_zero
from capacityplan.core.models import AllocationMode, EvaluateResult, HorizonOptions
from capacityplan.core.validation import validate_hours_input, validate_new_work
from capacityplan.core.workload import work_item_rows
from capacityplan.data.excel_io import coerce_float
from capacityplan.data.repository import Repository
from capacityplan.settings import Settings
from capacityplan.ui.widgets import (
    exposure_badge,
    page_container,
    render_at_risk,
    render_horizon_chart,
    render_kpi_cards,
    render_nav,
    render_week_rows,
)

logger = logging.getLogger(__name__)

MODE_LABELS = {
    AllocationMode.FILL_CAPACITY.value: "Fill capacity first",
    AllocationMode.EVEN.value: "Even spread",
}

WORK_ITEM_COLUMNS = [
    {"name": "name", "label": "Work", "field": "name", "align": "left"},
    {"name": "estimated_hours", "label": "Hours", "field": "estimated_hours"},
    {"name": "start_date", "label": "Start", "field": "start_display"},
    {"name": "deadline", "label": "Deadline", "field": "deadline_display"},
    {"name": "allocation_mode", "label": "Mode", "field": "allocation_mode"},
    {"name": "weekly_load", "label": "h/week", "field": "weekly_load"},
    {"name": "pct_weekly_capacity", "label": "% weekly cap.", "field": "pct_weekly_capacity"},
    {"name": "impact_label", "label": "Impact", "field": "impact_label"},
]


def register_pages(repo: Repository, settings: Settings) -> None:
    team_id = settings.team_id

    def horizon_options(view: str) -> HorizonOptions:
        today = today_in_tz(settings.timezone)
        return HorizonOptions(
            reference_date=today,
            week_count=weeks_for_view(view, today),
            locale=settings.locale,
        )

    def view_selector(view: str, path: str, hint: str) -> None:
        with ui.column().classes("gap-0"):
            ui.select(
                VIEW_LABELS,
                value=view,
                label="View",
                on_change=lambda e: ui.navigate.to(f"{path}?view={e.value}"),
            ).classes("w-64")
            if hint:
                ui.label(hint).classes("text-xs text-slate-500")

    @ui.page("/")
    def dashboard(view: str = "4w") -> None:
        view = normalize_view(view)
        render_nav(active="dashboard", team_name=repo.get_team_name(team_id=team_id))
        with page_container():
            try:
                snapshot = repo.get_dashboard_snapshot(options=horizon_options(view), team_id=team_id, tz=settings.timezone)
            except (ValueError, CapacityPlanError) as ex:
                logger.exception("Dashboard snapshot failed")
                ui.label(f"Could not build the dashboard: {ex}").classes("text-negative")
                return

            with ui.row().classes("w-full items-start justify-between"):
                with ui.column().classes("gap-0"):
                    ui.label("Dashboard").classes("text-2xl font-semibold")
                    ui.label("Committed workload vs team capacity over the selected view.").classes("cp-subtitle")
                view_selector(view, "/", snapshot.horizon_hint)

            render_kpi_cards(snapshot)

            with ui.row().classes("w-full gap-4 items-stretch no-wrap"):
                with ui.card().classes("p-4 flex-[2]"):
                    ui.label(f"Capacity horizon ({VIEW_LABELS[view]})").classes("text-lg font-semibold")
                    if snapshot.buffer_hours_per_week > 0:
                        ui.label(
                            f"Includes {format_hours_for_display(snapshot.buffer_hours_per_week)}h/week reserved capacity."
                        ).classes("text-sm text-slate-500")
                    render_horizon_chart(snapshot)
                    render_week_rows(snapshot)
                with ui.card().classes("p-4 flex-1"):
                    render_at_risk(at_risk_weeks(snapshot))

            items = repo.get_work_items_model(team_id=team_id)
            with ui.card().classes("p-4 w-full"):
                ui.label("Committed work").classes("text-lg font-semibold")
                if not items:
                    ui.label("No work items yet. Add them from Evaluate or import them in Data.").classes(
                        "text-sm text-slate-500"
                    )
                else:
                    ui.table(
                        columns=WORK_ITEM_COLUMNS,
                        rows=work_item_rows(
                            items,
                            view_end=snapshot.horizon_end,
                            weekly_capacity_hours=snapshot.weekly_capacity_hours,
                        ),
                        row_key="_row_id",
                    ).classes("w-full cp-table").props("dense flat bordered")

    @ui.page("/evaluate")
    def evaluate(
        view: str = "4w",
        name: str = "",
        hours: str = "40",
        start: str = "",
        deadline: str = "",
        mode: str = AllocationMode.FILL_CAPACITY.value,
        notice: str = "",
    ) -> None:
        view = normalize_view(view)
        render_nav(active="evaluate", team_name=repo.get_team_name(team_id=team_id))
        today = today_in_tz(settings.timezone)
        # Same first Monday the "before" horizon starts on.
        horizon_start = start_of_iso_week(today).isoformat()
        state: dict[str, object] = {"result": None, "work": None}

        if notice == "expanded":
            ui.notify(f"View expanded to include deadline: {VIEW_LABELS[view]}.")
        elif notice == "capped":
            ui.notify("Deadline exceeds the 6-month view; impact beyond it is not shown.", color="warning")

        with page_container():
            with ui.row().classes("w-full items-start justify-between"):
                with ui.column().classes("gap-0"):
                    ui.label("Evaluate new work").classes("text-2xl font-semibold")
                    ui.label("Preview the impact before committing. Nothing is saved until you commit.").classes(
                        "cp-subtitle"
                    )
                view_selector(view, "/evaluate", "")

            with ui.card().classes("p-4 w-full"):
                with ui.row().classes("w-full items-end gap-3"):
                    name_in = ui.input("Name", value=name).classes("w-64")
                    hours_in = ui.number("Total hours", value=coerce_float(hours), min=0, step=HOURS_STEP).classes(
                        "w-32"
                    )
                    start_in = ui.input("Start (YYYY-MM-DD)", value=start or horizon_start).classes("w-40")
                    deadline_in = ui.input("Deadline (optional)", value=deadline).classes("w-40")
                    mode_in = ui.select(
                        MODE_LABELS,
                        value=mode if mode in MODE_LABELS else AllocationMode.FILL_CAPACITY.value,
                        label="Allocation",
                    ).classes("w-48")

                with ui.row().classes("gap-2 pt-2"):
                    eval_btn = ui.button("Evaluate", icon="insights").props("unelevated color=primary")
                    commit_btn = ui.button("Commit work", icon="check").props("outline color=primary")
                    commit_btn.disable()

            @ui.refreshable
            def result_view() -> None:
                result = state["result"]
                if not isinstance(result, EvaluateResult):
                    ui.label("Fill in the work and press Evaluate.").classes("text-sm text-slate-500")
                    return
                render_result(result)

            def maybe_expand_to_deadline() -> None:
                d = str(deadline_in.value or "").strip()
                if not is_valid_ymd(d):
                    return
                next_view, capped = expand_view_for_deadline(view, d, today)
                if next_view == view and not capped:
                    return
                if next_view == view and notice == "capped":
                    return
                query = urlencode(
                    {
                        "view": next_view,
                        "name": name_in.value or "",
                        "hours": "" if hours_in.value is None else hours_in.value,
                        "start": start_in.value or "",
                        "deadline": d,
                        "mode": mode_in.value,
                        "notice": "capped" if capped else "expanded",
                    }
                )
                ui.navigate.to(f"/evaluate?{query}")

            async def run_evaluate() -> None:
                try:
                    work = validate_new_work(
                        name=name_in.value,
                        total_hours=validate_hours_input(hours_in.value),
                        start_date=start_in.value,
                        deadline=deadline_in.value or None,
                        allocation_mode=mode_in.value,
                    )
                    result = await asyncio.to_thread(
                        repo.evaluate_work,
                        work,
                        options=horizon_options(view),
                        team_id=team_id,
                        tz=settings.timezone,
                    )
                except (ValueError, CapacityPlanError) as ex:
                    ui.notify(str(ex), color="negative")
                    return
                state["result"] = result
                state["work"] = work
                commit_btn.enable()
                result_view.refresh()

            def run_commit() -> None:
                work = state.get("work")
                if work is None:
                    return
                try:
                    new_id = repo.commit_work_item(
                        name=work.name,
                        total_hours=work.total_hours,
                        start_date=work.start_date,
                        deadline=work.deadline,
                        allocation_mode=work.allocation_mode,
                        team_id=team_id,
                    )
                except (ValueError, CapacityPlanError) as ex:
                    ui.notify(f"Could not commit: {ex}", color="negative")
                    return
                ui.notify(f"Committed '{work.name}' (#{new_id})", color="positive")
                ui.navigate.to(f"/?view={view}")

            deadline_in.on("blur", maybe_expand_to_deadline)
            eval_btn.on_click(run_evaluate)
            commit_btn.on_click(run_commit)
            result_view()

    def render_result(result: EvaluateResult) -> None:
        d = result.deltas
        a = result.applied
        with ui.row().classes("w-full gap-4 items-stretch"):
            for title, before, after, delta, unit in (
                ("Committed hours", result.before.total_committed_hours, result.after.total_committed_hours, d.total_committed_hours, "h"),
                ("Max utilization", result.before.max_utilization_pct, result.after.max_utilization_pct, d.max_utilization_pct, "%"),
                ("Overall utilization", result.before.overall_utilization_pct, result.after.overall_utilization_pct, d.overall_utilization_pct, "%"),
            ):
                with ui.card().classes("cp-kpi p-4 flex-1"):
                    ui.label(title).classes("text-sm text-slate-500")
                    ui.label(f"{before}{unit} → {after}{unit}").classes("text-2xl font-semibold")
                    ui.label(f"{delta:+d}{unit}").classes("text-sm " + ("text-negative" if delta > 0 else "text-slate-500"))
            with ui.card().classes("cp-kpi p-4 flex-1"):
                ui.label("Exposure after").classes("text-sm text-slate-500")
                exposure_badge(result.after.exposure_level)

        with ui.card().classes("p-4 w-full"):
            spread = f"{a.weeks_count} week(s) · {a.week_range_label} · {MODE_LABELS[a.allocation_mode.value]}"
            if a.per_week_hours is not None:
                spread += f" · {format_hours_for_display(a.per_week_hours)}h/week"
            ui.label(spread).classes("text-sm text-slate-600")
            render_horizon_chart(result.before, compare_to=result.after)
            render_at_risk(at_risk_weeks(result.after))

    @ui.page("/work-items")
    def work_items_page() -> None:
        render_nav(active="work_items", team_name=repo.get_team_name(team_id=team_id))
        with page_container():
            ui.label("Committed work").classes("text-2xl font-semibold")

            @ui.refreshable
            def items_table() -> None:
                items = repo.get_work_items_model(team_id=team_id)
                if not items:
                    ui.label("No work items.").classes("text-sm text-slate-500")
                    return
                snapshot = repo.get_dashboard_snapshot(options=horizon_options("4w"), team_id=team_id, tz=settings.timezone)
                tbl = ui.table(
                    columns=WORK_ITEM_COLUMNS,
                    rows=work_item_rows(
                        items,
                        view_end=snapshot.horizon_end,
                        weekly_capacity_hours=snapshot.weekly_capacity_hours,
                    ),
                    row_key="_row_id",
                    selection="single",
                ).classes("w-full cp-table").props("dense flat bordered")

                def _delete_selected() -> None:
                    if not tbl.selected:
                        ui.notify("Select a row first", color="warning")
                        return
                    row = tbl.selected[0]
                    if repo.delete_work_item(work_item_id=int(row["item_id"]), team_id=team_id):
                        ui.notify(f"Deleted '{row['name']}'")
                    items_table.refresh()

                ui.button("Delete selected", icon="delete", on_click=_delete_selected).props("flat color=negative")

            items_table()

    @ui.page("/actualizar")
    def actualizar_data() -> None:
        render_nav(active="actualizar", team_name=repo.get_team_name(team_id=team_id))
        with page_container():
            ui.label("Team data").classes("text-2xl font-semibold")
            ui.label("Upload work items and team members (.xlsx), and set reserved capacity.").classes("cp-subtitle")

            with ui.row().classes("items-center gap-3 pt-2"):
                replace_cb = ui.checkbox("Replace existing rows instead of appending", value=False).props("dense")

            def uploader(kind: str, label: str):
                async def handle_upload(e):
                    try:
                        content = await e.file.read()
                        count = await asyncio.to_thread(
                            repo.import_excel_bytes,
                            kind=kind,
                            content=content,
                            mode="replace" if replace_cb.value else "append",
                            team_id=team_id,
                        )
                        filename = getattr(e.file, "name", None) or getattr(e.file, "filename", None)
                        extra = f" ({filename})" if filename else ""
                        ui.notify(f"Imported {count} rows{extra}")
                        ui.navigate.to("/actualizar")
                    except (ValueError, CapacityPlanError) as ex:
                        ui.notify(f"Error importing {kind}: {ex}", color="negative")

                ui.upload(label=label, on_upload=handle_upload).props("accept=.xlsx max-files=1")

            @ui.refreshable
            def members_editor() -> None:
                def _save(member_id: int | None, name: str | None, raw_hours) -> None:
                    try:
                        repo.upsert_team_member(
                            member_id=member_id,
                            name=name,
                            hours_per_cycle=sanitize_hours_input_allow_zero(raw_hours),
                            team_id=team_id,
                        )
                    except (ValueError, CapacityPlanError) as ex:
                        ui.notify(str(ex), color="negative")
                        return
                    ui.notify("Member saved", color="positive")
                    members_editor.refresh()
                    capacity_view.refresh()

                def _delete(member_id: int) -> None:
                    if repo.delete_team_member(member_id=member_id, team_id=team_id):
                        ui.notify("Member removed")
                    members_editor.refresh()
                    capacity_view.refresh()

                for m in repo.get_team_members_rows(team_id=team_id):
                    with ui.row().classes("w-full items-end gap-2 no-wrap"):
                        name_in = ui.input("Name", value=m["name"] or "").props("dense").classes("flex-1")
                        hours_in = ui.number("h / cycle", value=m["hours_per_cycle"], min=0, step=HOURS_STEP).props(
                            "dense"
                        ).classes("w-28")
                        ui.label(f"≈ {format_hours_for_display(cycle_to_weekly(m['hours_per_cycle']))}h/week").classes(
                            "text-xs text-slate-500 w-24"
                        )
                        ui.button(
                            icon="save",
                            on_click=lambda mid=m["id"], n=name_in, h=hours_in: _save(mid, n.value, h.value),
                        ).props("flat dense color=primary")
                        ui.button(icon="delete", on_click=lambda mid=m["id"]: _delete(mid)).props(
                            "flat dense color=negative"
                        )

                with ui.row().classes("w-full items-end gap-2 no-wrap pt-2"):
                    new_name = ui.input("New member").props("dense").classes("flex-1")
                    new_hours = ui.number("h / cycle", value=0, min=0, step=HOURS_STEP).props("dense").classes("w-28")
                    ui.button("Add", icon="person_add", on_click=lambda: _save(None, new_name.value, new_hours.value)).props(
                        "flat dense color=primary"
                    )

            @ui.refreshable
            def capacity_view() -> None:
                summary = capacity_summary(
                    repo.get_team_capacity_input(team_id=team_id),
                    weeks=weeks_for_view("4w", today_in_tz(settings.timezone)),
                )
                ui.label(
                    f"Team capacity: {format_hours_for_display(summary['weekly_hours'])}h/week "
                    f"({summary['cycle_hours']}h per 4-week cycle)"
                ).classes("text-sm")
                ui.label(
                    f"Reserved: {format_hours_for_display(summary['reserved_weekly_hours'])}h/week "
                    f"({format_hours_for_display(summary['reserved_cycle_hours'])}h per cycle) · "
                    f"available for work: {format_hours_for_display(summary['available_weekly_hours'])}h/week, "
                    f"{format_hours_for_display(summary['available_hours_in_view'])}h over the next 4 weeks"
                ).classes("text-sm text-slate-500")

            with ui.row().classes("w-full gap-4 items-stretch"):
                with ui.card().classes("p-4 w-[min(520px,100%)]"):
                    ui.label("Work items").classes("text-lg font-semibold")
                    ui.label("Columns: Name, Estimated hours, Start date, Deadline (optional), Allocation mode (optional).").classes(
                        "text-slate-600"
                    )
                    uploader("work_items", "Upload work items (.xlsx)")
                    ui.label(f"Rows loaded: {len(repo.get_work_items_rows(team_id=team_id))}").classes(
                        "text-sm text-slate-500"
                    )

                with ui.card().classes("p-4 w-[min(520px,100%)]"):
                    ui.label("Team members").classes("text-lg font-semibold")
                    ui.label("Columns: Name, Hours per cycle (4 weeks).").classes("text-slate-600")
                    uploader("team_members", "Upload team members (.xlsx)")
                    members_editor()

            with ui.card().classes("p-4 w-[min(520px,100%)]"):
                ui.label("Reserved capacity").classes("text-lg font-semibold")
                weekly = repo.get_weekly_capacity(team_id=team_id)
                ui.label(
                    f"Hours per week booked as committed load in every week (max {format_hours_for_display(weekly)}h)."
                ).classes("text-slate-600")
                capacity_view()
                buffer_in = ui.number(
                    "Buffer (h/week)", value=repo.get_buffer_hours_per_week(team_id=team_id), min=0, step=1
                ).classes("w-40")

                def _save_buffer() -> None:
                    try:
                        buf = repo.update_buffer(buffer_hours_per_week=buffer_in.value, team_id=team_id)
                    except (ValueError, CapacityPlanError) as ex:
                        ui.notify(str(ex), color="negative")
                        return
                    ui.notify(f"Buffer saved: {buf}h/week", color="positive")
                    capacity_view.refresh()

                ui.button("Save", on_click=_save_buffer).props("unelevated color=primary")
