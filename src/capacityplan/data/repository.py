from __future__ import annotations

import logging
from datetime import date

from capacityplan.core.capacity import resolve_weekly_capacity
from capacityplan.core.dates import DEFAULT_TZ
from capacityplan.core.errors import CapacityPlanError
from capacityplan.core.evaluate import evaluate_new_work
from capacityplan.core.horizon import build_horizon_snapshot
from capacityplan.core.hours import is_finite_number
from capacityplan.core.models import (
    AllocationMode,
    EvaluateResult,
    HorizonOptions,
    HorizonSnapshot,
    NewWorkInput,
    TeamCapacityInput,
    TeamMember,
    WorkItem,
)
from capacityplan.core.validation import validate_buffer, validate_member_hours, validate_new_work
from capacityplan.data.db import DEFAULT_TEAM_ID, Db
from capacityplan.data.excel_io import (
    coerce_date,
    coerce_float,
    coerce_optional_date,
    is_blank,
    normalize_columns,
    read_excel_bytes,
)

logger = logging.getLogger(__name__)


class Repository:
    """Reads and writes the team store and wires it into the horizon engine."""

    def __init__(self, db: Db):
        self.db = db

    # ---------- Team ----------
    def get_team_name(self, *, team_id: str = DEFAULT_TEAM_ID) -> str:
        with self.db.connect() as con:
            row = con.execute("SELECT name FROM teams WHERE id = ?", (team_id,)).fetchone()
        name = str(row["name"] or "").strip() if row else ""
        return name or "Team"

    def _require_team(self, con, team_id: str) -> None:
        row = con.execute("SELECT 1 FROM teams WHERE id = ?", (team_id,)).fetchone()
        if row is None:
            raise ValueError(f"unknown team: {team_id!r}")

    def get_buffer_hours_per_week(self, *, team_id: str = DEFAULT_TEAM_ID) -> float:
        with self.db.connect() as con:
            self._require_team(con, team_id)
            row = con.execute("SELECT buffer_hours_per_week FROM teams WHERE id = ?", (team_id,)).fetchone()
        raw = row["buffer_hours_per_week"]
        if not is_finite_number(raw):
            return 0.0
        return max(0.0, float(raw))

    def update_buffer(self, *, buffer_hours_per_week, team_id: str = DEFAULT_TEAM_ID) -> int:
        """Store the weekly structural buffer; it may not exceed weekly capacity."""
        weekly = self.get_weekly_capacity(team_id=team_id)
        buf = validate_buffer(buffer_hours_per_week, weekly_capacity_hours=weekly)
        with self.db.connect() as con:
            con.execute("UPDATE teams SET buffer_hours_per_week = ? WHERE id = ?", (buf, team_id))
        logger.info("Team %s buffer set to %sh/week", team_id, buf)
        return buf

    # ---------- Members ----------
    def get_team_members_rows(self, *, team_id: str = DEFAULT_TEAM_ID) -> list[dict]:
        with self.db.connect() as con:
            rows = con.execute(
                "SELECT id, name, hours_per_cycle FROM team_members WHERE team_id = ? ORDER BY id ASC",
                (team_id,),
            ).fetchall()
        return [
            {
                "id": int(r["id"]),
                "name": r["name"],
                "hours_per_cycle": float(r["hours_per_cycle"] or 0.0),
            }
            for r in rows
        ]

    def get_team_members_model(self, *, team_id: str = DEFAULT_TEAM_ID) -> list[TeamMember]:
        return [
            TeamMember(member_id=str(r["id"]), name=r["name"], hours_per_cycle=r["hours_per_cycle"])
            for r in self.get_team_members_rows(team_id=team_id)
        ]

    def upsert_team_member(
        self,
        *,
        name: str | None,
        hours_per_cycle,
        member_id: int | None = None,
        team_id: str = DEFAULT_TEAM_ID,
    ) -> int:
        hours = validate_member_hours(hours_per_cycle)
        clean_name = str(name or "").strip() or None
        with self.db.connect() as con:
            self._require_team(con, team_id)
            if member_id is None:
                cur = con.execute(
                    "INSERT INTO team_members(team_id, name, hours_per_cycle) VALUES(?, ?, ?)",
                    (team_id, clean_name, hours),
                )
                return int(cur.lastrowid)
            con.execute(
                "UPDATE team_members SET name = ?, hours_per_cycle = ? WHERE id = ? AND team_id = ?",
                (clean_name, hours, int(member_id), team_id),
            )
            return int(member_id)

    def delete_team_member(self, *, member_id: int, team_id: str = DEFAULT_TEAM_ID) -> bool:
        with self.db.connect() as con:
            cur = con.execute("DELETE FROM team_members WHERE id = ? AND team_id = ?", (int(member_id), team_id))
        return cur.rowcount > 0

    def get_team_capacity_input(self, *, team_id: str = DEFAULT_TEAM_ID) -> TeamCapacityInput:
        return TeamCapacityInput.from_members(
            self.get_team_members_model(team_id=team_id),
            buffer_hours_per_week=self.get_buffer_hours_per_week(team_id=team_id),
        )

    def get_weekly_capacity(self, *, team_id: str = DEFAULT_TEAM_ID) -> float:
        return resolve_weekly_capacity(self.get_team_capacity_input(team_id=team_id))

    # ---------- Work items ----------
    def get_work_items_rows(self, *, team_id: str = DEFAULT_TEAM_ID) -> list[dict]:
        """Newest first."""
        with self.db.connect() as con:
            rows = con.execute(
                """
                SELECT id, name, estimated_hours, start_date, deadline, allocation_mode, created_at
                FROM work_items
                WHERE team_id = ?
                ORDER BY created_at DESC, id DESC
                """,
                (team_id,),
            ).fetchall()
        return [dict(r) for r in rows]

    def get_work_items_model(self, *, team_id: str = DEFAULT_TEAM_ID) -> list[WorkItem]:
        out: list[WorkItem] = []
        for r in self.get_work_items_rows(team_id=team_id):
            try:
                out.append(
                    WorkItem(
                        item_id=str(r["id"]),
                        name=str(r["name"] or ""),
                        estimated_hours=float(r["estimated_hours"] or 0.0),
                        start_date=date.fromisoformat(str(r["start_date"]).strip()),
                        deadline=date.fromisoformat(str(r["deadline"]).strip()) if r["deadline"] else None,
                        allocation_mode=AllocationMode.parse(r["allocation_mode"]),
                    )
                )
            except (ValueError, CapacityPlanError):
                logger.warning("Skipping malformed work item row %s", r.get("id"))
        return out

    def commit_work_item(
        self,
        *,
        name: str | None,
        total_hours,
        start_date: str | date,
        deadline: str | date | None = None,
        allocation_mode: str | AllocationMode | None = None,
        team_id: str = DEFAULT_TEAM_ID,
    ) -> int:
        """Validate and persist a new work item. Returns its id."""
        work = validate_new_work(
            name=name,
            total_hours=total_hours,
            start_date=start_date,
            deadline=deadline,
            allocation_mode=allocation_mode,
        )
        return self._insert_work_item(work, team_id=team_id)

    def _insert_work_item(self, work: NewWorkInput, *, team_id: str) -> int:
        with self.db.connect() as con:
            self._require_team(con, team_id)
            cur = con.execute(
                """
                INSERT INTO work_items(team_id, name, estimated_hours, start_date, deadline, allocation_mode)
                VALUES(?, ?, ?, ?, ?, ?)
                """,
                (
                    team_id,
                    work.name,
                    work.total_hours,
                    work.start_date.isoformat(),
                    work.deadline.isoformat() if work.deadline else None,
                    work.allocation_mode.value,
                ),
            )
            new_id = int(cur.lastrowid)
        logger.info("Committed work item %s (%s, %sh) for team %s", new_id, work.name, work.total_hours, team_id)
        return new_id

    def delete_work_item(self, *, work_item_id: int, team_id: str = DEFAULT_TEAM_ID) -> bool:
        with self.db.connect() as con:
            cur = con.execute("DELETE FROM work_items WHERE id = ? AND team_id = ?", (int(work_item_id), team_id))
        return cur.rowcount > 0

    # ---------- Engine ----------
    def get_dashboard_snapshot(
        self,
        *,
        options: HorizonOptions | None = None,
        team_id: str = DEFAULT_TEAM_ID,
        tz: str = DEFAULT_TZ,
    ) -> HorizonSnapshot:
        return build_horizon_snapshot(
            self.get_team_capacity_input(team_id=team_id),
            self.get_work_items_model(team_id=team_id),
            options,
            tz=tz,
        )

    def evaluate_work(
        self,
        work: NewWorkInput,
        *,
        options: HorizonOptions | None = None,
        team_id: str = DEFAULT_TEAM_ID,
        tz: str = DEFAULT_TZ,
    ) -> EvaluateResult:
        before = self.get_dashboard_snapshot(options=options, team_id=team_id, tz=tz)
        return evaluate_new_work(before, work)

    # ---------- Import ----------
    def import_excel_bytes(
        self, *, kind: str, content: bytes, mode: str = "append", team_id: str = DEFAULT_TEAM_ID
    ) -> int:
        """Load work items or team members from an .xlsx upload. Returns rows imported."""
        kind = str(kind or "").strip().lower()
        if mode not in {"append", "replace"}:
            raise ValueError(f"mode not supported: {mode!r}")

        if kind in {"work_items", "work", "committed_work"}:
            return self.import_work_items_bytes(content=content, mode=mode, team_id=team_id)

        if kind in {"team_members", "members", "team"}:
            return self.import_team_members_bytes(content=content, mode=mode, team_id=team_id)

        raise ValueError(f"kind not supported: {kind}")

    def import_work_items_bytes(self, *, content: bytes, mode: str = "append", team_id: str = DEFAULT_TEAM_ID) -> int:
        df = normalize_columns(read_excel_bytes(content))

        # Common header variants
        renames = {
            "hours": "estimated_hours",
            "estimate": "estimated_hours",
            "total_hours": "estimated_hours",
            "start": "start_date",
            "due_date": "deadline",
            "end_date": "deadline",
            "mode": "allocation_mode",
        }
        df = df.rename(columns={k: v for k, v in renames.items() if k in df.columns and v not in df.columns})
        self._validate_columns(df.columns, {"name", "estimated_hours", "start_date"})

        items: list[NewWorkInput] = []
        for idx, r in df.iterrows():
            if is_blank(r.get("name")):
                continue
            line = int(idx) + 2  # header is row 1
            try:
                items.append(
                    validate_new_work(
                        name=str(r.get("name")),
                        total_hours=coerce_float(r.get("estimated_hours")),
                        start_date=coerce_date(r.get("start_date"), field="start_date"),
                        deadline=coerce_optional_date(r.get("deadline"), field="deadline")
                        if "deadline" in df.columns
                        else None,
                        allocation_mode=None if is_blank(r.get("allocation_mode")) else str(r.get("allocation_mode")),
                    )
                )
            except ValueError as ex:
                raise ValueError(f"Row {line}: {ex}") from ex

        with self.db.connect() as con:
            self._require_team(con, team_id)
            if mode == "replace":
                con.execute("DELETE FROM work_items WHERE team_id = ?", (team_id,))
            con.executemany(
                """
                INSERT INTO work_items(team_id, name, estimated_hours, start_date, deadline, allocation_mode)
                VALUES(?, ?, ?, ?, ?, ?)
                """,
                [
                    (
                        team_id,
                        w.name,
                        w.total_hours,
                        w.start_date.isoformat(),
                        w.deadline.isoformat() if w.deadline else None,
                        w.allocation_mode.value,
                    )
                    for w in items
                ],
            )
        logger.info("Imported %s work items for team %s (%s)", len(items), team_id, mode)
        return len(items)

    def import_team_members_bytes(self, *, content: bytes, mode: str = "append", team_id: str = DEFAULT_TEAM_ID) -> int:
        df = normalize_columns(read_excel_bytes(content))
        if "hours_per_cycle" not in df.columns:
            for c in list(df.columns):
                if str(c).startswith("hours"):
                    df = df.rename(columns={c: "hours_per_cycle"})
                    break
        self._validate_columns(df.columns, {"name", "hours_per_cycle"})

        members: list[tuple[str | None, float]] = []
        for idx, r in df.iterrows():
            name = None if is_blank(r.get("name")) else str(r.get("name")).strip()
            raw_hours = coerce_float(r.get("hours_per_cycle"))
            if name is None and raw_hours is None:
                continue
            try:
                hours = validate_member_hours(raw_hours)
            except ValueError as ex:
                raise ValueError(f"Row {int(idx) + 2}: {ex}") from ex
            members.append((name, hours))

        with self.db.connect() as con:
            self._require_team(con, team_id)
            if mode == "replace":
                con.execute("DELETE FROM team_members WHERE team_id = ?", (team_id,))
            con.executemany(
                "INSERT INTO team_members(team_id, name, hours_per_cycle) VALUES(?, ?, ?)",
                [(team_id, name, hours) for name, hours in members],
            )
        logger.info("Imported %s team members for team %s (%s)", len(members), team_id, mode)
        return len(members)

    @staticmethod
    def _validate_columns(columns, required: set[str]) -> None:
        cols = {str(c).strip() for c in columns}
        missing = sorted(required - cols)
        if missing:
            raise ValueError(f"Missing columns: {missing}. Detected columns: {sorted(cols)}")
