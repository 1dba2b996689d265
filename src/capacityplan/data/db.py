from __future__ import annotations

import sqlite3
from pathlib import Path

DEFAULT_TEAM_ID = "default"


class Db:
    def __init__(self, path: Path):
        self.path = path
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def connect(self) -> sqlite3.Connection:
        con = sqlite3.connect(self.path)
        con.row_factory = sqlite3.Row
        return con

    def ensure_schema(self) -> None:
        with self.connect() as con:
            con.execute("PRAGMA journal_mode=WAL;")
            con.execute("PRAGMA foreign_keys=ON;")

            con.executescript(
                """
                CREATE TABLE IF NOT EXISTS teams (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    buffer_hours_per_week REAL NOT NULL DEFAULT 0
                );

                CREATE TABLE IF NOT EXISTS team_members (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    team_id TEXT NOT NULL REFERENCES teams(id) ON DELETE CASCADE,
                    name TEXT,
                    hours_per_cycle REAL NOT NULL DEFAULT 0
                );

                CREATE TABLE IF NOT EXISTS work_items (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    team_id TEXT NOT NULL REFERENCES teams(id) ON DELETE CASCADE,
                    name TEXT NOT NULL,
                    estimated_hours REAL NOT NULL,
                    start_date TEXT NOT NULL,
                    deadline TEXT,
                    allocation_mode TEXT NOT NULL DEFAULT 'fill_capacity',
                    created_at TEXT NOT NULL DEFAULT (datetime('now'))
                );

                CREATE INDEX IF NOT EXISTS ix_team_members_team ON team_members(team_id);
                CREATE INDEX IF NOT EXISTS ix_work_items_team ON work_items(team_id);
                """
            )

            # work_items v2: allocation_mode added after the first release
            wi_cols = [r[1] for r in con.execute("PRAGMA table_info(work_items)").fetchall()]
            if "allocation_mode" not in wi_cols:
                con.execute("ALTER TABLE work_items ADD COLUMN allocation_mode TEXT NOT NULL DEFAULT 'fill_capacity'")

            # Seed the default team so a fresh database renders a dashboard.
            con.execute(
                "INSERT OR IGNORE INTO teams(id, name, buffer_hours_per_week) VALUES(?, ?, 0)",
                (DEFAULT_TEAM_ID, "Team"),
            )
