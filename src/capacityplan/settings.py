from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from capacityplan.core.dates import DEFAULT_LOCALE, DEFAULT_TZ
from capacityplan.data.db import DEFAULT_TEAM_ID


@dataclass(frozen=True)
class Settings:
    db_path: Path
    host: str = "0.0.0.0"
    port: int = 8080
    team_id: str = DEFAULT_TEAM_ID
    # "Today" for default horizons is resolved in this timezone.
    timezone: str = DEFAULT_TZ
    locale: str = DEFAULT_LOCALE
    log_level: str = "INFO"


def default_db_path() -> Path:
    # Fixed, repo-local database location (keeps paths stable across machines).
    return Path("db") / "capacityplan.db"
