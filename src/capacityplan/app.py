from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from nicegui import app, ui

from capacityplan.core.dates import DEFAULT_LOCALE, DEFAULT_TZ
from capacityplan.data.db import DEFAULT_TEAM_ID, Db
from capacityplan.data.repository import Repository
from capacityplan.logging_conf import configure_logging
from capacityplan.settings import Settings, default_db_path
from capacityplan.ui.pages import register_pages

logger = logging.getLogger(__name__)


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Team capacity horizon")
    parser.add_argument("--host", type=str, default="0.0.0.0")
    parser.add_argument("--port", type=int, default=8080)
    parser.add_argument("--db", type=Path, default=None, help="SQLite file (default: db/capacityplan.db)")
    parser.add_argument("--team", type=str, default=DEFAULT_TEAM_ID, help="Team id to plan for")
    parser.add_argument("--tz", type=str, default=DEFAULT_TZ, help="Timezone that defines 'today'")
    parser.add_argument("--locale", type=str, default=DEFAULT_LOCALE, help="Week label format (en-GB / en-US)")
    parser.add_argument("--log-level", type=str, default="INFO")
    return parser


def settings_from_args(args: argparse.Namespace) -> Settings:
    return Settings(
        db_path=args.db or default_db_path(),
        host=args.host,
        port=args.port,
        team_id=args.team,
        timezone=args.tz,
        locale=args.locale,
        log_level=args.log_level,
    )


def main() -> None:
    settings = settings_from_args(build_arg_parser().parse_args())
    configure_logging(settings.log_level)

    db = Db(settings.db_path)
    db.ensure_schema()
    logger.info("Using database %s (team=%s, tz=%s)", settings.db_path, settings.team_id, settings.timezone)

    repo = Repository(db)
    title = repo.get_team_name(team_id=settings.team_id)
    register_pages(repo, settings)

    assets_dir = Path(__file__).resolve().parents[2] / "assets"
    if assets_dir.exists():
        app.add_static_files("/assets", str(assets_dir))

    if sys.platform == "win32":
        @app.on_startup
        async def _silence_windows_connection_reset() -> None:
            # Suppress noisy ConnectionResetError 10054 from Windows clients dropping websockets.
            loop = asyncio.get_running_loop()

            def _handler(loop: asyncio.AbstractEventLoop, context: dict) -> None:
                exc = context.get("exception")
                if isinstance(exc, ConnectionResetError) and getattr(exc, "winerror", None) == 10054:
                    return
                loop.default_exception_handler(context)

            loop.set_exception_handler(_handler)

    ui.run(host=settings.host, port=settings.port, title=f"{title} · Capacity", reload=False)


if __name__ in {"__main__", "__mp_main__"}:
    main()
