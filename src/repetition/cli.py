"""Command line entry point: run the migration, the reminder loop, or the API."""

from __future__ import annotations

import argparse
import signal
import threading
from typing import Sequence

from .config import settings
from .errors import ConfigurationError
from .logging import configure_logging, logger


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="repetition", description=__doc__)
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("migrate", help="旧 stage 形式のレコードを ease/interval 形式へ移行して終了する。")

    reminder = sub.add_parser("reminder", help="リマインダーループを起動する（Ctrl-C で停止）。")
    reminder.add_argument(
        "--tick",
        type=float,
        default=settings.reminder_tick_seconds,
        help="ループ周期（秒）。既定は REMINDER_TICK_SECONDS。",
    )

    serve = sub.add_parser("serve", help="HTTP API を uvicorn で起動する。")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)
    return parser


def _run_migrate() -> int:
    from .providers import get_store

    report = get_store().migration
    print(
        f"schema v{report.from_version} -> v{report.to_version}: "
        f"{report.backfilled} backfilled, {report.total_rows} rows"
    )
    return 0


def _run_reminder(tick: float) -> int:
    from .providers import get_settings_store
    from .reminder import Reminder, ReminderStore

    settings_store = get_settings_store()
    reminder = Reminder(
        store=ReminderStore(settings.db_path),
        fetch_settings=settings_store.get_all,
        period_seconds=settings.reminder_period_seconds,
    )
    stop = threading.Event()
    signal.signal(signal.SIGINT, lambda *_: stop.set())
    signal.signal(signal.SIGTERM, lambda *_: stop.set())
    logger.info("reminder_started", tick_seconds=tick, period_seconds=settings.reminder_period_seconds)
    reminder.loop(stop, tick_seconds=tick)
    logger.info("reminder_stopped")
    return 0


def _run_serve(host: str, port: int) -> int:
    import uvicorn

    uvicorn.run("repetition.main:app", host=host, port=port)
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    configure_logging()
    try:
        if args.command == "migrate":
            return _run_migrate()
        if args.command == "reminder":
            return _run_reminder(args.tick)
        return _run_serve(args.host, args.port)
    except ConfigurationError as exc:
        logger.error("configuration_error", error=str(exc))
        return 2


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
