"""Periodic reminder that nudges each chat to come back and review.

設定テーブルに登録されたチャットを周期的に走査し、前回のリマインドから
一定時間が経過していれば通知を送る。復習カード（Repetition テーブル）には触れない。
"""

from __future__ import annotations

import sqlite3
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Mapping, Optional

from .chat_settings import ChatSettings
from .errors import PersistenceError
from .logging import logger


@dataclass(frozen=True)
class Notification:
    chat_id: int


def _log_notification(notification: Notification) -> None:
    logger.info("reminder_notification", chat_id=notification.chat_id)


class ReminderStore:
    """Last reminder time per chat (seconds since UNIX epoch)."""

    def __init__(self, db_path: str) -> None:
        self.db_path = db_path
        p = Path(db_path)
        if p.parent and not p.parent.exists():
            p.parent.mkdir(parents=True, exist_ok=True)
        self._execute(
            "init_reminders",
            None,
            """
            CREATE TABLE IF NOT EXISTS Reminders (
                chat_id INTEGER PRIMARY KEY,
                last_reminder_time_seconds INTEGER -- seconds since UNIX epoch
            );
            """,
            (),
        )

    def _execute(self, operation: str, chat_id: Optional[int], sql: str, params: tuple) -> Optional[sqlite3.Row]:
        try:
            conn = sqlite3.connect(self.db_path, timeout=10.0, isolation_level=None, check_same_thread=False)
            try:
                conn.row_factory = sqlite3.Row
                return conn.execute(sql, params).fetchone()
            finally:
                conn.close()
        except sqlite3.Error as exc:
            raise PersistenceError(operation, chat_id, detail=str(exc)) from exc

    def last_reminder_time(self, chat_id: int) -> int:
        """Return the last reminder time, or 0 if the chat was never reminded."""
        row = self._execute(
            "last_reminder_time",
            chat_id,
            "SELECT last_reminder_time_seconds FROM Reminders WHERE chat_id = ?;",
            (chat_id,),
        )
        if row is None or row["last_reminder_time_seconds"] is None:
            return 0
        return int(row["last_reminder_time_seconds"])

    def update_last_reminder_time(self, chat_id: int, now: int) -> None:
        self._execute(
            "update_last_reminder_time",
            chat_id,
            "INSERT OR REPLACE INTO Reminders(chat_id, last_reminder_time_seconds) VALUES (?, ?);",
            (chat_id, now),
        )


class Reminder:
    """Send at most one notification per chat per ``period_seconds``.

    - fetch_settings: 対象チャット一覧（SettingsStore.get_all を想定）
    - send_notification: 通知の送信先。既定ではログ出力のみ
    """

    # TODO: honour each chat's time zone once settings carry an availability window.

    def __init__(
        self,
        store: ReminderStore,
        fetch_settings: Callable[[], Mapping[int, ChatSettings]],
        send_notification: Callable[[Notification], None] = _log_notification,
        period_seconds: int = 60 * 60 * 24,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.store = store
        self.fetch_settings = fetch_settings
        self.send_notification = send_notification
        self.period_seconds = period_seconds
        self._clock = clock

    def run_once(self) -> list[Notification]:
        """Check every known chat once and return the notifications sent."""
        now = int(self._clock())
        sent: list[Notification] = []
        try:
            chats = self.fetch_settings()
        except Exception as exc:
            logger.error("reminder_fetch_settings_failed", error=repr(exc))
            return sent
        for chat_id in chats:
            try:
                last = self.store.last_reminder_time(chat_id)
            except PersistenceError as exc:
                logger.error("reminder_last_time_failed", chat_id=chat_id, error=str(exc))
                last = 0
            if now <= last + self.period_seconds:
                continue
            notification = Notification(chat_id=chat_id)
            try:
                self.send_notification(notification)
            except Exception as exc:
                logger.error("reminder_send_failed", chat_id=chat_id, error=repr(exc))
                continue
            sent.append(notification)
            try:
                self.store.update_last_reminder_time(chat_id, now)
            except PersistenceError as exc:
                logger.error("reminder_update_failed", chat_id=chat_id, error=str(exc))
        return sent

    def loop(self, stop: threading.Event, tick_seconds: float = 60.0) -> None:
        """Run :meth:`run_once` every ``tick_seconds`` until ``stop`` is set."""
        while True:
            self.run_once()
            if stop.wait(tick_seconds):
                return
