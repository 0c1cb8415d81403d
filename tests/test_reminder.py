import threading

import pytest

from repetition.chat_settings import SettingsStore
from repetition.reminder import Notification, Reminder, ReminderStore

from tests.helpers import DAY, FakeClock


@pytest.fixture()
def settings_store(db_path: str) -> SettingsStore:
    s = SettingsStore(db_path=db_path)
    s.set(0, s.catalog.default_settings())
    return s


def _reminder(db_path: str, settings_store: SettingsStore, clock: FakeClock, sent: list) -> Reminder:
    return Reminder(
        store=ReminderStore(db_path),
        fetch_settings=settings_store.get_all,
        send_notification=sent.append,
        period_seconds=DAY,
        clock=clock,
    )


def test_first_run_notifies_each_chat_once(db_path: str, settings_store: SettingsStore, clock: FakeClock):
    sent: list[Notification] = []
    reminder = _reminder(db_path, settings_store, clock, sent)

    assert reminder.run_once() == [Notification(chat_id=0)]
    assert sent == [Notification(chat_id=0)]
    assert reminder.store.last_reminder_time(0) == clock.now


def test_no_second_reminder_within_period(db_path: str, settings_store: SettingsStore, clock: FakeClock):
    sent: list[Notification] = []
    reminder = _reminder(db_path, settings_store, clock, sent)
    reminder.run_once()
    clock.advance(DAY - 1)
    assert reminder.run_once() == []
    # ちょうど 1 周期では送らない（周期を過ぎてから送る）
    clock.advance(1)
    assert reminder.run_once() == []
    clock.advance(1)
    assert reminder.run_once() == [Notification(chat_id=0)]
    assert len(sent) == 2


def test_failed_send_is_retried_next_time(db_path: str, settings_store: SettingsStore, clock: FakeClock):
    calls: list[Notification] = []

    def flaky(notification: Notification) -> None:
        calls.append(notification)
        if len(calls) == 1:
            raise RuntimeError("chat unreachable")

    reminder = Reminder(
        store=ReminderStore(db_path),
        fetch_settings=settings_store.get_all,
        send_notification=flaky,
        period_seconds=DAY,
        clock=clock,
    )
    assert reminder.run_once() == []
    assert reminder.store.last_reminder_time(0) == 0
    assert reminder.run_once() == [Notification(chat_id=0)]


def test_settings_fetch_failure_does_not_raise(db_path: str, clock: FakeClock):
    def broken() -> dict:
        raise RuntimeError("settings unavailable")

    reminder = Reminder(store=ReminderStore(db_path), fetch_settings=broken, clock=clock)
    assert reminder.run_once() == []


def test_loop_stops_when_event_is_set(db_path: str, settings_store: SettingsStore, clock: FakeClock):
    sent: list[Notification] = []
    reminder = _reminder(db_path, settings_store, clock, sent)
    stop = threading.Event()
    stop.set()
    reminder.loop(stop, tick_seconds=0.01)
    assert sent == [Notification(chat_id=0)]


def test_reminder_never_touches_items(db_path: str, store, settings_store: SettingsStore, clock: FakeClock):
    item = store.save(0, "alma", "apple")
    reminder = _reminder(db_path, settings_store, clock, [])
    reminder.run_once()
    assert store.get_item(0, "alma") == item
