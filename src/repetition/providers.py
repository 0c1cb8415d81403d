"""Shared store instances for the HTTP layer.

ストアは初回利用時に設定値から生成し、以後はモジュール間で共有する。
生成時に移行処理が走るため、リクエストを受け付ける前（起動時）に
:func:`init_providers` を呼んでおく。テストでは ``_set_instances`` で差し替える。
"""

from __future__ import annotations

import threading

from .chat_settings import SettingsStore
from .config import settings
from .scheduler import SchedulePolicy
from .store import RepetitionStore

_lock = threading.Lock()
_STORE: RepetitionStore | None = None
_SETTINGS_STORE: SettingsStore | None = None


def get_store() -> RepetitionStore:
    global _STORE
    with _lock:
        if _STORE is None:
            _STORE = RepetitionStore(
                db_path=settings.db_path,
                stages=settings.stages,
                policy=SchedulePolicy.from_settings(settings),
            )
        return _STORE


def get_settings_store() -> SettingsStore:
    global _SETTINGS_STORE
    with _lock:
        if _SETTINGS_STORE is None:
            _SETTINGS_STORE = SettingsStore(db_path=settings.db_path)
        return _SETTINGS_STORE


def init_providers() -> None:
    """Create both stores eagerly so migration finishes before serving."""
    get_store()
    get_settings_store()


def _set_instances(store: RepetitionStore | None, settings_store: SettingsStore | None) -> None:
    global _STORE, _SETTINGS_STORE
    with _lock:
        _STORE = store
        _SETTINGS_STORE = settings_store
