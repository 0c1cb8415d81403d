"""Per-chat settings (input language, translation languages, time zone).

対応言語やタイムゾーンの一覧はプロセス全体の可変状態にせず、
:class:`LanguageCatalog` として SettingsStore に注入する。
"""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator, Mapping

from pydantic import BaseModel, Field, ValidationError

from .errors import PersistenceError, UnsupportedSettingError
from .logging import logger


class ChatSettings(BaseModel):
    """Settings of one chat, stored as JSON.

    - input_language: 入力される単語の言語
    - input_language_iso639_3: 例文抽出に使う ISO 639-3 コード
    - translation_languages: 受け付ける翻訳先（ISO 639-3 → 有効フラグ）
    - time_zone: "UTC" / "UTC+X" / "UTC-X"
    """

    input_language: str
    input_language_iso639_3: str
    translation_languages: dict[str, bool] = Field(default_factory=dict)
    time_zone: str = "UTC"


@dataclass(frozen=True)
class LanguageProfile:
    input_language: str
    input_language_iso639_3: str
    translation_languages: Mapping[str, bool]


def _utc_offsets() -> frozenset[str]:
    zones = {f"UTC{offset:+d}" for offset in range(-12, 12)}
    zones.add("UTC")
    return frozenset(zones)


_DEFAULT_LANGUAGES: tuple[LanguageProfile, ...] = (
    LanguageProfile("Hungarian", "hun", {"eng": True, "rus": True, "ukr": True}),
    LanguageProfile("English", "eng", {"rus": True, "ukr": True}),
    LanguageProfile("German", "deu", {"eng": True, "rus": True, "ukr": True}),
)


@dataclass(frozen=True)
class LanguageCatalog:
    """Enumerated allowed input languages and time zones."""

    languages: Mapping[str, LanguageProfile] = field(
        default_factory=lambda: {p.input_language: p for p in _DEFAULT_LANGUAGES}
    )
    time_zones: frozenset[str] = field(default_factory=_utc_offsets)
    default_language: str = "Hungarian"
    default_time_zone: str = "UTC"

    def validate_language(self, language: str) -> LanguageProfile:
        profile = self.languages.get(language)
        if profile is None:
            raise UnsupportedSettingError(f"unsupported language {language!r}")
        return profile

    def validate_time_zone(self, tz: str) -> str:
        if tz not in self.time_zones:
            raise UnsupportedSettingError("unsupported time zone (format should be UTC, UTC+X or UTC-X)")
        return tz

    def default_settings(self) -> ChatSettings:
        profile = self.languages[self.default_language]
        return ChatSettings(
            input_language=profile.input_language,
            input_language_iso639_3=profile.input_language_iso639_3,
            translation_languages=dict(profile.translation_languages),
            time_zone=self.default_time_zone,
        )


class SettingsStore:
    """SQLite-backed per-chat settings, one JSON document per chat."""

    def __init__(self, db_path: str, catalog: LanguageCatalog | None = None) -> None:
        self.db_path = db_path
        self.catalog = catalog or LanguageCatalog()
        p = Path(db_path)
        if p.parent and not p.parent.exists():
            p.parent.mkdir(parents=True, exist_ok=True)
        with self._connection("init_settings") as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS Settings (
                    chat_id INTEGER PRIMARY KEY,
                    settings STRING -- json serialized settings
                );
                """
            )

    @contextmanager
    def _connection(self, operation: str, chat_id: int | None = None) -> Iterator[sqlite3.Connection]:
        try:
            conn = sqlite3.connect(self.db_path, timeout=10.0, isolation_level=None, check_same_thread=False)
        except sqlite3.Error as exc:
            raise PersistenceError(operation, chat_id, detail=str(exc)) from exc
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        except sqlite3.Error as exc:
            raise PersistenceError(operation, chat_id, detail=str(exc)) from exc
        finally:
            conn.close()

    @staticmethod
    def _parse(chat_id: int, raw: str) -> ChatSettings:
        try:
            return ChatSettings.model_validate_json(raw)
        except ValidationError as exc:
            raise PersistenceError("parse_settings", chat_id, detail=str(exc)) from exc

    def get_all(self) -> dict[int, ChatSettings]:
        with self._connection("get_all_settings") as conn:
            rows = conn.execute("SELECT chat_id, settings FROM Settings;").fetchall()
        return {int(row["chat_id"]): self._parse(int(row["chat_id"]), row["settings"]) for row in rows}

    def get(self, chat_id: int) -> ChatSettings:
        """Return the chat's settings, or the catalog defaults if none are stored."""
        with self._connection("get_settings", chat_id) as conn:
            row = conn.execute(
                "SELECT settings FROM Settings WHERE chat_id = ?;",
                (chat_id,),
            ).fetchone()
        if row is None:
            return self.catalog.default_settings()
        return self._parse(chat_id, row["settings"])

    def set(self, chat_id: int, value: ChatSettings) -> None:
        with self._connection("set_settings", chat_id) as conn:
            conn.execute(
                "INSERT OR REPLACE INTO Settings(chat_id, settings) VALUES (?, ?);",
                (chat_id, value.model_dump_json()),
            )
        logger.info("chat_settings_updated", chat_id=chat_id)

    def set_language(self, chat_id: int, language: str) -> ChatSettings:
        profile = self.catalog.validate_language(language)
        current = self.get(chat_id)
        updated = current.model_copy(
            update={
                "input_language": profile.input_language,
                "input_language_iso639_3": profile.input_language_iso639_3,
                "translation_languages": dict(profile.translation_languages),
            }
        )
        self.set(chat_id, updated)
        return updated

    def set_time_zone(self, chat_id: int, tz: str) -> ChatSettings:
        self.catalog.validate_time_zone(tz)
        updated = self.get(chat_id).model_copy(update={"time_zone": tz})
        self.set(chat_id, updated)
        return updated
