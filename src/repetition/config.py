from typing import Annotated

from pydantic import AliasChoices, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic_settings.sources.types import NoDecode


DEFAULT_DB_PATH = ".data/repetition.sqlite3"
DEFAULT_STAGES: tuple[int, ...] = (
    20,
    60 * 10,
    60 * 60,
    60 * 60 * 24,
    60 * 60 * 24 * 3,
    60 * 60 * 24 * 7,
    60 * 60 * 24 * 30,
)

_DURATION_UNITS = {
    "s": 1,
    "m": 60,
    "h": 60 * 60,
    "d": 60 * 60 * 24,
}


def parse_duration(raw: object) -> int:
    """Parse a duration such as ``20s``/``10m``/``1h``/``3d`` (or bare seconds).

    期間文字列を秒数へ変換する。単位なしの数値は秒として扱う。
    """

    if isinstance(raw, bool):
        raise ValueError(f"invalid duration {raw!r}")
    if isinstance(raw, (int, float)):
        seconds = int(raw)
    else:
        text = str(raw).strip().lower()
        if not text:
            raise ValueError("duration must not be empty")
        unit = text[-1]
        if unit in _DURATION_UNITS:
            number, factor = text[:-1].strip(), _DURATION_UNITS[unit]
        else:
            number, factor = text, 1
        try:
            seconds = int(float(number) * factor)
        except ValueError as exc:
            raise ValueError(f"invalid duration {raw!r}") from exc
    if seconds < 0:
        raise ValueError(f"duration must not be negative: {raw!r}")
    return seconds


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    環境変数から読み込まれるアプリ設定クラス。
    - db_path: 復習カードと設定を保存する SQLite のパス
    - stages: 旧形式（stage）レコードの移行に使う期間リスト
    - initial_ease / initial_interval_days / again_delay_seconds: スケジューラ定数
    """

    environment: str = Field(
        default="development",
        description="Runtime environment / 実行環境",
    )
    db_path: str = Field(
        default=DEFAULT_DB_PATH,
        validation_alias=AliasChoices("REPETITION_DB_PATH", "DB_PATH"),
        description="Path to SQLite database / SQLite DBパス",
    )

    # --- 旧 stage 方式からの移行設定 ---
    stages: Annotated[tuple[int, ...], NoDecode] = Field(
        default=DEFAULT_STAGES,
        validation_alias=AliasChoices("REPETITION_STAGES", "STAGES"),
        description=(
            "Comma separated legacy stage durations (e.g. 20s,10m,1d) / "
            "旧 stage 方式の期間リスト（カンマ区切り）"
        ),
    )

    # --- スケジューラ定数 ---
    initial_ease: int = Field(
        default=250,
        description="Ease assigned to new cards / 新規カードの ease",
    )
    initial_interval_days: int = Field(
        default=0,
        description="Interval (days) assigned to new cards / 新規カードの間隔（日）",
    )
    again_delay_seconds: int = Field(
        default=20,
        description="Relearn delay after an Again answer (s) / Again 回答後の再出題待ち（秒）",
    )

    # --- リマインダー ---
    reminder_period_seconds: int = Field(
        default=60 * 60 * 24,
        description="Minimum time between reminders per chat (s) / チャット毎のリマインド間隔（秒）",
    )
    reminder_tick_seconds: float = Field(
        default=60.0,
        description="Reminder loop tick (s) / リマインダーループの周期（秒）",
    )

    # --- Operations/Observability ---
    log_level: str = Field(
        default="INFO",
        description="Root log level / ログレベル",
    )
    sentry_dsn: str | None = Field(default=None, description="Sentry DSN (enable if set)")

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        case_sensitive=False,
        populate_by_name=True,
    )

    @field_validator("stages", mode="before")
    @classmethod
    def _normalise_stages(cls, raw_stages: object) -> tuple[int, ...] | object:
        """Convert comma separated durations into a tuple of seconds.

        なぜ: `.env` では `20s,10m,1d` のように人が読める形で書きたいが、
        移行処理は秒数の列を前提にしているため、ここで正規化する。
        """

        if raw_stages is None:
            candidates: list[object] = []
        elif isinstance(raw_stages, str):
            candidates = [c for c in raw_stages.split(",") if c.strip()]
        else:
            try:
                candidates = list(raw_stages)  # type: ignore[arg-type]
            except TypeError:
                return raw_stages
        return tuple(parse_duration(c) for c in candidates)

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalise_log_level(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().upper() or "INFO"
        return value

    @model_validator(mode="after")
    def _validate_scheduler_constants(self) -> "Settings":
        """Reject scheduler constants that would break the ease/interval invariants.

        空の stage リストは読み込み時には許容し、ストア生成時の
        ConfigurationError（CLI では終了コード 2）に判断を委ねる。
        """

        if self.initial_interval_days < 0:
            raise ValueError("INITIAL_INTERVAL_DAYS must not be negative")
        if self.again_delay_seconds < 0:
            raise ValueError("AGAIN_DELAY_SECONDS must not be negative")
        return self


settings = Settings()
