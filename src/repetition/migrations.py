"""Schema setup and the one-time stage → ease/interval migration.

旧バージョンのボットは ``stage``（固定期間リストの添字）で出題時刻を決めていた。
現行の ease/interval 方式では ``next_review_seconds``/``ease``/``ivl`` 列が必要になるため、
ストア生成時に毎回このモジュールの :func:`migrate` を同期的に実行する。

- 列追加は "duplicate column name" のみ無視する（既に追加済みのため）
- バックフィルは ``next_review_seconds IS NULL`` の行だけを対象にするので再実行しても安全
- 完了後に ``PRAGMA user_version`` を :data:`SCHEMA_VERSION` へ更新する
"""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from typing import Iterable, Mapping

from .errors import ConfigurationError
from .logging import logger
from .scheduler import SchedulePolicy

# Arbitrary ceiling; also the index of the overflow sentinel entry.
MAX_STAGES = 1_000_000

# 0: unversioned (legacy stage-only table), 2: ease/interval columns present.
SCHEMA_VERSION = 2

_CREATE_TABLE = """
CREATE TABLE IF NOT EXISTS Repetition (
    chat_id INTEGER,
    word STRING,
    definition STRING,
    stage INTEGER, -- obsolete
    last_updated_seconds INTEGER -- seconds since UNIX epoch
);
"""

_ADDED_COLUMNS = (
    # seconds since UNIX epoch for the next review
    "ALTER TABLE Repetition ADD COLUMN next_review_seconds INTEGER",
    "ALTER TABLE Repetition ADD COLUMN ease INTEGER",
    "ALTER TABLE Repetition ADD COLUMN ivl INTEGER",
)

_CREATE_INDEX = "CREATE INDEX IF NOT EXISTS idx_repetition_chat_word ON Repetition(chat_id, word);"


@dataclass(frozen=True)
class StageTable:
    """Legacy stage index → duration (seconds), with an overflow sentinel.

    期間リストが縮んだ後でも、リスト長を超える stage の行が
    「即時出題」や「永久に出題されない」状態にならないよう、
    ``MAX_STAGES`` 番に最後の期間を割り当てる。
    """

    durations: Mapping[int, int]

    @classmethod
    def from_durations(cls, durations: Iterable[int]) -> "StageTable":
        values = [int(d) for d in durations]
        if not values:
            raise ConfigurationError("stage list must contain at least one duration")
        if len(values) >= MAX_STAGES:
            raise ConfigurationError(f"too many stages; should be less than {MAX_STAGES}")
        if any(v < 0 for v in values):
            raise ConfigurationError("stage durations must not be negative")
        lookup = dict(enumerate(values))
        lookup[MAX_STAGES] = values[-1]
        return cls(durations=lookup)

    @property
    def stage_count(self) -> int:
        return len(self.durations) - 1

    def duration_for(self, stage: int | None) -> int:
        if stage is None or stage < 0:
            return self.durations[0]
        if stage >= self.stage_count:
            return self.durations[MAX_STAGES]
        return self.durations[stage]


@dataclass(frozen=True)
class MigrationReport:
    from_version: int
    to_version: int
    backfilled: int
    total_rows: int


def _add_column(conn: sqlite3.Connection, statement: str) -> None:
    try:
        conn.execute(statement)
    except sqlite3.OperationalError as exc:
        # SQLite has no ADD COLUMN IF NOT EXISTS
        if "duplicate column name" not in str(exc).lower():
            raise


def ensure_schema(conn: sqlite3.Connection) -> None:
    conn.execute(_CREATE_TABLE)
    for statement in _ADDED_COLUMNS:
        _add_column(conn, statement)
    conn.execute(_CREATE_INDEX)


def backfill_legacy_rows(conn: sqlite3.Connection, stages: StageTable, policy: SchedulePolicy) -> int:
    """Derive ``next_review_seconds`` for rows created under the stage schema.

    呼び出し側のトランザクション内で実行すること。更新件数を返す。
    """

    rows = conn.execute(
        """
        SELECT rowid AS rid, stage, last_updated_seconds
        FROM Repetition
        WHERE next_review_seconds IS NULL;
        """
    ).fetchall()
    updates = []
    for row in rows:
        last_updated = row["last_updated_seconds"] or 0
        updates.append(
            (
                last_updated + stages.duration_for(row["stage"]),
                policy.initial_ease,
                policy.initial_interval_days,
                row["rid"],
            )
        )
    if updates:
        conn.executemany(
            """
            UPDATE Repetition
            SET next_review_seconds = ?, ease = ?, ivl = ?,
                last_updated_seconds = COALESCE(last_updated_seconds, 0)
            WHERE rowid = ? AND next_review_seconds IS NULL;
            """,
            updates,
        )
    return len(updates)


def migrate(conn: sqlite3.Connection, stages: StageTable, policy: SchedulePolicy) -> MigrationReport:
    """Bring the ``Repetition`` table to :data:`SCHEMA_VERSION`; safe to run repeatedly.

    ``conn`` must be in autocommit mode (``isolation_level=None``).
    """

    from_version = int(conn.execute("PRAGMA user_version;").fetchone()[0])
    ensure_schema(conn)
    conn.execute("BEGIN IMMEDIATE;")
    try:
        backfilled = backfill_legacy_rows(conn, stages, policy)
        if from_version < SCHEMA_VERSION:
            # PRAGMA does not accept bound parameters
            conn.execute(f"PRAGMA user_version = {int(SCHEMA_VERSION)};")
        total = int(conn.execute("SELECT COUNT(*) FROM Repetition;").fetchone()[0])
        conn.execute("COMMIT;")
    except BaseException:
        conn.execute("ROLLBACK;")
        raise
    report = MigrationReport(
        from_version=from_version,
        to_version=max(from_version, SCHEMA_VERSION),
        backfilled=backfilled,
        total_rows=total,
    )
    logger.info(
        "repetition_migrated",
        from_version=report.from_version,
        to_version=report.to_version,
        backfilled=report.backfilled,
        total_rows=report.total_rows,
    )
    return report
