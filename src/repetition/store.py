from __future__ import annotations

import sqlite3
import time
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable, Iterator, Optional

from .errors import DuplicateItemError, ItemNotFoundError, PersistenceError
from .logging import logger
from .migrations import MigrationReport, StageTable, migrate
from .presentation import mask_definition
from .scheduler import AnswerEase, SchedulePolicy, ScheduleResult, ScheduleState, schedule


@dataclass(frozen=True)
class Item:
    owner: int
    word: str
    definition: str
    ease: int
    interval: int
    last_reviewed: int
    due_at: int


@dataclass(frozen=True)
class DueItem:
    word: str
    question: str


_ITEM_COLUMNS = "chat_id, word, definition, ease, ivl, last_updated_seconds, next_review_seconds"


def _row_to_item(row: sqlite3.Row) -> Item:
    return Item(
        owner=int(row["chat_id"]),
        word=row["word"],
        definition=row["definition"],
        ease=int(row["ease"]),
        interval=int(row["ivl"]),
        last_reviewed=int(row["last_updated_seconds"]),
        due_at=int(row["next_review_seconds"]),
    )


class RepetitionStore:
    """SQLite-backed spaced repetition store.

    Responsibilities:
    - Item (chat_id, word) persistence and the ease/interval scheduling state
    - Legacy stage migration, run synchronously in the constructor
    - Due-item retrieval with the answer masked out of the question

    Notes:
    - Save/Answer/Delete each run in a single BEGIN IMMEDIATE transaction, so the
      read-modify-write of Answer never interleaves with another writer
    - Callers always receive Item copies
    """

    def __init__(
        self,
        db_path: str,
        stages: Iterable[int],
        policy: Optional[SchedulePolicy] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        # ConfigurationError is raised here, before any connection is opened.
        self.stage_table = StageTable.from_durations(stages)
        self.policy = policy or SchedulePolicy()
        self.db_path = db_path
        self._clock = clock
        self._ensure_dirs()
        self.migration: MigrationReport = self._migrate()

    # --- low-level helpers ---
    def _now(self) -> int:
        return int(self._clock())

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, timeout=10.0, isolation_level=None, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.execute("pragma journal_mode=WAL;")
        return conn

    def _ensure_dirs(self) -> None:
        p = Path(self.db_path)
        if p.parent and not p.parent.exists():
            p.parent.mkdir(parents=True, exist_ok=True)

    @contextmanager
    def _connection(self, operation: str, owner: int | None = None, word: str | None = None) -> Iterator[sqlite3.Connection]:
        try:
            conn = self._connect()
        except sqlite3.Error as exc:
            raise PersistenceError(operation, owner, word, detail=str(exc)) from exc
        try:
            yield conn
        except sqlite3.Error as exc:
            raise PersistenceError(operation, owner, word, detail=str(exc)) from exc
        finally:
            conn.close()

    @contextmanager
    def _transaction(self, operation: str, owner: int | None = None, word: str | None = None) -> Iterator[sqlite3.Connection]:
        """Open a connection and hold a write lock for the whole block.

        例外時は ROLLBACK するため、部分的な更新は残らない。
        """
        with self._connection(operation, owner, word) as conn:
            conn.execute("BEGIN IMMEDIATE;")
            try:
                yield conn
            except BaseException:
                conn.execute("ROLLBACK;")
                raise
            conn.execute("COMMIT;")

    def _migrate(self) -> MigrationReport:
        with self._connection("migrate") as conn:
            return migrate(conn, self.stage_table, self.policy)

    # --- public API ---
    def save(self, owner: int, word: str, definition: str) -> Item:
        """Register a new item, due after the initial interval.

        同じ (chat_id, word) が既にあれば DuplicateItemError。
        """
        now = self._now()
        item = Item(
            owner=owner,
            word=word,
            definition=definition,
            ease=self.policy.initial_ease,
            interval=self.policy.initial_interval_days,
            last_reviewed=now,
            due_at=self.policy.initial_due_at(now),
        )
        with self._transaction("save", owner, word) as conn:
            cur = conn.execute(
                "SELECT 1 FROM Repetition WHERE chat_id = ? AND word = ? LIMIT 1;",
                (owner, word),
            )
            if cur.fetchone() is not None:
                raise DuplicateItemError(owner, word)
            conn.execute(
                """
                INSERT INTO Repetition(
                    chat_id, word, definition, stage,
                    ease, ivl, last_updated_seconds, next_review_seconds
                ) VALUES (?, ?, ?, 0, ?, ?, ?, ?);
                """,
                (owner, word, definition, item.ease, item.interval, item.last_reviewed, item.due_at),
            )
        logger.info("item_saved", chat_id=owner, word=word, due_at=item.due_at)
        return item

    def answer(self, owner: int, word: str, quality: AnswerEase) -> ScheduleResult:
        """Apply one review answer and persist the new ease/interval/due time."""
        quality = AnswerEase(quality)
        with self._transaction("answer", owner, word) as conn:
            row = conn.execute(
                """
                SELECT ease, ivl, last_updated_seconds
                FROM Repetition
                WHERE chat_id = ? AND word = ?
                LIMIT 1;
                """,
                (owner, word),
            ).fetchone()
            if row is None:
                raise ItemNotFoundError(owner, word)
            state = ScheduleState(
                ease=int(row["ease"]),
                interval=int(row["ivl"]),
                last_reviewed=int(row["last_updated_seconds"]),
            )
            result = schedule(state, quality, self._now(), self.policy)
            conn.execute(
                """
                UPDATE Repetition
                SET ease = ?, ivl = ?, last_updated_seconds = ?, next_review_seconds = ?
                WHERE chat_id = ? AND word = ?;
                """,
                (result.ease, result.interval, result.last_reviewed, result.due_at, owner, word),
            )
        logger.info(
            "item_answered",
            chat_id=owner,
            word=word,
            quality=quality.name.lower(),
            ease=result.ease,
            interval=result.interval,
            due_at=result.due_at,
        )
        return result

    def _next_due_row(self, operation: str, owner: int) -> sqlite3.Row:
        with self._connection(operation, owner) as conn:
            row = conn.execute(
                """
                SELECT word, definition
                FROM Repetition
                WHERE chat_id = ? AND next_review_seconds <= ?
                ORDER BY next_review_seconds ASC, rowid ASC
                LIMIT 1;
                """,
                (owner, self._now()),
            ).fetchone()
        if row is None:
            raise ItemNotFoundError(owner)
        return row

    def repeat(self, owner: int) -> str:
        """Return the masked definition of one due item."""
        row = self._next_due_row("repeat", owner)
        return mask_definition(row["word"], row["definition"])

    def repeat_word(self, owner: int) -> str:
        """Return the word of one due item."""
        return self._next_due_row("repeat_word", owner)["word"]

    def next_due(self, owner: int) -> DueItem:
        """Word and masked question of the same due item, read once."""
        row = self._next_due_row("next_due", owner)
        return DueItem(word=row["word"], question=mask_definition(row["word"], row["definition"]))

    def exists(self, owner: int, word: str) -> bool:
        with self._connection("exists", owner, word) as conn:
            row = conn.execute(
                "SELECT COUNT(*) AS c FROM Repetition WHERE chat_id = ? AND word = ?;",
                (owner, word),
            ).fetchone()
        return int(row["c"]) > 0

    def get_definition(self, owner: int, word: str) -> str:
        with self._connection("get_definition", owner, word) as conn:
            row = conn.execute(
                "SELECT definition FROM Repetition WHERE chat_id = ? AND word = ? LIMIT 1;",
                (owner, word),
            ).fetchone()
        if row is None:
            raise ItemNotFoundError(owner, word)
        return row["definition"]

    def get_item(self, owner: int, word: str) -> Item:
        with self._connection("get_item", owner, word) as conn:
            row = conn.execute(
                f"SELECT {_ITEM_COLUMNS} FROM Repetition WHERE chat_id = ? AND word = ? LIMIT 1;",
                (owner, word),
            ).fetchone()
        if row is None:
            raise ItemNotFoundError(owner, word)
        return _row_to_item(row)

    def delete(self, owner: int, word: str) -> bool:
        """Remove the item; deleting a missing pair is not an error."""
        with self._transaction("delete", owner, word) as conn:
            cur = conn.execute(
                "DELETE FROM Repetition WHERE chat_id = ? AND word = ?;",
                (owner, word),
            )
            deleted = cur.rowcount > 0
        logger.info("item_deleted", chat_id=owner, word=word, deleted=deleted)
        return deleted

    def count(self) -> int:
        with self._connection("count") as conn:
            row = conn.execute("SELECT COUNT(*) AS c FROM Repetition;").fetchone()
        return int(row["c"])
