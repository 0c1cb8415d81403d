"""Pytest configuration shared by the repetition tests."""

import os
import tempfile
from pathlib import Path

import pytest

# モジュール読み込み時に Settings() が評価されるため、import より前に既定値を与える。
# 誤って既定ストアが生成されても作業ディレクトリに .data/ を作らないようにする。
os.environ.setdefault(
    "REPETITION_DB_PATH",
    str(Path(tempfile.mkdtemp(prefix="repetition-tests-")) / "default.sqlite3"),
)

from repetition.scheduler import SchedulePolicy  # noqa: E402
from repetition.store import RepetitionStore  # noqa: E402
from tests.helpers import STAGES, FakeClock  # noqa: E402


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def db_path(tmp_path: Path) -> str:
    return str(tmp_path / "repetition.sqlite3")


@pytest.fixture()
def store(db_path: str, clock: FakeClock) -> RepetitionStore:
    return RepetitionStore(db_path=db_path, stages=STAGES, policy=SchedulePolicy(), clock=clock)
