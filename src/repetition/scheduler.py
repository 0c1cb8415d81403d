"""Review scheduling algorithm.

Anki 由来の ease/interval 方式を、学習中・再学習中の区別なしで簡略化したもの。
純粋関数として実装し、永続化（BEGIN IMMEDIATE のトランザクション）は
``store.RepetitionStore.answer`` 側が担う。
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import IntEnum

from .errors import ConfigurationError

SECONDS_PER_DAY = 60 * 60 * 24

MIN_EASE = 130
MAX_EASE = 1300
MAX_MULTIPLIER = 13.0


class AnswerEase(IntEnum):
    """Self-reported recall quality, ordered from total failure to effortless."""

    AGAIN = 0
    HARD = 1
    GOOD = 2
    EASY = 3


@dataclass(frozen=True)
class SchedulePolicy:
    """Scheduler constants.

    - initial_ease / initial_interval_days: Save 時の初期値
    - again_delay_seconds: Again 回答後、日単位ではなく秒単位で再出題するまでの待ち
    """

    initial_ease: int = 250
    initial_interval_days: int = 0
    again_delay_seconds: int = 20
    hard_multiplier: float = 1.2
    easy_bonus: float = 1.3

    def __post_init__(self) -> None:
        if not MIN_EASE <= self.initial_ease <= MAX_EASE:
            raise ConfigurationError(
                f"initial ease must be within [{MIN_EASE}, {MAX_EASE}], got {self.initial_ease}"
            )
        if self.initial_interval_days < 0:
            raise ConfigurationError("initial interval must not be negative")
        if self.again_delay_seconds < 0:
            raise ConfigurationError("again delay must not be negative")

    @classmethod
    def from_settings(cls, settings) -> "SchedulePolicy":
        return cls(
            initial_ease=settings.initial_ease,
            initial_interval_days=settings.initial_interval_days,
            again_delay_seconds=settings.again_delay_seconds,
        )

    def initial_due_at(self, now: int) -> int:
        return now + self.initial_interval_days * SECONDS_PER_DAY


@dataclass(frozen=True)
class ScheduleState:
    ease: int
    interval: int
    last_reviewed: int


@dataclass(frozen=True)
class ScheduleResult:
    ease: int
    interval: int
    last_reviewed: int
    due_at: int
    multiplier: float


def clamp_ease(ease: int) -> int:
    return max(MIN_EASE, min(MAX_EASE, ease))


def _round_half_up(value: float) -> int:
    # round() は偶数丸めのため使わない
    return int(math.floor(value + 0.5))


def elapsed_days(last_reviewed: int, now: int) -> int:
    """Whole days between ``last_reviewed`` and ``now`` (never negative)."""
    return max(0, (now - last_reviewed) // SECONDS_PER_DAY)


def multiplier_for(quality: AnswerEase, ease: int, policy: SchedulePolicy) -> float:
    """Interval growth factor for ``quality`` given the already adjusted ``ease``."""
    if quality is AnswerEase.HARD:
        mult = policy.hard_multiplier
    elif quality is AnswerEase.GOOD:
        mult = ease / 100.0
    elif quality is AnswerEase.EASY:
        mult = ease * policy.easy_bonus / 100.0
    else:
        mult = 1.0
    return min(mult, MAX_MULTIPLIER)


def next_interval(effective_interval: int, multiplier: float) -> int:
    """Interval after a successful (non-Again) review.

    0 → 1 日、1 → 3 日、それ以外は倍率を掛けて丸め、最低でも 1 日は伸ばす。
    """
    if effective_interval == 0:
        return 1
    if effective_interval == 1:
        return 3
    return max(_round_half_up(effective_interval * multiplier), effective_interval + 1)


def schedule(state: ScheduleState, quality: AnswerEase, now: int, policy: SchedulePolicy) -> ScheduleResult:
    """Compute the next ease, interval and due time for one review.

    遅れてレビューした場合は、経過日数を実効間隔として扱う。
    """
    quality = AnswerEase(quality)
    effective = max(state.interval, elapsed_days(state.last_reviewed, now))

    ease = state.ease
    if quality is AnswerEase.AGAIN:
        ease -= 20
    elif quality is AnswerEase.HARD:
        ease -= 15
    elif quality is AnswerEase.EASY:
        ease += 15
    mult = multiplier_for(quality, ease, policy)
    ease = clamp_ease(ease)

    if quality is AnswerEase.AGAIN:
        return ScheduleResult(
            ease=ease,
            interval=0,
            last_reviewed=now,
            due_at=now + policy.again_delay_seconds,
            multiplier=mult,
        )
    interval = next_interval(effective, mult)
    return ScheduleResult(
        ease=ease,
        interval=interval,
        last_reviewed=now,
        due_at=now + interval * SECONDS_PER_DAY,
        multiplier=mult,
    )
