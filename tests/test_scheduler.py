import pytest

from repetition.errors import ConfigurationError
from repetition.scheduler import (
    MAX_EASE,
    MAX_MULTIPLIER,
    MIN_EASE,
    SECONDS_PER_DAY,
    AnswerEase,
    SchedulePolicy,
    ScheduleState,
    elapsed_days,
    multiplier_for,
    next_interval,
    schedule,
)

NOW = 1_700_000_000
POLICY = SchedulePolicy()


def _state(ease: int, interval: int, days_ago: int = 0) -> ScheduleState:
    return ScheduleState(ease=ease, interval=interval, last_reviewed=NOW - days_ago * SECONDS_PER_DAY)


def test_good_from_new_item_goes_to_one_then_three_days():
    first = schedule(_state(250, 0), AnswerEase.GOOD, NOW, POLICY)
    assert first.interval == 1
    assert first.due_at == NOW + SECONDS_PER_DAY

    second = schedule(ScheduleState(first.ease, first.interval, NOW), AnswerEase.GOOD, NOW, POLICY)
    assert second.interval == 3
    assert second.due_at == NOW + 3 * SECONDS_PER_DAY


def test_good_on_time_multiplies_by_ease():
    result = schedule(_state(250, 10, days_ago=10), AnswerEase.GOOD, NOW, POLICY)
    assert result.multiplier == pytest.approx(2.5)
    assert result.interval == 25
    assert result.ease == 250
    assert result.last_reviewed == NOW


def test_easy_at_max_ease_is_capped_by_multiplier_ceiling():
    result = schedule(_state(1300, 5), AnswerEase.EASY, NOW, POLICY)
    assert result.ease == 1300
    assert result.multiplier == pytest.approx(13.0)
    assert result.interval == 65


@pytest.mark.parametrize("ease,interval", [(250, 0), (250, 40), (130, 3), (1300, 200)])
def test_again_resets_interval_and_uses_relearn_delay(ease: int, interval: int):
    result = schedule(_state(ease, interval, days_ago=interval), AnswerEase.AGAIN, NOW, POLICY)
    assert result.interval == 0
    assert result.due_at == NOW + 20
    assert result.ease == max(MIN_EASE, ease - 20)


def test_again_delay_follows_policy():
    policy = SchedulePolicy(again_delay_seconds=90)
    result = schedule(_state(250, 5), AnswerEase.AGAIN, NOW, policy)
    assert result.due_at == NOW + 90


def test_hard_lowers_ease_and_uses_fixed_multiplier():
    result = schedule(_state(250, 10), AnswerEase.HARD, NOW, POLICY)
    assert result.ease == 235
    assert result.multiplier == pytest.approx(1.2)
    assert result.interval == 12


def test_hard_on_small_interval_still_grows_by_one_day():
    # 2 * 1.2 = 2.4 rounds back to 2
    result = schedule(_state(250, 2), AnswerEase.HARD, NOW, POLICY)
    assert result.interval == 3


def test_easy_adds_ease_and_bonus():
    result = schedule(_state(250, 4), AnswerEase.EASY, NOW, POLICY)
    assert result.ease == 265
    assert result.multiplier == pytest.approx(265 * 1.3 / 100)
    assert result.interval == round(4 * 265 * 1.3 / 100)


def test_late_review_uses_elapsed_days_as_interval():
    result = schedule(_state(250, 2, days_ago=10), AnswerEase.HARD, NOW, POLICY)
    assert result.interval == 12


def test_late_review_from_zero_interval_skips_first_steps():
    result = schedule(_state(200, 0, days_ago=4), AnswerEase.GOOD, NOW, POLICY)
    assert result.interval == 8


def test_half_values_round_up():
    assert next_interval(3, 2.5) == 8


@pytest.mark.parametrize("quality", list(AnswerEase))
@pytest.mark.parametrize("ease", [MIN_EASE, 131, 250, 1290, MAX_EASE])
def test_ease_always_stays_in_bounds(quality: AnswerEase, ease: int):
    result = schedule(_state(ease, 7), quality, NOW, POLICY)
    assert MIN_EASE <= result.ease <= MAX_EASE


@pytest.mark.parametrize("quality", [AnswerEase.HARD, AnswerEase.GOOD, AnswerEase.EASY])
@pytest.mark.parametrize("ease", [MIN_EASE, 250, 999, MAX_EASE, MAX_EASE + 15])
def test_multiplier_never_exceeds_ceiling(quality: AnswerEase, ease: int):
    assert multiplier_for(quality, ease, POLICY) <= MAX_MULTIPLIER


@pytest.mark.parametrize("quality", [AnswerEase.HARD, AnswerEase.GOOD, AnswerEase.EASY])
@pytest.mark.parametrize("interval", [2, 3, 7, 30, 365])
def test_successful_review_strictly_grows_interval(quality: AnswerEase, interval: int):
    result = schedule(_state(MIN_EASE, interval), quality, NOW, POLICY)
    assert result.interval > interval
    assert result.interval == max(int(interval * result.multiplier + 0.5), interval + 1)


def test_elapsed_days_ignores_partial_days_and_clock_skew():
    assert elapsed_days(NOW - SECONDS_PER_DAY + 1, NOW) == 0
    assert elapsed_days(NOW - 3 * SECONDS_PER_DAY, NOW) == 3
    assert elapsed_days(NOW + 100, NOW) == 0


@pytest.mark.parametrize(
    "kwargs",
    [{"initial_ease": 100}, {"initial_ease": 1301}, {"initial_interval_days": -1}, {"again_delay_seconds": -5}],
)
def test_policy_rejects_invalid_constants(kwargs: dict):
    with pytest.raises(ConfigurationError):
        SchedulePolicy(**kwargs)


def test_policy_defaults():
    policy = SchedulePolicy()
    assert policy.initial_ease == 250
    assert policy.initial_interval_days == 0
    assert policy.again_delay_seconds == 20
    assert policy.initial_due_at(NOW) == NOW
