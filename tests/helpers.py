"""Shared constants and a controllable clock for the repetition tests."""

STAGES = (10, 100, 1000)
NOW = 1_700_000_000
DAY = 60 * 60 * 24


class FakeClock:
    """Manually advanced clock returning unix seconds."""

    def __init__(self, now: int = NOW) -> None:
        self.now = now

    def __call__(self) -> float:
        return float(self.now)

    def advance(self, seconds: int) -> None:
        self.now += seconds
