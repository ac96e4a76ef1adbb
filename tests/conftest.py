"""Shared test helpers."""
import datetime

import pytest


class FakeClock:
    """Callable clock the tests move by hand."""

    def __init__(self, now: datetime.datetime):
        self.now = now

    def __call__(self) -> datetime.datetime:
        return self.now

    def set_day(self, year: int, month: int, day: int, hour: int = 9) -> datetime.datetime:
        self.now = datetime.datetime(year, month, day, hour, 0, 0)
        return self.now


@pytest.fixture
def clock():
    return FakeClock(datetime.datetime(2026, 3, 1, 9, 0, 0))
