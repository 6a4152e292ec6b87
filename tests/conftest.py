"""Shared fixtures for the login_token test suite."""
from __future__ import annotations

import datetime

import pytest

EPOCH = datetime.datetime(2030, 1, 1, 12, 0, 0, tzinfo=datetime.timezone.utc)


class MutableClock:
    """Callable clock whose current time tests move by hand."""

    def __init__(self, now: datetime.datetime = EPOCH) -> None:
        self.now = now

    def __call__(self) -> datetime.datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime.datetime:
        self.now = self.now + datetime.timedelta(**kwargs)
        return self.now


@pytest.fixture()
def clock() -> MutableClock:
    return MutableClock()
