from __future__ import annotations

from datetime import datetime, timedelta

import pytest

from breaktime.config import SchedulerSettings

T0 = datetime(2026, 1, 5, 9, 0, 0)
TICK = timedelta(seconds=10)
ZERO = timedelta(0)


def minutes(value: float) -> timedelta:
    return timedelta(minutes=value)


def hours(value: float) -> timedelta:
    return timedelta(hours=value)


def run_ticks(scheduler, start, end, *, step=TICK, idle=ZERO, in_meeting=False):
    """Tick from ``start`` (inclusive) to ``end`` (exclusive); return (time, dispatch) pairs."""
    events = []
    now = start
    while now < end:
        for dispatch in scheduler.evaluate(now, idle, in_meeting):
            events.append((now, dispatch))
        now += step
    return events


class FakeClock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now


class FakeIdle:
    def __init__(self, seconds=0.0):
        self.seconds = seconds

    def idle_seconds(self):
        return self.seconds


class FakeMeeting:
    def __init__(self, value=False):
        self.value = value

    def in_meeting(self):
        return self.value


class RecordingAnnouncer:
    def __init__(self):
        self.calls = []

    def perform(self, message, action):
        self.calls.append((message, action))


@pytest.fixture
def settings() -> SchedulerSettings:
    return SchedulerSettings(
        day_reset_idle_threshold=minutes(15),
        away_threshold=minutes(2),
        max_tick_span=minutes(1),
        min_reminder_spacing=minutes(5),
        soon_threshold=minutes(2),
        focus_chunk=minutes(20),
    )
