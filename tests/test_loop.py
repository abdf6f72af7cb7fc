"""Tests for the tick driver with fake probes, clock and announcer."""
from __future__ import annotations

import logging
import threading

import pytest

from breaktime.config import (
    END_OF_DAY_ID,
    BreaktimeConfig,
    SchedulerSettings,
    end_of_day_reminder,
    periodic_reminder,
)
from breaktime.loop import ReminderLoop
from breaktime.models import AnnounceAction, ReminderState

from conftest import (
    T0,
    TICK,
    FakeClock,
    FakeIdle,
    FakeMeeting,
    RecordingAnnouncer,
    hours,
    minutes,
)


class BrokenAnnouncer:
    def perform(self, message, action):
        raise RuntimeError("speaker unplugged")


def make_loop(reminders, announcer=None, idle=None, meeting=None):
    config = BreaktimeConfig(settings=SchedulerSettings(), reminders=tuple(reminders))
    clock = FakeClock(T0)
    loop = ReminderLoop(
        config,
        idle_source=idle or FakeIdle(),
        meeting_signal=meeting or FakeMeeting(),
        announcer=announcer or RecordingAnnouncer(),
        clock=clock,
    )
    return loop, clock


def tick_through(loop, clock, end):
    """Tick every ``TICK`` up to and including ``end``."""
    dispatches = []
    while clock.now <= end:
        dispatches.extend(loop.tick_once())
        clock.now += TICK
    return dispatches


@pytest.fixture
def stretch():
    return periodic_reminder("stretch", "Stretch", minutes(10))


def test_due_reminder_is_announced_with_its_prompt(stretch):
    announcer = RecordingAnnouncer()
    loop, clock = make_loop([end_of_day_reminder(), stretch], announcer=announcer)

    tick_through(loop, clock, T0 + minutes(10))

    assert announcer.calls == [("Stretch", AnnounceAction.speak(1))]
    status = loop.status()
    assert status.prompt == "Stretch"
    assert status.updated_at == T0 + minutes(10)
    states = {r.reminder_id: r.state for r in status.reminders}
    assert states == {END_OF_DAY_ID: ReminderState.DORMANT, "stretch": ReminderState.ESCALATING}


def test_acknowledgement_is_applied_on_the_next_tick(stretch):
    loop, clock = make_loop([stretch])
    tick_through(loop, clock, T0 + minutes(10))

    assert loop.submit_acknowledgement("stretch")
    assert loop.scheduler.instance("stretch").state is ReminderState.ESCALATING

    loop.tick_once()

    assert loop.scheduler.instance("stretch").state is ReminderState.DORMANT
    status = loop.status()
    assert status.prompt is None
    assert status.status_message == "Well done with the Stretch!"


def test_unknown_acknowledgement_is_reported_and_ignored(stretch):
    loop, clock = make_loop([stretch])
    assert not loop.submit_acknowledgement("nope")
    assert loop.tick_once() == []


def test_end_of_day_message_mentions_time_worked():
    announcer = RecordingAnnouncer()
    loop, clock = make_loop([end_of_day_reminder(hours(1))], announcer=announcer)

    tick_through(loop, clock, T0 + hours(1))

    assert announcer.calls == [("End of day after 1 hour", AnnounceAction.speak(1))]


def test_announcer_failure_is_logged_not_raised(stretch, caplog):
    loop, clock = make_loop([stretch], announcer=BrokenAnnouncer())

    with caplog.at_level(logging.ERROR, logger="breaktime.loop"):
        dispatches = tick_through(loop, clock, T0 + minutes(10))

    assert [d.reminder_id for d in dispatches] == ["stretch"]
    assert "Announcer failed for stretch" in caplog.text
    assert loop.scheduler.instance("stretch").state is ReminderState.ESCALATING


def test_meeting_probe_failure_counts_as_no_meeting(stretch, caplog):
    class BrokenMeeting:
        def in_meeting(self):
            raise OSError("no process table")

    loop, clock = make_loop([stretch], meeting=BrokenMeeting())
    with caplog.at_level(logging.ERROR, logger="breaktime.loop"):
        loop.tick_once()

    assert loop.status().in_meeting is False
    assert "Meeting probe failed" in caplog.text


def test_latest_update_reports_idle_time(stretch):
    loop, clock = make_loop([stretch], idle=FakeIdle(180.0))
    loop.tick_once()

    status = loop.status()
    assert status.away
    assert status.latest_update == "You've been idle for 3 minutes"


def test_latest_update_reports_time_worked(stretch):
    loop, clock = make_loop([stretch])
    tick_through(loop, clock, T0 + minutes(2))
    assert loop.status().latest_update == "You've been working for 2 minutes"


def test_run_until_stopped_returns_once_event_is_set(stretch):
    stop_event = threading.Event()

    class StoppingMeeting:
        def in_meeting(self):
            stop_event.set()
            return False

    loop, clock = make_loop([stretch], meeting=StoppingMeeting())
    loop.run_until_stopped(stop_event)

    assert loop.status().updated_at == T0
