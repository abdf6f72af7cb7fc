"""Tests for the dashboard API."""
from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from breaktime.config import BreaktimeConfig, SchedulerSettings, periodic_reminder
from breaktime.loop import ReminderLoop
from breaktime.models import ReminderState
from breaktime.webapp import create_app

from conftest import (
    T0,
    TICK,
    FakeClock,
    FakeIdle,
    FakeMeeting,
    RecordingAnnouncer,
    minutes,
)


@pytest.fixture
def loop():
    config = BreaktimeConfig(
        settings=SchedulerSettings(),
        reminders=(periodic_reminder("stretch", "Stretch", minutes(10)),),
    )
    clock = FakeClock(T0)
    loop = ReminderLoop(
        config,
        idle_source=FakeIdle(),
        meeting_signal=FakeMeeting(),
        announcer=RecordingAnnouncer(),
        clock=clock,
    )
    while clock.now <= T0 + minutes(10):
        loop.tick_once()
        clock.now += TICK
    return loop


@pytest.fixture
def client(loop):
    return TestClient(create_app(loop=loop, start_loop=False))


def test_status_reports_prompt_and_reminders(client):
    response = client.get("/api/status")
    assert response.status_code == 200
    payload = response.json()
    assert payload["prompt"] == "Stretch"
    assert payload["loop_running"] is False
    assert payload["accumulated_active_seconds"] == 600.0
    assert payload["latest_update"] == "You've been working for 10 minutes"
    (reminder,) = payload["reminders"]
    assert reminder["id"] == "stretch"
    assert reminder["state"] == "escalating"
    assert reminder["level"] == 1
    assert reminder["due_since"] == (T0 + minutes(10)).isoformat()


def test_reminders_endpoint(client):
    response = client.get("/api/reminders")
    assert response.status_code == 200
    assert [r["id"] for r in response.json()["reminders"]] == ["stretch"]


def test_done_queues_acknowledgement(client, loop):
    response = client.post("/api/reminders/stretch/done")

    assert response.status_code == 202
    assert response.json() == {"reminder_id": "stretch", "queued": True, "known": True}
    assert loop.scheduler.instance("stretch").state is ReminderState.ESCALATING

    loop.tick_once()
    assert loop.scheduler.instance("stretch").state is ReminderState.DORMANT
    assert client.get("/api/status").json()["prompt"] is None


def test_done_for_unknown_reminder_is_accepted_but_flagged(client):
    response = client.post("/api/reminders/nap/done")
    assert response.status_code == 202
    assert response.json()["known"] is False


def test_done_requires_an_id(client):
    response = client.post("/api/reminders/%20/done")
    assert response.status_code == 400


def test_index_serves_dashboard(client):
    response = client.get("/")
    assert response.status_code == 200
    assert "text/html" in response.headers["content-type"]
