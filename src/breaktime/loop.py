"""Tick driver that feeds the probes into the scheduler and dispatches actions."""

from __future__ import annotations

import logging
import queue
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Optional

from .announcer import Announcer
from .config import BreaktimeConfig, ReminderDefinition
from .durations import format_duration, pretty_duration
from .models import ZERO, Dispatch, ReminderSnapshot, ReminderState
from .probes import IdleSource, MeetingSignal, NoMeetingSignal, default_idle_source
from .scheduler import ReminderScheduler

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class LoopStatus:
    """Read-only view of the last tick, safe to hand to other threads."""

    updated_at: Optional[datetime] = None
    accumulated_active: timedelta = ZERO
    away: bool = False
    in_meeting: bool = False
    prompt: Optional[str] = None
    status_message: str = ""
    latest_update: str = ""
    reminders: tuple[ReminderSnapshot, ...] = field(default_factory=tuple)


class ReminderLoop:
    """Samples idle time and the meeting signal at a fixed interval.

    All scheduler state is touched only from :meth:`tick_once`.
    Acknowledgements arriving from other threads are queued and applied at
    the start of the next tick.
    """

    def __init__(
        self,
        config: BreaktimeConfig,
        *,
        idle_source: Optional[IdleSource] = None,
        meeting_signal: Optional[MeetingSignal] = None,
        announcer: Optional[Announcer] = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.config = config
        self.scheduler = ReminderScheduler(config.reminders, config.settings)
        self._idle_source = idle_source or default_idle_source()
        self._meeting_signal = meeting_signal or NoMeetingSignal()
        self._announcer = announcer or Announcer()
        self._clock = clock
        self._acknowledgements: queue.SimpleQueue[str] = queue.SimpleQueue()
        self._status_lock = threading.Lock()
        self._status = LoopStatus()
        self._prompt: Optional[str] = None

    def submit_acknowledgement(self, reminder_id: str) -> bool:
        """Queue a "done" event; returns whether the id is configured."""
        self._acknowledgements.put(reminder_id)
        return self.config.reminder(reminder_id) is not None

    def status(self) -> LoopStatus:
        with self._status_lock:
            return self._status

    def tick_once(self) -> list[Dispatch]:
        now = self._clock()
        self._drain_acknowledgements(now)

        idle_run = timedelta(seconds=self._idle_source.idle_seconds())
        in_meeting = self._probe_meeting()
        dispatches = self.scheduler.evaluate(now, idle_run, in_meeting)

        for dispatch in dispatches:
            definition = self.config.reminder(dispatch.reminder_id)
            if definition is None:
                continue
            message = self._message_for(definition)
            self._prompt = message
            try:
                self._announcer.perform(message, dispatch.action)
            except Exception:
                logger.exception("Announcer failed for %s.", dispatch.reminder_id)

        self._publish(now, in_meeting)
        return dispatches

    def run_forever(self) -> None:
        stop_event = threading.Event()
        try:
            self._run_loop(stop_event)
        except KeyboardInterrupt:
            logger.info("Reminder loop interrupted.")

    def run_until_stopped(self, stop_event: threading.Event) -> None:
        """Run the loop until the provided event is set."""
        self._run_loop(stop_event)

    def _run_loop(self, stop_event: threading.Event) -> None:
        interval = self.config.settings.tick_interval.total_seconds()
        logger.info(
            "Starting reminder loop; ticking every %s.",
            format_duration(self.config.settings.tick_interval),
        )
        while not stop_event.is_set():
            self.tick_once()
            # Sleep in an interruptible manner.
            stop_event.wait(interval)
        logger.info("Reminder loop stopped.")

    def _drain_acknowledgements(self, now: datetime) -> None:
        while True:
            try:
                reminder_id = self._acknowledgements.get_nowait()
            except queue.Empty:
                return
            self.scheduler.acknowledge(reminder_id, now)

    def _probe_meeting(self) -> bool:
        try:
            return bool(self._meeting_signal.in_meeting())
        except Exception:
            logger.exception("Meeting probe failed; assuming no meeting.")
            return False

    def _message_for(self, definition: ReminderDefinition) -> str:
        if definition.is_end_of_day:
            worked = pretty_duration(self.scheduler.accumulated_active)
            return f"{definition.prompt} after {worked}"
        return definition.prompt

    def _publish(self, now: datetime, in_meeting: bool) -> None:
        reminders = tuple(self.scheduler.snapshot())
        if all(r.state is ReminderState.DORMANT for r in reminders):
            self._prompt = None
        observation = self.scheduler.last_observation
        away = bool(observation and observation.away)
        worked = pretty_duration(self.scheduler.accumulated_active)
        if away:
            idle = self.scheduler.tracker.session.idle_run
            latest = f"You've been idle for {pretty_duration(idle)}"
        else:
            latest = f"You've been working for {worked}"
        status = LoopStatus(
            updated_at=now,
            accumulated_active=self.scheduler.accumulated_active,
            away=away,
            in_meeting=in_meeting,
            prompt=self._prompt,
            status_message=self.scheduler.status_message,
            latest_update=latest,
            reminders=reminders,
        )
        with self._status_lock:
            self._status = status
