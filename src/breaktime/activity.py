"""Turns the raw seconds-since-last-input signal into accumulated screen time."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from .config import SchedulerSettings
from .durations import pretty_duration
from .models import ZERO, ActivitySession, Observation

logger = logging.getLogger(__name__)


class ActivityTracker:
    """Maintains the single :class:`ActivitySession` of the running process.

    Only the active part of each tick is credited: a tick of ``elapsed``
    seconds that ends with ``idle_run`` seconds of idleness adds
    ``elapsed - idle_run`` (never less than zero). Elapsed time is clamped to
    ``max_tick_span`` so a wake from sleep or a clock jump cannot credit a
    huge block of work, and a clock that moved backwards credits nothing.
    """

    def __init__(self, settings: SchedulerSettings) -> None:
        self.settings = settings
        self.session = ActivitySession()
        self._reset_signalled = False

    @property
    def accumulated_active(self) -> timedelta:
        return self.session.accumulated_active

    def observe(self, now: datetime, idle_run: timedelta) -> Observation:
        session = self.session
        settings = self.settings
        if idle_run < ZERO:
            idle_run = ZERO

        elapsed = self._clamped_elapsed(now)
        previous_idle = session.idle_run
        day_reset = False
        returned = False

        if idle_run >= settings.day_reset_idle_threshold:
            if not self._reset_signalled:
                logger.info(
                    "Idle for %s after %s of work; starting a new day.",
                    pretty_duration(idle_run),
                    pretty_duration(session.accumulated_active),
                )
                session.accumulated_active = ZERO
                self._reset_signalled = True
                day_reset = True
        else:
            self._reset_signalled = False
            credit = elapsed - idle_run
            if credit > ZERO:
                session.accumulated_active += credit
            returned = (
                idle_run < previous_idle
                and settings.away_threshold <= previous_idle < settings.day_reset_idle_threshold
            )
            if returned:
                logger.info(
                    "Back after a %s break; %s worked so far today.",
                    pretty_duration(previous_idle),
                    pretty_duration(session.accumulated_active),
                )

        away = idle_run >= settings.away_threshold
        if away and previous_idle < settings.away_threshold:
            logger.info(
                "After working %s you are now away.",
                pretty_duration(session.accumulated_active),
            )

        session.idle_run = idle_run
        session.last_tick_time = now
        return Observation(
            accumulated_active=session.accumulated_active,
            day_reset_occurred=day_reset,
            returned_from_idle=returned,
            away=away,
        )

    def _clamped_elapsed(self, now: datetime) -> timedelta:
        last = self.session.last_tick_time
        if last is None:
            return ZERO
        elapsed = now - last
        if elapsed < ZERO:
            logger.debug("Clock moved backwards by %s; crediting nothing.", -elapsed)
            return ZERO
        if elapsed > self.settings.max_tick_span:
            logger.debug(
                "Tick gap of %s clamped to %s.", elapsed, self.settings.max_tick_span
            )
            return self.settings.max_tick_span
        return elapsed
