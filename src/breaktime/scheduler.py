"""Reminder escalation state machine.

Every reminder definition owns one :class:`ReminderInstance` that moves
through ``DORMANT -> DUE -> ESCALATING(level) -> LOCKED`` and back to
``DORMANT`` when the user acknowledges it. Each call to
:meth:`ReminderScheduler.evaluate` is one tick: the activity tracker is
advanced first, then every reminder is checked for becoming due, then at most
one announcement is chosen among the reminders that are ready and not
suppressed.

Announcements are withheld when

* the user is away from the keyboard,
* a meeting is in progress (the lock too, unless ``lock_during_meetings``),
* the user just came back from a short break while the reminder had already
  been waiting for a while, until a focus chunk of work has accrued
  (the lock ignores this hold), or
* another reminder acted less than ``min_reminder_spacing`` ago. Every
  dispatched action refreshes this shared watermark, and the lock waits for
  it too. A reminder's own repeats keep their cadence.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Iterable, Mapping, Optional

from .activity import ActivityTracker
from .config import ReminderDefinition, SchedulerSettings
from .durations import format_duration, pretty_duration
from .models import (
    ZERO,
    ActionKind,
    AnnounceAction,
    Dispatch,
    Observation,
    ReminderInstance,
    ReminderSnapshot,
    ReminderState,
)

logger = logging.getLogger(__name__)


class ReminderScheduler:
    def __init__(
        self,
        reminders: Iterable[ReminderDefinition],
        settings: SchedulerSettings,
        tracker: Optional[ActivityTracker] = None,
    ) -> None:
        self.settings = settings
        self.tracker = tracker or ActivityTracker(settings)
        self._definitions: dict[str, ReminderDefinition] = {}
        for definition in reminders:
            if definition.reminder_id in self._definitions:
                raise ValueError(f"duplicate reminder id {definition.reminder_id!r}")
            self._definitions[definition.reminder_id] = definition
        self._order = {rid: index for index, rid in enumerate(self._definitions)}
        self._instances = {rid: ReminderInstance() for rid in self._definitions}
        self._last_action: Optional[tuple[str, datetime]] = None
        self.last_observation: Optional[Observation] = None
        self.status_message = ""

    @property
    def definitions(self) -> Mapping[str, ReminderDefinition]:
        return dict(self._definitions)

    def instance(self, reminder_id: str) -> Optional[ReminderInstance]:
        return self._instances.get(reminder_id)

    @property
    def accumulated_active(self) -> timedelta:
        return self.tracker.accumulated_active

    def evaluate(
        self, now: datetime, idle_run: timedelta, in_meeting: bool
    ) -> list[Dispatch]:
        observation = self.tracker.observe(now, idle_run)
        self.last_observation = observation
        accumulated = observation.accumulated_active

        if observation.day_reset_occurred:
            for instance in self._instances.values():
                instance.reset(ZERO)
            self._last_action = None
            self.status_message = "I think it is a new day. Resetting."

        for rid, definition in self._definitions.items():
            instance = self._instances[rid]
            self._roll_over_if_missed(definition, instance, now, accumulated)
            if instance.state is ReminderState.DORMANT and definition.is_due(
                accumulated, instance.acknowledged_until
            ):
                instance.state = ReminderState.DUE
                instance.due_since = now
                logger.info(
                    "%s is due after %s of work.",
                    definition.prompt,
                    pretty_duration(accumulated),
                )
            if observation.returned_from_idle and instance.is_pending:
                self._apply_focus_policy(definition, instance, now, accumulated)

        ready: list[tuple[ReminderDefinition, ReminderInstance, AnnounceAction]] = []
        for rid, definition in self._definitions.items():
            instance = self._instances[rid]
            action = self._next_action(definition, instance, now)
            if action is None:
                continue
            reason = self._suppression_reason(
                definition, instance, action, now, accumulated, observation, in_meeting
            )
            if reason:
                self.status_message = f"Postponing {definition.prompt} {reason}."
                logger.debug("Postponing %s %s.", definition.prompt, reason)
                continue
            ready.append((definition, instance, action))

        if not ready:
            return []

        definition, instance, action = min(ready, key=self._priority)
        self._apply(definition, instance, action, now)
        return [Dispatch(definition.reminder_id, action)]

    def acknowledge(self, reminder_id: str, now: datetime) -> bool:
        """Return the reminder to ``DORMANT``; unknown ids are ignored."""
        instance = self._instances.get(reminder_id)
        if instance is None:
            logger.debug("Ignoring acknowledgement for unknown reminder %r.", reminder_id)
            return False
        definition = self._definitions[reminder_id]
        was_pending = instance.state is not ReminderState.DORMANT
        instance.reset(self.tracker.accumulated_active)
        if was_pending:
            self.status_message = f"Well done with the {definition.prompt}!"
            logger.info("%s acknowledged at %s.", definition.prompt, now)
        return True

    def snapshot(self) -> list[ReminderSnapshot]:
        accumulated = self.tracker.accumulated_active
        snapshots = []
        for rid, definition in self._definitions.items():
            instance = self._instances[rid]
            hold_remaining = ZERO
            if instance.focus_hold_until is not None:
                hold_remaining = max(ZERO, instance.focus_hold_until - accumulated)
            snapshots.append(
                ReminderSnapshot(
                    reminder_id=rid,
                    prompt=definition.prompt,
                    state=instance.state,
                    level=instance.level,
                    due_since=instance.due_since,
                    last_announcement=instance.last_announcement,
                    time_until_due=_time_until_due(definition, instance, accumulated),
                    focus_hold_remaining=hold_remaining,
                )
            )
        return snapshots

    def _roll_over_if_missed(
        self,
        definition: ReminderDefinition,
        instance: ReminderInstance,
        now: datetime,
        accumulated: timedelta,
    ) -> None:
        # A periodic reminder ignored for a whole extra interval starts over.
        if definition.is_end_of_day or not instance.is_pending or instance.due_since is None:
            return
        if now - instance.due_since >= definition.policy.lock_after:
            return
        interval = definition.trigger_threshold
        if accumulated - instance.acknowledged_until < interval * 2:
            return
        logger.info("%s was never acknowledged; starting a new episode.", definition.prompt)
        instance.reset(instance.acknowledged_until + interval)

    def _apply_focus_policy(
        self,
        definition: ReminderDefinition,
        instance: ReminderInstance,
        now: datetime,
        accumulated: timedelta,
    ) -> None:
        if instance.due_since is None:
            return
        waited = now - instance.due_since
        if waited < self.settings.soon_threshold:
            instance.announce_now = True
            instance.focus_hold_until = None
            return
        instance.announce_now = False
        instance.focus_hold_until = accumulated + self.settings.focus_chunk
        logger.info(
            "%s waited %s; holding it for a %s focus chunk.",
            definition.prompt,
            pretty_duration(waited),
            format_duration(self.settings.focus_chunk),
        )

    def _next_action(
        self,
        definition: ReminderDefinition,
        instance: ReminderInstance,
        now: datetime,
    ) -> Optional[AnnounceAction]:
        if instance.state is ReminderState.DUE:
            return AnnounceAction.speak(1)
        if instance.state is not ReminderState.ESCALATING:
            return None

        if instance.due_since is None or instance.last_announcement is None:
            return None
        policy = definition.policy
        if now - instance.due_since >= policy.lock_after:
            return AnnounceAction.lock()
        if instance.level <= 1:
            cadence = policy.first_repeat_delay
        else:
            cadence = policy.repeat_cadence
        if instance.announce_now or now - instance.last_announcement >= cadence:
            return AnnounceAction.repeat_speak_and_hide_apps(instance.level + 1)
        return None

    def _suppression_reason(
        self,
        definition: ReminderDefinition,
        instance: ReminderInstance,
        action: AnnounceAction,
        now: datetime,
        accumulated: timedelta,
        observation: Observation,
        in_meeting: bool,
    ) -> Optional[str]:
        settings = self.settings
        is_lock = action.kind is ActionKind.LOCK

        if observation.away:
            return "while you are away"
        if in_meeting and not (is_lock and settings.lock_during_meetings):
            return "while you meet"

        if instance.focus_hold_until is not None:
            if accumulated >= instance.focus_hold_until:
                instance.focus_hold_until = None
            elif not is_lock:
                remaining = instance.focus_hold_until - accumulated
                return f"for {pretty_duration(remaining)} of focus"

        if self._last_action is not None:
            last_id, last_time = self._last_action
            gap = now - last_time
            other = last_id != definition.reminder_id
            if other and ZERO <= gap < settings.min_reminder_spacing:
                return f"for {pretty_duration(settings.min_reminder_spacing - gap)}"
        return None

    def _priority(
        self, item: tuple[ReminderDefinition, ReminderInstance, AnnounceAction]
    ) -> tuple[int, datetime, int]:
        definition, instance, _ = item
        return (
            0 if definition.is_end_of_day else 1,
            instance.due_since or datetime.max,
            self._order[definition.reminder_id],
        )

    def _apply(
        self,
        definition: ReminderDefinition,
        instance: ReminderInstance,
        action: AnnounceAction,
        now: datetime,
    ) -> None:
        if action.kind is ActionKind.LOCK:
            instance.state = ReminderState.LOCKED
        else:
            instance.state = ReminderState.ESCALATING
            instance.level = action.level
        self._last_action = (definition.reminder_id, now)
        instance.last_announcement = now
        instance.announce_now = False
        self.status_message = definition.prompt
        logger.info(
            "%s: %s (level %d).", definition.prompt, action.kind.value, action.level
        )


def _time_until_due(
    definition: ReminderDefinition,
    instance: ReminderInstance,
    accumulated: timedelta,
) -> timedelta:
    if instance.state is not ReminderState.DORMANT:
        return ZERO
    since_ack = accumulated - instance.acknowledged_until
    if not definition.is_end_of_day or definition.snooze is None:
        return max(ZERO, definition.trigger_threshold - since_ack)
    remaining = definition.trigger_threshold - accumulated
    if instance.acknowledged_until > ZERO:
        remaining = max(remaining, definition.snooze - since_ack)
    return max(ZERO, remaining)
