"""Configuration models consumed by the activity tracker and reminder scheduler."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum

END_OF_DAY_ID = "end-of-day"


class ReminderKind(str, Enum):
    END_OF_DAY = "end_of_day"
    PERIODIC = "periodic"


@dataclass(frozen=True, slots=True)
class EscalationPolicy:
    """How an overdue reminder gets louder until it is acknowledged."""

    first_repeat_delay: timedelta = timedelta(minutes=2)
    repeat_cadence: timedelta = timedelta(minutes=2)
    lock_after: timedelta = timedelta(minutes=10)


@dataclass(frozen=True, slots=True)
class ReminderDefinition:
    """A reminder loaded once from configuration.

    ``trigger_threshold`` is the daily limit for the end-of-day reminder and
    the recurring interval for periodic ones. Both become due once
    ``trigger_threshold`` of activity has accrued past the acknowledgement
    watermark. An end-of-day reminder with a ``snooze`` instead re-arms after
    that much further activity once the daily limit has been passed.
    """

    reminder_id: str
    prompt: str
    kind: ReminderKind
    trigger_threshold: timedelta
    policy: EscalationPolicy = field(default_factory=EscalationPolicy)
    snooze: timedelta | None = None

    @property
    def is_end_of_day(self) -> bool:
        return self.kind is ReminderKind.END_OF_DAY

    def is_due(self, accumulated: timedelta, acknowledged_until: timedelta) -> bool:
        since_ack = accumulated - acknowledged_until
        if self.is_end_of_day and self.snooze is not None:
            if accumulated < self.trigger_threshold:
                return False
            return acknowledged_until == timedelta(0) or since_ack >= self.snooze
        return since_ack >= self.trigger_threshold


@dataclass(frozen=True, slots=True)
class SchedulerSettings:
    """Global timing policy shared by every reminder."""

    day_reset_idle_threshold: timedelta = timedelta(hours=7)
    away_threshold: timedelta = timedelta(minutes=2)
    max_tick_span: timedelta = timedelta(minutes=1)
    min_reminder_spacing: timedelta = timedelta(minutes=5)
    soon_threshold: timedelta = timedelta(minutes=6)
    focus_chunk: timedelta = timedelta(minutes=30)
    lock_during_meetings: bool = False
    tick_interval: timedelta = timedelta(seconds=10)


def end_of_day_reminder(
    daily_limit: timedelta = timedelta(hours=8),
    policy: EscalationPolicy | None = None,
    snooze: timedelta | None = None,
) -> ReminderDefinition:
    return ReminderDefinition(
        reminder_id=END_OF_DAY_ID,
        prompt="End of day",
        kind=ReminderKind.END_OF_DAY,
        trigger_threshold=daily_limit,
        policy=policy or EscalationPolicy(),
        snooze=snooze,
    )


def periodic_reminder(
    reminder_id: str,
    prompt: str,
    interval: timedelta,
    policy: EscalationPolicy | None = None,
) -> ReminderDefinition:
    return ReminderDefinition(
        reminder_id=reminder_id,
        prompt=prompt,
        kind=ReminderKind.PERIODIC,
        trigger_threshold=interval,
        policy=policy or EscalationPolicy(),
    )


def _default_reminders() -> tuple[ReminderDefinition, ...]:
    return (
        end_of_day_reminder(),
        periodic_reminder(
            "exercise", "Time for a 7-minute exercise", timedelta(hours=3)
        ),
        periodic_reminder(
            "standing-desk", "Switch to standing desk", timedelta(hours=4, minutes=1)
        ),
    )


@dataclass(frozen=True, slots=True)
class BreaktimeConfig:
    """Validated configuration handed to the core at startup."""

    settings: SchedulerSettings = field(default_factory=SchedulerSettings)
    reminders: tuple[ReminderDefinition, ...] = field(default_factory=_default_reminders)

    @property
    def end_of_day(self) -> ReminderDefinition:
        for definition in self.reminders:
            if definition.is_end_of_day:
                return definition
        raise LookupError("configuration has no end-of-day reminder")

    def reminder(self, reminder_id: str) -> ReminderDefinition | None:
        for definition in self.reminders:
            if definition.reminder_id == reminder_id:
                return definition
        return None
