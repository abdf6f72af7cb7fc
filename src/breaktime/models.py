"""Domain models for tracked activity and live reminders."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import NamedTuple, Optional

ZERO = timedelta(0)


@dataclass(slots=True)
class ActivitySession:
    """Accumulated screen time since the last day reset."""

    accumulated_active: timedelta = ZERO
    last_tick_time: Optional[datetime] = None
    idle_run: timedelta = ZERO


class Observation(NamedTuple):
    accumulated_active: timedelta
    day_reset_occurred: bool
    returned_from_idle: bool
    away: bool


class ReminderState(str, Enum):
    DORMANT = "dormant"
    DUE = "due"
    ESCALATING = "escalating"
    LOCKED = "locked"


class ActionKind(str, Enum):
    SPEAK = "speak"
    REPEAT_SPEAK_AND_HIDE_APPS = "repeat_speak_and_hide_apps"
    LOCK = "lock"


@dataclass(frozen=True, slots=True)
class AnnounceAction:
    kind: ActionKind
    level: int = 0

    @classmethod
    def speak(cls, level: int) -> "AnnounceAction":
        return cls(ActionKind.SPEAK, level)

    @classmethod
    def repeat_speak_and_hide_apps(cls, level: int) -> "AnnounceAction":
        return cls(ActionKind.REPEAT_SPEAK_AND_HIDE_APPS, level)

    @classmethod
    def lock(cls) -> "AnnounceAction":
        return cls(ActionKind.LOCK)


class Dispatch(NamedTuple):
    reminder_id: str
    action: AnnounceAction


@dataclass(slots=True)
class ReminderInstance:
    """Live escalation state of one reminder definition."""

    state: ReminderState = ReminderState.DORMANT
    level: int = 0
    due_since: Optional[datetime] = None
    last_announcement: Optional[datetime] = None
    acknowledged_until: timedelta = ZERO
    # Accumulated-active watermark before which announcements are withheld.
    focus_hold_until: Optional[timedelta] = None
    announce_now: bool = False

    @property
    def is_pending(self) -> bool:
        return self.state in (ReminderState.DUE, ReminderState.ESCALATING)

    def reset(self, acknowledged_until: timedelta) -> None:
        self.state = ReminderState.DORMANT
        self.level = 0
        self.due_since = None
        self.last_announcement = None
        self.acknowledged_until = acknowledged_until
        self.focus_hold_until = None
        self.announce_now = False


@dataclass(frozen=True, slots=True)
class ReminderSnapshot:
    reminder_id: str
    prompt: str
    state: ReminderState
    level: int
    due_since: Optional[datetime]
    last_announcement: Optional[datetime]
    time_until_due: timedelta
    focus_hold_remaining: timedelta
