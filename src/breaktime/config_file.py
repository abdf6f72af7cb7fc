"""Load ``breaks.toml`` into the validated :class:`BreaktimeConfig`."""

from __future__ import annotations

import logging
import re
import tomllib
from datetime import timedelta
from pathlib import Path
from typing import Annotated, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, ValidationError, field_validator

from .config import (
    BreaktimeConfig,
    EscalationPolicy,
    ReminderDefinition,
    SchedulerSettings,
    end_of_day_reminder,
    periodic_reminder,
)
from .durations import format_duration, parse_duration

logger = logging.getLogger(__name__)


class ConfigError(Exception):
    """Raised when the configuration file exists but cannot be used."""


def _coerce_duration(value: object) -> object:
    if isinstance(value, str):
        return parse_duration(value)
    return value


Duration = Annotated[timedelta, BeforeValidator(_coerce_duration)]


def _non_negative(value: Optional[timedelta]) -> Optional[timedelta]:
    if value is not None and value < timedelta(0):
        raise ValueError("durations must not be negative")
    return value


class BreakModel(BaseModel):
    prompt: str
    after: Duration
    id: Optional[str] = None
    emphasize_after: Optional[Duration] = None
    repeat_every: Optional[Duration] = None
    lock_after: Optional[Duration] = None

    model_config = ConfigDict(extra="forbid")

    @field_validator("after")
    @classmethod
    def _positive_interval(cls, value: timedelta) -> timedelta:
        if value <= timedelta(0):
            raise ValueError("break interval must be positive")
        return value

    @field_validator("emphasize_after", "repeat_every", "lock_after")
    @classmethod
    def _check_non_negative(cls, value: Optional[timedelta]) -> Optional[timedelta]:
        return _non_negative(value)


class ConfigModel(BaseModel):
    workday: Duration = timedelta(hours=8)
    day_resets_after: Duration = timedelta(hours=7)
    away_after: Duration = timedelta(minutes=2)
    max_tick_span: Duration = timedelta(minutes=1)
    tick_interval: Duration = timedelta(seconds=10)
    just_started: Duration = timedelta(minutes=6)
    good_chunk_of_work: Duration = timedelta(minutes=30)
    minimum_time_between_breaks: Duration = timedelta(minutes=5)
    when_to_emphasize_break: Duration = timedelta(minutes=2)
    repeat_every: Duration = timedelta(minutes=2)
    when_to_lock_screen: Duration = timedelta(minutes=10)
    end_of_day_snooze: Optional[Duration] = None
    lock_during_meetings: bool = False
    breaks: list[BreakModel] = []

    model_config = ConfigDict(extra="forbid")

    @field_validator("workday", "day_resets_after", "tick_interval")
    @classmethod
    def _positive(cls, value: timedelta) -> timedelta:
        if value <= timedelta(0):
            raise ValueError("must be positive")
        return value

    @field_validator(
        "away_after",
        "max_tick_span",
        "just_started",
        "good_chunk_of_work",
        "minimum_time_between_breaks",
        "when_to_emphasize_break",
        "repeat_every",
        "when_to_lock_screen",
        "end_of_day_snooze",
    )
    @classmethod
    def _check_non_negative(cls, value: Optional[timedelta]) -> Optional[timedelta]:
        return _non_negative(value)

    def to_config(self) -> BreaktimeConfig:
        default_policy = EscalationPolicy(
            first_repeat_delay=self.when_to_emphasize_break,
            repeat_cadence=self.repeat_every,
            lock_after=self.when_to_lock_screen,
        )
        settings = SchedulerSettings(
            day_reset_idle_threshold=self.day_resets_after,
            away_threshold=self.away_after,
            max_tick_span=self.max_tick_span,
            min_reminder_spacing=self.minimum_time_between_breaks,
            soon_threshold=self.just_started,
            focus_chunk=self.good_chunk_of_work,
            lock_during_meetings=self.lock_during_meetings,
            tick_interval=self.tick_interval,
        )
        reminders: list[ReminderDefinition] = [
            end_of_day_reminder(self.workday, default_policy, self.end_of_day_snooze)
        ]
        taken = {reminders[0].reminder_id}
        for item in self.breaks:
            reminder_id = _unique_id(item.id or slugify(item.prompt), taken)
            taken.add(reminder_id)
            policy = EscalationPolicy(
                first_repeat_delay=_override(item.emphasize_after, default_policy.first_repeat_delay),
                repeat_cadence=_override(item.repeat_every, default_policy.repeat_cadence),
                lock_after=_override(item.lock_after, default_policy.lock_after),
            )
            reminders.append(periodic_reminder(reminder_id, item.prompt, item.after, policy))
        return BreaktimeConfig(settings=settings, reminders=tuple(reminders))


def _override(value: Optional[timedelta], default: timedelta) -> timedelta:
    return default if value is None else value


_SLUG_PATTERN = re.compile(r"[^a-z0-9]+")


def slugify(value: str) -> str:
    slug = _SLUG_PATTERN.sub("-", value.lower()).strip("-")
    return slug or "break"


def _unique_id(candidate: str, taken: set[str]) -> str:
    if candidate not in taken:
        return candidate
    suffix = 2
    while f"{candidate}-{suffix}" in taken:
        suffix += 1
    return f"{candidate}-{suffix}"


def parse_config(text: str, *, source: str = "<string>") -> BreaktimeConfig:
    try:
        data = tomllib.loads(text)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Unable to parse {source}: {exc}") from exc
    try:
        model = ConfigModel.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration in {source}:\n{exc}") from exc
    return model.to_config()


def load_config(path: Path) -> BreaktimeConfig:
    """Read ``path``; a missing file is created with the defaults."""
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        config = BreaktimeConfig()
        try:
            write_default_config(path)
        except OSError:
            logger.warning("Could not write default configuration to %s.", path, exc_info=True)
        return config
    except OSError as exc:
        raise ConfigError(f"Unable to read {path}: {exc}") from exc
    return parse_config(text, source=str(path))


def write_default_config(path: Path) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(render_config(BreaktimeConfig()), encoding="utf-8")
    logger.info("Wrote default configuration to %s.", path)


def render_config(config: BreaktimeConfig) -> str:
    settings = config.settings
    end_of_day = config.end_of_day
    policy = end_of_day.policy
    lines = [
        f'workday = "{format_duration(end_of_day.trigger_threshold)}"',
        f'day_resets_after = "{format_duration(settings.day_reset_idle_threshold)}"',
        f'away_after = "{format_duration(settings.away_threshold)}"',
        f'max_tick_span = "{format_duration(settings.max_tick_span)}"',
        f'tick_interval = "{format_duration(settings.tick_interval)}"',
        f'just_started = "{format_duration(settings.soon_threshold)}"',
        f'good_chunk_of_work = "{format_duration(settings.focus_chunk)}"',
        f'minimum_time_between_breaks = "{format_duration(settings.min_reminder_spacing)}"',
        f'when_to_emphasize_break = "{format_duration(policy.first_repeat_delay)}"',
        f'repeat_every = "{format_duration(policy.repeat_cadence)}"',
        f'when_to_lock_screen = "{format_duration(policy.lock_after)}"',
        f"lock_during_meetings = {'true' if settings.lock_during_meetings else 'false'}",
    ]
    if end_of_day.snooze is not None:
        lines.append(f'end_of_day_snooze = "{format_duration(end_of_day.snooze)}"')
    for definition in config.reminders:
        if definition.is_end_of_day:
            continue
        lines.extend(
            [
                "",
                "[[breaks]]",
                f"id = {_toml_string(definition.reminder_id)}",
                f"prompt = {_toml_string(definition.prompt)}",
                f'after = "{format_duration(definition.trigger_threshold)}"',
            ]
        )
        if definition.policy != policy:
            lines.extend(
                [
                    f'emphasize_after = "{format_duration(definition.policy.first_repeat_delay)}"',
                    f'repeat_every = "{format_duration(definition.policy.repeat_cadence)}"',
                    f'lock_after = "{format_duration(definition.policy.lock_after)}"',
                ]
            )
    return "\n".join(lines) + "\n"


def _toml_string(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'
