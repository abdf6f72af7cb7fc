"""Human-friendly duration parsing and formatting for configuration files."""

from __future__ import annotations

import re
from datetime import timedelta

_CLOCK_PATTERN = re.compile(r"^\s*(?P<hours>\d+(?:\.\d+)?)\s*:\s*(?P<minutes>\d+(?:\.\d+)?)\s*$")
_UNIT_PATTERN = re.compile(
    r"^\s*(?P<value>\d+(?:\.\d+)?)\s*(?P<unit>hours?|h|minutes?|m|seconds?|s)\s*$",
    re.IGNORECASE,
)
_UNIT_SECONDS = {
    "h": 3600.0,
    "hour": 3600.0,
    "hours": 3600.0,
    "m": 60.0,
    "minute": 60.0,
    "minutes": 60.0,
    "s": 1.0,
    "second": 1.0,
    "seconds": 1.0,
}


def parse_duration(text: str) -> timedelta:
    """Parse ``"1:30"``, ``"2 hours"``, ``"45m"`` or ``"10 seconds"``."""
    if not isinstance(text, str):
        raise ValueError(f"expected a duration string, got {text!r}")

    clock = _CLOCK_PATTERN.match(text)
    if clock:
        hours = float(clock.group("hours"))
        minutes = float(clock.group("minutes"))
        return timedelta(seconds=(hours * 60.0 + minutes) * 60.0)

    unit = _UNIT_PATTERN.match(text)
    if unit:
        value = float(unit.group("value"))
        return timedelta(seconds=value * _UNIT_SECONDS[unit.group("unit").lower()])

    raise ValueError(f"invalid duration {text!r}")


def format_duration(value: timedelta) -> str:
    total_seconds = int(round(value.total_seconds()))
    if total_seconds < 0:
        total_seconds = 0
    hours, remainder = divmod(total_seconds, 3600)
    minutes, seconds = divmod(remainder, 60)

    if seconds:
        return _plural(total_seconds, "second")
    if hours == 0:
        return _plural(minutes, "minute")
    if minutes == 0:
        return _plural(hours, "hour")
    return f"{hours}:{minutes:02d}"


def pretty_duration(value: timedelta) -> str:
    """Format ``value`` rounded to whole minutes, for speech and status text."""
    minutes = round(max(value.total_seconds(), 0.0) / 60.0)
    return format_duration(timedelta(minutes=minutes))


def _plural(count: int, noun: str) -> str:
    return f"{count} {noun}" if count == 1 else f"{count} {noun}s"
