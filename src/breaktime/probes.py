"""Platform probes for idle time and the best-effort "in a meeting" signal."""

from __future__ import annotations

import ctypes
import logging
import re
import subprocess
import sys
from typing import Iterable, Protocol

import psutil

logger = logging.getLogger(__name__)

_COMMAND_TIMEOUT = 5.0


class IdleSource(Protocol):
    def idle_seconds(self) -> float:
        ...


class MeetingSignal(Protocol):
    def in_meeting(self) -> bool:
        ...


class WindowsIdleDetector:
    """Detects idle time using Win32 APIs."""

    class LASTINPUTINFO(ctypes.Structure):
        _fields_ = [("cbSize", ctypes.c_uint), ("dwTime", ctypes.c_uint32)]

    def __init__(self) -> None:
        self._user32 = ctypes.windll.user32  # type: ignore[attr-defined]
        self._kernel32 = ctypes.windll.kernel32  # type: ignore[attr-defined]
        self._kernel32.GetTickCount.restype = ctypes.c_uint32

    def idle_seconds(self) -> float:
        last_input = self.LASTINPUTINFO()
        last_input.cbSize = ctypes.sizeof(last_input)
        if not self._user32.GetLastInputInfo(ctypes.byref(last_input)):
            raise ctypes.WinError()  # type: ignore[attr-defined]
        # Both counters wrap after ~49.7 days; the masked difference stays correct.
        elapsed = (self._kernel32.GetTickCount() - last_input.dwTime) & 0xFFFFFFFF
        return elapsed / 1000.0


_HID_IDLE_PATTERN = re.compile(r'"HIDIdleTime"\s*=\s*(\d+)')


class MacIdleDetector:
    """Reads ``HIDIdleTime`` (nanoseconds) from the IOHIDSystem registry entry."""

    def idle_seconds(self) -> float:
        output = subprocess.run(
            ["/usr/sbin/ioreg", "-c", "IOHIDSystem", "-d", "4"],
            capture_output=True,
            text=True,
            check=True,
            timeout=_COMMAND_TIMEOUT,
        ).stdout
        match = _HID_IDLE_PATTERN.search(output)
        if not match:
            raise RuntimeError("HIDIdleTime not found in ioreg output")
        return int(match.group(1)) / 1_000_000_000


class XprintidleDetector:
    """X11 idle time through the ``xprintidle`` helper (milliseconds)."""

    def idle_seconds(self) -> float:
        output = subprocess.run(
            ["xprintidle"],
            capture_output=True,
            text=True,
            check=True,
            timeout=_COMMAND_TIMEOUT,
        ).stdout
        return int(output.strip()) / 1000.0


class SafeIdleSource:
    """Wraps a detector so failures are logged and read as "not idle"."""

    def __init__(self, inner: IdleSource) -> None:
        self._inner = inner

    def idle_seconds(self) -> float:
        try:
            return max(0.0, float(self._inner.idle_seconds()))
        except Exception:
            logger.exception("Failed to query idle time; assuming not idle.")
            return 0.0


def default_idle_source() -> IdleSource:
    if sys.platform == "win32":
        detector: IdleSource = WindowsIdleDetector()
    elif sys.platform == "darwin":
        detector = MacIdleDetector()
    else:
        detector = XprintidleDetector()
    return SafeIdleSource(detector)


class NoMeetingSignal:
    def in_meeting(self) -> bool:
        return False


class PmsetMeetingDetector:
    """Google Meet keeps a Chrome power assertion alive while a call is open."""

    def __init__(self, assertion_owner: str = "Google Chrome") -> None:
        self.assertion_owner = assertion_owner

    def in_meeting(self) -> bool:
        try:
            output = subprocess.run(
                ["pmset", "-g"],
                capture_output=True,
                text=True,
                timeout=_COMMAND_TIMEOUT,
            ).stdout
        except (OSError, subprocess.SubprocessError):
            logger.debug("pmset unavailable; assuming no meeting.", exc_info=True)
            return False
        return self.assertion_owner in output


DEFAULT_MEETING_PROCESSES = (
    "CptHost",  # Zoom meeting host
    "CptHost.exe",
    "aomhost",  # Zoom audio/video host on macOS
    "aomhost64.exe",
    "ms-teams_modulehost.exe",
)


class ProcessMeetingDetector:
    """Looks for helper processes that only run while a call is connected."""

    def __init__(self, process_names: Iterable[str] = DEFAULT_MEETING_PROCESSES) -> None:
        self.process_names = {name.lower() for name in process_names}

    def in_meeting(self) -> bool:
        try:
            for process in psutil.process_iter(["name"]):
                name = process.info.get("name")
                if name and name.lower() in self.process_names:
                    return True
        except psutil.Error:
            logger.debug("Process scan failed; assuming no meeting.", exc_info=True)
        return False


class AnyMeetingSignal:
    def __init__(self, signals: Iterable[MeetingSignal]) -> None:
        self.signals = list(signals)

    def in_meeting(self) -> bool:
        for signal in self.signals:
            try:
                if signal.in_meeting():
                    return True
            except Exception:
                logger.exception("Meeting probe %r failed.", signal)
        return False


def default_meeting_signal() -> MeetingSignal:
    signals: list[MeetingSignal] = [ProcessMeetingDetector()]
    if sys.platform == "darwin":
        signals.append(PmsetMeetingDetector())
    return AnyMeetingSignal(signals)
