"""Performs the physical side of an announcement: speech, hiding apps, locking."""

from __future__ import annotations

import ctypes
import logging
import shutil
import subprocess
import sys
from typing import Optional, Sequence

from .models import ActionKind, AnnounceAction

logger = logging.getLogger(__name__)

_MAC_HIDE_SCRIPT = (
    'tell application "System Events" to set visible of every process '
    "whose visible is true and frontmost is false to false"
)
_MAC_LOCK_SCRIPT = (
    'tell application "System Events" to key code 12 using {control down, command down}'
)
_MAC_CGSESSION = (
    "/System/Library/CoreServices/Menu Extras/User.menu/Contents/Resources/CGSession"
)


class Announcer:
    """Best-effort OS actions; every failure is logged and skipped."""

    def __init__(self, platform: Optional[str] = None) -> None:
        self.platform = platform or sys.platform

    def perform(self, message: str, action: AnnounceAction) -> None:
        if action.kind is ActionKind.SPEAK:
            self.speak(message)
        elif action.kind is ActionKind.REPEAT_SPEAK_AND_HIDE_APPS:
            self.hide_other_apps()
            self.speak(message)
        elif action.kind is ActionKind.LOCK:
            self.lock_screen()

    def speak(self, message: str) -> None:
        command = self._speech_command(message)
        if command is None:
            logger.warning("No speech synthesizer available; would have said %r.", message)
            return
        try:
            subprocess.Popen(
                command, stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL
            )
        except OSError:
            logger.warning("Failed to play voice reminder.", exc_info=True)

    def hide_other_apps(self) -> None:
        if self.platform == "darwin":
            self._run(["/usr/bin/osascript", "-e", _MAC_HIDE_SCRIPT], "hide other apps")
        elif self.platform == "win32":
            self._run(
                [
                    "powershell",
                    "-NoProfile",
                    "-Command",
                    "(New-Object -ComObject Shell.Application).MinimizeAll()",
                ],
                "minimize windows",
            )
        elif shutil.which("wmctrl"):
            self._run(["wmctrl", "-k", "on"], "show desktop")
        else:
            logger.info("Hiding other applications is not supported here.")

    def lock_screen(self) -> None:
        logger.info("Locking screen.")
        if self.platform == "win32":
            try:
                if not ctypes.windll.user32.LockWorkStation():  # type: ignore[attr-defined]
                    logger.error("LockWorkStation refused to lock the session.")
            except (AttributeError, OSError):
                logger.exception("Failed to lock workstation.")
        elif self.platform == "darwin":
            if not self._run(["/usr/bin/osascript", "-e", _MAC_LOCK_SCRIPT], "lock screen"):
                self._run([_MAC_CGSESSION, "-suspend"], "lock screen via CGSession")
        else:
            self._run(["loginctl", "lock-session"], "lock session")

    def _speech_command(self, message: str) -> Optional[list[str]]:
        if self.platform == "darwin":
            return ["/usr/bin/say", message]
        if self.platform == "win32":
            quoted = message.replace("'", "''")
            return [
                "powershell",
                "-NoProfile",
                "-Command",
                "Add-Type -AssemblyName System.Speech; "
                "(New-Object System.Speech.Synthesis.SpeechSynthesizer)"
                f".Speak('{quoted}')",
            ]
        for program in ("spd-say", "espeak"):
            if shutil.which(program):
                return [program, message]
        return None

    @staticmethod
    def _run(command: Sequence[str], what: str) -> bool:
        try:
            subprocess.run(
                list(command),
                check=True,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                timeout=10,
            )
        except (OSError, subprocess.SubprocessError):
            logger.warning("Failed to %s.", what, exc_info=True)
            return False
        return True
