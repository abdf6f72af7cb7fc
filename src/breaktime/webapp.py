"""FastAPI application exposing reminder status and the "Done" acknowledgement."""

from __future__ import annotations

import logging
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse
from fastapi.staticfiles import StaticFiles

from .config import BreaktimeConfig
from .loop import LoopStatus, ReminderLoop
from .models import ReminderSnapshot

logger = logging.getLogger(__name__)


class LoopRunner:
    """Manage the reminder loop in a background thread."""

    def __init__(self, loop: ReminderLoop) -> None:
        self.loop = loop
        self._lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None
        self._stop_event: Optional[threading.Event] = None

    def start(self) -> None:
        with self._lock:
            if self._thread and self._thread.is_alive():
                return
            stop_event = threading.Event()
            thread = threading.Thread(
                target=self.loop.run_until_stopped,
                args=(stop_event,),
                daemon=True,
            )
            self._thread = thread
            self._stop_event = stop_event
            thread.start()
            logger.info("Reminder loop background thread started.")

    def stop(self) -> None:
        thread: Optional[threading.Thread] = None
        with self._lock:
            if not self._thread or not self._thread.is_alive() or not self._stop_event:
                return
            self._stop_event.set()
            thread = self._thread
            self._thread = None
            self._stop_event = None
        if thread:
            thread.join(timeout=10)
            logger.info("Reminder loop background thread stopped.")

    def is_running(self) -> bool:
        with self._lock:
            return bool(self._thread and self._thread.is_alive())


def create_app(
    *,
    config: Optional[BreaktimeConfig] = None,
    loop: Optional[ReminderLoop] = None,
    start_loop: bool = True,
) -> FastAPI:
    """Instantiate the FastAPI application."""
    resolved_loop = loop or ReminderLoop(config or BreaktimeConfig())
    runner = LoopRunner(resolved_loop)

    app = FastAPI(title="breaktime", version="0.1.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.loop_runner = runner

    static_dir = Path(__file__).parent / "static"
    if static_dir.exists():
        app.mount("/static", StaticFiles(directory=static_dir), name="static")

    @app.on_event("startup")
    async def _startup() -> None:
        if start_loop:
            runner.start()

    @app.on_event("shutdown")
    async def _shutdown() -> None:
        runner.stop()

    @app.get("/api/status")
    def status(request: Request) -> Dict[str, Any]:
        current = request.app.state.loop_runner.loop.status()
        payload = _status_payload(current)
        payload["loop_running"] = request.app.state.loop_runner.is_running()
        return payload

    @app.get("/api/reminders")
    def reminders(request: Request) -> Dict[str, Any]:
        current = request.app.state.loop_runner.loop.status()
        return {"reminders": [_reminder_payload(r) for r in current.reminders]}

    @app.post("/api/reminders/{reminder_id}/done", status_code=202)
    def acknowledge(reminder_id: str, request: Request) -> Dict[str, Any]:
        reminder_id = reminder_id.strip()
        if not reminder_id:
            raise HTTPException(status_code=400, detail="reminder_id is required")
        known = request.app.state.loop_runner.loop.submit_acknowledgement(reminder_id)
        return {"reminder_id": reminder_id, "queued": True, "known": known}

    @app.get("/")
    def index(request: Request):
        index_path = (Path(__file__).parent / "static" / "index.html").resolve()
        if not index_path.exists():
            raise HTTPException(status_code=404, detail="UI not found")
        return FileResponse(index_path)

    return app


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _status_payload(status: LoopStatus) -> Dict[str, Any]:
    return {
        "updated_at": _isoformat(status.updated_at),
        "accumulated_active_seconds": status.accumulated_active.total_seconds(),
        "away": status.away,
        "in_meeting": status.in_meeting,
        "prompt": status.prompt,
        "status_message": status.status_message,
        "latest_update": status.latest_update,
        "reminders": [_reminder_payload(r) for r in status.reminders],
    }


def _reminder_payload(snapshot: ReminderSnapshot) -> Dict[str, Any]:
    return {
        "id": snapshot.reminder_id,
        "prompt": snapshot.prompt,
        "state": snapshot.state.value,
        "level": snapshot.level,
        "due_since": _isoformat(snapshot.due_since),
        "last_announcement": _isoformat(snapshot.last_announcement),
        "seconds_until_due": snapshot.time_until_due.total_seconds(),
        "focus_hold_seconds": snapshot.focus_hold_remaining.total_seconds(),
    }
