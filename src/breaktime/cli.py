"""Command-line interface for breaktime."""

from __future__ import annotations

import dataclasses
import logging
from datetime import timedelta
from pathlib import Path
from typing import Optional

import typer

from .config import BreaktimeConfig
from .config_file import ConfigError, load_config, render_config, write_default_config
from .paths import get_config_path, get_log_path

app = typer.Typer(help="Activity-aware break and end-of-day reminders.")

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


@app.callback(no_args_is_help=True)
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logs."),
    log_file: bool = typer.Option(
        False, "--log-file", help="Also write logs to the per-user log file."
    ),
) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=LOG_FORMAT,
    )
    if log_file:
        handler = logging.FileHandler(get_log_path(), encoding="utf-8")
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logging.getLogger().addHandler(handler)


def _load(config_path: Optional[Path], interval: Optional[float]) -> BreaktimeConfig:
    path = config_path or get_config_path()
    try:
        config = load_config(path)
    except ConfigError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1) from exc
    if interval is not None:
        settings = dataclasses.replace(
            config.settings, tick_interval=timedelta(seconds=interval)
        )
        config = dataclasses.replace(config, settings=settings)
    return config


@app.command()
def run(
    config_path: Optional[Path] = typer.Option(
        None, "--config", path_type=Path, help="Location of breaks.toml."
    ),
    interval: Optional[float] = typer.Option(
        None, "--interval", min=1.0, help="Tick interval in seconds."
    ),
) -> None:
    """Track activity and announce reminders until interrupted."""
    from .loop import ReminderLoop
    from .probes import default_meeting_signal

    config = _load(config_path, interval)
    loop = ReminderLoop(config, meeting_signal=default_meeting_signal())
    loop.run_forever()


@app.command()
def web(
    host: str = typer.Option("127.0.0.1", "--host", help="Interface to bind the dashboard."),
    port: int = typer.Option(
        8766, "--port", min=1, max=65535, help="TCP port for the dashboard."
    ),
    config_path: Optional[Path] = typer.Option(
        None, "--config", path_type=Path, help="Location of breaks.toml."
    ),
    interval: Optional[float] = typer.Option(
        None, "--interval", min=1.0, help="Tick interval in seconds."
    ),
    open_browser: bool = typer.Option(
        True,
        "--open-browser/--no-open-browser",
        help="Automatically launch the dashboard in your default browser.",
    ),
) -> None:
    """Start the reminder loop with a local dashboard and Done buttons."""
    from .loop import ReminderLoop
    from .probes import default_meeting_signal
    from .server_runner import run_dashboard

    config = _load(config_path, interval)
    run_dashboard(
        host=host,
        port=port,
        config=config,
        loop=ReminderLoop(config, meeting_signal=default_meeting_signal()),
        open_browser=open_browser,
    )


@app.command("config")
def show_config(
    config_path: Optional[Path] = typer.Option(
        None, "--config", path_type=Path, help="Location of breaks.toml."
    ),
    init: bool = typer.Option(False, "--init", help="Write the default configuration."),
    force: bool = typer.Option(False, "--force", help="Overwrite an existing file with --init."),
    path_only: bool = typer.Option(False, "--path", help="Only print the file location."),
) -> None:
    """Print the effective configuration."""
    path = config_path or get_config_path()
    if path_only:
        typer.echo(str(path))
        return
    if init:
        if path.exists() and not force:
            typer.echo(f"{path} already exists; use --force to overwrite.", err=True)
            raise typer.Exit(code=1)
        write_default_config(path)
        typer.echo(f"Wrote {path}")
        return
    typer.echo(render_config(_load(path, None)), nl=False)
