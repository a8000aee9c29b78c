"""Command-line interface for the session tracker."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import NoReturn, Optional

import typer

from .config import TrackerSettings
from .errors import ConfigurationError, StoreError
from .paths import get_db_path, get_log_path

app = typer.Typer(help="Local-first focus and AFK session tracker.")

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


@app.callback(no_args_is_help=True)
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logs."),
    log_file: bool = typer.Option(
        False, "--log-file", help="Also write logs to the tracker log file."
    ),
) -> None:
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(get_log_path(), encoding="utf-8"))
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=LOG_FORMAT,
        handlers=handlers,
    )


def _build_settings(
    poll_ms: Optional[float],
    afk_seconds: Optional[float],
    idle_seconds: Optional[float],
    autosave_seconds: Optional[float],
) -> TrackerSettings:
    """Command-line values win over ``HUSTLE_TRACKER_*`` variables."""
    try:
        base = TrackerSettings.from_env()
        return TrackerSettings.from_intervals(
            poll_ms=poll_ms if poll_ms is not None else base.poll_interval.total_seconds() * 1000.0,
            afk_seconds=afk_seconds if afk_seconds is not None else base.afk_threshold.total_seconds(),
            idle_seconds=idle_seconds if idle_seconds is not None else _inherited_idle(base, afk_seconds),
            autosave_seconds=(
                autosave_seconds
                if autosave_seconds is not None
                else base.autosave_interval.total_seconds()
            ),
        )
    except ConfigurationError as exc:
        typer.secho(f"Invalid configuration: {exc}", err=True, fg=typer.colors.RED)
        raise typer.Exit(code=1) from exc


def _inherited_idle(base: TrackerSettings, afk_seconds: Optional[float]) -> Optional[float]:
    idle = base.idle_threshold.total_seconds()
    if afk_seconds is not None and idle < afk_seconds:
        return None
    return idle


def _fail(exc: Exception) -> NoReturn:
    typer.secho(str(exc), err=True, fg=typer.colors.RED)
    raise typer.Exit(code=1) from exc


@app.command()
def track(
    db_path: Optional[Path] = typer.Option(
        None,
        "--db",
        path_type=Path,
        help="Location of the sessions SQLite database.",
    ),
    poll_ms: Optional[float] = typer.Option(
        None,
        "--interval",
        min=10.0,
        help="Tick interval in milliseconds.",
    ),
    afk_seconds: Optional[float] = typer.Option(
        None,
        "--afk-threshold",
        min=1.0,
        help="Seconds without input before the user counts as away.",
    ),
    idle_seconds: Optional[float] = typer.Option(
        None,
        "--idle-threshold",
        min=1.0,
        help="Seconds an AFK session must last to be marked idle.",
    ),
    autosave_seconds: Optional[float] = typer.Option(
        None,
        "--autosave",
        min=1.0,
        help="Seconds between checkpoints of the open session.",
    ),
) -> None:
    """Track focused windows until interrupted."""
    from .tracker import SessionTracker

    settings = _build_settings(poll_ms, afk_seconds, idle_seconds, autosave_seconds)
    tracker = SessionTracker.create(db_path or get_db_path(), settings)
    tracker.run_forever()


@app.command()
def summary(
    period: str = typer.Option(
        "daily", "--period", "-p", help="daily, weekly or monthly."
    ),
    max_sub_entries: int = typer.Option(
        2, "--top", min=0, help="Sub-entries shown under each app."
    ),
    db_path: Optional[Path] = typer.Option(
        None,
        "--db",
        path_type=Path,
        help="Location of the sessions SQLite database.",
    ),
) -> None:
    """Print time per app, sub-activity and category."""
    from .reporting import SummaryPrinter

    printer = SummaryPrinter(db_path=db_path or get_db_path())
    try:
        printer.print_summary(period, max_sub_entries=max_sub_entries)
    except ValueError as exc:
        _fail(exc)


@app.command()
def breakdown(
    view: str = typer.Argument(..., help="browser, projects, terminal or files."),
    period: str = typer.Option(
        "daily", "--period", "-p", help="daily, weekly or monthly."
    ),
    db_path: Optional[Path] = typer.Option(
        None,
        "--db",
        path_type=Path,
        help="Location of the sessions SQLite database.",
    ),
) -> None:
    """Print a detailed breakdown for one kind of activity."""
    from .reporting import SummaryPrinter

    printer = SummaryPrinter(db_path=db_path or get_db_path())
    try:
        printer.print_breakdown(view, period)
    except ValueError as exc:
        _fail(exc)


@app.command()
def rename(
    field_type: str = typer.Argument(
        ...,
        help="app_name, browser_page_title, terminal_directory, editor_filename or tmux_window_name.",
    ),
    original: str = typer.Argument(..., help="Value as recorded."),
    new_name: str = typer.Argument(..., help="Name to display instead."),
    category: Optional[str] = typer.Option(
        None, "--category", "-c", help="Also assign a category."
    ),
    db_path: Optional[Path] = typer.Option(
        None,
        "--db",
        path_type=Path,
        help="Location of the sessions SQLite database.",
    ),
) -> None:
    """Rename a recorded value in past and future sessions."""
    from .db import SessionStore

    store = SessionStore.open(db_path or get_db_path())
    try:
        if field_type == "app_name":
            updated = store.rename_app(original, new_name, category)
        else:
            updated = store.rename_field(field_type, original, new_name)
            if category:
                store.categorize_field(field_type, original, category)
    except StoreError as exc:
        _fail(exc)
    finally:
        store.close()
    typer.echo(f"Renamed {original!r} to {new_name!r} in {updated} session(s).")


@app.command()
def categorize(
    field_type: str = typer.Argument(
        ...,
        help="app_name, browser_page_title, terminal_directory, editor_filename or tmux_window_name.",
    ),
    original: str = typer.Argument(..., help="Value as recorded."),
    category: str = typer.Argument(..., help="Category label to assign."),
    db_path: Optional[Path] = typer.Option(
        None,
        "--db",
        path_type=Path,
        help="Location of the sessions SQLite database.",
    ),
) -> None:
    """Assign a category to a recorded value."""
    from .db import SessionStore

    store = SessionStore.open(db_path or get_db_path())
    try:
        updated = store.categorize_field(field_type, original, category)
    except StoreError as exc:
        _fail(exc)
    finally:
        store.close()
    typer.echo(f"Categorized {original!r} as {category!r} in {updated} session(s).")


@app.command()
def web(
    host: str = typer.Option("127.0.0.1", "--host", help="Interface to bind the API."),
    port: int = typer.Option(
        8765, "--port", min=1, max=65535, help="TCP port for the API."
    ),
    db_path: Optional[Path] = typer.Option(
        None, "--db", path_type=Path, help="Location of the sessions SQLite database."
    ),
    poll_ms: Optional[float] = typer.Option(
        None,
        "--interval",
        min=10.0,
        help="Tick interval in milliseconds.",
    ),
    afk_seconds: Optional[float] = typer.Option(
        None,
        "--afk-threshold",
        min=1.0,
        help="Seconds without input before the user counts as away.",
    ),
    idle_seconds: Optional[float] = typer.Option(
        None,
        "--idle-threshold",
        min=1.0,
        help="Seconds an AFK session must last to be marked idle.",
    ),
    track_sessions: bool = typer.Option(
        True,
        "--track/--no-track",
        help="Run the tracker in the background while serving.",
    ),
) -> None:
    """Serve the JSON API, with the tracker running in the background."""
    from .server_runner import run_server

    settings = _build_settings(poll_ms, afk_seconds, idle_seconds, None)
    run_server(
        host=host,
        port=port,
        db_path=db_path or get_db_path(),
        settings=settings,
        run_tracker=track_sessions,
    )
