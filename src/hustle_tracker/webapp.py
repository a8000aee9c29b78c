"""FastAPI application exposing tracked sessions, reports and overrides."""

from __future__ import annotations

import dataclasses
import logging
import threading
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ConfigDict

from .aggregation import create_category_totals, create_file_breakdown, create_hierarchical_usage
from .categorizer import DEFAULT_CATEGORIES
from .config import TrackerSettings
from .db import (
    OVERRIDE_FIELD_TYPES,
    categorize_field,
    database_connection,
    fetch_app_usage,
    fetch_custom_categories,
    fetch_overrides,
    fetch_recent_sessions,
    rename_app,
    rename_field,
)
from .models import Session
from .paths import get_db_path
from .reporting import BREAKDOWNS, PERIODS
from .tracker import SessionTracker

logger = logging.getLogger(__name__)

TrackerFactory = Callable[[Path, TrackerSettings], SessionTracker]


class TrackerRunner:
    """Manage the session tracker in a background thread."""

    def __init__(
        self,
        db_path: Path,
        settings: TrackerSettings,
        tracker_factory: TrackerFactory = SessionTracker.create,
    ) -> None:
        self._db_path = Path(db_path)
        self._settings = settings
        self._factory = tracker_factory
        self._lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None
        self._stop_event: Optional[threading.Event] = None
        self._tracker: Optional[SessionTracker] = None

    def start(self) -> None:
        with self._lock:
            if self._thread and self._thread.is_alive():
                return
            stop_event = threading.Event()
            tracker = self._factory(self._db_path, self._settings)
            thread = threading.Thread(
                target=tracker.run_until_stopped,
                args=(stop_event,),
                name="session-tracker",
                daemon=True,
            )
            self._thread = thread
            self._stop_event = stop_event
            self._tracker = tracker
            thread.start()
            logger.info("Tracker background thread started.")

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
            logger.info("Tracker background thread stopped.")

    def is_running(self) -> bool:
        with self._lock:
            return bool(self._thread and self._thread.is_alive())

    def current_session(self) -> Optional[Session]:
        with self._lock:
            tracker = self._tracker
        return tracker.snapshot() if tracker else None


class OverridePayload(BaseModel):
    field_type: str
    original_value: str
    renamed_value: Optional[str] = None
    category: Optional[str] = None

    model_config = ConfigDict(extra="forbid")


def create_app(
    *,
    db_path: Optional[Path] = None,
    settings: Optional[TrackerSettings] = None,
    run_tracker: bool = True,
    tracker_factory: TrackerFactory = SessionTracker.create,
) -> FastAPI:
    """Instantiate the FastAPI application."""
    resolved_db_path = Path(db_path or get_db_path())
    resolved_settings = settings or TrackerSettings()
    runner = TrackerRunner(resolved_db_path, resolved_settings, tracker_factory)

    app = FastAPI(title="Hustle Tracker", version="0.1.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.db_path = resolved_db_path
    app.state.tracker_runner = runner

    @app.on_event("startup")
    async def _startup() -> None:
        if run_tracker:
            runner.start()

    @app.on_event("shutdown")
    async def _shutdown() -> None:
        runner.stop()

    @app.get("/api/status")
    def status(request: Request) -> Dict[str, Any]:
        current = request.app.state.tracker_runner.current_session()
        return {
            "tracker_running": request.app.state.tracker_runner.is_running(),
            "database_path": str(request.app.state.db_path),
            "poll_ms": resolved_settings.poll_interval.total_seconds() * 1000.0,
            "afk_seconds": resolved_settings.afk_threshold.total_seconds(),
            "idle_seconds": resolved_settings.idle_threshold.total_seconds(),
            "current_session": session_payload(current) if current else None,
        }

    @app.get("/api/sessions")
    def sessions(
        request: Request,
        period: str = Query(default="recent", description="recent, daily, weekly or monthly."),
        limit: int = Query(default=30, ge=1, le=1000),
    ) -> Dict[str, Any]:
        loaded = _load_sessions(request.app.state.db_path, period, limit)
        return {"period": period, "sessions": [session_payload(s) for s in loaded]}

    @app.get("/api/usage")
    def usage(
        request: Request,
        period: str = Query(default="daily"),
        max_sub_entries: int = Query(default=2, ge=0, le=20),
    ) -> Dict[str, Any]:
        loaded = _load_sessions(request.app.state.db_path, period)
        items = create_hierarchical_usage(loaded, max_sub_entries=max_sub_entries)
        with database_connection(request.app.state.db_path) as conn:
            app_rows = fetch_app_usage(conn)
        return {
            "period": period,
            "active_seconds": sum(s.duration for s in loaded if not s.is_afk),
            "afk_seconds": sum(s.duration for s in loaded if s.is_afk),
            "idle_seconds": sum(s.duration for s in loaded if s.is_idle),
            "items": [dataclasses.asdict(item) for item in items],
            "categories": [
                {"category": category, "seconds": seconds}
                for category, seconds in create_category_totals(loaded)
            ],
            "all_time_apps": [
                {"app_name": row["app_name"], "seconds": row["total_duration"] or 0}
                for row in app_rows
            ],
        }

    @app.get("/api/breakdown/{kind}")
    def breakdown(
        kind: str,
        request: Request,
        period: str = Query(default="daily"),
    ) -> Dict[str, Any]:
        loaded = _load_sessions(request.app.state.db_path, period)
        if kind == "files":
            rows = [
                {"filename": filename, "language": language, "seconds": seconds}
                for filename, language, seconds in create_file_breakdown(loaded)
            ]
        elif kind in BREAKDOWNS:
            builder, max_children = BREAKDOWNS[kind]
            rows = [
                {"label": label, "seconds": seconds}
                for label, seconds in builder(loaded, max_children)
            ]
        else:
            raise HTTPException(status_code=404, detail=f"Unknown breakdown: {kind}")
        return {"kind": kind, "period": period, "rows": rows}

    @app.get("/api/overrides")
    def list_overrides(request: Request) -> Dict[str, Any]:
        with database_connection(request.app.state.db_path) as conn:
            rows = fetch_overrides(conn)
        return {
            "field_types": list(OVERRIDE_FIELD_TYPES),
            "overrides": [dict(row) for row in rows],
        }

    @app.post("/api/overrides")
    def create_or_update_override(payload: OverridePayload, request: Request) -> Dict[str, Any]:
        original = payload.original_value.strip()
        renamed = payload.renamed_value.strip() if payload.renamed_value else None
        category = payload.category.strip() if payload.category else None
        if not original:
            raise HTTPException(status_code=400, detail="original_value is required")
        if not renamed and not category:
            raise HTTPException(status_code=400, detail="renamed_value or category is required")

        updated = 0
        with database_connection(request.app.state.db_path) as conn:
            try:
                if renamed and payload.field_type == "app_name":
                    updated = rename_app(conn, original, renamed, category)
                else:
                    if renamed:
                        updated = rename_field(conn, payload.field_type, original, renamed)
                    if category:
                        updated = categorize_field(conn, payload.field_type, original, category)
            except ValueError as exc:
                raise HTTPException(status_code=400, detail=str(exc)) from exc

        return {
            "field_type": payload.field_type,
            "original_value": original,
            "renamed_value": renamed,
            "category": category,
            "sessions_updated": updated,
        }

    @app.get("/api/categories")
    def categories(request: Request) -> Dict[str, Any]:
        with database_connection(request.app.state.db_path) as conn:
            custom = fetch_custom_categories(conn)
        return {"default": list(DEFAULT_CATEGORIES), "custom": custom}

    return app


def _load_sessions(db_path: Path, period: str, limit: int = 30) -> list[Session]:
    with database_connection(db_path) as conn:
        if period == "recent":
            return fetch_recent_sessions(conn, limit)
        fetch = PERIODS.get(period)
        if fetch is None:
            raise HTTPException(status_code=400, detail=f"Unknown period: {period}")
        return fetch(conn)


def session_payload(session: Session) -> Dict[str, Any]:
    payload = dataclasses.asdict(session)
    payload["start_time"] = session.start_time.isoformat()
    payload["end_time"] = session.end_time.isoformat()
    return payload
