"""Session tracking state machine.

The tracker owns a single open :class:`Session` and advances it on a fixed
tick. Two signals can end a session: the activity axis (input silence
crossing the AFK threshold, or input resuming) and the identity axis (the
focused app or window title changing). The activity axis is evaluated
first on every tick and identity changes are ignored while AFK.
"""

from __future__ import annotations

import dataclasses
import logging
import signal
import threading
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional, Protocol

from .activity import InputActivityMonitor, detect_input_monitor
from .categorizer import categorize
from .config import TrackerSettings
from .db import SessionStore
from .errors import InspectionError, StoreError
from .inspection import WindowInspector, detect_inspector
from .models import ParsedWindow, Session, local_now
from .parser import parse_window_title

logger = logging.getLogger(__name__)

AFK_APP = "AFK"
AFK_WINDOW = "Away from keyboard"
UNKNOWN_APP = "Unknown"


class SessionSink(Protocol):
    def save_session(self, session: Session) -> int:
        ...

    def apply_renames_and_categories(self, session: Session) -> None:
        ...


@dataclass(slots=True)
class TrackerState:
    current: Optional[Session] = None
    current_app: str = UNKNOWN_APP
    current_window: Optional[str] = None
    last_afk_check: Optional[datetime] = None
    last_save: Optional[datetime] = None


class SessionTracker:
    """Delimits sessions from focus changes and input silence."""

    def __init__(
        self,
        store: SessionSink,
        inspector: WindowInspector,
        input_monitor: InputActivityMonitor,
        settings: Optional[TrackerSettings] = None,
        *,
        clock: Callable[[], datetime] = local_now,
        categorizer: Callable[[str], str] = categorize,
        parser: Callable[[str, Optional[str]], ParsedWindow] = parse_window_title,
    ) -> None:
        self.settings = settings or TrackerSettings()
        self._store = store
        self._inspector = inspector
        self._input_monitor = input_monitor
        self._clock = clock
        self._categorize = categorizer
        self._parse = parser
        self._state = TrackerState()
        self._lock = threading.Lock()

    @classmethod
    def create(cls, db_path: Path, settings: Optional[TrackerSettings] = None) -> "SessionTracker":
        """Wire the tracker to SQLite and the probes for the running platform."""
        return cls(
            store=SessionStore.open(db_path),
            inspector=detect_inspector(),
            input_monitor=detect_input_monitor(),
            settings=settings,
        )

    @property
    def current_session(self) -> Optional[Session]:
        return self._state.current

    def snapshot(self) -> Optional[Session]:
        """Copy of the open session with its duration brought up to date."""
        with self._lock:
            current = self._state.current
            if current is None:
                return None
            copy = dataclasses.replace(current)
        copy.duration = copy.elapsed_seconds(self._clock())
        return copy

    def start(self, now: Optional[datetime] = None) -> Session:
        """Open the first session from whatever currently has focus."""
        now = now or self._clock()
        if self._state.current is not None:
            return self._state.current
        app_name, window_name = self._inspect_or_unknown()
        session = self._open(now, app_name, window_name, is_afk=False)
        self._state.last_afk_check = now
        self._state.last_save = now
        logger.info("Started tracking: %s", app_name)
        return session

    def tick(self, now: Optional[datetime] = None) -> None:
        now = now or self._clock()
        if self._state.current is None:
            self.start(now)
            return

        last_check = self._state.last_afk_check
        if last_check is None or now - last_check >= self.settings.afk_check_interval:
            self._state.last_afk_check = now
            self._check_activity(now)

        self._check_identity(now)

        last_save = self._state.last_save
        if last_save is None or now - last_save >= self.settings.autosave_interval:
            self._checkpoint(now)

    def shutdown(self, now: Optional[datetime] = None) -> Optional[Session]:
        """Close and persist the open session, if any."""
        now = now or self._clock()
        session = self._close_current(now)
        if session is not None:
            logger.info("Saved session on exit: %s for %ss", session.app_name, session.duration)
        return session

    def run_until_stopped(self, stop_event: threading.Event) -> None:
        """Tick until ``stop_event`` is set, then flush the open session."""
        interval = self.settings.poll_interval.total_seconds()
        self._input_monitor.start()
        try:
            self.start()
            while not stop_event.is_set():
                self.tick()
                stop_event.wait(interval)
            logger.info("Received shutdown signal, saving and exiting...")
        finally:
            try:
                self.shutdown()
            finally:
                self._input_monitor.stop()
                close = getattr(self._store, "close", None)
                if close is not None:
                    close()
                logger.info("Tracker stopped.")

    def run_forever(self) -> None:
        stop_event = threading.Event()
        install_signal_handlers(stop_event)
        try:
            self.run_until_stopped(stop_event)
        except KeyboardInterrupt:
            logger.info("Tracker interrupted; open session flushed.")

    def is_afk(self, now: datetime) -> bool:
        idle = now - self._input_monitor.last_input_time()
        return idle >= self.settings.afk_threshold

    def _check_activity(self, now: datetime) -> None:
        current = self._state.current
        if current is None:
            return
        was_afk = bool(current.is_afk)
        afk_now = self.is_afk(now)
        if was_afk == afk_now:
            return

        self._close_current(now)
        if afk_now:
            self._open(now, AFK_APP, AFK_WINDOW, is_afk=True)
            logger.info("User is away; AFK session started.")
        else:
            app_name, window_name = self._inspect_or_unknown()
            self._open(now, app_name, window_name, is_afk=False)
            logger.info("User is back; tracking %s", app_name)

    def _check_identity(self, now: datetime) -> None:
        current = self._state.current
        if current is None or current.is_afk or self.is_afk(now):
            return
        try:
            app_name, window_name = self._inspector.get_active_window_info()
        except InspectionError as exc:
            logger.debug("Skipping focus check: %s", exc)
            return
        if app_name == self._state.current_app and window_name == self._state.current_window:
            return
        self._close_current(now)
        self._open(now, app_name, window_name, is_afk=False)
        logger.info("Switched to: %s", app_name)

    def _checkpoint(self, now: datetime) -> None:
        session = self._state.current
        if session is None:
            return
        session.duration = session.elapsed_seconds(now)
        if self._persist(session, "auto-save"):
            logger.info("Auto-saved session: %s for %ss", session.app_name, session.duration)
        # A failed checkpoint waits for the next interval instead of retrying every tick.
        self._state.last_save = now

    def _close_current(self, now: datetime) -> Optional[Session]:
        with self._lock:
            session = self._state.current
            self._state.current = None
        if session is None:
            return None

        session.duration = session.elapsed_seconds(now)
        idle_seconds = int(self.settings.idle_threshold.total_seconds())
        if session.is_afk and session.duration >= idle_seconds:
            session.is_idle = True
            logger.info(
                "AFK session marked as IDLE: %s for %.1f minutes",
                session.app_name,
                session.duration / 60.0,
            )
        if self._persist(session, "close"):
            self._state.last_save = now
            logger.debug("Saved session: %s for %ss", session.app_name, session.duration)
        return session

    def _persist(self, session: Session, action: str) -> bool:
        try:
            self._store.apply_renames_and_categories(session)
        except StoreError:
            logger.warning("Failed to apply renames and categories on %s", action, exc_info=True)
        try:
            self._store.save_session(session)
        except StoreError:
            logger.error("Failed to save session on %s", action, exc_info=True)
            return False
        return True

    def _open(
        self,
        now: datetime,
        app_name: str,
        window_name: Optional[str],
        *,
        is_afk: bool,
    ) -> Session:
        parsed = self._parse(app_name, window_name)
        session = Session.from_parsed(
            app_name=app_name,
            window_name=window_name,
            start_time=now,
            category=self._categorize(app_name),
            parsed=parsed,
        )
        session.is_afk = is_afk
        session.is_idle = False
        with self._lock:
            self._state.current = session
            self._state.current_app = app_name
            self._state.current_window = window_name
        return session

    def _inspect_or_unknown(self) -> tuple[str, Optional[str]]:
        try:
            return self._inspector.get_active_window_info()
        except InspectionError as exc:
            logger.error("Window detection failed: %s", exc)
            return UNKNOWN_APP, None


def install_signal_handlers(stop_event: threading.Event) -> None:
    """Route SIGINT/SIGTERM to ``stop_event``; only possible on the main thread."""
    if threading.current_thread() is not threading.main_thread():
        return

    def _handle(signum: int, _frame: object) -> None:
        logger.info("Received signal %s", signum)
        stop_event.set()

    for signum in (signal.SIGINT, signal.SIGTERM):
        signal.signal(signum, _handle)
