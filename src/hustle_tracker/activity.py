"""Keyboard/mouse activity monitors feeding the tracker's AFK check."""

from __future__ import annotations

import ctypes
import logging
import sys
import threading
from datetime import datetime, timedelta
from typing import Any, Callable, Optional, Protocol

from .models import local_now

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


class InputActivityMonitor(Protocol):
    def start(self) -> None:
        ...

    def stop(self) -> None:
        ...

    def last_input_time(self) -> datetime:
        ...


class LastInputCell:
    """Single-writer holder for the most recent input timestamp."""

    def __init__(self, initial: Optional[datetime] = None, clock: Clock = local_now) -> None:
        self._clock = clock
        self._value = initial or clock()
        self._lock = threading.Lock()

    def touch(self, at: Optional[datetime] = None) -> None:
        stamp = at or self._clock()
        with self._lock:
            if stamp > self._value:
                self._value = stamp

    def get(self) -> datetime:
        with self._lock:
            return self._value


class PynputInputMonitor:
    """Hooks global keyboard and mouse events through pynput listeners."""

    def __init__(self, cell: Optional[LastInputCell] = None, clock: Clock = local_now) -> None:
        self._clock = clock
        self._cell = cell or LastInputCell(clock=clock)
        self._listeners: list[Any] = []
        self._available = False

    @property
    def available(self) -> bool:
        return self._available

    def start(self) -> None:
        if self._listeners:
            return
        try:
            from pynput import keyboard, mouse

            self._listeners = [
                mouse.Listener(
                    on_move=self._on_event,
                    on_click=self._on_event,
                    on_scroll=self._on_event,
                ),
                keyboard.Listener(on_press=self._on_event, on_release=self._on_event),
            ]
            for listener in self._listeners:
                listener.daemon = True
                listener.start()
        except Exception:
            logger.warning(
                "Input listeners unavailable; AFK detection disabled.", exc_info=True
            )
            self._listeners = []
            self._available = False
            return
        self._available = True
        logger.info("Input listeners started.")

    def stop(self) -> None:
        for listener in self._listeners:
            listener.stop()
        self._listeners = []
        self._available = False

    def last_input_time(self) -> datetime:
        if not self._available:
            # Without listeners there is no evidence of absence; report activity.
            return self._clock()
        return self._cell.get()

    def _on_event(self, *_args: Any) -> None:
        self._cell.touch()


class WindowsIdleMonitor:
    """Derives the last input time from Win32 ``GetLastInputInfo``."""

    class LASTINPUTINFO(ctypes.Structure):
        _fields_ = [("cbSize", ctypes.c_uint), ("dwTime", ctypes.c_ulong)]

    def __init__(self, clock: Clock = local_now) -> None:
        self._clock = clock
        self._user32 = ctypes.windll.user32  # type: ignore[attr-defined]
        self._kernel32 = ctypes.windll.kernel32  # type: ignore[attr-defined]
        self._kernel32.GetTickCount64.restype = ctypes.c_ulonglong

    def start(self) -> None:
        pass

    def stop(self) -> None:
        pass

    def milliseconds_since_input(self) -> int:
        last_input = self.LASTINPUTINFO()
        last_input.cbSize = ctypes.sizeof(last_input)
        if not self._user32.GetLastInputInfo(ctypes.byref(last_input)):
            raise ctypes.WinError()  # type: ignore[attr-defined]
        # dwTime is a 32-bit tick count that wraps every ~49.7 days.
        elapsed = (self._kernel32.GetTickCount64() - last_input.dwTime) & 0xFFFFFFFF
        return int(elapsed)

    def last_input_time(self) -> datetime:
        now = self._clock()
        try:
            idle_ms = self.milliseconds_since_input()
        except OSError:
            logger.exception("Failed to query idle state; assuming active.")
            return now
        return now - timedelta(milliseconds=idle_ms)


def detect_input_monitor(platform: Optional[str] = None) -> InputActivityMonitor:
    platform = platform or sys.platform
    if platform.startswith("win"):
        return WindowsIdleMonitor()
    return PynputInputMonitor()
