"""Focused-window probes for each desktop platform.

Each probe answers one question, "which app and window has focus?", and
raises :class:`InspectionError` when it cannot. ``detect_inspector`` picks
an ordered chain of probes for the running session at startup.
"""

from __future__ import annotations

import ast
import json
import logging
import os
import subprocess
import sys
from typing import Mapping, Optional, Protocol, Sequence

import psutil

from .errors import InspectionError
from .normalization import normalize_app_name, normalize_window_title

logger = logging.getLogger(__name__)

PROBE_TIMEOUT_SECONDS = 1.0


class WindowProbe(Protocol):
    name: str

    def probe(self) -> tuple[str, Optional[str]]:
        """Return the raw (app name, window title) of the focused window."""
        ...


class WindowInspector(Protocol):
    def get_active_window_info(self) -> tuple[str, Optional[str]]:
        ...


def _run(args: Sequence[str], timeout: float = PROBE_TIMEOUT_SECONDS) -> str:
    try:
        result = subprocess.run(
            list(args),
            capture_output=True,
            text=True,
            errors="replace",
            timeout=timeout,
            check=True,
        )
    except FileNotFoundError as exc:
        raise InspectionError(f"{args[0]} is not installed") from exc
    except subprocess.TimeoutExpired as exc:
        raise InspectionError(f"{args[0]} timed out after {timeout}s") from exc
    except subprocess.CalledProcessError as exc:
        raise InspectionError(
            f"{args[0]} exited with {exc.returncode}: {(exc.stderr or '').strip()}"
        ) from exc
    except (OSError, UnicodeError) as exc:
        raise InspectionError(f"{args[0]} could not be run: {exc}") from exc
    return result.stdout.strip()


class X11Probe:
    """Uses xdotool and xprop, as available on most X11 desktops."""

    name = "x11"

    def probe(self) -> tuple[str, Optional[str]]:
        window_id = _run(["xdotool", "getactivewindow"])
        if not window_id:
            raise InspectionError("xdotool reported no active window")
        title = _run(["xdotool", "getwindowname", window_id])
        wm_class = _run(["xprop", "-id", window_id, "WM_CLASS"])
        return parse_wm_class(wm_class), title


def parse_wm_class(xprop_output: str) -> str:
    """Return the class part of ``WM_CLASS(STRING) = "instance", "Class"``."""
    if "=" not in xprop_output:
        raise InspectionError(f"Unexpected xprop output: {xprop_output!r}")
    values = [value.strip().strip('"') for value in xprop_output.split("=", 1)[1].split(",")]
    values = [value for value in values if value]
    if not values:
        raise InspectionError("WM_CLASS is empty")
    return values[-1]


class GnomeWaylandProbe:
    """Asks the GNOME Shell "Windows" extension over D-Bus."""

    name = "gnome-wayland"

    COMMAND = (
        "gdbus",
        "call",
        "--session",
        "--dest",
        "org.gnome.Shell",
        "--object-path",
        "/org/gnome/Shell/Extensions/Windows",
        "--method",
        "org.gnome.Shell.Extensions.Windows.List",
    )

    def probe(self) -> tuple[str, Optional[str]]:
        return parse_gnome_window_list(_run(self.COMMAND))


def parse_gnome_window_list(output: str) -> tuple[str, Optional[str]]:
    """Pick the focused window out of the extension's JSON payload.

    gdbus prints the reply as a GVariant tuple, e.g. ``('[{...}]',)``.
    """
    try:
        reply = ast.literal_eval(output)
        payload = reply[0] if isinstance(reply, tuple) else reply
        windows = json.loads(payload)
    except (ValueError, SyntaxError, IndexError, TypeError) as exc:
        raise InspectionError("Could not decode GNOME window list") from exc

    try:
        for window in windows:
            if window.get("focus"):
                return window.get("wm_class") or "Unknown", window.get("title") or None
    except (AttributeError, TypeError) as exc:
        raise InspectionError("Unexpected GNOME window list shape") from exc
    raise InspectionError("No focused window found")


class MacOSProbe:
    """Queries System Events through AppleScript."""

    name = "macos"

    SCRIPT = """
    tell application "System Events"
        set frontApp to first application process whose frontmost is true
        set appName to name of frontApp
        try
            set windowName to ""
            if (count of windows of frontApp) > 0 then
                set windowName to name of front window of frontApp
            end if
            return appName & "|||" & windowName
        on error
            return appName & "|||"
        end try
    end tell
    """

    def probe(self) -> tuple[str, Optional[str]]:
        output = _run(["osascript", "-e", self.SCRIPT], timeout=2.0)
        app_name, _, title = output.partition("|||")
        if not app_name.strip():
            raise InspectionError("osascript returned no application")
        return app_name.strip(), title.strip() or None


class WindowsProbe:
    """Retrieves the foreground window title and process name."""

    name = "windows"

    def __init__(self) -> None:
        import ctypes

        self._ctypes = ctypes
        self._user32 = ctypes.windll.user32  # type: ignore[attr-defined]

    def probe(self) -> tuple[str, Optional[str]]:
        from ctypes import wintypes

        ctypes = self._ctypes
        hwnd = self._user32.GetForegroundWindow()
        if not hwnd:
            raise InspectionError("No foreground window")

        length = self._user32.GetWindowTextLengthW(hwnd)
        buffer = ctypes.create_unicode_buffer(length + 1)
        self._user32.GetWindowTextW(hwnd, buffer, length + 1)
        window_title = buffer.value.strip() or None

        pid = wintypes.DWORD()
        self._user32.GetWindowThreadProcessId(hwnd, ctypes.byref(pid))
        if not pid.value:
            raise InspectionError("Foreground window has no owning process")
        try:
            process_name = psutil.Process(pid.value).name()
        except (psutil.Error, ProcessLookupError) as exc:
            raise InspectionError(f"Cannot resolve process {pid.value}") from exc
        if process_name.lower().endswith(".exe"):
            process_name = process_name[:-4]
        return process_name, window_title


class InspectorChain:
    """Tries each probe in order and normalizes the first answer."""

    def __init__(self, probes: Sequence[WindowProbe], platform: Optional[str] = None) -> None:
        if not probes:
            raise ValueError("InspectorChain needs at least one probe")
        self._probes = list(probes)
        self._platform = platform or sys.platform

    @property
    def probe_names(self) -> list[str]:
        return [probe.name for probe in self._probes]

    def get_active_window_info(self) -> tuple[str, Optional[str]]:
        errors: list[str] = []
        for probe in self._probes:
            try:
                raw_app, raw_title = probe.probe()
            except InspectionError as exc:
                logger.debug("Probe %s failed: %s", probe.name, exc)
                errors.append(f"{probe.name}: {exc}")
                continue
            except Exception as exc:
                logger.exception("Probe %s crashed", probe.name)
                errors.append(f"{probe.name}: {exc!r}")
                continue
            app_name = normalize_app_name(raw_app, self._platform)
            title = normalize_window_title(raw_title)
            if title is not None and title == raw_app:
                title = None
            return app_name, title
        raise InspectionError("; ".join(errors))


def is_wayland(environ: Optional[Mapping[str, str]] = None) -> bool:
    env = os.environ if environ is None else environ
    return bool(env.get("WAYLAND_DISPLAY")) or env.get("XDG_SESSION_TYPE") == "wayland"


def detect_inspector(
    platform: Optional[str] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> InspectorChain:
    """Build the probe chain for the current OS and session type."""
    platform = platform or sys.platform
    probes: list[WindowProbe]
    if platform.startswith("linux"):
        if is_wayland(environ):
            logger.info("Session type: Wayland; using GNOME Shell D-Bus with X11 fallback")
            probes = [GnomeWaylandProbe(), X11Probe()]
        else:
            logger.info("Session type: X11; using xdotool/xprop")
            probes = [X11Probe()]
    elif platform == "darwin":
        logger.info("Platform: macOS; using AppleScript")
        probes = [MacOSProbe()]
    elif platform.startswith("win"):
        logger.info("Platform: Windows; using Win32 APIs")
        probes = [WindowsProbe()]
    else:
        logger.warning("Unsupported platform %s; trying X11 probe", platform)
        probes = [X11Probe()]
    return InspectorChain(probes, platform=platform)
