"""Utilities to normalize application names and window titles."""

from __future__ import annotations

import re
import sys
from typing import Optional

# Checked on every platform, in order.
_COMMON_APPS: tuple[tuple[tuple[str, ...], str], ...] = (
    (("chrome", "chromium"), "chrome"),
    (("firefox",), "firefox"),
    (("vscode", "vscodium"), "vscode"),
    (("slack",), "slack"),
    (("discord",), "discord"),
    (("telegram",), "telegram"),
    (("zoom",), "zoom"),
    (("teams",), "teams"),
    (("skype",), "skype"),
    (("spotify",), "spotify"),
    (("vlc",), "vlc"),
)

# GNOME/KDE desktop apps only show up with these names on Linux.
_LINUX_APPS: tuple[tuple[tuple[str, ...], str], ...] = (
    (("gnome-terminal", "terminal"), "gnome-terminal"),
    (("nautilus", "files", "thunar", "dolphin", "nemo"), "file-manager"),
    (("alacritty", "kitty", "wezterm", "konsole"), "terminal"),
    (("vim", "nvim", "emacs", "nano", "gedit", "kate", "mousepad"), "editor"),
    (("rhythmbox", "audacious", "clementine"), "media"),
    (("thunderbird", "evolution", "geary"), "email"),
    (("signal", "element", "matrix"), "chat"),
)

# Too generic to match as substrings ("xcode", "codeblocks").
_EXACT_APPS: dict[str, str] = {
    "code": "vscode",
    "code-oss": "vscode",
    "codium": "vscode",
    "visual studio code": "vscode",
}

_WHITESPACE = re.compile(r"\s{2,}")


def normalize_app_name(app_name: str, platform: Optional[str] = None) -> str:
    """Collapse WM_CLASS/process names into a stable app identifier."""
    platform = platform or sys.platform
    lowered = app_name.strip().lower()
    is_linux = platform.startswith("linux")

    if is_linux:
        # Wayland wm_class values look like "org.gnome.Nautilus" or "firefox_firefox".
        if "." in lowered:
            normalized = lowered.rsplit(".", 1)[-1]
        elif "_" in lowered:
            normalized = lowered.split("_", 1)[0]
        else:
            normalized = lowered
    else:
        normalized = lowered

    if normalized in _EXACT_APPS:
        return _EXACT_APPS[normalized]

    for keywords, name in _COMMON_APPS:
        if any(keyword in normalized for keyword in keywords):
            return name

    if is_linux:
        if normalized == "soffice" or lowered == "soffice.bin":
            return "libreoffice"
        for keywords, name in _LINUX_APPS:
            if any(keyword in normalized for keyword in keywords):
                return name

    if normalized and len(normalized) < len(app_name):
        return normalized
    return app_name.strip() or "Unknown"


def normalize_window_title(window_title: Optional[str]) -> Optional[str]:
    """Trim and collapse whitespace; empty titles become ``None``."""
    if not window_title:
        return None
    normalized = _WHITESPACE.sub(" ", window_title).strip()
    return normalized or None
