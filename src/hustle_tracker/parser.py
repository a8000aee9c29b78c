"""Recover structured fields from application window titles.

Titles are free-form and app-specific, so every extractor here is
best-effort: a pattern that does not match leaves its fields unset and the
parser never raises.
"""

from __future__ import annotations

import os
import re
from typing import Callable, Optional

from .models import ParsedWindow

BROWSER = "browser"
TERMINAL = "terminal"
EDITOR = "editor"
FILE_MANAGER = "file-manager"

_APP_KINDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    (BROWSER, ("firefox", "chrome", "chromium", "brave", "safari", "edge")),
    (TERMINAL, ("terminal", "alacritty", "kitty", "wezterm", "konsole")),
    (EDITOR, ("editor", "vim", "emacs", "vscode", "code", "gedit", "kate")),
    (FILE_MANAGER, ("nautilus", "file-manager", "files", "dolphin", "thunar", "nemo")),
)

# First match wins, so more specific keywords come before generic ones.
_SERVICES: tuple[tuple[tuple[str, ...], str], ...] = (
    (("whatsapp",), "WhatsApp"),
    (("facebook",), "Facebook"),
    (("twitter", "x.com"), "Twitter/X"),
    (("linkedin",), "LinkedIn"),
    (("instagram",), "Instagram"),
    (("reddit",), "Reddit"),
    (("gmail",), "Gmail"),
    (("outlook",), "Outlook"),
    (("protonmail",), "ProtonMail"),
    (("github",), "GitHub"),
    (("gitlab",), "GitLab"),
    (("stack overflow",), "Stack Overflow"),
    (("localhost",), "Localhost"),
    (("slack",), "Slack"),
    (("teams",), "Microsoft Teams"),
    (("notion",), "Notion"),
    (("jira",), "Jira"),
    (("trello",), "Trello"),
    (("youtube",), "YouTube"),
    (("netflix",), "Netflix"),
)

_LANGUAGES: dict[str, str] = {
    "rs": "Rust",
    "py": "Python",
    "js": "JavaScript",
    "ts": "TypeScript",
    "jsx": "React",
    "tsx": "React TypeScript",
    "go": "Go",
    "java": "Java",
    "cpp": "C++",
    "cc": "C++",
    "cxx": "C++",
    "c": "C",
    "h": "Header",
    "hpp": "Header",
    "sh": "Shell",
    "bash": "Shell",
    "md": "Markdown",
    "toml": "TOML",
    "yaml": "YAML",
    "yml": "YAML",
    "json": "JSON",
    "xml": "XML",
    "html": "HTML",
    "css": "CSS",
    "scss": "SCSS",
    "sass": "SCSS",
    "sql": "SQL",
    "php": "PHP",
    "rb": "Ruby",
    "swift": "Swift",
    "kt": "Kotlin",
    "kts": "Kotlin",
    "vim": "VimScript",
    "lua": "Lua",
}

_SKIP_DIRS = frozenset({"bin", "usr", "etc", "var", "tmp", "dev", "proc", "sys", "home", "root"})

_BROWSER_SEPARATOR = " — "
_NOTIFICATION_PATTERN = re.compile(r"^\s*\((\d+)\)")
_USER_HOST_PATTERN = re.compile(r"^\s*(?P<user>[^@\s]+)@(?P<host>[^:\s]+):\s*(?P<directory>.*)$")
_WINDOW_WORD_PATTERN = re.compile(r"[\w-]{2,}")

# tmux title decorations, tried in order. Each yields (window name, remaining title).
_TMUX_COLON = re.compile(r"tmux:\s*(?P<name>.*?) - (?P<rest>.*)", re.IGNORECASE)
_TMUX_BRACKET_PIPE = re.compile(r"\[tmux\]\s*(?P<name>.*?) \| (?P<rest>.*)", re.IGNORECASE)
_TMUX_SUFFIX_PAREN = re.compile(r"^(?P<rest>.*?) - tmux \((?P<name>[^)]*)\)", re.IGNORECASE)
_TMUX_SUFFIX = re.compile(r"^(?P<name>.*?) - tmux", re.IGNORECASE)
_TMUX_BRACKET = re.compile(r"tmux \[(?P<name>[^\]]*)\](?P<rest>.*)", re.IGNORECASE)

_EDITOR_MARKERS = re.compile(r"^[●•*]\s*|\s+[+*]$")


def app_kind(app_name: str) -> Optional[str]:
    """Classify an app as browser, terminal, editor or file manager."""
    lowered = app_name.lower()
    for kind, keywords in _APP_KINDS:
        if any(keyword in lowered for keyword in keywords):
            return kind
    return None


def parse_window_title(app_name: str, window_title: Optional[str]) -> ParsedWindow:
    """Route a window title to the extractor for its app class."""
    parsed = ParsedWindow()
    kind = app_kind(app_name)
    if kind is None:
        return parsed

    if window_title:
        extractor = _EXTRACTORS[kind]
        extractor(window_title, parsed)
    parsed.parsing_success = parsed.has_fields()
    return parsed


def detect_service(title: str) -> Optional[str]:
    lowered = title.lower()
    for keywords, service in _SERVICES:
        if any(keyword in lowered for keyword in keywords):
            return service
    return None


def detect_language(filename: str) -> Optional[str]:
    if "." not in filename:
        return None
    extension = filename.rsplit(".", 1)[1].lower()
    return _LANGUAGES.get(extension)


def expand_tilde(path: str) -> str:
    if path == "~":
        return _home_dir()
    if path.startswith("~/"):
        return _home_dir() + path[1:]
    return path


def project_name_from_path(path: str) -> Optional[str]:
    """Pick the most project-like directory name from ``path``."""
    if path == "~":
        return "Home"

    home = _home_dir().rstrip("/")
    if home:
        if path.rstrip("/") == home:
            return "Home"
        if path.startswith(home + "/"):
            parts = path[len(home) + 1 :].split("/")
            for part in reversed(parts):
                if part not in ("", ".", "..") and len(part) >= 2:
                    return part
            if parts[0]:
                return parts[0]

    parts = [part for part in path.split("/") if part not in ("", ".", "..")]
    candidates = [part for part in reversed(parts) if part.lower() not in _SKIP_DIRS]
    for part in candidates:
        if part[0].isalpha() and len(part) >= 2:
            return part
    return candidates[0] if candidates else None


def _home_dir() -> str:
    return os.environ.get("HOME") or os.path.expanduser("~")


def _parse_browser(title: str, parsed: ParsedWindow) -> None:
    match = _NOTIFICATION_PATTERN.match(title)
    if match:
        parsed.browser_notification_count = int(match.group(1))

    page_title = title.split(_BROWSER_SEPARATOR, 1)[0].strip()
    if page_title.startswith("("):
        close = page_title.find(")")
        if close != -1:
            page_title = page_title[close + 1 :].strip()

    if page_title:
        parsed.browser_page_title = page_title
        parsed.browser_url = detect_service(page_title)


def _parse_terminal(title: str, parsed: ParsedWindow) -> None:
    cleaned, window_name = extract_tmux_window(title)
    if window_name is not None:
        parsed.tmux_window_name = window_name
        parsed.terminal_multiplexer = "tmux"

    match = _USER_HOST_PATTERN.match(cleaned)
    if match:
        parsed.terminal_username = match.group("user")
        parsed.terminal_hostname = match.group("host")
        raw_directory = match.group("directory").strip()
    else:
        raw_directory = _find_path(cleaned)

    if raw_directory:
        directory = expand_tilde(raw_directory)
        parsed.terminal_directory = directory
        parsed.terminal_project_name = project_name_from_path(directory)


def extract_tmux_window(title: str) -> tuple[str, Optional[str]]:
    """Strip tmux decoration, returning the remaining title and the window name."""
    match = _TMUX_COLON.search(title)
    if match:
        prefix = title[: match.start()].strip()
        return _join(prefix, match.group("rest")), match.group("name").strip()

    match = _TMUX_BRACKET_PIPE.search(title)
    if match:
        prefix = title[: match.start()].strip()
        return _join(prefix, match.group("rest")), match.group("name").strip()

    match = _TMUX_SUFFIX_PAREN.search(title)
    if match:
        return match.group("rest").strip(), match.group("name").strip()

    match = _TMUX_SUFFIX.search(title)
    if match and match.group("name").strip():
        return "", match.group("name").strip()

    match = _TMUX_BRACKET.search(title)
    if match:
        prefix = title[: match.start()].strip()
        return _join(prefix, match.group("rest")), match.group("name").strip()

    if "tmux" in title.lower() and " - " in title:
        before, after = title.split(" - ", 1)
        before = before.strip()
        after = after.strip()
        after_lower = after.lower()
        if _WINDOW_WORD_PATTERN.fullmatch(before) and (
            "tmux" in after_lower or "alacritty" in after_lower
        ):
            return after, before

    return title, None


def _join(prefix: str, rest: str) -> str:
    return f"{prefix} {rest.strip()}".strip() if prefix else rest.strip()


def _find_path(text: str) -> Optional[str]:
    for index, char in enumerate(text):
        if char == "/":
            return text[index:].strip()
        if char == "~":
            following = text[index + 1 : index + 2]
            if not following or following == "/" or following.isalpha():
                return text[index:].strip()
    return None


def _parse_editor(title: str, parsed: ParsedWindow) -> None:
    open_paren = title.find("(")
    if open_paren != -1:
        filename = _EDITOR_MARKERS.sub("", title[:open_paren].strip())
        close_paren = title.find(")", open_paren)
        if close_paren != -1:
            filepath = title[open_paren + 1 : close_paren].strip()
            if filepath:
                parsed.editor_filepath = filepath
                parsed.editor_project_path = project_name_from_path(filepath)
        if filename:
            parsed.editor_filename = filename
            parsed.editor_language = detect_language(filename)
        return

    segments = [segment.strip() for segment in title.split(" - ")]
    if len(segments) < 2:
        return
    head = _EDITOR_MARKERS.sub("", segments[0])
    if "/" in head:
        directory, filename = head.rsplit("/", 1)
        if filename:
            parsed.editor_filename = filename
            parsed.editor_language = detect_language(filename)
        if directory:
            parsed.editor_filepath = directory
            parsed.editor_project_path = project_name_from_path(directory)
    elif len(segments) >= 3 and head:
        # IDE layout: "file - workspace - Application"
        parsed.editor_filename = head
        parsed.editor_language = detect_language(head)
        parsed.ide_file_open = head
        parsed.ide_project_name = segments[1] or None
        parsed.ide_workspace = segments[1] or None


def _parse_file_manager(title: str, parsed: ParsedWindow) -> None:
    stripped = title.strip()
    if "file://" in stripped:
        directory = stripped[stripped.find("file://") + len("file://") :]
    elif stripped.startswith(("/", "~")):
        directory = expand_tilde(stripped)
    else:
        return
    if directory:
        parsed.terminal_directory = directory
        parsed.terminal_project_name = project_name_from_path(directory)


_EXTRACTORS: dict[str, Callable[[str, ParsedWindow], None]] = {
    BROWSER: _parse_browser,
    TERMINAL: _parse_terminal,
    EDITOR: _parse_editor,
    FILE_MANAGER: _parse_file_manager,
}
