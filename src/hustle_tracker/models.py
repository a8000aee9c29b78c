"""Domain models for tracked sessions."""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass, field, fields
from datetime import datetime, timedelta
from typing import Any, Optional


def local_now() -> datetime:
    """Current time as an aware datetime in the local zone."""
    return datetime.now().astimezone()


@dataclass(slots=True)
class ParsedWindow:
    """Structured fields recovered from a window title."""

    # Browser
    browser_url: Optional[str] = None
    browser_page_title: Optional[str] = None
    browser_notification_count: Optional[int] = None

    # Terminal
    terminal_username: Optional[str] = None
    terminal_hostname: Optional[str] = None
    terminal_directory: Optional[str] = None
    terminal_project_name: Optional[str] = None

    # Editor
    editor_filename: Optional[str] = None
    editor_filepath: Optional[str] = None
    editor_project_path: Optional[str] = None
    editor_language: Optional[str] = None

    # Multiplexer
    tmux_window_name: Optional[str] = None
    tmux_pane_count: Optional[int] = None
    terminal_multiplexer: Optional[str] = None

    # IDE
    ide_project_name: Optional[str] = None
    ide_file_open: Optional[str] = None
    ide_workspace: Optional[str] = None

    parsing_success: bool = True

    def has_fields(self) -> bool:
        return any(
            getattr(self, name) is not None
            for name in PARSED_FIELDS
        )

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


PARSED_FIELDS: tuple[str, ...] = tuple(
    f.name for f in fields(ParsedWindow) if f.name != "parsing_success"
)

# Field types that accept user renames and categories, besides app_name.
OVERRIDE_FIELDS: tuple[str, ...] = (
    "browser_page_title",
    "terminal_directory",
    "editor_filename",
    "tmux_window_name",
)


@dataclass(slots=True)
class Session:
    """A contiguous block of time attributed to one app/window/activity state."""

    app_name: str
    start_time: datetime
    window_name: Optional[str] = None
    duration: int = 0
    category: Optional[str] = None
    id: Optional[int] = None

    browser_url: Optional[str] = None
    browser_page_title: Optional[str] = None
    browser_notification_count: Optional[int] = None
    browser_page_title_renamed: Optional[str] = None
    browser_page_title_category: Optional[str] = None

    terminal_username: Optional[str] = None
    terminal_hostname: Optional[str] = None
    terminal_directory: Optional[str] = None
    terminal_project_name: Optional[str] = None
    terminal_directory_renamed: Optional[str] = None
    terminal_directory_category: Optional[str] = None

    editor_filename: Optional[str] = None
    editor_filepath: Optional[str] = None
    editor_project_path: Optional[str] = None
    editor_language: Optional[str] = None
    editor_filename_renamed: Optional[str] = None
    editor_filename_category: Optional[str] = None

    tmux_window_name: Optional[str] = None
    tmux_pane_count: Optional[int] = None
    terminal_multiplexer: Optional[str] = None
    tmux_window_name_renamed: Optional[str] = None
    tmux_window_name_category: Optional[str] = None

    ide_project_name: Optional[str] = None
    ide_file_open: Optional[str] = None
    ide_workspace: Optional[str] = None

    parsed_data: Optional[dict[str, Any]] = field(default=None, repr=False)
    parsing_success: Optional[bool] = None
    is_afk: Optional[bool] = False
    is_idle: Optional[bool] = False

    @classmethod
    def from_parsed(
        cls,
        app_name: str,
        window_name: Optional[str],
        start_time: datetime,
        category: Optional[str],
        parsed: ParsedWindow,
    ) -> "Session":
        values = {name: getattr(parsed, name) for name in PARSED_FIELDS}
        return cls(
            app_name=app_name,
            window_name=window_name,
            start_time=start_time,
            category=category,
            parsed_data=parsed.as_dict(),
            parsing_success=parsed.parsing_success,
            **values,
        )

    @property
    def end_time(self) -> datetime:
        return self.start_time + timedelta(seconds=self.duration)

    def elapsed_seconds(self, now: datetime) -> int:
        """Whole seconds between the second boundaries of start and ``now``.

        Adjacent sessions therefore sum to the whole seconds of their span.
        """
        return max(math.floor(now.timestamp()) - math.floor(self.start_time.timestamp()), 0)


SESSION_COLUMNS: tuple[str, ...] = tuple(
    f.name for f in fields(Session) if f.name != "id"
)
