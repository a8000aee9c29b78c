"""Roll sessions up into hierarchical usage views for reporting.

Every view follows the same shape: drop AFK sessions, group by a parent
key and a child key, sum durations, then sort both levels by duration
(descending, ties by name) and keep the top children per parent.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from typing import Hashable, Iterable, Optional, TypeVar

from .models import Session
from .parser import project_name_from_path

GENERAL = "(general)"
CHILD_PREFIX = "  └─ "

K = TypeVar("K", bound=Hashable)


@dataclass(slots=True)
class SubEntry:
    unique_id: str
    display_name: str
    duration: int = 0
    category: Optional[str] = None


@dataclass(slots=True)
class UsageItem:
    """One row of the hierarchical usage list: an app header or one of its sub-entries."""

    display_name: str
    unique_id: str
    duration: int
    parent_app_name: str
    is_sub_entry: bool
    category: Optional[str] = None


def active_sessions(sessions: Iterable[Session]) -> list[Session]:
    return [session for session in sessions if not session.is_afk]


def sub_entry_for(session: Session) -> tuple[str, str, Optional[str]]:
    """Return (unique id, display name, category) of the most specific descriptor."""
    if session.browser_page_title:
        title = session.browser_page_title
        return (
            f"browser_page_title:{title}",
            session.browser_page_title_renamed or title,
            session.browser_page_title_category,
        )
    if session.terminal_directory:
        directory = session.terminal_directory
        project = project_name_from_path(directory) or directory
        return (
            f"terminal_directory:{directory}",
            session.terminal_directory_renamed or project,
            session.terminal_directory_category,
        )
    if session.editor_filename:
        filename = session.editor_filename
        display = session.editor_filename_renamed or filename
        if session.editor_language and not session.editor_filename_renamed:
            display = f"{filename} ({session.editor_language})"
        return (
            f"editor_filename:{filename}",
            display,
            session.editor_filename_category,
        )
    if session.tmux_window_name:
        name = session.tmux_window_name
        return (
            f"tmux_window_name:{name}",
            session.tmux_window_name_renamed or name,
            session.tmux_window_name_category,
        )
    if session.window_name:
        return f"window_name:{session.window_name}", session.window_name, None
    return GENERAL, GENERAL, None


def group_usage(sessions: Iterable[Session]) -> dict[str, dict[str, SubEntry]]:
    """Sum non-AFK durations per app and per sub-entry within the app."""
    grouped: dict[str, dict[str, SubEntry]] = defaultdict(dict)
    for session in active_sessions(sessions):
        app_name = session.app_name.strip()
        unique_id, display_name, category = sub_entry_for(session)
        entries = grouped[app_name]
        entry = entries.get(unique_id)
        if entry is None:
            entry = entries[unique_id] = SubEntry(unique_id, display_name, 0, category)
        entry.duration += session.duration
    return dict(grouped)


def _ranked(totals: dict[K, int], name_of=str) -> list[tuple[K, int]]:
    return sorted(totals.items(), key=lambda item: (-item[1], name_of(item[0])))


def create_hierarchical_usage(
    sessions: Iterable[Session], max_sub_entries: int = 2
) -> list[UsageItem]:
    """App headers, each followed by its top sub-entries."""
    grouped = group_usage(sessions)
    app_totals = {
        app: sum(entry.duration for entry in entries.values())
        for app, entries in grouped.items()
    }

    items: list[UsageItem] = []
    for app_name, total in _ranked(app_totals):
        items.append(
            UsageItem(
                display_name=app_name,
                unique_id=f"app_name:{app_name}",
                duration=total,
                parent_app_name=app_name,
                is_sub_entry=False,
            )
        )
        entries = sorted(
            (entry for entry in grouped[app_name].values() if entry.unique_id != GENERAL),
            key=lambda entry: (-entry.duration, entry.display_name),
        )
        for entry in entries[:max_sub_entries]:
            items.append(
                UsageItem(
                    display_name=f"└─ {entry.display_name.strip()}",
                    unique_id=entry.unique_id,
                    duration=entry.duration,
                    parent_app_name=app_name,
                    is_sub_entry=True,
                    category=entry.category,
                )
            )
    return items


def flatten_hierarchy(
    grouped: dict[str, dict[str, int]], max_children: int
) -> list[tuple[str, int]]:
    """Parent rows followed by their top children, prefixed for display."""
    parent_totals = {parent: sum(children.values()) for parent, children in grouped.items()}
    rows: list[tuple[str, int]] = []
    for parent, total in _ranked(parent_totals):
        rows.append((parent, total))
        for child, duration in _ranked(grouped[parent])[:max_children]:
            rows.append((f"{CHILD_PREFIX}{child}", duration))
    return rows


def _nested() -> defaultdict[str, defaultdict[str, int]]:
    return defaultdict(lambda: defaultdict(int))


def create_browser_breakdown(sessions: Iterable[Session], max_children: int = 5) -> list[tuple[str, int]]:
    """Recognized web services, each with its busiest page titles."""
    grouped = _nested()
    for session in active_sessions(sessions):
        if session.browser_page_title and session.browser_url:
            title = session.browser_page_title_renamed or session.browser_page_title
            grouped[session.browser_url][title] += session.duration
    return flatten_hierarchy(grouped, max_children)


def create_project_breakdown(sessions: Iterable[Session], max_children: int = 3) -> list[tuple[str, int]]:
    grouped = _nested()
    for session in active_sessions(sessions):
        if session.terminal_project_name and session.terminal_directory:
            grouped[session.terminal_project_name][session.terminal_directory] += session.duration
        elif session.ide_project_name:
            grouped[session.ide_project_name]["(IDE)"] += session.duration
    return flatten_hierarchy(grouped, max_children)


def create_terminal_breakdown(sessions: Iterable[Session], max_children: int = 3) -> list[tuple[str, int]]:
    """Terminal time by tmux window or project, then by directory."""
    grouped = _nested()
    for session in active_sessions(sessions):
        directory = session.terminal_directory
        tmux_window = session.tmux_window_name
        if not (directory or tmux_window or session.terminal_project_name):
            continue

        if tmux_window:
            project = tmux_window
        elif session.terminal_project_name:
            project = session.terminal_project_name
        else:
            project = project_name_from_path(directory or "") or "Other"

        if tmux_window and directory:
            child = f"{project_name_from_path(directory) or directory} ({tmux_window})"
        elif tmux_window:
            child = f"tmux: {tmux_window}"
        elif directory:
            child = directory
        else:
            child = "terminal"
        grouped[project][child] += session.duration
    return flatten_hierarchy(grouped, max_children)


def create_file_breakdown(
    sessions: Iterable[Session], max_files: int = 10
) -> list[tuple[str, str, int]]:
    """Edited files (with language) grouped by project, busiest projects first."""
    grouped: defaultdict[str, defaultdict[tuple[str, str], int]] = defaultdict(lambda: defaultdict(int))
    for session in active_sessions(sessions):
        if session.editor_filename and session.editor_language:
            project = session.editor_project_path or "Other"
            key = (session.editor_filename, session.editor_language)
            grouped[project][key] += session.duration

    project_totals = {project: sum(files.values()) for project, files in grouped.items()}
    rows: list[tuple[str, str, int]] = []
    for project, _total in _ranked(project_totals):
        for (filename, language), duration in _ranked(grouped[project], name_of=lambda key: key[0])[:max_files]:
            rows.append((filename, language, duration))
    return rows


def create_category_totals(sessions: Iterable[Session]) -> list[tuple[str, int]]:
    totals: defaultdict[str, int] = defaultdict(int)
    for session in active_sessions(sessions):
        totals[session.category or "Uncategorized"] += session.duration
    return _ranked(totals)
