"""Simple reporting utilities for CLI output."""

from __future__ import annotations

from pathlib import Path
from typing import Callable, Optional

from .aggregation import (
    active_sessions,
    create_browser_breakdown,
    create_category_totals,
    create_file_breakdown,
    create_hierarchical_usage,
    create_project_breakdown,
    create_terminal_breakdown,
)
from .db import (
    database_connection,
    fetch_daily_sessions,
    fetch_monthly_sessions,
    fetch_weekly_sessions,
)
from .models import Session

PERIODS: dict[str, Callable] = {
    "daily": fetch_daily_sessions,
    "weekly": fetch_weekly_sessions,
    "monthly": fetch_monthly_sessions,
}

# View name -> (builder, children shown per parent)
BREAKDOWNS: dict[str, tuple[Callable, int]] = {
    "browser": (create_browser_breakdown, 5),
    "projects": (create_project_breakdown, 3),
    "terminal": (create_terminal_breakdown, 3),
}


class SummaryPrinter:
    """Render human-readable summaries in the console."""

    def __init__(self, db_path: Path) -> None:
        self.db_path = Path(db_path)

    def load_sessions(self, period: str) -> list[Session]:
        try:
            fetch = PERIODS[period]
        except KeyError:
            raise ValueError(f"Unknown period {period!r}; expected one of {sorted(PERIODS)}") from None
        with database_connection(self.db_path) as conn:
            return fetch(conn)

    def print_summary(self, period: str = "daily", max_sub_entries: int = 2) -> None:
        sessions = self.load_sessions(period)
        if not sessions:
            print(f"No activity recorded for the {period} view.")
            return

        active = active_sessions(sessions)
        total_active = sum(session.duration for session in active)
        total_afk = sum(session.duration for session in sessions if session.is_afk)
        total_idle = sum(session.duration for session in sessions if session.is_idle)

        print(f"{period.capitalize()} summary")
        print("-" * 50)
        print(f"Active time: {format_duration(total_active)}")
        print(f"AFK time:    {format_duration(total_afk)}")
        print(f"  of which idle: {format_duration(total_idle)}")
        print()

        usage = create_hierarchical_usage(sessions, max_sub_entries=max_sub_entries)
        if usage:
            print("Top activities:")
            for item in usage:
                label = f"  {item.display_name}" if item.is_sub_entry else item.display_name
                print(f"  {label[:48]:<48} {format_duration(item.duration)}")

        categories = create_category_totals(sessions)
        if categories:
            print()
            print("By category:")
            for category, seconds in categories:
                print(f"  {category:<30} {format_duration(seconds)}")

    def print_breakdown(self, view: str, period: str = "daily") -> None:
        sessions = self.load_sessions(period)
        if view == "files":
            rows = create_file_breakdown(sessions)
            if not rows:
                print("No edited files recorded.")
                return
            for filename, language, seconds in rows:
                print(f"  {filename[:36]:<36} {language:<18} {format_duration(seconds)}")
            return

        try:
            builder, max_children = BREAKDOWNS[view]
        except KeyError:
            raise ValueError(f"Unknown breakdown {view!r}") from None
        rows = builder(sessions, max_children)
        if not rows:
            print(f"No {view} activity recorded.")
            return
        for label, seconds in rows:
            print(f"  {label[:56]:<56} {format_duration(seconds)}")


def format_duration(seconds: Optional[float]) -> str:
    total_seconds = int(round(seconds or 0))
    hours, remainder = divmod(total_seconds, 3600)
    minutes, secs = divmod(remainder, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"
