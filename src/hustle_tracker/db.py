"""SQLite database layer for tracked sessions and user overrides."""

from __future__ import annotations

import json
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Iterator, Optional

from .categorizer import is_custom_category
from .errors import StoreError
from .models import OVERRIDE_FIELDS, SESSION_COLUMNS, Session, local_now


# Timestamps are stored in UTC so that text ordering matches time ordering.
DATETIME_FMT = "%Y-%m-%d %H:%M:%S.%f"

OVERRIDE_FIELD_TYPES: tuple[str, ...] = ("app_name",) + OVERRIDE_FIELDS

_BOOL_COLUMNS = frozenset({"parsing_success", "is_afk", "is_idle"})
_INTEGER_COLUMNS = frozenset({"duration", "browser_notification_count", "tmux_pane_count"})

_UNSET = object()


def open_database(path: Path, *, check_same_thread: bool = True) -> sqlite3.Connection:
    """Open (and initialize) the SQLite database."""
    conn = sqlite3.connect(
        path,
        isolation_level=None,
        check_same_thread=check_same_thread,
    )
    conn.row_factory = sqlite3.Row
    initialize_schema(conn)
    return conn


@contextmanager
def database_connection(
    path: Path, *, check_same_thread: bool = True
) -> Iterator[sqlite3.Connection]:
    conn = open_database(path, check_same_thread=check_same_thread)
    try:
        yield conn
    finally:
        conn.close()


def _column_type(name: str) -> str:
    if name in ("app_name", "start_time"):
        return "TEXT NOT NULL"
    if name == "duration":
        return "INTEGER NOT NULL DEFAULT 0"
    if name in ("is_afk", "is_idle"):
        return "INTEGER DEFAULT 0"
    if name in _BOOL_COLUMNS or name in _INTEGER_COLUMNS:
        return "INTEGER"
    return "TEXT"


def initialize_schema(conn: sqlite3.Connection) -> None:
    columns = ",\n            ".join(
        f"{name} {_column_type(name)}" for name in SESSION_COLUMNS
    )
    conn.executescript(
        f"""
        CREATE TABLE IF NOT EXISTS sessions (
            id INTEGER PRIMARY KEY,
            {columns}
        );

        CREATE INDEX IF NOT EXISTS idx_sessions_start_time
            ON sessions(start_time);

        CREATE INDEX IF NOT EXISTS idx_sessions_is_idle
            ON sessions(is_idle);

        CREATE TABLE IF NOT EXISTS overrides (
            id INTEGER PRIMARY KEY,
            field_type TEXT NOT NULL,
            original_value TEXT NOT NULL,
            renamed_value TEXT,
            category TEXT,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL,
            UNIQUE (field_type, original_value)
        );
        """
    )


def format_timestamp(value: datetime) -> str:
    return value.astimezone(timezone.utc).strftime(DATETIME_FMT)


def parse_timestamp(value: str) -> datetime:
    return datetime.strptime(value, DATETIME_FMT).replace(tzinfo=timezone.utc).astimezone()


def _session_values(session: Session) -> list[object]:
    values: list[object] = []
    for name in SESSION_COLUMNS:
        value = getattr(session, name)
        if name == "start_time":
            value = format_timestamp(value)
        elif name == "parsed_data":
            value = json.dumps(value) if value is not None else None
        elif name in _BOOL_COLUMNS:
            value = None if value is None else int(bool(value))
        values.append(value)
    return values


def row_to_session(row: sqlite3.Row) -> Session:
    values: dict[str, object] = {}
    for name in SESSION_COLUMNS:
        value = row[name]
        if name == "start_time":
            value = parse_timestamp(value)
        elif name == "parsed_data":
            value = json.loads(value) if value else None
        elif name in _BOOL_COLUMNS:
            value = None if value is None else bool(value)
        values[name] = value
    return Session(id=row["id"], **values)  # type: ignore[arg-type]


def insert_session(conn: sqlite3.Connection, session: Session) -> int:
    placeholders = ", ".join("?" for _ in SESSION_COLUMNS)
    cur = conn.execute(
        f"INSERT INTO sessions ({', '.join(SESSION_COLUMNS)}) VALUES ({placeholders})",
        _session_values(session),
    )
    return int(cur.lastrowid)


def update_session(conn: sqlite3.Connection, session: Session) -> None:
    """Overwrite the stored row for ``session.id`` with the in-memory values."""
    if session.id is None:
        raise ValueError("Cannot update a session that was never stored")
    assignments = ", ".join(f"{name} = ?" for name in SESSION_COLUMNS)
    cur = conn.execute(
        f"UPDATE sessions SET {assignments} WHERE id = ?",
        [*_session_values(session), session.id],
    )
    if cur.rowcount == 0:
        raise ValueError(f"No session found for id={session.id}")


def fetch_override(
    conn: sqlite3.Connection, field_type: str, original_value: str
) -> Optional[sqlite3.Row]:
    return conn.execute(
        """
        SELECT field_type, original_value, renamed_value, category
        FROM overrides
        WHERE field_type = ? AND original_value = ?
        """,
        (field_type, original_value),
    ).fetchone()


def fetch_overrides(conn: sqlite3.Connection) -> list[sqlite3.Row]:
    return list(
        conn.execute(
            """
            SELECT id, field_type, original_value, renamed_value, category,
                   created_at, updated_at
            FROM overrides
            ORDER BY field_type, original_value;
            """
        )
    )


def apply_renames_and_categories(conn: sqlite3.Connection, session: Session) -> None:
    """Copy stored user overrides onto ``session``; fields without one are untouched."""
    app_override = fetch_override(conn, "app_name", session.app_name)
    if app_override is not None:
        if app_override["renamed_value"]:
            session.app_name = app_override["renamed_value"]
        if app_override["category"]:
            session.category = app_override["category"]

    for field_type in OVERRIDE_FIELDS:
        value = getattr(session, field_type)
        if not value:
            continue
        override = fetch_override(conn, field_type, value)
        if override is None:
            continue
        if override["renamed_value"]:
            setattr(session, f"{field_type}_renamed", override["renamed_value"])
        if override["category"]:
            setattr(session, f"{field_type}_category", override["category"])


def set_override(
    conn: sqlite3.Connection,
    field_type: str,
    original_value: str,
    *,
    renamed_value: Optional[str] = None,
    category: Optional[str] = None,
) -> None:
    """Create or update the override for ``(field_type, original_value)``."""
    if field_type not in OVERRIDE_FIELD_TYPES:
        raise ValueError(f"Unsupported override field: {field_type}")
    if not original_value:
        raise ValueError("original_value is required")
    if renamed_value is None and category is None:
        raise ValueError("Provide a new name, a category, or both")
    now = format_timestamp(local_now())
    conn.execute(
        """
        INSERT INTO overrides (
            field_type, original_value, renamed_value, category, created_at, updated_at
        ) VALUES (?, ?, ?, ?, ?, ?)
        ON CONFLICT (field_type, original_value) DO UPDATE SET
            renamed_value = COALESCE(excluded.renamed_value, overrides.renamed_value),
            category = COALESCE(excluded.category, overrides.category),
            updated_at = excluded.updated_at
        """,
        (field_type, original_value, renamed_value, category, now, now),
    )


def rename_app(
    conn: sqlite3.Connection, old_name: str, new_name: str, category: Optional[str] = None
) -> int:
    """Rename an app in stored sessions and remember it for future ones."""
    set_override(conn, "app_name", old_name, renamed_value=new_name, category=category)
    cur = conn.execute(
        "UPDATE sessions SET app_name = ?, category = COALESCE(?, category) WHERE app_name = ?",
        (new_name, category, old_name),
    )
    return cur.rowcount


def categorize_app(conn: sqlite3.Connection, app_name: str, category: str) -> int:
    set_override(conn, "app_name", app_name, category=category)
    cur = conn.execute(
        "UPDATE sessions SET category = ? WHERE app_name = ?",
        (category, app_name),
    )
    return cur.rowcount


def rename_field(
    conn: sqlite3.Connection, field_type: str, original_value: str, new_value: str
) -> int:
    if field_type == "app_name":
        return rename_app(conn, original_value, new_value)
    set_override(conn, field_type, original_value, renamed_value=new_value)
    cur = conn.execute(
        f"UPDATE sessions SET {field_type}_renamed = ? WHERE {field_type} = ?",
        (new_value, original_value),
    )
    return cur.rowcount


def categorize_field(
    conn: sqlite3.Connection, field_type: str, original_value: str, category: str
) -> int:
    if field_type == "app_name":
        return categorize_app(conn, original_value, category)
    set_override(conn, field_type, original_value, category=category)
    cur = conn.execute(
        f"UPDATE sessions SET {field_type}_category = ? WHERE {field_type} = ?",
        (category, original_value),
    )
    return cur.rowcount


def start_of_day(value: datetime) -> datetime:
    return value.astimezone().replace(hour=0, minute=0, second=0, microsecond=0)


def fetch_recent_sessions(conn: sqlite3.Connection, limit: int = 30) -> list[Session]:
    rows = conn.execute(
        "SELECT * FROM sessions ORDER BY start_time DESC, id DESC LIMIT ?",
        (limit,),
    )
    return [row_to_session(row) for row in rows]


def fetch_sessions_between(
    conn: sqlite3.Connection, start: datetime, end: Optional[datetime] = None
) -> list[Session]:
    """Sessions starting in ``[start, end)``, newest first."""
    if end is None:
        rows = conn.execute(
            "SELECT * FROM sessions WHERE start_time >= ? ORDER BY start_time DESC, id DESC",
            (format_timestamp(start),),
        )
    else:
        rows = conn.execute(
            """
            SELECT * FROM sessions
            WHERE start_time >= ? AND start_time < ?
            ORDER BY start_time DESC, id DESC
            """,
            (format_timestamp(start), format_timestamp(end)),
        )
    return [row_to_session(row) for row in rows]


def fetch_daily_sessions(conn: sqlite3.Connection, now: Optional[datetime] = None) -> list[Session]:
    return fetch_sessions_between(conn, start_of_day(now or local_now()))


def fetch_weekly_sessions(conn: sqlite3.Connection, now: Optional[datetime] = None) -> list[Session]:
    return fetch_sessions_between(conn, start_of_day(now or local_now()) - timedelta(days=6))


def fetch_monthly_sessions(conn: sqlite3.Connection, now: Optional[datetime] = None) -> list[Session]:
    return fetch_sessions_between(conn, start_of_day(now or local_now()) - timedelta(days=29))


def fetch_app_usage(
    conn: sqlite3.Connection, since: Optional[datetime] = None
) -> list[sqlite3.Row]:
    """Total active seconds per app, excluding AFK and IDLE time."""
    params: list[object] = []
    where = "COALESCE(is_afk, 0) = 0 AND COALESCE(is_idle, 0) = 0"
    if since is not None:
        where += " AND start_time >= ?"
        params.append(format_timestamp(since))
    return list(
        conn.execute(
            f"""
            SELECT app_name, SUM(duration) AS total_duration
            FROM sessions
            WHERE {where}
            GROUP BY app_name
            ORDER BY total_duration DESC, app_name;
            """,
            params,
        )
    )


def fetch_custom_categories(conn: sqlite3.Connection) -> list[str]:
    rows = conn.execute(
        """
        SELECT category FROM sessions WHERE category IS NOT NULL
        UNION SELECT category FROM overrides WHERE category IS NOT NULL
        ORDER BY category;
        """
    )
    return [row["category"] for row in rows if is_custom_category(row["category"])]


class SessionStore:
    """Write-side repository owned by the tracker."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    @classmethod
    def open(cls, path: Path) -> "SessionStore":
        return cls(open_database(Path(path), check_same_thread=False))

    @contextmanager
    def _errors(self, action: str) -> Iterator[None]:
        try:
            yield
        except (sqlite3.Error, ValueError) as exc:
            raise StoreError(f"Failed to {action}: {exc}") from exc

    def insert_session(self, session: Session) -> int:
        with self._errors("insert session"):
            return insert_session(self._conn, session)

    def update_session(self, session: Session) -> None:
        with self._errors("update session"):
            update_session(self._conn, session)

    def save_session(self, session: Session) -> int:
        """Insert a new row, or update the row this session was stored in before."""
        if session.id is None:
            session.id = self.insert_session(session)
        else:
            self.update_session(session)
        return session.id

    def apply_renames_and_categories(self, session: Session) -> None:
        with self._errors("apply overrides"):
            apply_renames_and_categories(self._conn, session)

    def fetch_recent_sessions(self, limit: int = 30) -> list[Session]:
        with self._errors("read sessions"):
            return fetch_recent_sessions(self._conn, limit)

    def close(self) -> None:
        self._conn.close()

    def set_override(
        self,
        field_type: str,
        original_value: str,
        *,
        renamed_value: Optional[str] = None,
        category: Optional[str] = None,
    ) -> None:
        with self._errors("store override"):
            set_override(
                self._conn,
                field_type,
                original_value,
                renamed_value=renamed_value,
                category=category,
            )

    def rename_app(self, old_name: str, new_name: str, category: Optional[str] = None) -> int:
        with self._errors("rename app"):
            return rename_app(self._conn, old_name, new_name, category)

    def rename_field(self, field_type: str, original_value: str, new_value: str) -> int:
        with self._errors("rename field"):
            return rename_field(self._conn, field_type, original_value, new_value)

    def categorize_field(self, field_type: str, original_value: str, category: str) -> int:
        with self._errors("categorize field"):
            return categorize_field(self._conn, field_type, original_value, category)

    def fetch_overrides(self) -> list[sqlite3.Row]:
        with self._errors("read overrides"):
            return fetch_overrides(self._conn)

    def fetch_sessions_between(
        self, start: datetime, end: Optional[datetime] = None
    ) -> list[Session]:
        with self._errors("read sessions"):
            return fetch_sessions_between(self._conn, start, end)

    def fetch_daily_sessions(self) -> list[Session]:
        with self._errors("read sessions"):
            return fetch_daily_sessions(self._conn)

    def fetch_weekly_sessions(self) -> list[Session]:
        with self._errors("read sessions"):
            return fetch_weekly_sessions(self._conn)

    def fetch_monthly_sessions(self) -> list[Session]:
        with self._errors("read sessions"):
            return fetch_monthly_sessions(self._conn)

    def fetch_app_usage(self, since: Optional[datetime] = None) -> list[sqlite3.Row]:
        with self._errors("read app usage"):
            return fetch_app_usage(self._conn, since)

    def fetch_custom_categories(self) -> list[str]:
        with self._errors("read categories"):
            return fetch_custom_categories(self._conn)
