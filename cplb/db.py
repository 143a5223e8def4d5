from __future__ import annotations

import os
import sqlite3
from datetime import datetime, timezone
from typing import Any

from .settings import settings


def utc_now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _resolve_db_path() -> str:
    """Return a file path usable by sqlite.

    A bind-mounted path that did not exist on the host shows up as a
    directory; in that case the DB file goes inside it.
    """

    p = os.path.abspath(settings.db_path)

    if os.path.isdir(p):
        p = os.path.join(p, "cplb.db")

    parent = os.path.dirname(p)
    if parent and not os.path.exists(parent):
        os.makedirs(parent, exist_ok=True)

    return p


_SCHEMA = """
CREATE TABLE IF NOT EXISTS events (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  ts TEXT NOT NULL,
  level TEXT NOT NULL,
  cluster TEXT,
  container TEXT,
  message TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_events_ts ON events(ts);
CREATE INDEX IF NOT EXISTS idx_events_cluster ON events(cluster);
"""

_initialized: set[str] = set()


def connect() -> sqlite3.Connection:
    path = _resolve_db_path()
    conn = sqlite3.connect(path, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    if path not in _initialized:
        conn.executescript(_SCHEMA)
        _initialized.add(path)
    return conn


def init_db() -> None:
    """Create tables if they do not exist."""
    with connect() as conn:
        conn.executescript(_SCHEMA)


def log_event(level: str, message: str, cluster: str | None = None, container: str | None = None) -> bool:
    """Append an event. Returns False if the event log could not be written.

    An unwritable log never fails the operation that is being logged.
    """
    try:
        with connect() as conn:
            conn.execute(
                "INSERT INTO events (ts, level, cluster, container, message) VALUES (?, ?, ?, ?, ?)",
                (utc_now(), level.upper(), cluster, container, message),
            )
        return True
    except (sqlite3.Error, OSError):
        return False


def latest_events(limit: int = 100, cluster: str | None = None) -> list[dict[str, Any]]:
    with connect() as conn:
        if cluster:
            rows = conn.execute(
                "SELECT * FROM events WHERE cluster=? ORDER BY id DESC LIMIT ?", (cluster, limit)
            ).fetchall()
        else:
            rows = conn.execute("SELECT * FROM events ORDER BY id DESC LIMIT ?", (limit,)).fetchall()
        return [dict(r) for r in rows]
