"""SQLite connection primitives for the Scene Store."""

from __future__ import annotations

import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

SCHEMA = """
CREATE TABLE IF NOT EXISTS scenes (
    scene_id      TEXT PRIMARY KEY,
    mode          TEXT NOT NULL,
    persona_id    TEXT NOT NULL,
    player_name   TEXT NOT NULL,
    opponent_name TEXT,
    round         INTEGER NOT NULL DEFAULT 0,
    game_over     INTEGER NOT NULL DEFAULT 0,
    state         TEXT NOT NULL,
    created_at    TEXT NOT NULL,
    updated_at    TEXT NOT NULL
)
"""


def configure_connection(connection: sqlite3.Connection) -> sqlite3.Connection:
    """Apply connection-level pragmas.

    ``busy_timeout`` absorbs short lock contention between the worker
    threads that run store operations.
    """
    connection.execute("PRAGMA busy_timeout = 5000")
    return connection


def get_connection(db_path: Path) -> sqlite3.Connection:
    return configure_connection(sqlite3.connect(str(db_path)))


@contextmanager
def connection_scope(db_path: Path, *, write: bool = False) -> Iterator[sqlite3.Connection]:
    """Yield a configured connection with guaranteed cleanup.

    Args:
        db_path: SQLite database file.
        write: When True, commit on success and rollback on exceptions.
    """
    connection = get_connection(db_path)
    try:
        yield connection
        if write:
            connection.commit()
    except Exception:
        if write:
            try:
                connection.rollback()
            except sqlite3.Error:
                # Preserve the original exception while best-effort rolling back.
                pass
        raise
    finally:
        connection.close()


def init_schema(db_path: Path) -> None:
    """Create the database file, its parent directory and the schema."""
    db_path.parent.mkdir(parents=True, exist_ok=True)
    with connection_scope(db_path, write=True) as conn:
        conn.execute(SCHEMA)
