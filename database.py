"""
SQLite database initialization and connection for the deadline manager.
Self-bootstrapping: creates DB file, tables, indexes, and column migrations on first run.
"""
from __future__ import annotations

import sqlite3
from pathlib import Path

# Default DB path: project directory
_DEFAULT_DB_PATH = Path(__file__).resolve().parent / "deadlines.db"

# Wait up to this many seconds for locks (web requests + digest scheduler share the file)
_CONNECT_TIMEOUT = 30.0

_SCHEMA = """
-- Primary table: contacts (one row per deadline record)
-- status: pending | completed
-- priority: A (most urgent) | B | C
-- user_id NULL = legacy row created before sign-in existed
CREATE TABLE IF NOT EXISTS contacts (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    purpose TEXT NOT NULL,
    deadline TEXT NOT NULL,
    status TEXT NOT NULL CHECK (status IN ('pending', 'completed')),
    recurring TEXT,
    created_at TEXT NOT NULL,
    completed_at TEXT
);

CREATE INDEX IF NOT EXISTS idx_contacts_deadline ON contacts(deadline);
CREATE INDEX IF NOT EXISTS idx_contacts_status ON contacts(status);

CREATE TABLE IF NOT EXISTS users (
    id TEXT PRIMARY KEY,
    email TEXT NOT NULL UNIQUE,
    password_hash TEXT NOT NULL,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS sessions (
    token TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    created_at TEXT NOT NULL,
    FOREIGN KEY (user_id) REFERENCES users(id) ON DELETE CASCADE
);

CREATE INDEX IF NOT EXISTS idx_sessions_user ON sessions(user_id);
"""

# Columns added after the first release; (name, DDL type). Order is the order they shipped.
_ADDED_CONTACT_COLUMNS: tuple[tuple[str, str], ...] = (
    ("user_id", "TEXT"),
    ("priority", "TEXT"),
    ("category", "TEXT"),
    ("recurring_days", "INTEGER"),
    ("recurring_weekday", "INTEGER"),
    ('"order"', "INTEGER"),
    ("is_overdue", "INTEGER NOT NULL DEFAULT 0"),
    ("original_deadline", "TEXT"),
)


def get_db_path() -> Path:
    """Configured database_path, or deadlines.db in the project directory."""
    from config import load as load_config

    try:
        path = load_config().database_path
    except (OSError, ValueError):
        return _DEFAULT_DB_PATH
    return Path(path) if path else _DEFAULT_DB_PATH


def _add_missing_columns(conn: sqlite3.Connection) -> None:
    """ALTER TABLE contacts for every column an older database does not have yet."""
    for column, ddl in _ADDED_CONTACT_COLUMNS:
        try:
            conn.execute(f"ALTER TABLE contacts ADD COLUMN {column} {ddl}")
        except sqlite3.OperationalError as e:
            if "duplicate column" not in str(e).lower():
                raise
    conn.execute("CREATE INDEX IF NOT EXISTS idx_contacts_user ON contacts(user_id)")


def init_database(path: Path | None = None) -> Path:
    """
    Ensure the database exists and is initialized. Creates file and all tables/indexes.
    Returns the path to the database file.
    """
    db_path = path or get_db_path()
    db_path = Path(db_path).resolve()
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(db_path), timeout=_CONNECT_TIMEOUT)
    try:
        conn.execute("PRAGMA journal_mode=WAL")
        conn.executescript(_SCHEMA)
        _add_missing_columns(conn)
        # Rows written before priority existed read as C
        conn.execute("UPDATE contacts SET priority = 'C' WHERE priority IS NULL OR priority = ''")
        conn.commit()
    finally:
        conn.close()
    return db_path


def get_connection(path: Path | None = None) -> sqlite3.Connection:
    """Return a connection to the database. Call init_database first if needed."""
    db_path = path or get_db_path()
    conn = sqlite3.connect(str(db_path), timeout=_CONNECT_TIMEOUT)
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA foreign_keys = ON")
    conn.row_factory = sqlite3.Row
    return conn


def migrate() -> Path:
    """Run database init + migrations. Use this to migrate manually: python -m database"""
    return init_database()


if __name__ == "__main__":
    p = migrate()
    print("Database migrated:", p)
