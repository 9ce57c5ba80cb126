# ABOUTME: Opens the Shelfkeeper catalog database and brings its schema up to date.
# ABOUTME: Every connection gets WAL journaling, foreign keys, a busy timeout, and sqlite3.Row rows.

import sqlite3
from pathlib import Path

from shelfkeeper.db.schema import MIGRATIONS, SCHEMA_V1

DEFAULT_DB_PATH = Path.home() / ".shelfkeeper" / "library.db"

# Seconds a writer waits on a locked database before failing.
BUSY_TIMEOUT = 30.0


def schema_version(conn: sqlite3.Connection) -> int:
    """Highest applied schema version, 0 for an empty database."""
    has_table = conn.execute(
        "SELECT 1 FROM sqlite_master WHERE type='table' AND name='schema_version'"
    ).fetchone()
    if has_table is None:
        return 0
    row = conn.execute("SELECT MAX(version) FROM schema_version").fetchone()
    return row[0] or 0


def migrate(conn: sqlite3.Connection) -> int:
    """Create the base schema if missing, then apply newer migrations in order.

    Returns:
        The schema version after migrating.
    """
    if schema_version(conn) == 0:
        conn.executescript(SCHEMA_V1)
    current = schema_version(conn)
    for version, sql in MIGRATIONS:
        if version > current:
            conn.executescript(sql)
            current = version
    return current


def open_catalog(path: Path | None = None) -> sqlite3.Connection:
    """Open or create the catalog at ``path`` (default ~/.shelfkeeper/library.db).

    Missing parent directories are created. Connections are not shared
    between threads; each worker opens its own.
    """
    db_path = path or DEFAULT_DB_PATH
    db_path.parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(str(db_path), timeout=BUSY_TIMEOUT)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA foreign_keys=ON")
    migrate(conn)
    return conn
