"""Shared SQLite plumbing for the stores."""

import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, Optional

from churn_report.errors import PersistenceError

# Seconds a writer waits on a locked database before failing
BUSY_TIMEOUT = 30.0


def utc_iso(dt: Optional[datetime] = None) -> str:
    """UTC ISO timestamp; naive datetimes are treated as UTC."""
    dt = dt or datetime.now(timezone.utc)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat()


def parse_ts(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


class SQLiteStore:
    """
    Base for stores sharing one database file. Each operation opens its own
    connection, so stores are safe to use from concurrent worker threads.
    """

    def __init__(self, db_path: str | Path = "churn_report.db"):
        self._db_path = Path(db_path)
        self._ensure_schema()

    def _connection(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path, timeout=BUSY_TIMEOUT)
        conn.row_factory = sqlite3.Row
        return conn

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        """Connection committed on success, rolled back on error, always closed."""
        try:
            conn = self._connection()
        except sqlite3.Error as e:
            raise PersistenceError(f"cannot open {self._db_path}: {e}") from e
        try:
            with conn:
                yield conn
        except sqlite3.Error as e:
            raise PersistenceError(str(e)) from e
        finally:
            conn.close()

    def _ensure_schema(self) -> None:
        schema_path = Path(__file__).parent / "schema.sql"
        with self._transaction() as conn:
            conn.executescript(schema_path.read_text())
