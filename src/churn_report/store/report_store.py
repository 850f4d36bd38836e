"""Store for delivered churn reports."""

import sqlite3
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from churn_report.store.base import SQLiteStore, parse_ts, utc_iso


def generate_report_id() -> str:
    return f"rpt_{uuid.uuid4().hex[:16]}"


@dataclass
class Report:
    """One generated and delivered report."""

    id: str
    run_id: str
    user_id: str
    content: str
    status: str  # sent
    created_at: datetime


class ReportStore(SQLiteStore):
    """SQLite store for report records, at most one per run."""

    @staticmethod
    def _row_to_report(row: sqlite3.Row) -> Report:
        return Report(
            id=row["id"],
            run_id=row["run_id"],
            user_id=row["user_id"],
            content=row["content"],
            status=row["status"],
            created_at=parse_ts(row["created_at"]),
        )

    def add(self, run_id: str, user_id: str, content: str, status: str = "sent") -> Report:
        """Record the report for a run. A second add for the same run keeps the first record."""
        with self._transaction() as conn:
            conn.execute(
                """
                INSERT INTO reports (id, run_id, user_id, content, status, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(run_id) DO NOTHING
                """,
                (generate_report_id(), run_id, user_id, content, status, utc_iso()),
            )
            row = conn.execute("SELECT * FROM reports WHERE run_id = ?", (run_id,)).fetchone()
        return self._row_to_report(row)

    def get_by_run(self, run_id: str) -> Optional[Report]:
        with self._transaction() as conn:
            row = conn.execute("SELECT * FROM reports WHERE run_id = ?", (run_id,)).fetchone()
        return self._row_to_report(row) if row else None

    def list_for_user(self, user_id: str, limit: int = 20) -> list[Report]:
        """Most recent reports first."""
        with self._transaction() as conn:
            rows = conn.execute(
                "SELECT * FROM reports WHERE user_id = ? ORDER BY created_at DESC LIMIT ?",
                (user_id, limit),
            ).fetchall()
        return [self._row_to_report(r) for r in rows]
