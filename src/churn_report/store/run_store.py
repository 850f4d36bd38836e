"""Workflow runs and the append-only step journal."""

import json
import sqlite3
from typing import Any, Optional

from churn_report.errors import RunNotFoundError
from churn_report.models.workflow import (
    RunStatus,
    StepRecord,
    StepStatus,
    WorkflowParams,
    WorkflowRun,
)
from churn_report.store.base import SQLiteStore, parse_ts, utc_iso


class RunStore(SQLiteStore):
    """
    SQLite store for WorkflowRun rows and their StepJournal.
    Journal rows are only ever inserted; the latest completed row for a
    (run_id, step) is what the orchestrator reuses.
    """

    def _row_to_run(self, row: sqlite3.Row) -> WorkflowRun:
        return WorkflowRun(
            run_id=row["run_id"],
            user_id=row["user_id"],
            params=WorkflowParams.model_validate_json(row["params"]),
            status=RunStatus(row["status"]),
            current_step=row["current_step"],
            error=row["error"],
            created_at=parse_ts(row["created_at"]),
            finished_at=parse_ts(row["finished_at"]),
        )

    @staticmethod
    def _row_to_step(row: sqlite3.Row) -> StepRecord:
        return StepRecord(
            run_id=row["run_id"],
            step=row["step"],
            status=StepStatus(row["status"]),
            attempt=row["attempt"],
            result=json.loads(row["result"]) if row["result"] is not None else None,
            error=row["error"],
            recorded_at=parse_ts(row["recorded_at"]),
        )

    def create_run(self, run_id: str, params: WorkflowParams) -> WorkflowRun:
        """Insert a pending run. An existing run with the same id is returned unchanged."""
        now = utc_iso()
        with self._transaction() as conn:
            conn.execute(
                """
                INSERT INTO workflow_runs (run_id, user_id, params, status, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(run_id) DO NOTHING
                """,
                (run_id, params.user_id, params.model_dump_json(), RunStatus.PENDING.value, now, now),
            )
        return self.require_run(run_id)

    def get_run(self, run_id: str) -> Optional[WorkflowRun]:
        with self._transaction() as conn:
            row = conn.execute("SELECT * FROM workflow_runs WHERE run_id = ?", (run_id,)).fetchone()
        return self._row_to_run(row) if row else None

    def require_run(self, run_id: str) -> WorkflowRun:
        run = self.get_run(run_id)
        if run is None:
            raise RunNotFoundError(f"No workflow run {run_id}")
        return run

    def list_runs(self, user_id: Optional[str] = None, limit: int = 20) -> list[WorkflowRun]:
        """Most recent runs first, optionally for one user."""
        with self._transaction() as conn:
            if user_id:
                rows = conn.execute(
                    "SELECT * FROM workflow_runs WHERE user_id = ? ORDER BY created_at DESC LIMIT ?",
                    (user_id, limit),
                ).fetchall()
            else:
                rows = conn.execute(
                    "SELECT * FROM workflow_runs ORDER BY created_at DESC LIMIT ?", (limit,)
                ).fetchall()
        return [self._row_to_run(r) for r in rows]

    def set_status(
        self,
        run_id: str,
        status: RunStatus,
        *,
        current_step: Optional[str] = None,
        error: Optional[str] = None,
    ) -> None:
        """Update run status. Terminal statuses also stamp finished_at."""
        now = utc_iso()
        finished_at = now if status.is_terminal else None
        with self._transaction() as conn:
            conn.execute(
                """
                UPDATE workflow_runs SET
                    status = ?,
                    current_step = COALESCE(?, current_step),
                    error = ?,
                    updated_at = ?,
                    finished_at = COALESCE(?, finished_at)
                WHERE run_id = ?
                """,
                (status.value, current_step, error, now, finished_at, run_id),
            )

    def append_step(
        self,
        run_id: str,
        step: str,
        status: StepStatus,
        attempt: int,
        *,
        result: Any = None,
        error: Optional[str] = None,
    ) -> StepRecord:
        """Append one journal row. result must already be JSON-compatible."""
        record = StepRecord(
            run_id=run_id, step=step, status=status, attempt=attempt, result=result, error=error
        )
        with self._transaction() as conn:
            conn.execute(
                """
                INSERT INTO step_journal (run_id, step, status, attempt, result, error, recorded_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    run_id,
                    step,
                    status.value,
                    attempt,
                    json.dumps(result) if status == StepStatus.COMPLETED else None,
                    error,
                    utc_iso(record.recorded_at),
                ),
            )
        return record

    def completed_step(self, run_id: str, step: str) -> Optional[StepRecord]:
        """Latest completed journal entry for the step, if any."""
        with self._transaction() as conn:
            row = conn.execute(
                """
                SELECT * FROM step_journal
                WHERE run_id = ? AND step = ? AND status = ?
                ORDER BY id DESC LIMIT 1
                """,
                (run_id, step, StepStatus.COMPLETED.value),
            ).fetchone()
        return self._row_to_step(row) if row else None

    def attempts(self, run_id: str, step: str) -> int:
        """Number of attempts journaled so far for the step."""
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT MAX(attempt) AS n FROM step_journal WHERE run_id = ? AND step = ?",
                (run_id, step),
            ).fetchone()
        return row["n"] or 0

    def journal(self, run_id: str) -> list[StepRecord]:
        """All journal entries for a run, oldest first."""
        with self._transaction() as conn:
            rows = conn.execute(
                "SELECT * FROM step_journal WHERE run_id = ? ORDER BY id", (run_id,)
            ).fetchall()
        return [self._row_to_step(r) for r in rows]
