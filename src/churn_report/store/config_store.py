"""Per-user workflow configuration, schedule and stored provider connections."""

import json
import sqlite3
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from churn_report.store.base import SQLiteStore, parse_ts, utc_iso

FREQUENCIES = ("daily", "weekly", "monthly")
DESTINATIONS = ("email", "slack")


@dataclass
class WorkflowConfig:
    """A user's report workflow: providers, destination and schedule."""

    user_id: str
    support_provider: str
    report_destination: str  # email | slack
    destination_config: str
    frequency: str = "weekly"  # daily | weekly | monthly
    crm_provider: str = "none"
    enabled: bool = True
    next_run_at: Optional[datetime] = None
    last_run_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        if self.frequency not in FREQUENCIES:
            raise ValueError(f"frequency must be one of {FREQUENCIES}")
        if self.report_destination not in DESTINATIONS:
            raise ValueError(f"report_destination must be one of {DESTINATIONS}")


@dataclass
class OAuthConnection:
    """Connection metadata stored after a successful OAuth callback."""

    user_id: str
    provider: str
    metadata: dict[str, Any] = field(default_factory=dict)
    updated_at: Optional[datetime] = None


class WorkflowConfigStore(SQLiteStore):
    """SQLite store for workflow configs and OAuth connections."""

    @staticmethod
    def _row_to_config(row: sqlite3.Row) -> WorkflowConfig:
        return WorkflowConfig(
            user_id=row["user_id"],
            crm_provider=row["crm_provider"],
            support_provider=row["support_provider"],
            report_destination=row["report_destination"],
            destination_config=row["destination_config"],
            frequency=row["frequency"],
            enabled=bool(row["enabled"]),
            next_run_at=parse_ts(row["next_run_at"]),
            last_run_at=parse_ts(row["last_run_at"]),
        )

    def upsert_config(self, config: WorkflowConfig) -> WorkflowConfig:
        """Insert or replace the user's config. Schedule timestamps are kept when not given."""
        now = utc_iso()
        next_run = utc_iso(config.next_run_at) if config.next_run_at else None
        last_run = utc_iso(config.last_run_at) if config.last_run_at else None
        with self._transaction() as conn:
            conn.execute(
                """
                INSERT INTO workflow_configs
                (user_id, crm_provider, support_provider, report_destination, destination_config,
                 frequency, enabled, next_run_at, last_run_at, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(user_id) DO UPDATE SET
                    crm_provider = excluded.crm_provider,
                    support_provider = excluded.support_provider,
                    report_destination = excluded.report_destination,
                    destination_config = excluded.destination_config,
                    frequency = excluded.frequency,
                    enabled = excluded.enabled,
                    next_run_at = COALESCE(excluded.next_run_at, workflow_configs.next_run_at),
                    last_run_at = COALESCE(excluded.last_run_at, workflow_configs.last_run_at),
                    updated_at = excluded.updated_at
                """,
                (
                    config.user_id,
                    (config.crm_provider or "none").lower(),
                    config.support_provider.lower(),
                    config.report_destination,
                    config.destination_config,
                    config.frequency,
                    int(config.enabled),
                    next_run,
                    last_run,
                    now,
                    now,
                ),
            )
        stored = self.get_config(config.user_id)
        assert stored is not None
        return stored

    def get_config(self, user_id: str) -> Optional[WorkflowConfig]:
        with self._transaction() as conn:
            row = conn.execute("SELECT * FROM workflow_configs WHERE user_id = ?", (user_id,)).fetchone()
        return self._row_to_config(row) if row else None

    def due_configs(self, now: datetime) -> list[WorkflowConfig]:
        """Enabled configs whose next_run_at is at or before now."""
        with self._transaction() as conn:
            rows = conn.execute(
                """
                SELECT * FROM workflow_configs
                WHERE enabled = 1 AND next_run_at IS NOT NULL AND next_run_at <= ?
                ORDER BY next_run_at
                """,
                (utc_iso(now),),
            ).fetchall()
        return [self._row_to_config(r) for r in rows]

    def advance_next_run(
        self,
        user_id: str,
        next_run_at: datetime,
        *,
        last_run_at: Optional[datetime] = None,
    ) -> None:
        """Move one user's schedule forward. Touches only that user's row."""
        with self._transaction() as conn:
            conn.execute(
                """
                UPDATE workflow_configs SET
                    next_run_at = ?,
                    last_run_at = COALESCE(?, last_run_at),
                    updated_at = ?
                WHERE user_id = ?
                """,
                (
                    utc_iso(next_run_at),
                    utc_iso(last_run_at) if last_run_at else None,
                    utc_iso(),
                    user_id,
                ),
            )

    def save_connection(self, user_id: str, provider: str, metadata: dict[str, Any]) -> OAuthConnection:
        """Insert or replace the stored metadata for (user, provider)."""
        now = utc_iso()
        provider = provider.lower()
        with self._transaction() as conn:
            conn.execute(
                """
                INSERT INTO oauth_connections (user_id, provider, metadata, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(user_id, provider) DO UPDATE SET
                    metadata = excluded.metadata,
                    updated_at = excluded.updated_at
                """,
                (user_id, provider, json.dumps(metadata), now, now),
            )
        return OAuthConnection(user_id=user_id, provider=provider, metadata=metadata, updated_at=parse_ts(now))

    def get_connection(self, user_id: str, provider: str) -> Optional[OAuthConnection]:
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT * FROM oauth_connections WHERE user_id = ? AND provider = ?",
                (user_id, provider.lower()),
            ).fetchone()
        if not row:
            return None
        return OAuthConnection(
            user_id=row["user_id"],
            provider=row["provider"],
            metadata=json.loads(row["metadata"]),
            updated_at=parse_ts(row["updated_at"]),
        )

    def list_connections(self, user_id: str) -> list[OAuthConnection]:
        with self._transaction() as conn:
            rows = conn.execute(
                "SELECT * FROM oauth_connections WHERE user_id = ? ORDER BY provider", (user_id,)
            ).fetchall()
        return [
            OAuthConnection(
                user_id=r["user_id"],
                provider=r["provider"],
                metadata=json.loads(r["metadata"]),
                updated_at=parse_ts(r["updated_at"]),
            )
            for r in rows
        ]
