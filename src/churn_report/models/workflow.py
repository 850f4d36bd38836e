"""Workflow run, trigger parameters and step journal models."""

import hashlib
import json
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class RunStatus(str, Enum):
    """Run lifecycle: pending -> running (<-> step_retrying) -> completed | failed."""

    PENDING = "pending"
    RUNNING = "running"
    STEP_RETRYING = "step_retrying"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (RunStatus.COMPLETED, RunStatus.FAILED)


class StepStatus(str, Enum):
    """Status of one journal entry."""

    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class WorkflowParams(BaseModel):
    """Input contract of one pipeline run."""

    model_config = ConfigDict(frozen=True)

    user_id: str = Field(..., min_length=1)
    crm_provider: Optional[str] = None
    crm_metadata: Optional[dict[str, Any]] = None
    support_provider: str = Field(..., min_length=1)
    support_metadata: dict[str, Any] = Field(default_factory=dict)
    report_destination: Literal["email", "slack"]
    destination_config: str = Field(..., min_length=1, description="Recipient address or webhook URL")

    @property
    def has_crm(self) -> bool:
        """CRM fetch is skipped unless both a provider and its metadata are configured."""
        return bool(self.crm_provider) and self.crm_provider != "none" and self.crm_metadata is not None

    def fingerprint(self) -> str:
        """Stable hash of the triggering choices (user, providers, destination)."""
        key_fields = (
            self.user_id,
            self.crm_provider if self.has_crm else None,
            self.support_provider,
            self.report_destination,
            self.destination_config,
        )
        return hashlib.sha256(json.dumps(key_fields).encode()).hexdigest()[:12]


def make_run_id(params: WorkflowParams, trigger_id: Optional[str] = None) -> str:
    """
    Derive a run id from the triggering parameters plus a per-trigger nonce.
    Every trigger gets a fresh id unless trigger_id is given explicitly.
    """
    nonce = trigger_id or uuid.uuid4().hex[:12]
    return f"run_{params.fingerprint()}_{nonce}"


class StepRecord(BaseModel):
    """One append-only journal entry for a (run_id, step) attempt."""

    run_id: str
    step: str
    status: StepStatus
    attempt: int = Field(..., ge=1)
    result: Any = None
    error: Optional[str] = None
    recorded_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class WorkflowRun(BaseModel):
    """Persisted run instance."""

    run_id: str
    user_id: str
    params: WorkflowParams
    status: RunStatus = RunStatus.PENDING
    current_step: Optional[str] = None
    error: Optional[str] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: Optional[datetime] = None
