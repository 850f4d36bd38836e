"""Scheduled batch: trigger every due workflow config concurrently."""

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from churn_report.errors import ChurnReportError
from churn_report.models.workflow import RunStatus, WorkflowRun
from churn_report.store.config_store import WorkflowConfig, WorkflowConfigStore
from churn_report.workflow.orchestrator import StepOrchestrator
from churn_report.workflow.schedule import next_run_at
from churn_report.workflow.triggers import trigger_run

logger = logging.getLogger(__name__)


@dataclass
class ScheduledResult:
    """Outcome of one scheduled trigger."""

    user_id: str
    run: Optional[WorkflowRun] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.run is not None and self.run.status == RunStatus.COMPLETED


def _run_one(
    orchestrator: StepOrchestrator,
    config_store: WorkflowConfigStore,
    config: WorkflowConfig,
    now: datetime,
) -> ScheduledResult:
    try:
        run = trigger_run(orchestrator, config_store, config.user_id)
    except (ChurnReportError, ValueError) as e:
        logger.error("Scheduled trigger for user %s failed: %s", config.user_id, e)
        result = ScheduledResult(user_id=config.user_id, error=str(e))
    else:
        result = ScheduledResult(user_id=config.user_id, run=run, error=run.error)
    if not result.ok:
        # Completed runs advance their own schedule in log-completion
        try:
            config_store.advance_next_run(config.user_id, next_run_at(config.frequency, now))
        except ChurnReportError as e:
            logger.error("Could not advance schedule for user %s: %s", config.user_id, e)
            result.error = f"{result.error}; schedule not advanced: {e}" if result.error else f"schedule not advanced: {e}"
    return result


def run_scheduled(
    orchestrator: StepOrchestrator,
    config_store: WorkflowConfigStore,
    now: Optional[datetime] = None,
    *,
    max_workers: int = 4,
) -> list[ScheduledResult]:
    """
    Trigger every enabled config with next_run_at <= now, one run per user,
    concurrently. Users whose trigger or run fails are advanced to their next
    slot so they are not retried on every tick.
    """
    now = now or datetime.now(timezone.utc)
    due = config_store.due_configs(now)
    if not due:
        logger.info("No workflows due at %s", now.isoformat())
        return []
    logger.info("Running %d scheduled workflow(s)", len(due))
    results: list[ScheduledResult] = []
    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        futures = {pool.submit(_run_one, orchestrator, config_store, cfg, now): cfg for cfg in due}
        for future in as_completed(futures):
            results.append(future.result())
    results.sort(key=lambda r: r.user_id)
    ok = sum(1 for r in results if r.ok)
    logger.info("Scheduled batch done: %d succeeded, %d failed", ok, len(results) - ok)
    return results
