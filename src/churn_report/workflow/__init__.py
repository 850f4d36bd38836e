"""Durable report pipeline: orchestrator, triggers and scheduler."""

from churn_report.workflow.orchestrator import STEPS, Collaborators, StepOrchestrator
from churn_report.workflow.schedule import advance_schedule, next_run_at
from churn_report.workflow.scheduler import ScheduledResult, run_scheduled
from churn_report.workflow.triggers import build_params, trigger_run

__all__ = [
    "STEPS",
    "Collaborators",
    "ScheduledResult",
    "StepOrchestrator",
    "advance_schedule",
    "build_params",
    "next_run_at",
    "run_scheduled",
    "trigger_run",
]
