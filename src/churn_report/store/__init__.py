"""Local storage for runs, step journal, reports and workflow configs."""

from churn_report.store.config_store import OAuthConnection, WorkflowConfig, WorkflowConfigStore
from churn_report.store.report_store import Report, ReportStore
from churn_report.store.run_store import RunStore

__all__ = [
    "OAuthConnection",
    "Report",
    "ReportStore",
    "RunStore",
    "WorkflowConfig",
    "WorkflowConfigStore",
]
