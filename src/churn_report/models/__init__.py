"""Data models for standardized entities, reconciled companies and workflow runs."""

from churn_report.models.combined import CombinedCompany, SourcedCRMCompany, SourcedSupportCustomer
from churn_report.models.crm import OpenCase, OpenOpportunity, OpenTask, StandardizedCRMCompany
from churn_report.models.raw import RawRecord
from churn_report.models.support import PriorityHistogram, StandardizedSupportCustomer, SupportTicket
from churn_report.models.workflow import (
    RunStatus,
    StepRecord,
    StepStatus,
    WorkflowParams,
    WorkflowRun,
    make_run_id,
)

__all__ = [
    "CombinedCompany",
    "OpenCase",
    "OpenOpportunity",
    "OpenTask",
    "PriorityHistogram",
    "RawRecord",
    "RunStatus",
    "SourcedCRMCompany",
    "SourcedSupportCustomer",
    "StandardizedCRMCompany",
    "StandardizedSupportCustomer",
    "StepRecord",
    "StepStatus",
    "SupportTicket",
    "WorkflowParams",
    "WorkflowRun",
    "make_run_id",
]
