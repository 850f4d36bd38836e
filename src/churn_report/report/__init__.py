"""Churn report generation."""

from churn_report.report.llm import build_prompt, generate_report
from churn_report.report.stub import assess, generate_stub_report

__all__ = ["assess", "build_prompt", "generate_report", "generate_stub_report"]
