"""Churn report: CRM and support data reconciled into a durable risk-report pipeline."""

__version__ = "0.1.0"
