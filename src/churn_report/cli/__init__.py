"""CLI for churn-report."""
