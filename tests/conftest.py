"""Pytest fixtures for churn-report tests."""

import tempfile
from pathlib import Path

import pytest

from churn_report.models.workflow import WorkflowParams


@pytest.fixture
def temp_db() -> Path:
    """Temporary database path for isolated tests."""
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        path = Path(f.name)
    yield path
    path.unlink(missing_ok=True)


@pytest.fixture
def params() -> WorkflowParams:
    """Params for a user with HubSpot CRM, Zendesk support and email delivery."""
    return WorkflowParams(
        user_id="user-1",
        crm_provider="hubspot",
        crm_metadata={"clientId": "hs-id", "clientSecret": "hs-secret"},
        support_provider="zendesk",
        support_metadata={"subdomain": "acme", "clientId": "zd-id", "clientSecret": "zd-secret"},
        report_destination="email",
        destination_config="csm@example.com",
    )
