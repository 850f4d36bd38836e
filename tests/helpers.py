"""Shared builders for churn-report tests."""

import json
from typing import Any, Callable

import httpx

from churn_report.models.crm import StandardizedCRMCompany
from churn_report.models.support import PriorityHistogram, StandardizedSupportCustomer


def json_response(body: Any, status_code: int = 200) -> httpx.Response:
    """JSON httpx response for MockTransport handlers."""
    return httpx.Response(status_code, content=json.dumps(body), headers={"Content-Type": "application/json"})


def mock_client(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.Client:
    """httpx client whose requests are answered by handler; no network."""
    return httpx.Client(transport=httpx.MockTransport(handler))


def make_crm(name: str = "Acme Corp, Inc.", company_id: str = "C1", **kwargs: Any) -> StandardizedCRMCompany:
    return StandardizedCRMCompany(company_name=name, company_id=company_id, **kwargs)


def make_support(
    name: str = "ACME CORP",
    customer_id: str = "S1",
    ticket_count: int = 3,
    open_tickets: int = 1,
    **kwargs: Any,
) -> StandardizedSupportCustomer:
    kwargs.setdefault("open_ticket_priorities", PriorityHistogram(high=open_tickets))
    return StandardizedSupportCustomer(
        id=customer_id,
        name=name,
        ticket_count=ticket_count,
        open_tickets=open_tickets,
        **kwargs,
    )
