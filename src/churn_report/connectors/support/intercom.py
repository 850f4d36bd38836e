"""Intercom support adapter. Tickets carry epoch-second timestamps and no priority."""

import logging
from typing import Any, Optional
from urllib.parse import urlencode

import httpx

from churn_report.connectors.base import SupportSource, encode_state
from churn_report.connectors.http import DEFAULT_TIMEOUT, request_json, request_token
from churn_report.connectors.parsers import age_hours, clean_str, to_iso8601
from churn_report.models.raw import RawRecord
from churn_report.models.support import StandardizedSupportCustomer, SupportTicket

from .aggregate import TicketAggregate, TicketFacts, bucket_records, group_tickets

logger = logging.getLogger(__name__)

API_BASE = "https://api.intercom.io"
API_VERSION = "2.14"
PER_PAGE = 150
# Search needs at least one predicate; this one matches every ticket
_ALL_TICKETS_QUERY = {"field": "created_at", "operator": ">", "value": "0"}


def _company_id(ticket: dict[str, Any]) -> Optional[str]:
    if ticket.get("company_id"):
        return ticket["company_id"]
    companies = (ticket.get("companies") or {}).get("companies") or []
    return companies[0].get("id") if companies else None


def ticket_facts(t: dict[str, Any]) -> TicketFacts:
    """Map one raw Intercom ticket to aggregation facts."""
    state = (t.get("ticket_state") or {}).get("category") or ("open" if t.get("open") else "closed")
    attributes = t.get("ticket_attributes") or {}
    ticket = SupportTicket(
        id=str(t.get("id")),
        title=clean_str(attributes.get("_default_title_")),
        status=str(state),
        created_at=to_iso8601(t.get("created_at")) or "",
        updated_at=to_iso8601(t.get("updated_at")),
        age_hours=age_hours(t.get("created_at")),
    )
    return TicketFacts(ticket=ticket, is_open=bool(t.get("open")))


class IntercomSupport(SupportSource):
    """Intercom REST API adapter."""

    provider_id = "intercom"

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        *,
        client: Optional[httpx.Client] = None,
        timeout: float = DEFAULT_TIMEOUT,
        max_pages: int = 50,
    ):
        super().__init__(client_id, client_secret, client=client, timeout=timeout, max_pages=max_pages)

    @property
    def _headers(self) -> dict[str, str]:
        return {"Intercom-Version": API_VERSION}

    def _request_access_token(self) -> str:
        body = request_token(
            self._client,
            self.provider_id,
            f"{API_BASE}/auth/eagle/token",
            json={"client_id": self.client_id, "client_secret": self.client_secret},
            token_field="token",
        )
        return body["token"]

    def _search_tickets(self) -> list[dict[str, Any]]:
        token = self.access_token()
        tickets: list[dict[str, Any]] = []
        pagination: dict[str, Any] = {"per_page": PER_PAGE}
        for _ in range(self.max_pages):
            payload = request_json(
                self._client,
                self.provider_id,
                "POST",
                f"{API_BASE}/tickets/search",
                token=token,
                headers=self._headers,
                json={"query": _ALL_TICKETS_QUERY, "pagination": pagination},
            )
            tickets.extend(payload.get("tickets") or [])
            cursor = ((payload.get("pages") or {}).get("next") or {}).get("starting_after")
            if not cursor:
                break
            pagination = {"per_page": PER_PAGE, "starting_after": cursor}
        return tickets

    def _list_companies(self) -> dict[str, dict[str, Any]]:
        token = self.access_token()
        companies: dict[str, dict[str, Any]] = {}
        params: dict[str, Any] = {"per_page": 50}
        for page in range(1, self.max_pages + 1):
            payload = request_json(
                self._client,
                self.provider_id,
                "GET",
                f"{API_BASE}/companies",
                token=token,
                headers=self._headers,
                params={**params, "page": page},
            )
            for company in payload.get("data") or []:
                companies[str(company["id"])] = company
            total_pages = (payload.get("pages") or {}).get("total_pages") or 1
            if page >= total_pages:
                break
        return companies

    def fetch_raw(self) -> list[RawRecord]:
        tickets = self._search_tickets()
        companies = self._list_companies()
        grouped = group_tickets(tickets, _company_id)
        return bucket_records(grouped, companies)

    def normalize(self, raw: RawRecord) -> StandardizedSupportCustomer:
        company: dict[str, Any] = raw.data.get("organization") or {}
        agg = TicketAggregate(track_priorities=False)
        for t in raw.data.get("tickets") or []:
            agg.add(ticket_facts(t))
        extra: dict[str, Any] = {}
        if company.get("plan"):
            extra["plan"] = (company["plan"] or {}).get("name")
        if company.get("monthly_spend") is not None:
            extra["monthlySpend"] = company["monthly_spend"]
        return agg.to_customer(
            str(raw.data["organization_id"]),
            clean_str(company.get("name")),
            domain=clean_str(company.get("website")),
            platform_specific_data=extra,
        )

    def authorize_url(self, redirect_uri: str, user_id: str) -> str:
        params = {
            "client_id": self.client_id,
            "redirect_uri": self.callback_uri(redirect_uri),
            "state": encode_state(userId=user_id, provider=self.provider_id),
        }
        return f"https://app.intercom.com/oauth?{urlencode(params)}"

    def exchange_code(self, code: str, redirect_uri: str) -> dict[str, Any]:
        request_token(
            self._client,
            self.provider_id,
            f"{API_BASE}/auth/eagle/token",
            json={
                "code": code,
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "redirect_uri": self.callback_uri(redirect_uri),
            },
            token_field="token",
        )
        return {"clientId": self.client_id, "clientSecret": self.client_secret}
